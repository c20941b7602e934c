"""
Cross-partner analytics endpoints
"""

import asyncio
from datetime import date

from fastapi import APIRouter, Depends

from .deps import get_ledger_system
from ..system import LedgerSystem


router = APIRouter()


@router.get("/cumulative")
async def get_cumulative_net_positions(system: LedgerSystem = Depends(get_ledger_system)):
    """Net positions summed over every active partner"""
    summary = await asyncio.to_thread(system.analytics.cumulative_net_positions)
    return summary.to_dict()


@router.get("/cross-partner")
async def get_cross_partner_analysis(
    start_date: date,
    end_date: date,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Activity of all active partners within whole days"""
    result = await asyncio.to_thread(
        system.analytics.cross_partner_analysis, start_date, end_date
    )
    return result.to_dict()
