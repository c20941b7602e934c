"""
Exchange rate endpoints
"""

import asyncio

from fastapi import APIRouter, Depends

from .deps import get_ledger_system
from .schemas import SetRateRequest, rate_to_dict
from ..system import LedgerSystem


router = APIRouter()


@router.get("")
async def get_default_rates(system: LedgerSystem = Depends(get_ledger_system)):
    """Current default rate per currency"""
    rates = await asyncio.to_thread(system.rate_manager.get_default_rate_records)
    return {"rates": [rate_to_dict(r) for r in rates]}


@router.get("/{currency}")
async def get_rate(currency: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Default, effective and latest rate of a currency"""
    manager = system.rate_manager

    def _collect():
        return {
            "currency": currency.strip().upper(),
            "default_rate": str(manager.get_default_rate(currency)),
            "effective_rate": str(manager.get_default_rate_or_fallback(currency)),
            "latest_rate": str(manager.get_latest_rate(currency))
        }

    return await asyncio.to_thread(_collect)


@router.put("/{currency}")
async def set_default_rate(
    currency: str,
    request: SetRateRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Make a new default rate for a currency"""
    rate = await asyncio.to_thread(system.rate_manager.set_default_rate, currency, request.rate)
    return rate_to_dict(rate)


@router.get("/{currency}/history")
async def get_rate_history(currency: str, system: LedgerSystem = Depends(get_ledger_system)):
    """All rate rows of a currency, newest first"""
    history = await asyncio.to_thread(system.rate_manager.get_rate_history, currency)
    return {"rates": [rate_to_dict(r) for r in history]}


@router.delete("/entries/{rate_id}")
async def delete_rate(rate_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Remove one rate row"""
    await asyncio.to_thread(system.rate_manager.delete_rate, rate_id)
    return {"message": "Exchange rate deleted successfully"}
