"""
Partner management endpoints
"""

import asyncio
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_ledger_system
from .schemas import (
    CreatePartnerRequest,
    UpdatePartnerRequest,
    partner_to_dict,
    transaction_to_dict
)
from ..system import LedgerSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_partner(
    request: CreatePartnerRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a new partner"""
    partner = await asyncio.to_thread(
        system.partner_manager.add_partner, request.name, request.notes
    )
    return {"partner_id": partner.id, "message": "Partner created successfully"}


@router.get("")
async def list_partners(
    q: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List active partners, largest net position first"""
    if q:
        partners = await asyncio.to_thread(system.partner_manager.search_partners, q)
    else:
        partners = await asyncio.to_thread(system.partner_manager.list_active_partners)
    return {
        "partners": [partner_to_dict(p) for p in partners],
        "count": len(partners)
    }


@router.get("/{partner_id}")
async def get_partner(
    partner_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get partner by ID"""
    partner = await asyncio.to_thread(system.partner_manager.get_partner, partner_id)
    if not partner:
        raise HTTPException(status_code=404, detail="Partner not found")
    return partner_to_dict(partner)


@router.put("/{partner_id}")
async def update_partner(
    partner_id: str,
    request: UpdatePartnerRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Rename a partner or change its notes"""
    def _update():
        manager = system.partner_manager
        partner = manager.get_partner(partner_id)
        if not partner:
            raise HTTPException(status_code=404, detail="Partner not found")
        if request.name is not None:
            partner.name = request.name
        if request.notes is not None:
            partner.notes = request.notes
        return manager.update_partner(partner)

    partner = await asyncio.to_thread(_update)
    return partner_to_dict(partner)


@router.delete("/{partner_id}")
async def delete_partner(
    partner_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Soft-delete a partner; its transactions are kept"""
    await asyncio.to_thread(system.partner_manager.delete_partner, partner_id)
    return {"message": "Partner deleted successfully"}


@router.delete("/{partner_id}/purge")
async def purge_partner(
    partner_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Permanently remove a partner and all of its transactions"""
    removed = await asyncio.to_thread(system.partner_manager.purge_partner, partner_id)
    return {"message": "Partner purged successfully", "transactions_removed": removed}


@router.get("/{partner_id}/summary")
async def get_partner_summary(
    partner_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Net position totals of a partner, optionally within whole days"""
    if not await asyncio.to_thread(system.partner_manager.get_partner, partner_id):
        raise HTTPException(status_code=404, detail="Partner not found")

    manager = system.transaction_manager
    if start_date and end_date:
        summary = await asyncio.to_thread(
            manager.get_partner_summary_by_date_range, partner_id, start_date, end_date
        )
    else:
        summary = await asyncio.to_thread(manager.get_partner_summary, partner_id)
    return summary.to_dict()


@router.get("/{partner_id}/transactions")
async def get_partner_transactions(
    partner_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Transactions of a partner, newest first"""
    if not await asyncio.to_thread(system.partner_manager.get_partner, partner_id):
        raise HTTPException(status_code=404, detail="Partner not found")

    manager = system.transaction_manager
    if start_date and end_date:
        transactions = await asyncio.to_thread(
            manager.get_transactions_by_date_range, partner_id, start_date, end_date
        )
    else:
        transactions = await asyncio.to_thread(manager.get_transactions_by_partner, partner_id)
    return {
        "transactions": [transaction_to_dict(t) for t in transactions],
        "count": len(transactions)
    }
