"""
Transaction endpoints
"""

import asyncio

from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_ledger_system
from .schemas import CreateTransactionRequest, UpdateTransactionRequest, transaction_to_dict
from ..system import LedgerSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateTransactionRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Record a transaction; net positions are computed server-side"""
    transaction = await asyncio.to_thread(
        system.transaction_manager.add_transaction,
        partner_id=request.partner_id,
        date=request.date,
        tzs_received=request.tzs_received,
        foreign_given=request.foreign_given,
        foreign_currency=request.foreign_currency,
        exchange_rate=request.exchange_rate,
        notes=request.notes
    )
    return transaction_to_dict(transaction)


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get transaction by ID"""
    transaction = await asyncio.to_thread(system.transaction_manager.get_transaction, transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction_to_dict(transaction)


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    request: UpdateTransactionRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Edit a transaction's inputs"""
    def _update():
        manager = system.transaction_manager
        transaction = manager.get_transaction(transaction_id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")
        for field_name, value in request.model_dump(exclude_none=True).items():
            setattr(transaction, field_name, value)
        return manager.update_transaction(transaction)

    transaction = await asyncio.to_thread(_update)
    return transaction_to_dict(transaction)


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Delete a single transaction"""
    await asyncio.to_thread(system.transaction_manager.delete_transaction, transaction_id)
    return {"message": "Transaction deleted successfully"}
