"""
Balance sheet endpoints
"""

import asyncio

from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_ledger_system
from .schemas import BalanceRateRequest, UpdateBalanceItemRequest
from ..balances import BalanceSheet
from ..system import LedgerSystem


router = APIRouter()


def _sheet_to_dict(sheet: BalanceSheet) -> dict:
    return {
        "items": [
            {
                **item.model_dump(),
                "tzs_equivalent": str(sheet.item_tzs_equivalent(item))
            }
            for item in sheet.items
        ],
        "total_tzs": str(sheet.total_tzs()),
        "default_cny_rate": sheet.default_cny_rate,
        "default_usdt_rate": sheet.default_usdt_rate
    }


@router.get("")
async def get_balance_sheet(system: LedgerSystem = Depends(get_ledger_system)):
    """All rows with their TZS values and the grand total"""
    return _sheet_to_dict(system.balance_sheet)


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def add_balance_item(system: LedgerSystem = Depends(get_ledger_system)):
    """Append an empty TZS row"""
    item = await asyncio.to_thread(system.balance_sheet.add_item)
    return item.model_dump()


@router.put("/items/{item_id}")
async def update_balance_item(
    item_id: str,
    request: UpdateBalanceItemRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Edit a row"""
    item = await asyncio.to_thread(
        system.balance_sheet.update_item,
        item_id,
        description=request.description,
        amount=request.amount,
        currency=request.currency,
        rate=request.rate
    )
    return item.model_dump()


@router.delete("/items/{item_id}")
async def remove_balance_item(item_id: str, system: LedgerSystem = Depends(get_ledger_system)):
    """Remove a row (net position and fixed rows stay)"""
    removed = await asyncio.to_thread(system.balance_sheet.remove_item, item_id)
    if not removed:
        raise HTTPException(status_code=400, detail="This balance item cannot be removed")
    return {"message": "Balance item removed successfully"}


@router.post("/refresh")
async def refresh_net_position(system: LedgerSystem = Depends(get_ledger_system)):
    """Pull the ledger's cumulative net position into the sheet"""
    await asyncio.to_thread(system.balance_sheet.refresh_net_position)
    return _sheet_to_dict(system.balance_sheet)


@router.put("/rates/cny")
async def update_cny_rate(request: BalanceRateRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Change the sheet's default CNY rate"""
    await asyncio.to_thread(system.balance_sheet.update_default_cny_rate, request.rate)
    return _sheet_to_dict(system.balance_sheet)


@router.put("/rates/usdt")
async def update_usdt_rate(request: BalanceRateRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Change the sheet's default USDT rate"""
    await asyncio.to_thread(system.balance_sheet.update_default_usdt_rate, request.rate)
    return _sheet_to_dict(system.balance_sheet)


@router.delete("")
async def clear_balance_sheet(system: LedgerSystem = Depends(get_ledger_system)):
    """Start again from the default rows"""
    await asyncio.to_thread(system.balance_sheet.clear_saved_state)
    return _sheet_to_dict(system.balance_sheet)
