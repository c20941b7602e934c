"""
Backup and restore endpoints
"""

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from .deps import get_ledger_system
from ..system import LedgerSystem


router = APIRouter()


@router.get("/export")
async def export_backup(system: LedgerSystem = Depends(get_ledger_system)):
    """Download the ledger as a backup document"""
    manager = system.backup_manager
    document = await asyncio.to_thread(manager.create_backup)
    return Response(
        content=document.to_json(),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{manager.generate_backup_file_name()}"'
        }
    )


@router.post("/restore")
async def restore_backup(request: Request, system: LedgerSystem = Depends(get_ledger_system)):
    """Merge an uploaded backup document (raw JSON body) into the ledger"""
    manager = system.backup_manager
    payload = await request.body()
    document = await asyncio.to_thread(manager.parse_backup_from_file, payload)
    result = await asyncio.to_thread(manager.restore_backup, document)
    return result.to_dict()
