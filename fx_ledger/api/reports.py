"""
Date range report endpoints
"""

import asyncio
from datetime import date
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse

from .deps import get_ledger_system
from ..errors import ValidationError
from ..system import LedgerSystem


router = APIRouter()


def _disposition(kind: str, filename: str) -> str:
    # Header values must be latin-1; partner names often are not
    return f"{kind}; filename*=UTF-8''{quote(filename)}"


def _check_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError("Start date must not be after end date", field="start_date")


@router.get("/{partner_id}/html", response_class=HTMLResponse)
async def get_html_report(
    partner_id: str,
    start_date: date,
    end_date: date,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Printable HTML report of a partner's activity"""
    _check_range(start_date, end_date)
    generator = system.report_generator
    report = await asyncio.to_thread(generator.build_report, partner_id, start_date, end_date)
    content = await asyncio.to_thread(generator.render_html, report)
    filename = generator.generate_report_file_name(report.partner_name, start_date, end_date, "html")
    return HTMLResponse(
        content=content,
        headers={"Content-Disposition": _disposition("inline", filename)}
    )


@router.get("/{partner_id}/csv")
async def get_csv_report(
    partner_id: str,
    start_date: date,
    end_date: date,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """CSV report of a partner's activity"""
    _check_range(start_date, end_date)
    generator = system.report_generator
    report = await asyncio.to_thread(generator.build_report, partner_id, start_date, end_date)
    content = await asyncio.to_thread(generator.render_csv, report)
    filename = generator.generate_report_file_name(report.partner_name, start_date, end_date, "csv")
    return PlainTextResponse(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": _disposition("attachment", filename)}
    )
