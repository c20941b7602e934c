"""
Date Range Report Module

Builds a partner's date-range report and renders it as a printable HTML
document (the print-to-PDF target) or as CSV for spreadsheets. Transactions
are grouped by day in ascending order; each day is followed by a daily
subtotal and a running cumulative subtotal.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, IO
import csv
import io
import re

from jinja2 import Environment, PackageLoader, select_autoescape

from .currency import CNY, format_amount
from .logging_config import get_logger, log_action
from .partners import PartnerManager
from .positions import PartnerSummary
from .errors import NotFoundError
from .timeutils import DateLike, end_of_day, start_of_day
from .transactions import Transaction, TransactionManager


logger = get_logger("fx_ledger.reports")

REPORT_FILE_PREFIX = "DateRangeReport_"
DISPLAY_DATE_FORMAT = "%d/%m/%Y"

CSV_HEADERS = [
    "Date", "Time", "TZS Received", "Foreign Given", "Currency",
    "Rate", "Net TZS", "Net Foreign", "Notes", "Formula"
]

# Cells starting with these are evaluated by spreadsheet applications
_FORMULA_PREFIXES = ("=", "+", "-", "@")


@dataclass
class DateRangeReport:
    """Input of the report renderers"""
    partner_name: str
    transactions: List[Transaction]
    start_date: DateLike
    end_date: DateLike
    summary: PartnerSummary
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DaySection:
    """One day of a report with its subtotals"""
    day: date
    transactions: List[Transaction]
    total_tzs_received: Decimal = Decimal("0")
    total_net_tzs: Decimal = Decimal("0")
    foreign_by_currency: Dict[str, Decimal] = field(default_factory=dict)
    cumulative_tzs_received: Decimal = Decimal("0")
    cumulative_net_tzs: Decimal = Decimal("0")


def group_by_day(transactions: List[Transaction]) -> List[DaySection]:
    """Split transactions into ascending days with daily and running totals"""
    ordered = sorted(transactions, key=lambda t: t.date)
    sections: List[DaySection] = []

    cumulative_tzs = Decimal("0")
    cumulative_net = Decimal("0")
    for transaction in ordered:
        day = transaction.date.date()
        if not sections or sections[-1].day != day:
            sections.append(DaySection(day=day, transactions=[]))
        section = sections[-1]
        section.transactions.append(transaction)
        section.total_tzs_received += transaction.tzs_received
        section.total_net_tzs += transaction.net_tzs
        section.foreign_by_currency[transaction.foreign_currency] = (
            section.foreign_by_currency.get(transaction.foreign_currency, Decimal("0"))
            + transaction.foreign_given
        )

    for section in sections:
        cumulative_tzs += section.total_tzs_received
        cumulative_net += section.total_net_tzs
        section.cumulative_tzs_received = cumulative_tzs
        section.cumulative_net_tzs = cumulative_net

    return sections


def _format_date(value: DateLike) -> str:
    return value.strftime(DISPLAY_DATE_FORMAT)


def _safe_cell(text: str) -> str:
    if text and text.startswith(_FORMULA_PREFIXES):
        return "'" + text
    return text


class ReportGenerator:
    """
    Builds and renders partner date-range reports
    """

    def __init__(
        self,
        partner_manager: Optional[PartnerManager] = None,
        transaction_manager: Optional[TransactionManager] = None
    ):
        self.partner_manager = partner_manager
        self.transaction_manager = transaction_manager
        self._env = Environment(
            loader=PackageLoader("fx_ledger", "templates"),
            autoescape=select_autoescape(["html"])
        )
        self._env.filters["amount"] = format_amount
        self._env.filters["display_date"] = _format_date

    def build_report(self, partner_id: str, start_date: DateLike, end_date: DateLike) -> DateRangeReport:
        """Collect a partner's transactions and summary for whole days"""
        if self.partner_manager is None or self.transaction_manager is None:
            raise RuntimeError("ReportGenerator was created without ledger access")

        partner = self.partner_manager.get_partner(partner_id)
        if not partner:
            raise NotFoundError("partner", partner_id)

        start = start_of_day(start_date)
        end = end_of_day(end_date)
        return DateRangeReport(
            partner_name=partner.name,
            transactions=self.transaction_manager.get_transactions_by_date_range(partner_id, start, end),
            start_date=start,
            end_date=end,
            summary=self.transaction_manager.get_partner_summary_by_date_range(partner_id, start, end)
        )

    def render_html(self, report: DateRangeReport) -> str:
        """Styled, printable HTML document"""
        template = self._env.get_template("date_range_report.html")
        return template.render(
            report=report,
            sections=group_by_day(report.transactions)
        )

    def render_csv(self, report: DateRangeReport) -> str:
        """
        CSV with the same rows as the HTML report.

        The last column carries the spreadsheet formula that reproduces each
        computed cell, as plain text so spreadsheets do not evaluate it.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        row_number = 0

        def write(row: List[str]) -> int:
            nonlocal row_number
            writer.writerow(row)
            row_number += 1
            return row_number

        summary = report.summary
        write(["Date Range Report"])
        write(["Partner", _safe_cell(report.partner_name)])
        write(["Period", f"{_format_date(report.start_date)} - {_format_date(report.end_date)}"])
        write(["Generated", report.generated_at.strftime("%d/%m/%Y %H:%M")])
        write([])
        write(["Summary"])
        write(["Total Net TZS", format_amount(summary.total_net_tzs)])
        write(["Total Net CNY", format_amount(summary.total_net_cny)])
        write(["Total Net USDT", format_amount(summary.total_net_usdt)])
        write(["Transactions", str(summary.transaction_count)])
        write([])
        write(CSV_HEADERS)

        daily_total_rows: List[int] = []
        for section in group_by_day(report.transactions):
            first_row = row_number + 1
            for transaction in section.transactions:
                r = row_number + 1
                if transaction.foreign_currency == CNY:
                    formula = f"Net TZS = D{r}*F{r} - C{r}"
                else:
                    formula = f"Net TZS = C{r} - D{r}*F{r}"
                write([
                    _format_date(transaction.date),
                    transaction.date.strftime("%H:%M"),
                    format_amount(transaction.tzs_received),
                    format_amount(transaction.foreign_given),
                    transaction.foreign_currency,
                    format_amount(transaction.exchange_rate),
                    format_amount(transaction.net_tzs),
                    format_amount(transaction.net_foreign),
                    _safe_cell(transaction.notes),
                    formula
                ])
            last_row = row_number

            daily_total_rows.append(write([
                f"Daily Total {_format_date(section.day)}", "",
                format_amount(section.total_tzs_received), "", "", "",
                format_amount(section.total_net_tzs), "", "",
                f"SUM(G{first_row}:G{last_row})"
            ]))
            write([
                f"Cumulative to {_format_date(section.day)}", "",
                format_amount(section.cumulative_tzs_received), "", "", "",
                format_amount(section.cumulative_net_tzs), "", "",
                "SUM(" + ",".join(f"G{r}" for r in daily_total_rows) + ")"
            ])

        content = output.getvalue()
        output.close()
        return content

    def export_html(self, report: DateRangeReport, output: IO) -> bool:
        """Write the HTML report as UTF-8; False if the sink failed"""
        return self._export(self.render_html, report, output, "html")

    def export_csv(self, report: DateRangeReport, output: IO) -> bool:
        """Write the CSV report as UTF-8; False if the sink failed"""
        return self._export(self.render_csv, report, output, "csv")

    def generate_report_file_name(
        self,
        partner_name: str,
        start_date: DateLike,
        end_date: DateLike,
        extension: str
    ) -> str:
        """DateRangeReport_<partner>_<YYYYMMDD>_<YYYYMMDD>.<ext>"""
        safe_name = re.sub(r'[\\/:*?"<>|]', "_", partner_name.strip()) or "Partner"
        return (
            f"{REPORT_FILE_PREFIX}{safe_name}_"
            f"{start_date.strftime('%Y%m%d')}_{end_date.strftime('%Y%m%d')}"
            f".{extension.lstrip('.')}"
        )

    def _export(self, render, report: DateRangeReport, output: IO, kind: str) -> bool:
        content = render(report)
        try:
            try:
                output.write(content)
            except TypeError:
                output.write(content.encode("utf-8"))
            output.flush()
        except (OSError, ValueError) as e:
            logger.error(f"Report export ({kind}) failed: {e}", exc_info=True)
            return False

        log_action(
            logger, "info", "Report exported",
            action="report_exported",
            resource=f"report:{kind}",
            extra={"partner": report.partner_name, "transactions": len(report.transactions)}
        )
        return True
