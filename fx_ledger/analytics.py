"""
Ledger Analytics Module

Cross-partner aggregation: cumulative net positions over all active partners
and date-range activity analysis. A partner whose figures cannot be read is
logged and skipped so one bad record never hides the rest of the book.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Dict, Any

from .currency import CNY, USDT
from .errors import ValidationError
from .logging_config import get_logger
from .partners import PartnerManager
from .positions import PartnerSummary
from .timeutils import DateLike, end_of_day, start_of_day
from .transactions import TransactionManager


logger = get_logger("fx_ledger.analytics")

DATE_LABEL_FORMAT = "%d %b %Y"


@dataclass
class AnalysisResult:
    """Activity across all active partners within a date range"""
    date_range: str
    total_tzs_received: Decimal = Decimal("0")
    total_cny_sold: Decimal = Decimal("0")
    cny_transactions: int = 0
    total_usdt_sold: Decimal = Decimal("0")
    usdt_transactions: int = 0
    total_transactions: int = 0
    foreign_sold_by_currency: Dict[str, Decimal] = field(default_factory=dict)
    transactions_by_currency: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_range": self.date_range,
            "total_tzs_received": str(self.total_tzs_received),
            "total_cny_sold": str(self.total_cny_sold),
            "cny_transactions": self.cny_transactions,
            "total_usdt_sold": str(self.total_usdt_sold),
            "usdt_transactions": self.usdt_transactions,
            "total_transactions": self.total_transactions,
            "foreign_sold_by_currency": {
                currency: str(amount)
                for currency, amount in self.foreign_sold_by_currency.items()
            },
            "transactions_by_currency": dict(self.transactions_by_currency),
        }


def format_date_range(start_date: DateLike, end_date: DateLike) -> str:
    """Printable label such as "01 Mar 2024 - 31 Mar 2024" """
    return f"{start_date.strftime(DATE_LABEL_FORMAT)} - {end_date.strftime(DATE_LABEL_FORMAT)}"


class LedgerAnalytics:
    """
    Aggregates partner summaries across the whole ledger
    """

    def __init__(self, partner_manager: PartnerManager, transaction_manager: TransactionManager):
        self.partner_manager = partner_manager
        self.transaction_manager = transaction_manager

    def cumulative_net_positions(self) -> PartnerSummary:
        """Sum of every active partner's summary; all zeros when there are none"""
        total = PartnerSummary()

        for partner in self.partner_manager.list_active_partners():
            try:
                summary = self.transaction_manager.get_partner_summary(partner.id)
            except Exception as e:
                logger.warning(f"Skipping partner {partner.id} in cumulative totals: {e}")
                continue
            total.merge(summary)

        return total

    def cross_partner_analysis(self, start_date: DateLike, end_date: DateLike) -> AnalysisResult:
        """
        Totals of all active partners' transactions within whole days

        Args:
            start_date: First day included (time of day ignored)
            end_date: Last day included (time of day ignored)

        Returns:
            AnalysisResult with TZS received and foreign sold per currency

        Raises:
            ValidationError: If the start day falls after the end day
        """
        start = start_of_day(start_date)
        end = end_of_day(end_date)
        if start > end:
            raise ValidationError("Start date must not be after end date", field="start_date")

        result = AnalysisResult(date_range=format_date_range(start, end))

        for partner in self.partner_manager.list_active_partners():
            try:
                transactions = self.transaction_manager.get_transactions_by_date_range(
                    partner.id, start, end
                )
            except Exception as e:
                logger.warning(f"Skipping partner {partner.id} in date-range analysis: {e}")
                continue

            for transaction in transactions:
                currency = transaction.foreign_currency
                result.total_tzs_received += transaction.tzs_received
                result.total_transactions += 1
                result.foreign_sold_by_currency[currency] = (
                    result.foreign_sold_by_currency.get(currency, Decimal("0"))
                    + transaction.foreign_given
                )
                result.transactions_by_currency[currency] = (
                    result.transactions_by_currency.get(currency, 0) + 1
                )
                if currency == CNY:
                    result.total_cny_sold += transaction.foreign_given
                    result.cny_transactions += 1
                elif currency == USDT:
                    result.total_usdt_sold += transaction.foreign_given
                    result.usdt_transactions += 1

        logger.debug(
            f"Analysed {result.total_transactions} transactions for {result.date_range}"
        )
        return result
