"""
Transaction Management Module

Records exchange deals with a partner: TZS received against a foreign amount
given at an exchange rate. Net positions are always derived through
calculate_net_position on create, update and recalculation; callers never
set them directly.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
import uuid

from .currency import normalize_currency, to_decimal
from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .positions import NetPosition, PartnerSummary, calculate_net_position
from .storage import StorageInterface, StorageRecord
from .timeutils import (
    DateLike, end_of_day, normalize_timestamp, start_of_day, utc_now
)


logger = get_logger("fx_ledger.transactions")

PARTNERS_TABLE = "partners"
TRANSACTIONS_TABLE = "transactions"


@dataclass
class Transaction(StorageRecord):
    """
    A single exchange deal with a partner

    updated_at doubles as the "last modified" timestamp.
    """
    partner_id: str
    date: datetime
    tzs_received: Decimal
    foreign_given: Decimal
    foreign_currency: str
    exchange_rate: Decimal
    net_tzs: Decimal = Decimal("0")
    net_foreign: Decimal = Decimal("0")
    notes: str = ""

    @property
    def last_modified(self) -> datetime:
        return self.updated_at

    @property
    def net_position(self) -> NetPosition:
        return NetPosition(net_tzs=self.net_tzs, net_foreign=self.net_foreign)

    def apply_net_position(self) -> None:
        """Recompute derived nets from the transaction's inputs"""
        position = calculate_net_position(
            self.tzs_received, self.foreign_given,
            self.foreign_currency, self.exchange_rate
        )
        self.net_tzs = position.net_tzs
        self.net_foreign = position.net_foreign

    def duplicate_key(self) -> tuple:
        """Identity used to detect the same deal entered twice"""
        return (
            self.date, self.tzs_received, self.foreign_given,
            self.foreign_currency, self.exchange_rate
        )


@dataclass
class RecalculationResult:
    """Outcome of re-deriving stored net positions"""
    success: bool
    message: str
    total_transactions: int = 0
    updated_transactions: int = 0
    errors: List[str] = field(default_factory=list)


class TransactionManager:
    """
    Manages partner transactions and per-partner summaries
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = TRANSACTIONS_TABLE

    def add_transaction(
        self,
        partner_id: str,
        date: DateLike,
        tzs_received: Any,
        foreign_given: Any,
        foreign_currency: str,
        exchange_rate: Any,
        notes: str = "",
        created_at: Optional[datetime] = None,
        last_modified: Optional[datetime] = None
    ) -> Transaction:
        """
        Record a new transaction

        Args:
            partner_id: Owning partner
            date: Deal date (naive datetimes are taken as UTC)
            tzs_received: Shillings received
            foreign_given: Foreign amount given
            foreign_currency: Currency code, stored upper-cased
            exchange_rate: TZS per unit of foreign currency
            notes: Free text
            created_at: Creation timestamp to keep (restore), defaults to now
            last_modified: Last-modified timestamp to keep (restore)

        Returns:
            Created Transaction with derived net positions
        """
        if not self.storage.exists(PARTNERS_TABLE, partner_id):
            raise NotFoundError("partner", partner_id)

        now = utc_now()
        created = normalize_timestamp(created_at) if created_at else now
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=created,
            updated_at=normalize_timestamp(last_modified) if last_modified else created,
            partner_id=partner_id,
            date=normalize_timestamp(date),
            tzs_received=self._validate_amount(tzs_received, "tzs_received"),
            foreign_given=self._validate_amount(foreign_given, "foreign_given"),
            foreign_currency=self._validate_currency(foreign_currency),
            exchange_rate=self._validate_amount(exchange_rate, "exchange_rate"),
            notes=(notes or "").strip()
        )
        self._validate_amounts(transaction)
        transaction.apply_net_position()

        self._save_transaction(transaction)

        log_action(
            logger, "info", "Transaction recorded",
            action="transaction_created",
            resource=f"transaction:{transaction.id}",
            extra={
                "partner_id": partner_id,
                "currency": transaction.foreign_currency,
                "net_tzs": str(transaction.net_tzs)
            }
        )
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        """Persist edited inputs, re-deriving net positions"""
        if not self.storage.exists(self.table_name, transaction.id):
            raise NotFoundError("transaction", transaction.id)

        transaction.date = normalize_timestamp(transaction.date)
        transaction.tzs_received = self._validate_amount(transaction.tzs_received, "tzs_received")
        transaction.foreign_given = self._validate_amount(transaction.foreign_given, "foreign_given")
        transaction.exchange_rate = self._validate_amount(transaction.exchange_rate, "exchange_rate")
        transaction.foreign_currency = self._validate_currency(transaction.foreign_currency)
        transaction.notes = (transaction.notes or "").strip()
        self._validate_amounts(transaction)

        transaction.apply_net_position()
        transaction.updated_at = utc_now()
        self._save_transaction(transaction)

        log_action(
            logger, "info", "Transaction updated",
            action="transaction_updated",
            resource=f"transaction:{transaction.id}",
            extra={"net_tzs": str(transaction.net_tzs)}
        )
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction by ID"""
        transaction_dict = self.storage.load(self.table_name, transaction_id)
        if transaction_dict:
            return self._transaction_from_dict(transaction_dict)
        return None

    def delete_transaction(self, transaction_id: str) -> None:
        """Hard-delete a single transaction"""
        if not self.storage.delete(self.table_name, transaction_id):
            raise NotFoundError("transaction", transaction_id)

        log_action(
            logger, "info", "Transaction deleted",
            action="transaction_deleted",
            resource=f"transaction:{transaction_id}"
        )

    def delete_transactions_for_partner(self, partner_id: str) -> int:
        """Remove every transaction of a partner, returning how many went"""
        removed = 0
        with self.storage.atomic():
            for transaction_dict in self.storage.find(self.table_name, {"partner_id": partner_id}):
                if self.storage.delete(self.table_name, transaction_dict["id"]):
                    removed += 1

        logger.info(f"Removed {removed} transactions of partner {partner_id}")
        return removed

    def get_transactions_by_partner(self, partner_id: str) -> List[Transaction]:
        """All transactions of a partner, newest deal first"""
        transactions = [
            self._transaction_from_dict(data)
            for data in self.storage.find(self.table_name, {"partner_id": partner_id})
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    def get_transactions_by_date_range(
        self,
        partner_id: str,
        start_date: DateLike,
        end_date: DateLike
    ) -> List[Transaction]:
        """
        Transactions of a partner within whole days, newest first.

        The time of day of both bounds is discarded: the range runs from
        00:00:00.000 of the start day to 23:59:59.999 of the end day.
        """
        start = start_of_day(start_date)
        end = end_of_day(end_date)
        return [
            transaction for transaction in self.get_transactions_by_partner(partner_id)
            if start <= transaction.date <= end
        ]

    def get_all_transactions(self) -> List[Transaction]:
        return [self._transaction_from_dict(data) for data in self.storage.load_all(self.table_name)]

    def get_partner_summary(self, partner_id: str) -> PartnerSummary:
        """Totals of all transactions of a partner"""
        return self._summarize(self.get_transactions_by_partner(partner_id))

    def get_partner_summary_by_date_range(
        self,
        partner_id: str,
        start_date: DateLike,
        end_date: DateLike
    ) -> PartnerSummary:
        """Totals of a partner's transactions within whole days"""
        return self._summarize(
            self.get_transactions_by_date_range(partner_id, start_date, end_date)
        )

    def get_net_totals_by_partner(self) -> Dict[str, Decimal]:
        """Sum of net TZS per partner id, one pass over the table"""
        totals: Dict[str, Decimal] = {}
        for data in self.storage.load_all(self.table_name):
            partner_id = data["partner_id"]
            totals[partner_id] = totals.get(partner_id, Decimal("0")) + Decimal(data["net_tzs"])
        return totals

    def find_duplicate(self, partner_id: str, candidate: Transaction) -> Optional[Transaction]:
        """Existing transaction of the partner with the same deal inputs, if any"""
        key = candidate.duplicate_key()
        for existing in self.get_transactions_by_partner(partner_id):
            if existing.duplicate_key() == key:
                return existing
        return None

    def recalculate_net_positions(self) -> RecalculationResult:
        """
        Re-derive every stored net position with the current rules.

        Rows whose stored nets already match are left untouched. A row that
        cannot be processed is reported and the pass continues.
        """
        total = 0
        updated = 0
        errors: List[str] = []

        try:
            records = self.storage.load_all(self.table_name)
        except Exception as e:
            logger.error(f"Recalculation could not read transactions: {e}")
            return RecalculationResult(
                success=False,
                message=f"Migration failed: {e}",
                errors=[str(e)]
            )

        for data in records:
            total += 1
            try:
                transaction = self._transaction_from_dict(data)
                old_position = transaction.net_position
                transaction.apply_net_position()
                if transaction.net_position != old_position:
                    transaction.updated_at = utc_now()
                    self._save_transaction(transaction)
                    updated += 1
            except Exception as e:
                errors.append(f"Failed to update transaction {data.get('id')}: {e}")

        log_action(
            logger, "info", "Net positions recalculated",
            action="net_positions_recalculated",
            extra={"total": total, "updated": updated, "errors": len(errors)}
        )
        return RecalculationResult(
            success=True,
            message="Migration completed successfully",
            total_transactions=total,
            updated_transactions=updated,
            errors=errors
        )

    @staticmethod
    def _summarize(transactions: List[Transaction]) -> PartnerSummary:
        summary = PartnerSummary()
        for transaction in transactions:
            summary.add_transaction(
                transaction.net_tzs, transaction.net_foreign, transaction.foreign_currency
            )
        return summary

    @staticmethod
    def _validate_currency(currency: str) -> str:
        try:
            return normalize_currency(currency)
        except ValueError as e:
            raise ValidationError(str(e), field="foreign_currency")

    @staticmethod
    def _validate_amount(value: Any, field: str) -> Decimal:
        try:
            return to_decimal(value)
        except ValueError:
            raise ValidationError(f"Invalid amount for {field}: {value!r}", field=field)

    @staticmethod
    def _validate_amounts(transaction: Transaction) -> None:
        if transaction.tzs_received < Decimal("0"):
            raise ValidationError("TZS received cannot be negative", field="tzs_received")
        if transaction.foreign_given < Decimal("0"):
            raise ValidationError("Foreign amount cannot be negative", field="foreign_given")
        if transaction.exchange_rate < Decimal("0"):
            raise ValidationError("Exchange rate cannot be negative", field="exchange_rate")

    def _save_transaction(self, transaction: Transaction) -> None:
        """Save transaction to storage"""
        self.storage.save(self.table_name, transaction.id, self._transaction_to_dict(transaction))

    def _transaction_to_dict(self, transaction: Transaction) -> Dict[str, Any]:
        """Convert transaction to dictionary for storage"""
        return transaction.to_dict()

    def _transaction_from_dict(self, data: Dict[str, Any]) -> Transaction:
        """Convert dictionary to Transaction object"""
        return Transaction.from_dict(data)
