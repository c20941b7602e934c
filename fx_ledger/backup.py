"""
Backup and Restore Module

Exports the ledger to a portable, versioned JSON document and merges such a
document back into a live ledger. Partners are matched by normalized name,
transactions reference their partner by name, and a transaction already
present with the same date, amounts, currency and rate is skipped, so
restoring the same document twice adds nothing the second time.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, IO, Union
import platform

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from .config import LedgerConfig, get_config
from .errors import ExportError, ReconciliationError
from .logging_config import get_logger, log_action
from .partners import PartnerManager, PartnerState, normalize_name
from .rates import ExchangeRateManager, NO_DEFAULT, RateSource
from .timeutils import from_epoch_millis, to_epoch_millis
from .transactions import Transaction, TransactionManager


logger = get_logger("fx_ledger.backup")

BACKUP_FILE_PREFIX = "CurrencyExchange_Backup_"


def _now_millis() -> int:
    return to_epoch_millis(datetime.now(timezone.utc))


class _BackupModel(BaseModel):
    # camelCase on the wire, unknown keys ignored
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore"
    )


class BackupMetadata(_BackupModel):
    version: str = "1.0"
    export_date: int = Field(default_factory=_now_millis)
    app_version: str = "1.0"
    total_partners: int = 0
    total_transactions: int = 0
    total_exchange_rates: int = 0
    device_info: str = ""


class BackupPartner(_BackupModel):
    name: str
    created_at: int
    is_active: bool = True
    notes: str = ""


class BackupTransaction(_BackupModel):
    partner_name: str
    date: int
    tzs_received: float
    foreign_given: float
    foreign_currency: str
    exchange_rate: float
    net_tzs: float = 0.0
    net_foreign: float = 0.0
    notes: str = ""
    created_at: Optional[int] = None
    last_modified: Optional[int] = None


class BackupExchangeRate(_BackupModel):
    currency: str
    rate: float
    date: int = Field(default_factory=_now_millis)
    is_default: bool = False
    source: str = RateSource.USER_INPUT.value


class BackupDocument(_BackupModel):
    metadata: BackupMetadata = Field(default_factory=BackupMetadata)
    partners: List[BackupPartner] = Field(default_factory=list)
    transactions: List[BackupTransaction] = Field(default_factory=list)
    exchange_rates: List[BackupExchangeRate] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


@dataclass
class RestoreResult:
    """Outcome of merging a backup document into the ledger"""
    success: bool
    message: str
    partners_added: int = 0
    partners_updated: int = 0
    transactions_added: int = 0
    transactions_skipped: int = 0
    exchange_rates_added: int = 0
    exchange_rates_updated: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "partners_added": self.partners_added,
            "partners_updated": self.partners_updated,
            "transactions_added": self.transactions_added,
            "transactions_skipped": self.transactions_skipped,
            "exchange_rates_added": self.exchange_rates_added,
            "exchange_rates_updated": self.exchange_rates_updated,
            "errors": list(self.errors),
        }


def _decimal(value: float) -> Decimal:
    # Through str() so 376.0 stays 376.0 and not its binary expansion
    return Decimal(str(value))


def default_device_info() -> str:
    return f"{platform.node()} ({platform.system()} {platform.release()})".strip()


class BackupManager:
    """
    Creates backup documents and restores them into the ledger
    """

    def __init__(
        self,
        partner_manager: PartnerManager,
        transaction_manager: TransactionManager,
        rate_manager: ExchangeRateManager,
        config: Optional[LedgerConfig] = None
    ):
        self.partner_manager = partner_manager
        self.transaction_manager = transaction_manager
        self.rate_manager = rate_manager
        self.config = config or get_config()

    def create_backup(self) -> BackupDocument:
        """Snapshot active partners, their transactions and the default rates"""
        partners = self.partner_manager.list_active_partners()

        backup_partners: List[BackupPartner] = []
        backup_transactions: List[BackupTransaction] = []
        for partner in partners:
            backup_partners.append(BackupPartner(
                name=partner.name,
                created_at=to_epoch_millis(partner.created_at),
                is_active=partner.is_active,
                notes=partner.notes
            ))
            for transaction in self.transaction_manager.get_transactions_by_partner(partner.id):
                backup_transactions.append(self._transaction_to_backup(partner.name, transaction))

        backup_rates = [
            BackupExchangeRate(
                currency=rate.currency,
                rate=float(rate.rate),
                date=to_epoch_millis(rate.date),
                is_default=True,
                source=rate.source.value
            )
            for rate in self.rate_manager.get_default_rate_records()
        ]

        metadata = BackupMetadata(
            version=self.config.backup_format_version,
            export_date=_now_millis(),
            app_version=self.config.app_version,
            total_partners=len(backup_partners),
            total_transactions=len(backup_transactions),
            total_exchange_rates=len(backup_rates),
            device_info=self.config.device_info or default_device_info()
        )

        log_action(
            logger, "info", "Backup created",
            action="backup_created",
            extra={
                "partners": metadata.total_partners,
                "transactions": metadata.total_transactions,
                "exchange_rates": metadata.total_exchange_rates
            }
        )
        return BackupDocument(
            metadata=metadata,
            partners=backup_partners,
            transactions=backup_transactions,
            exchange_rates=backup_rates
        )

    def export_backup_to_file(self, document: BackupDocument, output: IO) -> bool:
        """
        Write the document as UTF-8 JSON to a text or binary stream.

        Returns:
            True on success, False if the stream could not be written
        """
        try:
            payload = document.to_json()
            try:
                output.write(payload)
            except TypeError:
                output.write(payload.encode("utf-8"))
            output.flush()
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Backup export failed: {e}", exc_info=True)
            return False

    def parse_backup_from_file(self, source: Union[IO, str, bytes]) -> BackupDocument:
        """
        Read a backup document from a stream or raw JSON text.

        Raises:
            ExportError: If the source cannot be read or is not a backup document
        """
        try:
            raw = source if isinstance(source, (str, bytes)) else source.read()
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return BackupDocument.model_validate_json(raw)
        except (OSError, UnicodeDecodeError) as e:
            raise ExportError(f"Could not read backup: {e}")
        except SchemaError as e:
            raise ExportError(f"Invalid backup file: {e.error_count()} problem(s) found")

    def restore_backup(self, document: BackupDocument) -> RestoreResult:
        """
        Merge a backup document into the ledger.

        Runs three phases (partners, transactions, exchange rates). A record
        that fails is reported in the result's errors and the phase goes on.
        """
        result = RestoreResult(success=True, message="")

        try:
            partner_ids = self._restore_partners(document.partners, result)
            self._restore_transactions(document.transactions, partner_ids, result)
            self._restore_exchange_rates(document.exchange_rates, result)
        except Exception as e:
            logger.error(f"Restore aborted: {e}", exc_info=True)
            return RestoreResult(
                success=False,
                message=f"Failed to restore backup: {e}",
                errors=[str(e)]
            )

        result.message = (
            f"Backup restored successfully! Added {result.partners_added} partners, "
            f"{result.transactions_added} transactions."
        )
        log_action(
            logger, "info", "Backup restored",
            action="backup_restored",
            extra={
                "partners_added": result.partners_added,
                "partners_updated": result.partners_updated,
                "transactions_added": result.transactions_added,
                "transactions_skipped": result.transactions_skipped,
                "exchange_rates_added": result.exchange_rates_added,
                "exchange_rates_updated": result.exchange_rates_updated,
                "errors": len(result.errors)
            }
        )
        return result

    def generate_backup_file_name(self, when: Optional[datetime] = None) -> str:
        """CurrencyExchange_Backup_YYYYMMDD_HHMMSS.json"""
        when = when or datetime.now()
        return f"{BACKUP_FILE_PREFIX}{when.strftime('%Y%m%d_%H%M%S')}.json"

    def _restore_partners(self, partners: List[BackupPartner], result: RestoreResult) -> Dict[str, str]:
        partner_ids: Dict[str, str] = {}

        for backup_partner in partners:
            try:
                existing = self.partner_manager.find_active_by_name(backup_partner.name)
                if existing:
                    backup_created = from_epoch_millis(backup_partner.created_at)
                    if backup_created > existing.created_at:
                        if backup_partner.notes.strip():
                            existing.notes = backup_partner.notes
                        existing.state = (
                            PartnerState.ACTIVE if backup_partner.is_active else PartnerState.DELETED
                        )
                        self.partner_manager.update_partner(existing)
                        result.partners_updated += 1
                    partner_ids[normalize_name(backup_partner.name)] = existing.id
                else:
                    partner = self.partner_manager.add_partner(
                        backup_partner.name,
                        notes=backup_partner.notes,
                        created_at=from_epoch_millis(backup_partner.created_at)
                    )
                    partner_ids[normalize_name(backup_partner.name)] = partner.id
                    result.partners_added += 1
            except Exception as e:
                error = ReconciliationError(
                    f"Failed to restore partner '{backup_partner.name}': {e}",
                    "partner", backup_partner.name
                )
                logger.warning(error.message)
                result.errors.append(error.message)

        return partner_ids

    def _restore_transactions(
        self,
        transactions: List[BackupTransaction],
        partner_ids: Dict[str, str],
        result: RestoreResult
    ) -> None:
        for backup_transaction in transactions:
            try:
                partner_id = partner_ids.get(normalize_name(backup_transaction.partner_name))
                if partner_id is None:
                    error = ReconciliationError(
                        f"Partner '{backup_transaction.partner_name}' not found for transaction",
                        "transaction", backup_transaction.partner_name
                    )
                    logger.warning(error.message)
                    result.errors.append(error.message)
                    continue

                candidate = self._transaction_from_backup(partner_id, backup_transaction)
                if self.transaction_manager.find_duplicate(partner_id, candidate):
                    result.transactions_skipped += 1
                    continue

                self.transaction_manager.add_transaction(
                    partner_id=partner_id,
                    date=candidate.date,
                    tzs_received=candidate.tzs_received,
                    foreign_given=candidate.foreign_given,
                    foreign_currency=candidate.foreign_currency,
                    exchange_rate=candidate.exchange_rate,
                    notes=candidate.notes,
                    created_at=candidate.created_at,
                    last_modified=candidate.updated_at
                )
                result.transactions_added += 1
            except Exception as e:
                error = ReconciliationError(
                    f"Failed to restore transaction: {e}",
                    "transaction", backup_transaction.partner_name
                )
                logger.warning(error.message)
                result.errors.append(error.message)

    def _restore_exchange_rates(self, rates: List[BackupExchangeRate], result: RestoreResult) -> None:
        for backup_rate in rates:
            try:
                current = self.rate_manager.get_default_rate(backup_rate.currency)
                if current == NO_DEFAULT or backup_rate.is_default:
                    self.rate_manager.set_default_rate(
                        backup_rate.currency,
                        _decimal(backup_rate.rate),
                        source=self._rate_source(backup_rate.source)
                    )
                    if current == NO_DEFAULT:
                        result.exchange_rates_added += 1
                    else:
                        result.exchange_rates_updated += 1
            except Exception as e:
                error = ReconciliationError(
                    f"Failed to restore exchange rate for {backup_rate.currency}: {e}",
                    "exchange rate", backup_rate.currency
                )
                logger.warning(error.message)
                result.errors.append(error.message)

    @staticmethod
    def _rate_source(value: str) -> RateSource:
        try:
            return RateSource(value)
        except ValueError:
            return RateSource.USER_INPUT

    @staticmethod
    def _transaction_to_backup(partner_name: str, transaction: Transaction) -> BackupTransaction:
        return BackupTransaction(
            partner_name=partner_name,
            date=to_epoch_millis(transaction.date),
            tzs_received=float(transaction.tzs_received),
            foreign_given=float(transaction.foreign_given),
            foreign_currency=transaction.foreign_currency,
            exchange_rate=float(transaction.exchange_rate),
            net_tzs=float(transaction.net_tzs),
            net_foreign=float(transaction.net_foreign),
            notes=transaction.notes,
            created_at=to_epoch_millis(transaction.created_at),
            last_modified=to_epoch_millis(transaction.updated_at)
        )

    @staticmethod
    def _transaction_from_backup(partner_id: str, backup: BackupTransaction) -> Transaction:
        # Net fields in the document are ignored; they are re-derived on insert
        date = from_epoch_millis(backup.date)
        created_at = from_epoch_millis(backup.created_at) if backup.created_at is not None else date
        last_modified = (
            from_epoch_millis(backup.last_modified) if backup.last_modified is not None else created_at
        )
        return Transaction(
            id="",
            created_at=created_at,
            updated_at=last_modified,
            partner_id=partner_id,
            date=date,
            tzs_received=_decimal(backup.tzs_received),
            foreign_given=_decimal(backup.foreign_given),
            foreign_currency=backup.foreign_currency.strip().upper(),
            exchange_rate=_decimal(backup.exchange_rate),
            notes=backup.notes
        )
