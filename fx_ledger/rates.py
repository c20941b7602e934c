"""
Exchange Rate Module

Keeps the history of TZS exchange rates per foreign currency. At most one
row per currency is flagged as the default; setting a new default clears
the previous flag and inserts the new row as one atomic unit.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .currency import DEFAULT_RATES, normalize_currency, seed_rate, to_decimal
from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .timeutils import normalize_timestamp, utc_now


logger = get_logger("fx_ledger.rates")

NO_DEFAULT = Decimal("0")


class RateSource(Enum):
    """Where a rate row came from"""
    USER_INPUT = "USER_INPUT"
    DEFAULT = "DEFAULT"  # Seeded on first initialisation


@dataclass
class ExchangeRate(StorageRecord):
    """A rate observation: TZS per unit of currency"""
    currency: str
    rate: Decimal
    date: datetime
    is_default: bool = False
    source: RateSource = RateSource.USER_INPUT


class ExchangeRateManager:
    """
    Manages exchange rate history and per-currency defaults
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "exchange_rates"

    def get_default_rate(self, currency: str) -> Decimal:
        """Current default rate, or Decimal("0") when none is set"""
        default = self._find_default(normalize_currency(currency))
        return default.rate if default else NO_DEFAULT

    def get_default_rate_or_fallback(self, currency: str) -> Decimal:
        """Current default rate, else the built-in seed rate (1 if unknown)"""
        rate = self.get_default_rate(currency)
        if rate == NO_DEFAULT:
            return seed_rate(currency)
        return rate

    def get_latest_rate(self, currency: str) -> Decimal:
        """Most recent rate observation, falling back like get_default_rate_or_fallback"""
        history = self.get_rate_history(currency)
        if history:
            return history[0].rate
        return self.get_default_rate_or_fallback(currency)

    def set_default_rate(
        self,
        currency: str,
        rate: Any,
        source: RateSource = RateSource.USER_INPUT,
        date: Optional[datetime] = None
    ) -> ExchangeRate:
        """
        Make a new default rate for a currency

        Args:
            currency: Currency code
            rate: TZS per unit, must be positive
            source: Provenance of the value
            date: Observation time, defaults to now

        Returns:
            The newly inserted default ExchangeRate
        """
        code = normalize_currency(currency)
        try:
            value = to_decimal(rate)
        except ValueError:
            raise ValidationError(f"Invalid exchange rate: {rate!r}", field="rate")
        if value <= Decimal("0"):
            raise ValidationError("Exchange rate must be positive", field="rate")

        now = utc_now()
        new_rate = ExchangeRate(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            currency=code,
            rate=value,
            date=normalize_timestamp(date) if date else now,
            is_default=True,
            source=source
        )

        with self.storage.atomic():
            self._clear_default(code)
            self._save_rate(new_rate)

        log_action(
            logger, "info", "Default exchange rate changed",
            action="default_rate_set",
            resource=f"rate:{code}",
            extra={"rate": str(value), "source": source.value}
        )
        return new_rate

    def get_all_default_rates(self) -> Dict[str, Decimal]:
        """Current default rate per currency"""
        return {
            rate.currency: rate.rate
            for rate in self._rates_matching({"is_default": True})
        }

    def get_default_rate_records(self) -> List[ExchangeRate]:
        """Current default rows, ordered by currency"""
        rates = self._rates_matching({"is_default": True})
        rates.sort(key=lambda r: r.currency)
        return rates

    def get_rate_history(self, currency: str) -> List[ExchangeRate]:
        """All rate rows of a currency, newest first"""
        rates = self._rates_matching({"currency": normalize_currency(currency)})
        rates.sort(key=lambda r: r.date, reverse=True)
        return rates

    def delete_rate(self, rate_id: str) -> None:
        """Remove one rate row"""
        if not self.storage.delete(self.table_name, rate_id):
            raise NotFoundError("exchange rate", rate_id)
        logger.info(f"Deleted exchange rate {rate_id}")

    def seed_default_rates(self, rates: Optional[Dict[str, Any]] = None) -> int:
        """
        Insert the built-in defaults for currencies that have none yet.

        Returns:
            Number of currencies seeded
        """
        seeded = 0
        for currency, rate in (rates or DEFAULT_RATES).items():
            if self.get_default_rate(currency) == NO_DEFAULT:
                self.set_default_rate(currency, rate, source=RateSource.DEFAULT)
                seeded += 1
        return seeded

    def _find_default(self, currency: str) -> Optional[ExchangeRate]:
        defaults = self._rates_matching({"currency": currency, "is_default": True})
        if not defaults:
            return None
        return max(defaults, key=lambda r: r.date)

    def _clear_default(self, currency: str) -> None:
        for rate in self._rates_matching({"currency": currency, "is_default": True}):
            rate.is_default = False
            rate.updated_at = utc_now()
            self._save_rate(rate)

    def _rates_matching(self, filters: Dict[str, Any]) -> List[ExchangeRate]:
        return [self._rate_from_dict(data) for data in self.storage.find(self.table_name, filters)]

    def _save_rate(self, rate: ExchangeRate) -> None:
        """Save rate to storage"""
        self.storage.save(self.table_name, rate.id, rate.to_dict())

    def _rate_from_dict(self, data: Dict[str, Any]) -> ExchangeRate:
        """Convert dictionary to ExchangeRate object"""
        return ExchangeRate.from_dict(data)
