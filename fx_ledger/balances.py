"""
Balance Sheet Module

A free-form sheet of holdings (cash, wallets, accounts) valued in TZS. It
lives in the local settings store, separate from the ledger, and its
default CNY/USDT rates are mirrored into the ledger's default rates.

Amounts and rates are kept as the strings the user typed; they are parsed
only when valued.
"""

from decimal import Decimal
from typing import List, Optional, Tuple
import uuid

from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from .currency import CNY, TZS, USDT, DEFAULT_RATES, format_amount, parse_amount_or_zero, to_decimal
from .errors import NotFoundError
from .logging_config import get_logger, log_action
from .storage import StorageInterface


logger = get_logger("fx_ledger.balances")

KEY_BALANCES_STATE = "balances_state"
KEY_DEFAULT_CNY_RATE = "default_cny_rate"
KEY_DEFAULT_USDT_RATE = "default_usdt_rate"

MIN_ITEMS = 4


class _SettingsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore"
    )


class BalanceItem(_SettingsModel):
    """One row of the balance sheet"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ""
    amount: str = ""
    currency: str = TZS
    rate: str = ""
    is_net_position: bool = False
    is_fixed_type: bool = False

    @property
    def removable(self) -> bool:
        return not self.is_net_position and not self.is_fixed_type


class BalancesState(_SettingsModel):
    """Everything the balance sheet persists"""
    balance_items: List[BalanceItem] = Field(default_factory=list)
    default_cny_rate: str = str(DEFAULT_RATES[CNY])
    default_usdt_rate: str = str(DEFAULT_RATES[USDT])


def default_items(net_position: Decimal = Decimal("0")) -> List[BalanceItem]:
    return [
        BalanceItem(
            description="Overall Net Position",
            amount=format_amount(net_position),
            currency=TZS,
            is_net_position=True,
            is_fixed_type=True
        ),
        BalanceItem(description="ALIPAY", currency=CNY, is_fixed_type=True),
        BalanceItem(description="USDT", currency=USDT, is_fixed_type=True),
        BalanceItem(),  # Empty TZS row
    ]


class BalancesRepository:
    """Key-value persistence of the balance sheet in the settings store"""

    def __init__(
        self,
        storage: StorageInterface,
        default_cny_rate: str = "376",
        default_usdt_rate: str = "2380"
    ):
        self.storage = storage
        self.table_name = "preferences"
        self.default_cny_rate = default_cny_rate
        self.default_usdt_rate = default_usdt_rate

    def _put(self, key: str, value: str) -> None:
        self.storage.save(self.table_name, key, {"key": key, "value": value})

    def _get(self, key: str) -> Optional[str]:
        record = self.storage.load(self.table_name, key)
        return record["value"] if record else None

    def save_balances_state(self, state: BalancesState) -> None:
        self._put(KEY_BALANCES_STATE, state.model_dump_json(by_alias=True))

    def load_balances_state(self) -> Optional[BalancesState]:
        """Saved state, or None for a fresh start (also when unreadable)"""
        raw = self._get(KEY_BALANCES_STATE)
        if raw is None:
            return None
        try:
            return BalancesState.model_validate_json(raw)
        except SchemaError as e:
            logger.warning(f"Discarding unreadable balances state: {e.error_count()} problem(s)")
            return None

    def save_default_rates(self, cny_rate: str, usdt_rate: str) -> None:
        with self.storage.atomic():
            self._put(KEY_DEFAULT_CNY_RATE, cny_rate)
            self._put(KEY_DEFAULT_USDT_RATE, usdt_rate)

    def load_default_rates(self) -> Tuple[str, str]:
        cny_rate = self._get(KEY_DEFAULT_CNY_RATE)
        usdt_rate = self._get(KEY_DEFAULT_USDT_RATE)
        return (
            cny_rate if cny_rate is not None else self.default_cny_rate,
            usdt_rate if usdt_rate is not None else self.default_usdt_rate
        )

    def clear_balances_state(self) -> None:
        self.storage.delete(self.table_name, KEY_BALANCES_STATE)


class BalanceSheet:
    """
    Balance sheet service: row editing, valuation in TZS and default rates.

    Every change is persisted immediately.
    """

    def __init__(self, repository: BalancesRepository, analytics=None, rate_manager=None):
        self.repository = repository
        self.analytics = analytics
        self.rate_manager = rate_manager

        self.default_cny_rate, self.default_usdt_rate = repository.load_default_rates()
        self.items: List[BalanceItem] = []

        saved = repository.load_balances_state()
        if saved is not None:
            self.items = list(saved.balance_items)
            self.default_cny_rate = saved.default_cny_rate
            self.default_usdt_rate = saved.default_usdt_rate
        else:
            self._initialize_default_items()

    @property
    def state(self) -> BalancesState:
        return BalancesState(
            balance_items=[item.model_copy() for item in self.items],
            default_cny_rate=self.default_cny_rate,
            default_usdt_rate=self.default_usdt_rate
        )

    def get_item(self, item_id: str) -> BalanceItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError("balance item", item_id)

    def add_item(self) -> BalanceItem:
        """Append an empty TZS row"""
        item = BalanceItem()
        self.items.append(item)
        self._save()
        return item

    def update_item(
        self,
        item_id: str,
        description: Optional[str] = None,
        amount: Optional[str] = None,
        currency: Optional[str] = None,
        rate: Optional[str] = None
    ) -> BalanceItem:
        """Edit a row's text fields; its net-position and fixed flags stay"""
        item = self.get_item(item_id)
        if description is not None:
            item.description = description
        if amount is not None:
            item.amount = amount
        if currency is not None:
            item.currency = currency.strip().upper()
        if rate is not None:
            item.rate = rate
        self._save()
        return item

    def remove_item(self, item_id: str) -> bool:
        """
        Remove a row.

        Returns:
            False when the row is the net position, a fixed row, or the
            sheet is already down to its minimum number of rows
        """
        item = self.get_item(item_id)
        if not item.removable or len(self.items) <= MIN_ITEMS:
            return False
        self.items = [i for i in self.items if i.id != item_id]
        self._save()
        return True

    def refresh_net_position(self) -> Decimal:
        """Copy the ledger's cumulative net TZS into the net-position row"""
        net_position = Decimal("0")
        if self.analytics is not None:
            try:
                net_position = self.analytics.cumulative_net_positions().total_net_tzs
            except Exception as e:
                logger.warning(f"Could not read cumulative net position: {e}")

        for item in self.items:
            if item.is_net_position:
                item.amount = format_amount(net_position)
                self._save()
                break
        return net_position

    def update_default_cny_rate(self, rate: str) -> None:
        self.default_cny_rate = rate
        self._save_rates()
        self._mirror_rate(CNY, rate)

    def update_default_usdt_rate(self, rate: str) -> None:
        self.default_usdt_rate = rate
        self._save_rates()
        self._mirror_rate(USDT, rate)

    def item_tzs_equivalent(self, item: BalanceItem) -> Decimal:
        """
        Value of a row in TZS.

        The row's own rate wins when filled in; otherwise the sheet's
        default rate string, otherwise the built-in seed rate.
        """
        amount = parse_amount_or_zero(item.amount.replace(",", ""))
        if item.currency == TZS:
            return amount
        if item.rate.strip():
            return amount * parse_amount_or_zero(item.rate)
        if item.currency == CNY:
            return amount * self._default_rate(self.default_cny_rate, CNY)
        if item.currency == USDT:
            return amount * self._default_rate(self.default_usdt_rate, USDT)
        return Decimal("0")

    def total_tzs(self) -> Decimal:
        return sum((self.item_tzs_equivalent(item) for item in self.items), Decimal("0"))

    def clear_saved_state(self) -> None:
        """Forget saved rows and start again from the default rows"""
        self.repository.clear_balances_state()
        self._initialize_default_items()

    @staticmethod
    def _default_rate(value: str, currency: str) -> Decimal:
        try:
            return to_decimal(value)
        except ValueError:
            return DEFAULT_RATES[currency]

    def _initialize_default_items(self) -> None:
        self.items = default_items()
        self._save()

    def _save(self) -> None:
        self.repository.save_balances_state(self.state)

    def _save_rates(self) -> None:
        self._save()
        self.repository.save_default_rates(self.default_cny_rate, self.default_usdt_rate)

    def _mirror_rate(self, currency: str, rate: str) -> None:
        if self.rate_manager is None:
            return
        value = parse_amount_or_zero(rate)
        if value <= Decimal("0"):
            return
        try:
            self.rate_manager.set_default_rate(currency, value)
        except Exception as e:
            logger.warning(f"Could not mirror {currency} default rate: {e}")
            return
        log_action(
            logger, "info", "Balance sheet rate mirrored to ledger",
            action="balance_rate_mirrored",
            resource=f"rate:{currency}",
            extra={"rate": str(value)}
        )
