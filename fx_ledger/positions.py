"""
Net Position Module

Pure arithmetic for a single exchange deal and the summaries built from it.

Sign conventions differ per currency:
    CNY:   net_tzs = foreign_given * rate - tzs_received
    other: net_tzs = tzs_received - foreign_given * rate
A positive net is a credit, a negative net a debit.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Dict, Union

from .currency import CNY, USDT, to_decimal


Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class NetPosition:
    """Derived net positions of one transaction"""
    net_tzs: Decimal
    net_foreign: Decimal

    @property
    def is_credit(self) -> bool:
        return self.net_tzs > Decimal("0")

    @property
    def is_debit(self) -> bool:
        return self.net_tzs < Decimal("0")


def calculate_net_position(
    tzs_received: Number,
    foreign_given: Number,
    foreign_currency: str,
    exchange_rate: Number
) -> NetPosition:
    """
    Compute net TZS and net foreign positions for a transaction.

    Args:
        tzs_received: Shillings received from the partner
        foreign_given: Foreign amount handed over
        foreign_currency: Currency code of foreign_given (exact match on "CNY")
        exchange_rate: TZS per unit of foreign currency

    Returns:
        NetPosition; net_foreign is 0 when the rate is not positive
    """
    tzs = to_decimal(tzs_received)
    foreign = to_decimal(foreign_given)
    rate = to_decimal(exchange_rate)

    foreign_in_tzs = foreign * rate
    if foreign_currency == CNY:
        net_tzs = foreign_in_tzs - tzs
    else:
        # USDT rule, also used for any currency we have no specific rule for
        net_tzs = tzs - foreign_in_tzs

    net_foreign = net_tzs / rate if rate > Decimal("0") else Decimal("0")
    return NetPosition(net_tzs=net_tzs, net_foreign=net_foreign)


@dataclass
class PartnerSummary:
    """Aggregated net positions, either for one partner or across partners"""
    total_net_tzs: Decimal = Decimal("0")
    total_net_cny: Decimal = Decimal("0")
    total_net_usdt: Decimal = Decimal("0")
    transaction_count: int = 0
    net_foreign_by_currency: Dict[str, Decimal] = field(default_factory=dict)

    def add_transaction(self, net_tzs: Decimal, net_foreign: Decimal, currency: str) -> None:
        """Fold one transaction's nets into the summary"""
        self.total_net_tzs += net_tzs
        if currency == CNY:
            self.total_net_cny += net_foreign
        elif currency == USDT:
            self.total_net_usdt += net_foreign
        self.net_foreign_by_currency[currency] = (
            self.net_foreign_by_currency.get(currency, Decimal("0")) + net_foreign
        )
        self.transaction_count += 1

    def merge(self, other: 'PartnerSummary') -> None:
        """Add another summary into this one"""
        self.total_net_tzs += other.total_net_tzs
        self.total_net_cny += other.total_net_cny
        self.total_net_usdt += other.total_net_usdt
        self.transaction_count += other.transaction_count
        for currency, amount in other.net_foreign_by_currency.items():
            self.net_foreign_by_currency[currency] = (
                self.net_foreign_by_currency.get(currency, Decimal("0")) + amount
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_net_tzs": str(self.total_net_tzs),
            "total_net_cny": str(self.total_net_cny),
            "total_net_usdt": str(self.total_net_usdt),
            "transaction_count": self.transaction_count,
            "net_foreign_by_currency": {
                currency: str(amount)
                for currency, amount in self.net_foreign_by_currency.items()
            },
        }
