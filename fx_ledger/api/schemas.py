"""
Pydantic schemas for API requests and response helpers
"""

from datetime import datetime
from typing import Dict, Optional, Any
from pydantic import BaseModel, Field

from ..partners import Partner
from ..rates import ExchangeRate
from ..transactions import Transaction


# Partner schemas
class CreatePartnerRequest(BaseModel):
    name: str
    notes: str = ""


class UpdatePartnerRequest(BaseModel):
    name: Optional[str] = None
    notes: Optional[str] = None


# Transaction schemas
class CreateTransactionRequest(BaseModel):
    partner_id: str
    date: datetime
    tzs_received: str = Field(..., description="Decimal amount as string")
    foreign_given: str = Field(..., description="Decimal amount as string")
    foreign_currency: str = Field(..., description="CNY, USDT, ...")
    exchange_rate: str = Field(..., description="TZS per unit of foreign currency")
    notes: str = ""


class UpdateTransactionRequest(BaseModel):
    date: Optional[datetime] = None
    tzs_received: Optional[str] = None
    foreign_given: Optional[str] = None
    foreign_currency: Optional[str] = None
    exchange_rate: Optional[str] = None
    notes: Optional[str] = None


# Rate schemas
class SetRateRequest(BaseModel):
    rate: str = Field(..., description="TZS per unit, decimal as string")


# Balance sheet schemas
class UpdateBalanceItemRequest(BaseModel):
    description: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    rate: Optional[str] = None


class BalanceRateRequest(BaseModel):
    rate: str


def partner_to_dict(partner: Partner) -> Dict[str, Any]:
    return {
        "id": partner.id,
        "name": partner.name,
        "notes": partner.notes,
        "state": partner.state.value,
        "is_active": partner.is_active,
        "created_at": partner.created_at.isoformat(),
        "updated_at": partner.updated_at.isoformat()
    }


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "partner_id": transaction.partner_id,
        "date": transaction.date.isoformat(),
        "tzs_received": str(transaction.tzs_received),
        "foreign_given": str(transaction.foreign_given),
        "foreign_currency": transaction.foreign_currency,
        "exchange_rate": str(transaction.exchange_rate),
        "net_tzs": str(transaction.net_tzs),
        "net_foreign": str(transaction.net_foreign),
        "is_credit": transaction.net_position.is_credit,
        "notes": transaction.notes,
        "created_at": transaction.created_at.isoformat(),
        "last_modified": transaction.last_modified.isoformat()
    }


def rate_to_dict(rate: ExchangeRate) -> Dict[str, Any]:
    return {
        "id": rate.id,
        "currency": rate.currency,
        "rate": str(rate.rate),
        "date": rate.date.isoformat(),
        "is_default": rate.is_default,
        "source": rate.source.value
    }
