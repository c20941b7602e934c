"""
Partner Management Module

Manages counterparties: validated creation, renaming, soft deletion and the
explicit cascade used for hard deletion. Partner names are unique among
active partners after trimming and case-folding.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, TYPE_CHECKING
from enum import Enum
import uuid

from .errors import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord
from .timeutils import normalize_timestamp, utc_now
from .transactions import PARTNERS_TABLE

if TYPE_CHECKING:
    from .transactions import TransactionManager


logger = get_logger("fx_ledger.partners")

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50


class PartnerState(Enum):
    """Partner lifecycle state"""
    ACTIVE = "active"
    DELETED = "deleted"  # Soft-deleted, transactions kept


def normalize_name(name: str) -> str:
    """Comparison form of a partner name (trim + case-fold)"""
    return (name or "").strip().casefold()


def names_match(a: str, b: str) -> bool:
    return normalize_name(a) == normalize_name(b)


@dataclass
class Partner(StorageRecord):
    """A counterparty of exchange deals"""
    name: str
    notes: str = ""
    state: PartnerState = PartnerState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.state == PartnerState.ACTIVE

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)


class PartnerManager:
    """
    Manages partner lifecycle and name uniqueness
    """

    def __init__(self, storage: StorageInterface, transaction_manager: 'TransactionManager'):
        self.storage = storage
        self.transaction_manager = transaction_manager
        self.table_name = PARTNERS_TABLE

    def add_partner(
        self,
        name: str,
        notes: str = "",
        created_at: Optional[datetime] = None
    ) -> Partner:
        """
        Create a new partner

        Args:
            name: Display name, trimmed before storage
            notes: Free text, trimmed before storage
            created_at: Creation timestamp to keep (restore), defaults to now

        Returns:
            Created Partner object

        Raises:
            ValidationError: If the name is blank, too short, too long or taken
        """
        trimmed_name = self._validate_name(name)

        now = utc_now()
        created = normalize_timestamp(created_at) if created_at else now
        partner = Partner(
            id=str(uuid.uuid4()),
            created_at=created,
            updated_at=now,
            name=trimmed_name,
            notes=(notes or "").strip()
        )

        self._save_partner(partner)

        log_action(
            logger, "info", "Partner created",
            action="partner_created",
            resource=f"partner:{partner.id}",
            extra={"name": partner.name}
        )
        return partner

    def update_partner(self, partner: Partner) -> Partner:
        """Persist edits to an existing partner, re-validating its name"""
        if not self.storage.exists(self.table_name, partner.id):
            raise NotFoundError("partner", partner.id)

        partner.name = self._validate_name(partner.name, exclude_id=partner.id)
        partner.notes = (partner.notes or "").strip()
        partner.updated_at = utc_now()
        self._save_partner(partner)

        log_action(
            logger, "info", "Partner updated",
            action="partner_updated",
            resource=f"partner:{partner.id}",
            extra={"name": partner.name, "state": partner.state.value}
        )
        return partner

    def rename_partner(self, partner_id: str, new_name: str) -> Partner:
        """Change a partner's name"""
        partner = self._require_partner(partner_id)
        partner.name = new_name
        return self.update_partner(partner)

    def delete_partner(self, partner_id: str) -> Partner:
        """Soft-delete: the partner disappears from listings, its history stays"""
        partner = self._require_partner(partner_id)
        partner.state = PartnerState.DELETED
        partner.updated_at = utc_now()
        self._save_partner(partner)

        log_action(
            logger, "info", "Partner deleted",
            action="partner_deleted",
            resource=f"partner:{partner.id}"
        )
        return partner

    def purge_partner(self, partner_id: str) -> int:
        """
        Hard-delete a partner and all of its transactions.

        Returns:
            Number of transactions removed with the partner
        """
        self._require_partner(partner_id)

        with self.storage.atomic():
            removed = self.transaction_manager.delete_transactions_for_partner(partner_id)
            self.storage.delete(self.table_name, partner_id)

        log_action(
            logger, "warning", "Partner purged",
            action="partner_purged",
            resource=f"partner:{partner_id}",
            extra={"transactions_removed": removed}
        )
        return removed

    def is_name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Whether another active partner already uses this name"""
        existing = self.find_active_by_name(name)
        return existing is not None and existing.id != exclude_id

    def get_partner(self, partner_id: str) -> Optional[Partner]:
        """Get partner by ID"""
        partner_dict = self.storage.load(self.table_name, partner_id)
        if partner_dict:
            return self._partner_from_dict(partner_dict)
        return None

    def find_active_by_name(self, name: str) -> Optional[Partner]:
        """Active partner whose normalized name matches, if any"""
        target = normalize_name(name)
        for partner in self._active_partners():
            if partner.normalized_name == target:
                return partner
        return None

    def list_active_partners(self) -> List[Partner]:
        """Active partners, largest absolute net TZS first, then by name"""
        totals = self.transaction_manager.get_net_totals_by_partner()
        partners = self._active_partners()
        partners.sort(key=lambda p: (-abs(totals.get(p.id, Decimal("0"))), p.name))
        return partners

    def search_partners(self, query: str) -> List[Partner]:
        """Active partners whose name contains the query (case-insensitive)"""
        needle = normalize_name(query)
        return [p for p in self.list_active_partners() if needle in p.normalized_name]

    def get_partner_count(self) -> int:
        """Number of active partners"""
        return len(self._active_partners())

    def _active_partners(self) -> List[Partner]:
        return [
            self._partner_from_dict(data)
            for data in self.storage.find(self.table_name, {"state": PartnerState.ACTIVE.value})
        ]

    def _require_partner(self, partner_id: str) -> Partner:
        partner = self.get_partner(partner_id)
        if not partner:
            raise NotFoundError("partner", partner_id)
        return partner

    def _validate_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        trimmed_name = (name or "").strip()

        if not trimmed_name:
            raise ValidationError("Partner name cannot be empty", field="name")

        if len(trimmed_name) < MIN_NAME_LENGTH:
            raise ValidationError(
                f"Partner name must be at least {MIN_NAME_LENGTH} characters", field="name"
            )

        if len(trimmed_name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"Partner name cannot exceed {MAX_NAME_LENGTH} characters", field="name"
            )

        if self.is_name_taken(trimmed_name, exclude_id=exclude_id):
            raise ValidationError("A partner with this name already exists", field="name")

        return trimmed_name

    def _save_partner(self, partner: Partner) -> None:
        """Save partner to storage"""
        self.storage.save(self.table_name, partner.id, self._partner_to_dict(partner))

    def _partner_to_dict(self, partner: Partner) -> Dict[str, Any]:
        """Convert partner to dictionary for storage"""
        return partner.to_dict()

    def _partner_from_dict(self, data: Dict[str, Any]) -> Partner:
        """Convert dictionary to Partner object"""
        return Partner.from_dict(data)
