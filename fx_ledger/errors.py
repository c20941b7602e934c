"""
Ledger Exceptions Module

Typed exceptions raised by the ledger components. All derive from
LedgerError, itself a ValueError, so callers that only care about bad
input can keep catching ValueError.
"""

from typing import Optional


class LedgerError(ValueError):
    """Base class for all ledger errors"""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Input rejected before anything was written"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """Referenced entity does not exist"""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ReconciliationError(LedgerError):
    """A single backup record could not be merged into the ledger"""

    code = "RECONCILIATION_ERROR"

    def __init__(self, message: str, record_type: str, reference: Optional[str] = None):
        super().__init__(message)
        self.record_type = record_type
        self.reference = reference


class ExportError(LedgerError):
    """Reading or writing a backup/report stream failed"""

    code = "EXPORT_ERROR"
