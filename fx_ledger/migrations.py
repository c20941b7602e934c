"""
Ledger Data Migrations

Numbered upgrade steps for a ledger database. A step runs inside one atomic
block together with the bookkeeping row that marks it done, so a database
either has a step fully applied or not at all.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional
from datetime import datetime, timezone

from .logging_config import get_logger
from .rates import ExchangeRateManager
from .storage import StorageInterface
from .transactions import RecalculationResult, TransactionManager


logger = get_logger("fx_ledger.migrations")

MIGRATIONS_TABLE = "schema_migrations"


@dataclass
class Migration:
    """One numbered upgrade step"""
    version: int
    name: str
    up: Callable[[], Any]
    applied_at: Optional[datetime] = None

    @property
    def record_id(self) -> str:
        return f"v{self.version:03d}"

    def __str__(self) -> str:
        return f"Migration {self.record_id}: {self.name}"


class MigrationManager:
    """Applies ledger migrations in version order"""

    def __init__(
        self,
        storage: StorageInterface,
        rate_manager: ExchangeRateManager,
        transaction_manager: TransactionManager,
        default_rates: Optional[Mapping[str, Any]] = None
    ):
        self.storage = storage
        self.rate_manager = rate_manager
        self.transaction_manager = transaction_manager
        self.default_rates = dict(default_rates) if default_rates else None
        self.migrations: List[Migration] = []

        self.add_migration(1, "Seed default exchange rates", self._seed_default_rates)
        # Nets written under the old CNY sign rule are wrong until re-derived
        self.add_migration(2, "Recalculate net positions", self._recalculate_net_positions)

    @property
    def latest_version(self) -> int:
        return self.migrations[-1].version if self.migrations else 0

    def add_migration(self, version: int, name: str, up: Callable[[], Any]) -> None:
        self.migrations.append(Migration(version, name, up))
        self.migrations.sort(key=lambda m: m.version)

    def get_applied_migrations(self) -> List[Dict[str, Any]]:
        """Bookkeeping rows of applied steps, oldest version first"""
        return sorted(
            self.storage.load_all(MIGRATIONS_TABLE),
            key=lambda row: row.get("version", 0)
        )

    def get_current_version(self) -> int:
        versions = [
            row["version"] for row in self.get_applied_migrations()
            if isinstance(row.get("version"), int)
        ]
        return max(versions, default=0)

    def get_pending_migrations(self, target_version: Optional[int] = None) -> List[Migration]:
        current = self.get_current_version()
        ceiling = target_version or self.latest_version
        return [m for m in self.migrations if current < m.version <= ceiling]

    def migrate_up(self, target_version: Optional[int] = None) -> List[Migration]:
        """
        Apply every pending step up to target_version (default: all).

        Raises:
            RuntimeError: when a step fails; that step leaves no trace and
                later steps are not attempted
        """
        pending = self.get_pending_migrations(target_version)
        if not pending:
            logger.info("Ledger data is up to date")
            return []

        logger.info(f"Upgrading ledger data through {len(pending)} migration(s)")
        applied = []

        for migration in pending:
            try:
                with self.storage.atomic():
                    outcome = migration.up()
                    self.storage.save(MIGRATIONS_TABLE, migration.record_id, {
                        "version": migration.version,
                        "name": migration.name,
                        "applied_at": datetime.now(timezone.utc).isoformat(),
                        "outcome": outcome if isinstance(outcome, (int, str, dict)) else None
                    })
            except Exception as e:
                logger.error(f"{migration} failed: {e}")
                raise RuntimeError(f"Migration failed: {migration}") from e

            migration.applied_at = datetime.now(timezone.utc)
            applied.append(migration)
            logger.info(f"{migration} applied")

        return applied

    def run_recalculation(self) -> RecalculationResult:
        """Re-derive stored nets on demand, outside the version sequence"""
        return self.transaction_manager.recalculate_net_positions()

    def get_migration_status(self) -> Dict[str, Any]:
        pending = self.get_pending_migrations()
        return {
            "current_version": self.get_current_version(),
            "latest_version": self.latest_version,
            "pending_count": len(pending),
            "applied_count": len(self.get_applied_migrations()),
            "pending_migrations": [{"version": m.version, "name": m.name} for m in pending],
            "needs_migration": bool(pending)
        }

    def _seed_default_rates(self) -> int:
        seeded = self.rate_manager.seed_default_rates(self.default_rates)
        logger.info(f"Seeded default rates for {seeded} currencies")
        return seeded

    def _recalculate_net_positions(self) -> Dict[str, Any]:
        result = self.transaction_manager.recalculate_net_positions()
        if not result.success:
            raise RuntimeError(result.message)
        for error in result.errors:
            logger.warning(error)
        return {
            "total_transactions": result.total_transactions,
            "updated_transactions": result.updated_transactions,
            "errors": len(result.errors)
        }
