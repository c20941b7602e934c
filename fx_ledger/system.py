"""
Ledger System Container

Wires every ledger component around explicitly constructed storage handles:
one for the ledger itself and one for local settings.
"""

from typing import Optional

from .analytics import LedgerAnalytics
from .backup import BackupManager
from .balances import BalanceSheet, BalancesRepository
from .config import LedgerConfig, get_config
from .currency import CNY, USDT
from .logging_config import get_logger
from .migrations import MigrationManager
from .partners import PartnerManager
from .rates import ExchangeRateManager
from .reports import ReportGenerator
from .storage import InMemoryStorage, SQLiteStorage, StorageInterface
from .transactions import TransactionManager


logger = get_logger("fx_ledger.system")


class LedgerSystem:
    """FX ledger with all components initialized"""

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        storage: Optional[StorageInterface] = None,
        settings_storage: Optional[StorageInterface] = None
    ):
        self.config = config or get_config()

        # Initialize storage
        if storage is None:
            if self.config.use_in_memory_storage:
                storage = InMemoryStorage()
            else:
                storage = SQLiteStorage(self.config.database_path)
        if settings_storage is None:
            if self.config.use_in_memory_storage:
                settings_storage = InMemoryStorage()
            else:
                settings_storage = SQLiteStorage(self.config.settings_path)
        self.storage = storage
        self.settings_storage = settings_storage

        # Initialize core components
        self.transaction_manager = TransactionManager(self.storage)
        self.partner_manager = PartnerManager(self.storage, self.transaction_manager)
        self.rate_manager = ExchangeRateManager(self.storage)
        self.analytics = LedgerAnalytics(self.partner_manager, self.transaction_manager)
        self.backup_manager = BackupManager(
            self.partner_manager, self.transaction_manager, self.rate_manager, self.config
        )
        self.report_generator = ReportGenerator(self.partner_manager, self.transaction_manager)
        self.migration_manager = MigrationManager(
            self.storage, self.rate_manager, self.transaction_manager,
            default_rates={
                CNY: self.config.default_cny_rate,
                USDT: self.config.default_usdt_rate
            }
        )

        if self.config.auto_migrate:
            self.migration_manager.migrate_up()

        self.balances_repository = BalancesRepository(
            self.settings_storage,
            default_cny_rate=self.config.default_cny_rate,
            default_usdt_rate=self.config.default_usdt_rate
        )
        self.balance_sheet = BalanceSheet(
            self.balances_repository, self.analytics, self.rate_manager
        )

        logger.info("Ledger system initialized")

    @classmethod
    def in_memory(cls, config: Optional[LedgerConfig] = None) -> "LedgerSystem":
        """Ephemeral system for tests and demos"""
        return cls(config=config, storage=InMemoryStorage(), settings_storage=InMemoryStorage())

    def close(self) -> None:
        self.storage.close()
        self.settings_storage.close()
