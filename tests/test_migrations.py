"""
Tests for the data migration system
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from fx_ledger.config import LedgerConfig
from fx_ledger.rates import RateSource
from fx_ledger.system import LedgerSystem
from fx_ledger.transactions import TRANSACTIONS_TABLE


def make_system(**overrides):
    return LedgerSystem.in_memory(LedgerConfig(**overrides))


class TestMigrationManager:

    def test_fresh_system_is_migrated(self):
        system = make_system()
        manager = system.migration_manager

        assert manager.get_current_version() == 2
        assert manager.get_pending_migrations() == []
        records = system.rate_manager.get_default_rate_records()
        assert {r.currency: r.rate for r in records} == {"CNY": Decimal("376"), "USDT": Decimal("2380")}
        assert all(r.source == RateSource.DEFAULT for r in records)

    def test_manual_migration(self):
        system = make_system(auto_migrate=False)
        manager = system.migration_manager

        assert manager.get_current_version() == 0
        assert system.rate_manager.get_all_default_rates() == {}

        applied = manager.migrate_up()
        assert [m.version for m in applied] == [1, 2]
        assert all(m.applied_at is not None for m in applied)
        assert manager.migrate_up() == []

        records = manager.get_applied_migrations()
        assert [r["name"] for r in records] == ["Seed default exchange rates", "Recalculate net positions"]
        assert records[0]["outcome"] == 2

    def test_target_version(self):
        system = make_system(auto_migrate=False)
        applied = system.migration_manager.migrate_up(target_version=1)

        assert [m.version for m in applied] == [1]
        assert system.migration_manager.get_current_version() == 1

    def test_configured_seed_rates(self):
        system = make_system(default_cny_rate="380", default_usdt_rate="2,400")
        assert system.rate_manager.get_default_rate("CNY") == Decimal("380")
        assert system.rate_manager.get_default_rate("USDT") == Decimal("2400")

    def test_recalculation_migration_fixes_stale_rows(self):
        system = make_system(auto_migrate=False)
        partner = system.partner_manager.add_partner("Alice")
        transaction = system.transaction_manager.add_transaction(
            partner.id, datetime(2024, 3, 1, tzinfo=timezone.utc), "1000000", "2660", "CNY", "376"
        )
        stale = system.storage.load(TRANSACTIONS_TABLE, transaction.id)
        stale["net_tzs"] = "-160"
        system.storage.save(TRANSACTIONS_TABLE, transaction.id, stale)

        system.migration_manager.migrate_up()

        assert system.transaction_manager.get_transaction(transaction.id).net_tzs == Decimal("160")
        outcome = system.migration_manager.get_applied_migrations()[1]["outcome"]
        assert outcome == {"total_transactions": 1, "updated_transactions": 1, "errors": 0}

    def test_failed_migration_rolls_back(self):
        system = make_system()
        manager = system.migration_manager

        def broken():
            system.rate_manager.set_default_rate("CNY", "999")
            raise ValueError("half way")

        manager.add_migration(3, "Broken", broken)

        with pytest.raises(RuntimeError):
            manager.migrate_up()

        assert manager.get_current_version() == 2
        assert system.rate_manager.get_default_rate("CNY") == Decimal("376")
        assert [m.version for m in manager.get_pending_migrations()] == [3]

    def test_status(self):
        system = make_system(auto_migrate=False)
        status = system.migration_manager.get_migration_status()

        assert status["current_version"] == 0
        assert status["latest_version"] == 2
        assert status["pending_count"] == 2
        assert status["needs_migration"] is True

        system.migration_manager.migrate_up()
        status = system.migration_manager.get_migration_status()
        assert status["applied_count"] == 2
        assert status["needs_migration"] is False

    def test_on_demand_recalculation(self):
        system = make_system()
        result = system.migration_manager.run_recalculation()
        assert result.success
        assert result.total_transactions == 0

    def test_migration_str(self):
        migration = make_system().migration_manager.migrations[0]
        assert str(migration) == "Migration v001: Seed default exchange rates"
