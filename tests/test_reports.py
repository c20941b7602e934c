"""
Tests for HTML and CSV date range reports
"""

import csv
import io
import pytest
from unittest.mock import Mock
from decimal import Decimal
from datetime import date, datetime, timezone

from fx_ledger.errors import NotFoundError
from fx_ledger.reports import CSV_HEADERS, ReportGenerator, group_by_day
from fx_ledger.system import LedgerSystem


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def system():
    return LedgerSystem.in_memory()


@pytest.fixture
def partner(system):
    partner = system.partner_manager.add_partner("Alice <Traders>")
    tm = system.transaction_manager
    tm.add_transaction(partner.id, utc(2024, 3, 1, 9), "1000000", "2660", "CNY", "376", notes="<script>x</script>")
    tm.add_transaction(partner.id, utc(2024, 3, 1, 15), "1000000", "420", "USDT", "2380", notes="=HYPERLINK()")
    tm.add_transaction(partner.id, utc(2024, 3, 2, 11), "500000", "1300", "CNY", "380")
    tm.add_transaction(partner.id, utc(2024, 4, 1, 11), "1", "1", "USDT", "1")
    return partner


@pytest.fixture
def report(system, partner):
    return system.report_generator.build_report(partner.id, date(2024, 3, 1), date(2024, 3, 31))


def csv_rows(content):
    return list(csv.reader(io.StringIO(content)))


class TestBuildReport:

    def test_collects_range(self, report):
        assert report.partner_name == "Alice <Traders>"
        assert len(report.transactions) == 3
        assert report.summary.transaction_count == 3
        # 160 + 400 + (1300 * 380 - 500,000)
        assert report.summary.total_net_tzs == Decimal("-5440")

    def test_unknown_partner(self, system):
        with pytest.raises(NotFoundError):
            system.report_generator.build_report("missing", date(2024, 3, 1), date(2024, 3, 31))

    def test_needs_ledger_access(self):
        with pytest.raises(RuntimeError):
            ReportGenerator().build_report("p1", date(2024, 3, 1), date(2024, 3, 31))


class TestGroupByDay:

    def test_days_ascending_with_running_totals(self, report):
        sections = group_by_day(report.transactions)

        assert [s.day for s in sections] == [date(2024, 3, 1), date(2024, 3, 2)]
        assert [t.date.hour for t in sections[0].transactions] == [9, 15]
        assert sections[0].total_tzs_received == Decimal("2000000")
        assert sections[0].total_net_tzs == Decimal("560")
        assert sections[0].foreign_by_currency == {"CNY": Decimal("2660"), "USDT": Decimal("420")}
        assert sections[1].cumulative_tzs_received == Decimal("2500000")
        assert sections[1].cumulative_net_tzs == Decimal("-5440")

    def test_empty(self):
        assert group_by_day([]) == []


class TestHtmlReport:

    def test_contents(self, system, report):
        html = system.report_generator.render_html(report)

        assert "Alice &lt;Traders&gt;" in html
        assert "Period: 01/03/2024 - 31/03/2024" in html
        assert "Daily Total 01/03/2024" in html
        assert "Cumulative to 02/03/2024" in html
        assert "1,000,000.00" in html
        assert "-5,440.00" in html

    def test_notes_escaped(self, system, report):
        html = system.report_generator.render_html(report)
        assert "<script>" not in html
        assert "&lt;script&gt;x&lt;/script&gt;" in html

    def test_empty_period(self, system, partner):
        empty = system.report_generator.build_report(partner.id, date(2023, 1, 1), date(2023, 1, 31))
        html = system.report_generator.render_html(empty)
        assert "No transactions in this period." in html
        assert "Daily Total" not in html


class TestCsvReport:

    def test_layout_and_formulas(self, system, report):
        rows = csv_rows(system.report_generator.render_csv(report))

        assert rows[0] == ["Date Range Report"]
        assert rows[2] == ["Period", "01/03/2024 - 31/03/2024"]
        assert rows[6] == ["Total Net TZS", "-5,440.00"]
        assert rows[11] == CSV_HEADERS

        # Spreadsheet row numbers are 1-based: first transaction is row 13
        first = rows[12]
        assert first[:8] == [
            "01/03/2024", "09:00", "1,000,000.00", "2,660.00", "CNY", "376.00", "160.00", "0.43"
        ]
        assert first[9] == "Net TZS = D13*F13 - C13"
        assert rows[13][9] == "Net TZS = C14 - D14*F14"

        assert rows[14][0] == "Daily Total 01/03/2024"
        assert rows[14][6] == "560.00"
        assert rows[14][9] == "SUM(G13:G14)"
        assert rows[15][0] == "Cumulative to 01/03/2024"
        assert rows[15][9] == "SUM(G15)"

        assert rows[17][9] == "SUM(G17:G17)"
        assert rows[18][6] == "-5,440.00"
        assert rows[18][9] == "SUM(G15,G18)"
        assert len(rows) == 19

    def test_formula_injection_guarded(self, system, report):
        rows = csv_rows(system.report_generator.render_csv(report))
        assert rows[13][8] == "'=HYPERLINK()"
        assert rows[12][8] == "<script>x</script>"


class TestExport:

    def test_text_and_binary_sinks(self, system, report):
        generator = system.report_generator

        text_sink = io.StringIO()
        assert generator.export_csv(report, text_sink)
        assert text_sink.getvalue() == generator.render_csv(report)

        binary_sink = io.BytesIO()
        assert generator.export_html(report, binary_sink)
        assert "Alice &lt;Traders&gt;" in binary_sink.getvalue().decode("utf-8")

    def test_failing_sink(self, system, report):
        sink = Mock()
        sink.write.side_effect = OSError("disk full")
        assert system.report_generator.export_html(report, sink) is False

        closed = io.StringIO()
        closed.close()
        assert system.report_generator.export_csv(report, closed) is False

    def test_file_names(self, system):
        generator = system.report_generator
        assert generator.generate_report_file_name(
            "Alice", date(2024, 3, 1), date(2024, 3, 31), "html"
        ) == "DateRangeReport_Alice_20240301_20240331.html"
        assert generator.generate_report_file_name(
            "A/B: Co", date(2024, 3, 1), date(2024, 3, 31), ".csv"
        ) == "DateRangeReport_A_B_ Co_20240301_20240331.csv"
