"""
FX Ledger

A currency-exchange ledger for partners trading TZS against CNY/USDT,
with net-position tracking, default exchange rates, JSON backup/restore
and printable date-range reports. All amounts use Decimal precision.
"""

__version__ = "1.0.0"
