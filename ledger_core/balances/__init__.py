"""Balance computation."""

from ledger_core.balances.calculator import BalanceCalculator, convert_to_native

__all__ = ["BalanceCalculator", "convert_to_native"]
