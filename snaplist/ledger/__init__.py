from .payouts import BalanceSummary, SettlementLedger

__all__ = ["BalanceSummary", "SettlementLedger"]
