"""Settlement orchestration: approve, reject, finish and batch settlement."""

from settlement.engine.orchestrator import SettlementOrchestrator

__all__ = ["SettlementOrchestrator"]
