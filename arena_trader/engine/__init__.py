"""
Tick engine for the trading arena.

Per tick, in order:
1. MarketDataGate - latest prices, batched, zero on failure
2. PositionReader - signed brokerage positions, empty on failure
3. DecisionThrottle - per-agent cooldown and backoff admission
4. RiskGate - projected exposure ceiling per intent
5. OrderExecutor - limit orders tagged with client order ids
6. ledger - equity replay from the fill log
7. FillReconciler - checkpointed fill sync and attribution

ArenaOrchestrator sequences them and owns the scheduling loop.
"""

from .orchestrator import ArenaOrchestrator

__all__ = ["ArenaOrchestrator"]
