"""
TickJournal - audit trail of every tick.

One JSON line per tick under <log_dir>/ticks/ plus a one-line summary in the
process log. Journal failures are logged and never reach the tick.
"""
import json
import logging
from pathlib import Path

from .schemas import TickResult

logger = logging.getLogger("arena_trader.observability")


class TickJournal:
    def __init__(self, log_dir: str):
        self.log_dir = Path(log_dir)

    def _ensure_log_dir(self) -> Path:
        ticks_dir = self.log_dir / "ticks"
        ticks_dir.mkdir(parents=True, exist_ok=True)
        return ticks_dir

    def path_for(self, result: TickResult) -> Path:
        return self.log_dir / "ticks" / f"ticks_{result.started_at.strftime('%Y%m%d')}.jsonl"

    def log_tick(self, result: TickResult) -> None:
        try:
            self._ensure_log_dir()
            with open(self.path_for(result), "a") as f:
                f.write(json.dumps(result.model_dump(mode="json"), default=str) + "\n")
        except Exception as e:
            logger.error(f"Failed to journal tick: {e}")
        self._log_summary(result)

    def _log_summary(self, result: TickResult) -> None:
        ran = sum(1 for a in result.agents if a.status == "ran")
        blocked = sum(1 for a in result.agents if a.status == "blocked")
        failed = sum(1 for a in result.agents if a.status == "failed")
        orders = sum(len(a.orders) for a in result.agents)
        rejected = sum(len(a.rejected) for a in result.agents)
        priced = sum(1 for p in result.prices.values() if p > 0)

        logger.info(
            f"TICK SUMMARY | "
            f"Market: {'OPEN' if result.market_open else 'CLOSED'} | "
            f"Prices: {priced}/{len(result.prices)} | "
            f"Agents: {ran} ran, {blocked} blocked, {failed} failed | "
            f"Orders: {orders} | "
            f"Rejected: {rejected} | "
            f"Fills: {result.fills_reconciled} | "
            f"Errors: {len(result.errors)} | "
            f"Duration: {result.duration_ms:.0f}ms"
        )
