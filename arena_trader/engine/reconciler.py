"""
FillReconciler - checkpointed sync of brokerage fills into the fill log.

The checkpoint only moves forward. A failed fetch leaves it untouched so the
same window is retried on the next tick.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from ..schemas import UNKNOWN_AGENT, FillActivity, FillRecord

logger = logging.getLogger("arena_trader.engine.reconciler")

DEFAULT_LOOKBACK = timedelta(hours=24)

_FRACTION = re.compile(r"^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (with Z or offset). Naive values are taken as UTC."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    # Brokerage timestamps can carry nanoseconds; datetime holds microseconds.
    match = _FRACTION.match(text)
    if match:
        head, fraction, tail = match.groups()
        text = f"{head}.{fraction[:6].ljust(6, '0')}{tail}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class FillReconciler:
    def __init__(self, broker, store, clock: Callable[[], float]):
        self.broker = broker
        self.store = store
        self.clock = clock

    def _checkpoint(self) -> str:
        stored = self.store.get_last_fill_checkpoint()
        if stored and parse_iso(stored) is not None:
            return stored
        if stored:
            logger.warning(f"Unparsable fill checkpoint '{stored}'; using 24h lookback")
        now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        return to_iso(now - DEFAULT_LOOKBACK)

    def _attribute(self, activity: FillActivity) -> str:
        if activity.client_order_id:
            agent_id = self.store.find_agent_for_client_order(activity.client_order_id)
            if agent_id:
                return agent_id
        if activity.order_id:
            agent_id = self.store.find_agent_for_broker_order(activity.order_id)
            if agent_id:
                return agent_id
        return UNKNOWN_AGENT

    async def sync(self) -> List[FillRecord]:
        """Pull fills since the checkpoint, record them, and advance the checkpoint."""
        after = self._checkpoint()
        try:
            activities = await self.broker.list_fills_since(after)
        except Exception as e:
            logger.warning(f"Fill sync failed, will retry from {after}: {e}")
            return []

        after_dt = parse_iso(after)
        max_seen = after_dt
        max_seen_iso = after
        recorded: List[FillRecord] = []

        for activity in activities:
            moment = parse_iso(activity.transaction_time)
            if moment is None:
                logger.warning(f"Skipping fill with unparsable time '{activity.transaction_time}'")
                continue
            if max_seen is None or moment > max_seen:
                max_seen = moment
                max_seen_iso = activity.transaction_time

            agent_id = self._attribute(activity)
            if agent_id == UNKNOWN_AGENT:
                logger.warning(
                    f"Unattributed fill {activity.symbol} {activity.side} {activity.qty} "
                    f"(order {activity.order_id or '-'})"
                )
            fill = FillRecord(
                ts=int(moment.timestamp() * 1000),
                agent_id=agent_id,
                symbol=activity.symbol,
                side=activity.side,
                qty=activity.qty,
                price=activity.price,
                activity_id=activity.activity_id,
            )
            if self.store.record_fill(fill):
                recorded.append(fill)

        self.store.set_last_fill_checkpoint(max_seen_iso)
        if recorded:
            logger.info(f"Reconciled {len(recorded)} fills; checkpoint now {max_seen_iso}")
        return recorded
