"""
OrderExecutor - turns an accepted intent into a brokerage limit order.

Every attempt produces exactly one OrderRecord: the broker's status on
success, ERROR on any submission exception, DRY_RUN when dry-run is on.
"""
import logging
import math
import random
import string
from typing import Optional

from ..schemas import ClientOrderMapping, OrderIntent, OrderRecord

logger = logging.getLogger("arena_trader.engine.execution")

STATUS_DRY_RUN = "DRY_RUN"
STATUS_ERROR = "ERROR"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def share_quantity(notional_usd: float, price: float) -> int:
    return max(1, math.floor(notional_usd / price))


class OrderExecutor:
    def __init__(
        self,
        broker,
        store,
        dry_run: bool = False,
        queue_off_hours: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.broker = broker
        self.store = store
        self.dry_run = dry_run
        self.queue_off_hours = queue_off_hours
        self.rng = rng or random.Random()

    def new_client_order_id(self, agent_id: str, now_ms: int) -> str:
        suffix = "".join(self.rng.choices(_SUFFIX_ALPHABET, k=6))
        return f"{agent_id}-{now_ms}-{suffix}"

    async def execute(
        self,
        agent_id: str,
        intent: OrderIntent,
        price: float,
        market_open: bool,
        now_ms: int,
    ) -> OrderRecord:
        if self.dry_run:
            record = OrderRecord(
                ts=now_ms,
                agent_id=agent_id,
                symbol=intent.symbol,
                side=intent.side,
                notional_usd=intent.notional_usd,
                status=STATUS_DRY_RUN,
            )
            self._persist(record)
            logger.info(f"[DRY_RUN] {agent_id} {intent.side} {intent.symbol} ${intent.notional_usd:.2f}")
            return record

        side = intent.side
        qty = share_quantity(intent.notional_usd, price)
        if self.queue_off_hours or not market_open:
            # Legacy off-hours policy: always a 1-share buy, whatever the agent asked for.
            # Pending product-owner review since it discards sell and size intent.
            if side != "buy" or qty != 1:
                logger.warning(
                    f"Off-hours override for {agent_id}: {side} {qty} {intent.symbol} -> buy 1"
                )
            side, qty = "buy", 1

        client_order_id = self.new_client_order_id(agent_id, now_ms)
        try:
            self.store.upsert_client_order(
                ClientOrderMapping(client_order_id=client_order_id, agent_id=agent_id, symbol=intent.symbol)
            )
            result = await self.broker.place_limit_order(
                symbol=intent.symbol,
                side=side,
                limit_price=round(price, 2),
                qty=qty,
                client_order_id=client_order_id,
            )
            record = OrderRecord(
                ts=now_ms,
                agent_id=agent_id,
                symbol=intent.symbol,
                side=side,
                notional_usd=price * qty,
                status=str(result.get("status") or "submitted"),
                order_id=result.get("order_id"),
            )
            logger.info(
                f"Order {client_order_id}: {side} {qty} {intent.symbol} @ {price:.2f} -> {record.status}"
            )
        except Exception as e:
            logger.error(f"Order submission failed for {agent_id} {intent.symbol}: {e}")
            record = OrderRecord(
                ts=now_ms,
                agent_id=agent_id,
                symbol=intent.symbol,
                side=intent.side,
                notional_usd=intent.notional_usd,
                status=STATUS_ERROR,
            )
        self._persist(record)
        return record

    def _persist(self, record: OrderRecord) -> None:
        try:
            self.store.record_order(record)
        except Exception as e:
            logger.error(f"Failed to record order for {record.agent_id} {record.symbol}: {e}")
