"""
LLMBackedAgent - delegates decisions to an LLM provider and validates its output.
"""
import logging
import time
from typing import Callable, List

from ..llm.base import LLMClient, LLMRequest
from ..schemas import DecisionContext, OrderIntent, parse_intents
from .base import TradingAgent

logger = logging.getLogger("arena_trader.agents.llm_backed")


class LLMBackedAgent(TradingAgent):
    """
    Builds an LLMRequest from the tick context and returns validated intents.

    With memory enabled the agent's stored state is sent along and refreshed
    after every successful decision. Provider exceptions propagate to the
    orchestrator for backoff classification.
    """

    kind = "llm"

    def __init__(
        self,
        agent_id: str,
        llm: LLMClient,
        store=None,
        memory_enabled: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(agent_id)
        self.llm = llm
        self.store = store
        self.memory_enabled = memory_enabled and store is not None
        self.clock = clock

    def build_request(self, context: DecisionContext) -> LLMRequest:
        return LLMRequest(
            symbols=[m.symbol for m in context.markets],
            prices=context.prices(),
            positions=context.position_qty(),
            max_order_usd=context.ceilings.max_order_usd,
            max_position_usd=context.ceilings.max_position_usd,
            memory=self.store.get_agent_state(self.agent_id) if self.memory_enabled else None,
        )

    async def decide(self, context: DecisionContext) -> List[OrderIntent]:
        if not context.markets:
            return []
        raw = await self.llm.decide(self.build_request(context))
        # Re-validate: a provider client may hand back dicts or loosely built models.
        intents = parse_intents([i.model_dump() if isinstance(i, OrderIntent) else i for i in raw or []])
        if self.memory_enabled:
            self._remember(intents)
        return intents

    def _remember(self, intents: List[OrderIntent]) -> None:
        summary = ", ".join(f"{i.side} {i.symbol} ${i.notional_usd:.0f}" for i in intents) or "no trades"
        now_ms = int(self.clock() * 1000)
        try:
            self.store.update_agent_state(
                self.agent_id,
                {"summary": f"last decision: {summary}", "last_seen_ts": now_ms},
                ts=now_ms,
            )
        except Exception as e:
            logger.warning(f"Could not persist memory for {self.agent_id}: {e}")
