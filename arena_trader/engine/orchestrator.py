"""
ArenaOrchestrator - runs one tick end to end and owns the scheduling loop.

Tick order (strict):
  prices -> positions -> clock -> agents (throttle, decide, risk, execute)
  -> equity snapshots -> fill reconciliation

Nothing inside a tick propagates: a failing agent, order or external call is
logged into the TickResult and the tick carries on.
"""
import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from ..config import ArenaConfig
from ..observability import TickJournal
from ..schemas import (
    AgentTickOutcome,
    DecisionContext,
    EquitySnapshot,
    MarketSnapshot,
    PositionSnapshot,
    RiskCeilings,
    TickResult,
)
from .execution import OrderExecutor
from .ledger import compute_equity
from .market_data import MarketDataGate
from .positions import PositionReader
from .reconciler import FillReconciler
from .risk_gate import RiskGate
from .throttle import DecisionThrottle

logger = logging.getLogger("arena_trader.engine.orchestrator")

MIN_TICK_INTERVAL_SECONDS = 5.0


class ArenaOrchestrator:
    """Sequences every component once per tick."""

    def __init__(
        self,
        config: ArenaConfig,
        broker,
        store,
        agents: List,
        journal: Optional[TickJournal] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.broker = broker
        self.store = store
        self.agents = list(agents)
        self.journal = journal
        self.clock = clock

        self.market_data = MarketDataGate(broker, config.price_concurrency)
        self.positions = PositionReader(broker)
        self.throttle = DecisionThrottle(config.min_call_interval_seconds)
        self.risk_gate = RiskGate(config.max_position_usd)
        self.executor = OrderExecutor(
            broker,
            store,
            dry_run=config.dry_run,
            queue_off_hours=config.queue_off_hours,
            rng=rng,
        )
        self.reconciler = FillReconciler(broker, store, clock)

        self.last_tick: Optional[TickResult] = None
        self._tick_in_progress = False
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_tasks: Set[asyncio.Task] = set()

        logger.info(f"Orchestrator initialized - {config.describe()}")

    @property
    def agent_ids(self) -> List[str]:
        return [a.agent_id for a in self.agents]

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_in_progress

    @property
    def running(self) -> bool:
        return self._running

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def tick(self) -> TickResult:
        """Run one tick. An overlapping call is dropped and returns a skipped result."""
        if self._tick_in_progress:
            logger.warning("Tick already in progress; dropping overlapping tick")
            now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
            return TickResult(started_at=now, finished_at=now, skipped=True)

        self._tick_in_progress = True
        try:
            result = await self._run_tick()
        finally:
            self._tick_in_progress = False
        self.last_tick = result
        return result

    async def _run_tick(self) -> TickResult:
        now = self.clock()
        now_ms = int(now * 1000)
        result = TickResult(started_at=datetime.fromtimestamp(now, tz=timezone.utc))
        logger.info("=== TICK START ===")

        logger.info("[1/6] Fetching prices...")
        prices = await self.market_data.fetch_prices(self.config.symbols)
        result.prices = prices
        markets: List[MarketSnapshot] = []
        for symbol, price in prices.items():
            if price <= 0:
                continue
            try:
                snapshot = MarketSnapshot(symbol=symbol, price=price, observed_at=now_ms)
                markets.append(snapshot)
                self.store.record_market_snapshot(snapshot)
            except Exception as e:
                logger.error(f"Failed to persist snapshot for {symbol}: {e}")
                result.errors.append(f"snapshot {symbol}: {e}")

        logger.info("[2/6] Reading positions...")
        positions = await self.positions.read()
        position_qty = {p.symbol: p.qty for p in positions}
        result.positions = position_qty

        logger.info("[3/6] Checking market clock...")
        result.market_open = await self._market_open()

        logger.info(f"[4/6] Running {len(self.agents)} agents...")
        held = {p.symbol: p for p in positions}
        # Every configured symbol is present; flat ones carry qty 0.
        agent_positions = [
            held.get(symbol) or PositionSnapshot(symbol=symbol, qty=0.0)
            for symbol in self.config.symbols
        ]
        context = DecisionContext(
            markets=markets,
            positions=agent_positions,
            ceilings=RiskCeilings(
                max_order_usd=self.config.max_order_usd,
                max_position_usd=self.config.max_position_usd,
            ),
        )
        for agent in self.agents:
            try:
                outcome = await self._run_agent(agent, context, prices, position_qty, result.market_open)
            except Exception as e:
                logger.error(f"Agent {agent.agent_id} tick failed: {e}")
                outcome = AgentTickOutcome(agent_id=agent.agent_id, status="failed", error=str(e))
                result.errors.append(f"agent {agent.agent_id}: {e}")
            result.agents.append(outcome)

        logger.info("[5/6] Recording equity...")
        try:
            result.equity = self._record_equity(prices)
        except Exception as e:
            logger.error(f"Equity snapshot failed: {e}")
            result.errors.append(f"equity: {e}")

        logger.info("[6/6] Reconciling fills...")
        try:
            fills = await self.reconciler.sync()
            result.fills_reconciled = len(fills)
        except Exception as e:
            logger.error(f"Fill reconciliation failed: {e}")
            result.errors.append(f"reconcile: {e}")

        result.finished_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        if self.journal is not None:
            self.journal.log_tick(result)
        return result

    async def _market_open(self) -> bool:
        """Fails open: an unreachable clock is treated as market open."""
        try:
            clock = await self.broker.get_clock()
            return bool(clock.get("is_open", False))
        except Exception as e:
            logger.warning(f"Market clock unavailable, assuming open: {e}")
            return True

    async def _run_agent(
        self,
        agent,
        context: DecisionContext,
        prices: Dict[str, float],
        position_qty: Dict[str, float],
        market_open: bool,
    ) -> AgentTickOutcome:
        agent_id = agent.agent_id
        outcome = AgentTickOutcome(agent_id=agent_id)

        now = self.clock()
        allowed, reason = self.throttle.check(agent_id, now)
        if not allowed:
            logger.info(f"Agent {agent_id} skipped: {reason}")
            outcome.status = "blocked"
            outcome.blocked_reason = reason
            return outcome

        try:
            intents = await asyncio.wait_for(agent.decide(context), timeout=self.config.decision_timeout_seconds)
        except Exception as e:
            error = e if str(e) else type(e).__name__
            logger.warning(f"Agent {agent_id} decision failed: {error}")
            outcome.status = "failed"
            outcome.error = str(error)
            outcome.backoff_minutes = self.throttle.record_failure(agent_id, e, self.clock())
            return outcome

        self.throttle.record_success(agent_id, now)
        outcome.intents = list(intents or [])

        for intent in outcome.intents:
            price = prices.get(intent.symbol, 0.0)
            current_qty = position_qty.get(intent.symbol, 0.0)
            risk = self.risk_gate.check(intent, current_qty, price)
            if not risk.allowed:
                logger.info(f"Agent {agent_id} intent rejected: {risk.notes}")
                outcome.rejected.append(risk.notes)
                continue
            record = await self.executor.execute(agent_id, intent, price, market_open, self._now_ms())
            outcome.orders.append(record)
        return outcome

    def _record_equity(self, prices: Dict[str, float]) -> Dict[str, float]:
        ts = self._now_ms()
        fills = self.store.get_fills_ordered()
        equity = compute_equity(fills, self.agent_ids, self.config.starting_cash_per_agent, prices)
        for agent_id in self.agent_ids:
            self.store.record_equity_snapshot(EquitySnapshot(ts=ts, agent_id=agent_id, equity_usd=equity[agent_id]))
        return equity

    def seed_equity(self) -> None:
        """One starting-cash snapshot per agent so the leaderboard is never empty."""
        ts = self._now_ms()
        for agent_id in self.agent_ids:
            self.store.record_equity_snapshot(
                EquitySnapshot(ts=ts, agent_id=agent_id, equity_usd=self.config.starting_cash_per_agent)
            )

    def _spawn_tick(self) -> asyncio.Task:
        task = asyncio.create_task(self._guarded_tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)
        return task

    async def _guarded_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            logger.error(f"Tick crashed: {e}")

    async def start(self) -> None:
        """Seed equity, tick immediately, then tick on a fixed cadence until stop()."""
        interval = max(self.config.decision_interval_seconds, MIN_TICK_INTERVAL_SECONDS)
        self._running = True
        self._stop_event = asyncio.Event()
        logger.info(f"Orchestrator start - interval {interval:.0f}s, symbols {self.config.symbols}")

        self.seed_equity()
        try:
            while self._running:
                # Ticks fire on the cadence; a slow tick makes the next one drop via the guard.
                self._spawn_tick()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            if self._tick_tasks:
                await asyncio.gather(*self._tick_tasks, return_exceptions=True)
            logger.info("Orchestrator stopped")

    def stop(self) -> None:
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
