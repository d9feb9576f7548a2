"""
FastAPI read service for the arena: leaderboard, PnL, orders, equity history.

Optionally hosts the orchestrator's scheduling loop as a background task.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import ArenaConfig
from .engine.ledger import compute_realized_pnl
from .engine.orchestrator import ArenaOrchestrator
from .store import ArenaStore

logger = logging.getLogger("arena_trader.api")

SHUTDOWN_GRACE_SECONDS = 30.0


def _iso(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat()


def get_store(request: Request) -> ArenaStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Arena store not initialized")
    return store


def get_orchestrator(request: Request) -> ArenaOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not attached to this service")
    return orchestrator


def create_app(
    config: ArenaConfig,
    store: ArenaStore,
    orchestrator: Optional[ArenaOrchestrator] = None,
    run_scheduler: bool = False,
) -> FastAPI:
    """Build the API. With run_scheduler the orchestrator loop runs for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.initialize()
        task: Optional[asyncio.Task] = None
        if orchestrator is not None and run_scheduler:
            logger.info("[Scheduler] Starting arena orchestrator loop")
            task = asyncio.create_task(orchestrator.start())
        yield
        if task is not None:
            orchestrator.stop()
            try:
                await asyncio.wait_for(task, timeout=SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("[Scheduler] Orchestrator did not stop in time; cancelled")
            except asyncio.CancelledError:
                pass
        if orchestrator is not None:
            close = getattr(orchestrator.broker, "aclose", None)
            if close is not None:
                await close()
        logger.info("Arena API shutdown")

    app = FastAPI(
        title="Arena Trader API",
        description="Read API for the paper-trading arena",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.store = store
    app.state.orchestrator = orchestrator

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": "ok",
            "time": datetime.now(timezone.utc).isoformat(),
            "dry_run": config.dry_run,
            "agents": config.agent_ids,
        }
        orch = request.app.state.orchestrator
        if orch is not None:
            last = orch.last_tick
            body["scheduler_running"] = orch.running
            body["tick_in_progress"] = orch.tick_in_progress
            body["last_tick_at"] = last.finished_at.isoformat() if last and last.finished_at else None
        return body

    @app.get("/leaderboard")
    async def leaderboard(request: Request) -> List[Dict[str, Any]]:
        rows = get_store(request).get_latest_equity_by_agent()
        return [
            {"rank": i + 1, "agent_id": r.agent_id, "equity_usd": round(r.equity_usd, 2), "as_of": _iso(r.ts)}
            for i, r in enumerate(rows)
        ]

    @app.get("/pnl")
    async def pnl(request: Request) -> List[Dict[str, Any]]:
        fills = get_store(request).get_fills_ordered()
        results = compute_realized_pnl(fills, config.agent_ids)
        rows = [
            {
                "agent_id": r.agent_id,
                "realized_pnl": round(r.realized_pnl, 2),
                "open_positions": {s: round(b.qty, 6) for s, b in r.holdings.items() if b.qty > 0},
            }
            for r in results.values()
        ]
        return sorted(rows, key=lambda row: row["realized_pnl"], reverse=True)

    @app.get("/orders")
    async def orders(request: Request, limit: int = Query(50, ge=1, le=500)) -> List[Dict[str, Any]]:
        records = get_store(request).get_recent_orders(limit)
        return [{**r.model_dump(), "time": _iso(r.ts)} for r in records]

    @app.get("/equity/{agent_id}")
    async def equity_history(
        request: Request,
        agent_id: str,
        limit: int = Query(500, ge=1, le=5000),
    ) -> List[Dict[str, Any]]:
        history = get_store(request).get_equity_history(agent_id, limit)
        if not history and agent_id not in config.agent_ids:
            raise HTTPException(status_code=404, detail=f"Unknown agent '{agent_id}'")
        return [{"ts": s.ts, "time": _iso(s.ts), "equity_usd": s.equity_usd} for s in history]

    @app.post("/tick")
    async def run_tick(request: Request) -> Dict[str, Any]:
        orch = get_orchestrator(request)
        if orch.tick_in_progress:
            raise HTTPException(status_code=409, detail="Tick already in progress")
        started = time.time()
        result = await orch.tick()
        if result.skipped:
            raise HTTPException(status_code=409, detail="Tick already in progress")
        return {
            "status": "completed",
            "duration_ms": round((time.time() - started) * 1000),
            "market_open": result.market_open,
            "agents": [
                {
                    "agent_id": a.agent_id,
                    "status": a.status,
                    "orders": len(a.orders),
                    "rejected": len(a.rejected),
                    "error": a.error,
                }
                for a in result.agents
            ],
            "equity": result.equity,
            "fills_reconciled": result.fills_reconciled,
            "errors": result.errors,
        }

    return app
