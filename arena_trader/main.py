"""
Command-line entry point for the arena.

    arena-trader run                       scheduling loop
    arena-trader tick                      one tick
    arena-trader ticks --count 5 --delay 2 several ticks
    arena-trader serve [--with-orchestrator]
    arena-trader leaderboard
    arena-trader ping
"""
import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from .agents.loader import build_agents
from .broker import AlpacaBroker
from .config import ArenaConfig, load_config
from .engine.orchestrator import ArenaOrchestrator
from .mirror import build_mirror
from .observability import TickJournal
from .schemas import TickResult
from .store import ArenaStore

logger = logging.getLogger("arena_trader")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [ARENA] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@dataclass
class Runtime:
    config: ArenaConfig
    store: ArenaStore
    broker: AlpacaBroker
    orchestrator: ArenaOrchestrator

    async def aclose(self) -> None:
        await self.broker.aclose()
        self.store.close()


def build_runtime(cfg: ArenaConfig) -> Runtime:
    """Wire store, mirror, broker, agents and orchestrator from configuration."""
    store = ArenaStore(cfg.db_path, mirror=build_mirror(cfg.database_url))
    store.initialize()
    broker = AlpacaBroker(cfg)
    agents = build_agents(cfg, store)
    orchestrator = ArenaOrchestrator(cfg, broker, store, agents, journal=TickJournal(cfg.log_dir))
    return Runtime(config=cfg, store=store, broker=broker, orchestrator=orchestrator)


def print_tick(result: TickResult) -> None:
    print(f"Tick at {result.started_at.isoformat()} ({result.duration_ms:.0f}ms) "
          f"market={'open' if result.market_open else 'closed'}")
    for outcome in result.agents:
        line = f"  {outcome.agent_id:<20} {outcome.status:<8} orders={len(outcome.orders)} rejected={len(outcome.rejected)}"
        if outcome.blocked_reason:
            line += f" ({outcome.blocked_reason})"
        if outcome.error:
            line += f" error={outcome.error}"
        print(line)
    for agent_id, equity in result.equity.items():
        print(f"  equity {agent_id:<20} ${equity:,.2f}")
    if result.errors:
        print(f"  errors: {result.errors}")


async def cmd_run(cfg: ArenaConfig) -> int:
    runtime = build_runtime(cfg)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runtime.orchestrator.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            pass
    try:
        await runtime.orchestrator.start()
    finally:
        await runtime.aclose()
    return 0


async def cmd_ticks(cfg: ArenaConfig, count: int, delay: float) -> int:
    runtime = build_runtime(cfg)
    try:
        for i in range(count):
            result = await runtime.orchestrator.tick()
            print_tick(result)
            if i < count - 1 and delay > 0:
                await asyncio.sleep(delay)
    finally:
        await runtime.aclose()
    return 0


def cmd_leaderboard(cfg: ArenaConfig) -> int:
    store = ArenaStore(cfg.db_path)
    try:
        rows = store.get_latest_equity_by_agent()
    finally:
        store.close()
    if not rows:
        print("No equity snapshots yet.")
        return 0
    for rank, row in enumerate(rows, start=1):
        print(f"{rank:>2}. {row.agent_id:<20} ${row.equity_usd:,.2f}")
    return 0


async def cmd_ping(cfg: ArenaConfig) -> int:
    cfg.require_broker_credentials()
    broker = AlpacaBroker(cfg)
    try:
        account = await broker.get_account()
        print(f"Account {account.get('account_number', '?')} status={account.get('status')} "
              f"equity=${float(account.get('equity') or 0):,.2f}")
        clock = await broker.get_clock()
        print(f"Market open: {clock['is_open']}")
        symbol = cfg.symbols[0]
        print(f"{symbol} last trade: ${await broker.get_latest_price(symbol):,.2f}")
    finally:
        await broker.aclose()
    return 0


def cmd_serve(cfg: ArenaConfig, host: str, port: int, with_orchestrator: bool) -> int:
    import uvicorn

    from .api import create_app

    runtime = build_runtime(cfg)
    app = create_app(cfg, runtime.store, runtime.orchestrator, run_scheduler=with_orchestrator)
    try:
        uvicorn.run(app, host=host, port=port, log_level=cfg.log_level.lower())
    finally:
        runtime.store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="arena-trader", description="Paper-trading agent arena")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the scheduling loop until interrupted")
    sub.add_parser("tick", help="Run a single tick")

    ticks = sub.add_parser("ticks", help="Run several ticks back to back")
    ticks.add_argument("--count", type=int, default=3)
    ticks.add_argument("--delay", type=float, default=0.0, help="Seconds between ticks")

    serve = sub.add_parser("serve", help="Serve the read API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--with-orchestrator", action="store_true", help="Also run the tick loop")

    sub.add_parser("leaderboard", help="Print latest equity per agent")
    sub.add_parser("ping", help="Check Alpaca paper connectivity")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config()
        if args.command in ("run", "tick", "ticks", "ping") or (
            args.command == "serve" and args.with_orchestrator
        ):
            cfg.require_broker_credentials()
        if args.command == "ticks" and args.count < 1:
            raise ValueError("--count must be at least 1")
    except ValueError as e:
        print(f"CONFIGURATION ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(cfg.log_level)
    logger.info(cfg.describe())

    if args.command == "run":
        code = asyncio.run(cmd_run(cfg))
    elif args.command == "tick":
        code = asyncio.run(cmd_ticks(cfg, 1, 0.0))
    elif args.command == "ticks":
        code = asyncio.run(cmd_ticks(cfg, args.count, args.delay))
    elif args.command == "serve":
        code = cmd_serve(cfg, args.host, args.port or cfg.api_port, args.with_orchestrator)
    elif args.command == "leaderboard":
        code = cmd_leaderboard(cfg)
    else:
        code = asyncio.run(cmd_ping(cfg))
    sys.exit(code)


if __name__ == "__main__":
    main()
