"""
Configuration for the trading arena, loaded from environment variables.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


SUPPORTED_EXCHANGES = ("alpaca-paper",)

OPENAI_ENDPOINT = "https://api.openai.com/v1"
OPENROUTER_ENDPOINT = "https://openrouter.ai/api/v1"


@dataclass
class AgentSpec:
    """Provider settings for one arena agent."""
    agent_id: str
    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None


@dataclass
class ArenaConfig:
    symbols: List[str] = field(default_factory=list)
    agents: List[AgentSpec] = field(default_factory=list)
    exchange: str = "alpaca-paper"

    decision_interval_seconds: float = 60.0
    max_position_usd: float = 1000.0
    max_order_usd: float = 250.0
    starting_cash_per_agent: float = 10000.0
    min_call_interval_seconds: float = 300.0

    price_concurrency: int = 8
    request_timeout_seconds: float = 8.0
    decision_timeout_seconds: float = 30.0

    dry_run: bool = False
    queue_off_hours: bool = False
    enable_agent_memory: bool = False

    alpaca_key_id: str = ""
    alpaca_secret_key: str = ""
    alpaca_paper_base_url: str = "https://paper-api.alpaca.markets"
    alpaca_data_base_url: str = "https://data.alpaca.markets"

    db_path: str = "data/arena.sqlite"
    database_url: Optional[str] = None
    log_dir: str = "arena_trader/logs"
    log_level: str = "INFO"
    api_port: int = 5000

    llm_temperature: float = 0.2
    llm_max_tokens: int = 400
    openrouter_referrer: str = "https://github.com/arena-trader/arena-trader"
    openrouter_app_title: str = "arena-trader"

    def __post_init__(self):
        self._validate()

    def _validate(self):
        """Reject configurations the orchestrator cannot run with."""
        if self.exchange not in SUPPORTED_EXCHANGES:
            raise ValueError(
                f"Unsupported EXCHANGE '{self.exchange}'. Supported: {', '.join(SUPPORTED_EXCHANGES)}"
            )
        if not self.symbols:
            raise ValueError("SYMBOLS must list at least one ticker")
        if not self.agents:
            raise ValueError("AGENTS must list at least one agent id")
        ids = [a.agent_id for a in self.agents]
        if len(set(ids)) != len(ids):
            raise ValueError(f"AGENTS contains duplicate ids: {ids}")
        if "unknown" in ids:
            raise ValueError("'unknown' is reserved for unattributed fills and cannot be an agent id")
        for name in ("max_position_usd", "max_order_usd", "starting_cash_per_agent", "decision_interval_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive")
        if self.min_call_interval_seconds < 0:
            raise ValueError("MIN_CALL_INTERVAL_SECONDS cannot be negative")
        if self.price_concurrency < 1:
            raise ValueError("PRICE_CONCURRENCY must be at least 1")
        if self.request_timeout_seconds <= 0 or self.decision_timeout_seconds <= 0:
            raise ValueError("Timeouts must be positive")

    @property
    def agent_ids(self) -> List[str]:
        return [a.agent_id for a in self.agents]

    def has_broker_credentials(self) -> bool:
        return bool(self.alpaca_key_id and self.alpaca_secret_key)

    def require_broker_credentials(self) -> None:
        """Raise if the Alpaca paper credentials are missing."""
        if not self.has_broker_credentials():
            raise ValueError("ALPACA_API_KEY_ID and ALPACA_API_SECRET_KEY are required")

    def describe(self) -> str:
        mode = "DRY_RUN" if self.dry_run else "PAPER"
        return (
            f"{mode} | agents={','.join(self.agent_ids)} | symbols={','.join(self.symbols)} | "
            f"interval={self.decision_interval_seconds:.0f}s"
        )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def _split_csv(raw: str, upper: bool = False) -> List[str]:
    seen: Dict[str, None] = {}
    for part in raw.split(","):
        item = part.strip()
        if upper:
            item = item.upper()
        if item:
            seen.setdefault(item, None)
    return list(seen)


def _env_key(agent_id: str, suffix: str) -> str:
    return f"AGENT_{agent_id.upper()}_{suffix}"


def load_agent_spec(agent_id: str) -> AgentSpec:
    """Read AGENT_<ID>_* provider settings for one agent."""
    provider = os.getenv(_env_key(agent_id, "PROVIDER")) or None
    api_key = os.getenv(_env_key(agent_id, "API_KEY")) or None
    # Unexpanded shell templates like "${OPENROUTER_API_KEY}" count as unset.
    if api_key and "${" in api_key:
        api_key = None
    return AgentSpec(
        agent_id=agent_id,
        provider=provider.strip().lower() if provider else None,
        model=os.getenv(_env_key(agent_id, "MODEL")) or None,
        api_key=api_key or os.getenv("OPENROUTER_API_KEY") or None,
        endpoint=os.getenv(_env_key(agent_id, "ENDPOINT")) or None,
    )


def load_config() -> ArenaConfig:
    """Load configuration from environment variables."""
    agent_ids = _split_csv(os.getenv("AGENTS", "momentum,mean_reversion"))
    return ArenaConfig(
        exchange=os.getenv("EXCHANGE", "alpaca-paper").strip().lower(),
        symbols=_split_csv(os.getenv("SYMBOLS", ""), upper=True),
        agents=[load_agent_spec(agent_id) for agent_id in agent_ids],
        decision_interval_seconds=_env_float("DECISION_INTERVAL_SECONDS", "60"),
        max_position_usd=_env_float("MAX_POSITION_USD", "1000"),
        max_order_usd=_env_float("MAX_ORDER_USD", "250"),
        starting_cash_per_agent=_env_float("STARTING_CASH_PER_AGENT", "10000"),
        min_call_interval_seconds=_env_float("MIN_CALL_INTERVAL_SECONDS", "300"),
        price_concurrency=_env_int("PRICE_CONCURRENCY", "8"),
        request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", "8"),
        decision_timeout_seconds=_env_float("DECISION_TIMEOUT_SECONDS", "30"),
        dry_run=_env_bool("DRY_RUN"),
        queue_off_hours=_env_bool("QUEUE_OFF_HOURS"),
        enable_agent_memory=_env_bool("ENABLE_AGENT_MEMORY"),
        alpaca_key_id=os.getenv("ALPACA_API_KEY_ID", ""),
        alpaca_secret_key=os.getenv("ALPACA_API_SECRET_KEY", ""),
        alpaca_paper_base_url=os.getenv("ALPACA_PAPER_BASE_URL", "https://paper-api.alpaca.markets").rstrip("/"),
        alpaca_data_base_url=os.getenv("ALPACA_DATA_BASE_URL", "https://data.alpaca.markets").rstrip("/"),
        db_path=os.getenv("DB_PATH", "data/arena.sqlite"),
        database_url=os.getenv("DATABASE_URL") or None,
        log_dir=os.getenv("LOG_DIR", "arena_trader/logs"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        api_port=_env_int("API_PORT", "5000"),
        llm_temperature=_env_float("LLM_TEMPERATURE", "0.2"),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", "400"),
        openrouter_referrer=os.getenv("OPENROUTER_REFERRER", "https://github.com/arena-trader/arena-trader"),
        openrouter_app_title=os.getenv("OPENROUTER_APP_TITLE", "arena-trader"),
    )
