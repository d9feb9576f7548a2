"""
Builds the configured agents from their AgentSpec provider settings.
"""
import logging
from typing import List

from ..config import AgentSpec, ArenaConfig
from ..llm.mock import MockLLMClient
from ..llm.openai_client import OpenAIChatClient
from .base import TradingAgent
from .llm_backed import LLMBackedAgent
from .mean_reversion import MeanReversionAgent
from .momentum import MomentumAgent

logger = logging.getLogger("arena_trader.agents.loader")


def infer_provider(agent_id: str) -> str:
    """Provider for an agent with no AGENT_<ID>_PROVIDER set."""
    lowered = agent_id.lower()
    if "mean" in lowered or "reversion" in lowered:
        return "mean_reversion"
    if lowered == "mock":
        return "mock"
    return "momentum"


def build_agent(spec: AgentSpec, config: ArenaConfig, store=None) -> TradingAgent:
    provider = spec.provider or infer_provider(spec.agent_id)

    if provider == "momentum":
        return MomentumAgent(spec.agent_id)
    if provider == "mean_reversion":
        return MeanReversionAgent(spec.agent_id)
    if provider == "mock":
        return LLMBackedAgent(
            spec.agent_id, MockLLMClient(), store=store, memory_enabled=config.enable_agent_memory
        )
    if provider in ("openai", "openrouter"):
        if not spec.model or not spec.api_key:
            logger.warning(f"Agent {spec.agent_id}: missing {provider} model or API key; using momentum bot")
            return MomentumAgent(spec.agent_id)
        llm = OpenAIChatClient(
            api_key=spec.api_key,
            model=spec.model,
            provider=provider,
            endpoint=spec.endpoint,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            referrer=config.openrouter_referrer,
            app_title=config.openrouter_app_title,
            timeout=config.decision_timeout_seconds,
        )
        return LLMBackedAgent(spec.agent_id, llm, store=store, memory_enabled=config.enable_agent_memory)

    logger.warning(f"Agent {spec.agent_id}: unknown provider '{provider}'; using momentum bot")
    return MomentumAgent(spec.agent_id)


def build_agents(config: ArenaConfig, store=None) -> List[TradingAgent]:
    """Agents in configured order."""
    agents = [build_agent(spec, config, store) for spec in config.agents]
    for agent in agents:
        logger.info(f"Loaded agent {agent.agent_id} ({agent.kind})")
    return agents
