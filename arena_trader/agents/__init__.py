"""
Arena agents: rule-based bots and LLM-backed models behind one decide() interface.
"""

from .base import TradingAgent
from .llm_backed import LLMBackedAgent
from .loader import build_agent, build_agents
from .mean_reversion import MeanReversionAgent
from .momentum import MomentumAgent

__all__ = [
    "TradingAgent",
    "MomentumAgent",
    "MeanReversionAgent",
    "LLMBackedAgent",
    "build_agent",
    "build_agents",
]
