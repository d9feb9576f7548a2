"""
Provider-neutral contract for LLM decision calls.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..schemas import OrderIntent


class LLMRequest(BaseModel):
    symbols: List[str]
    prices: Dict[str, float]
    positions: Dict[str, float]
    max_order_usd: float
    max_position_usd: float
    memory: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """
    Produces order intents for one request.

    Provider errors (rate limits, policy or moderation rejections) must
    propagate so the caller can classify them; malformed output yields [].
    """

    name: str = "llm"

    @abstractmethod
    async def decide(self, request: LLMRequest) -> List[OrderIntent]:
        ...
