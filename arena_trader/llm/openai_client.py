"""
OpenAI-compatible chat client (OpenAI or OpenRouter) for arena decisions.
"""
import json
import logging
from typing import Any, List, Optional

from openai import AsyncOpenAI

from ..config import OPENAI_ENDPOINT, OPENROUTER_ENDPOINT
from ..schemas import OrderIntent, parse_intents
from .base import LLMClient, LLMRequest

logger = logging.getLogger("arena_trader.llm.openai_client")

SYSTEM_PROMPT = """You are a trading agent in a paper-trading arena with strict token and rate limits.

RULES:
1. Only trade the symbols you are given, at the prices you are given.
2. Never propose a single order above max_order_usd.
3. Keep each symbol's position value under max_position_usd.
4. Prefer fewer, smaller trades. If there is no clear opportunity, propose nothing.

Respond with ONLY a compact JSON object:
{"intents": [{"symbol": "SYM", "side": "buy" or "sell", "notional_usd": dollar amount}]}

Use {"intents": []} for no action. No explanations, no markdown."""


def normalize_base_url(endpoint: Optional[str], provider: str) -> str:
    """Accept either an API root or a full .../chat/completions URL."""
    if not endpoint:
        return OPENROUTER_ENDPOINT if provider == "openrouter" else OPENAI_ENDPOINT
    base = endpoint.rstrip("/")
    suffix = "/chat/completions"
    if base.endswith(suffix):
        base = base[: -len(suffix)]
    return base


class OpenAIChatClient(LLMClient):
    """Chat-completions client in JSON-object mode. Provider errors propagate."""

    def __init__(
        self,
        api_key: str,
        model: str,
        provider: str = "openai",
        endpoint: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 400,
        referrer: Optional[str] = None,
        app_title: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[Any] = None,
    ):
        self.name = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        base_url = normalize_base_url(endpoint, provider)

        headers = None
        if provider == "openrouter" or "openrouter.ai" in base_url:
            headers = {
                "HTTP-Referer": referrer or "",
                "X-Title": app_title or "",
            }
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=headers,
            timeout=timeout,
            max_retries=0,
        )

    def _build_prompt(self, request: LLMRequest) -> str:
        payload = request.model_dump(exclude_none=True)
        return "Decide order intents for this input:\n" + json.dumps(payload, separators=(",", ":"))

    async def decide(self, request: LLMRequest) -> List[OrderIntent]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": self._build_prompt(request)},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning(f"Empty response from {self.name}:{self.model}")
            return []
        intents = parse_intents(content)
        logger.info(f"{self.name}:{self.model} proposed {len(intents)} intents")
        return intents
