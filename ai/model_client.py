"""
Model client abstraction for AI providers (OpenAI, Anthropic, mock).

Handles prompt construction, API calls, timeouts and JSON response parsing.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ai.guidelines import (
    AGENT_BIO,
    AGENT_LORE,
    ANALYSIS_GUIDELINES,
    ANALYSIS_STEPS,
    DATA_FIELDS,
    EXPECTED_RESPONSE_FORMAT,
)

log = logging.getLogger(__name__)


def build_system_prompt() -> str:
    """System prompt with agent persona, guidelines and response format."""
    guidelines = "\n\n".join(
        f"{category}:\n" + "\n".join(f"   - {g}" for g in items)
        for category, items in ANALYSIS_GUIDELINES.items()
    )
    return f"""bio: {json.dumps(AGENT_BIO)}
lore: {json.dumps(AGENT_LORE)}

Data Analysis Guidelines:
{guidelines}

Your job:
  - Evaluate ALL available token data
  - Consider market structure, liquidity, and technical factors
  - Decide whether to buy or sell the token on a DEX
  - Provide comprehensive reasoning in JSON

Format your response in JSON:
{json.dumps(EXPECTED_RESPONSE_FORMAT, indent=2)}
IMPORTANT: Return strictly valid JSON. Do not use triple backticks or code blocks.
"""


def format_request(token_context: Dict[str, Any]) -> str:
    """User prompt with the data field map, analysis steps and token data."""
    fields = "\n".join(f"- {category}: {', '.join(items)}" for category, items in DATA_FIELDS.items())
    steps = "\n".join(f"{i}. {step}" for i, step in enumerate(ANALYSIS_STEPS, start=1))
    return f"""Available Data Fields:
{fields}

Consider ALL data points when making your decision:
{steps}

Provide a detailed analysis and trading decision.

Analyze the following token data and respond in strict JSON:
{json.dumps(token_context, indent=2, default=str)}
"""


def extract_json(content: str) -> Dict[str, Any]:
    """Parse JSON, tolerating a markdown code fence around it."""
    content = (content or "").strip()
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        content = content.split("```")[1].split("```")[0].strip()
    return json.loads(content)


class ModelClient(ABC):
    """Abstract base class for AI model clients."""

    model: str = "unknown"

    @abstractmethod
    def call(self, request: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        """
        Ask the model for a decision on one token.

        Args:
            request: Token context (market data for one token)
            timeout: Max time in seconds

        Returns:
            Parsed JSON response

        Raises:
            Exception: On API or parsing errors
        """
        pass


class OpenAIClient(ModelClient):
    """OpenAI chat completions client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ):
        from openai import OpenAI

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = OpenAI(api_key=api_key, base_url=base_url or "https://api.openai.com/v1")

    def call(self, request: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt()},
                    {"role": "user", "content": format_request(request)},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=timeout,
            )
            elapsed = time.perf_counter() - start
            log.info(f"OpenAI call completed in {elapsed*1000:.1f}ms")

            content = response.choices[0].message.content
            return extract_json(content)

        except Exception as e:
            elapsed = time.perf_counter() - start
            log.error(f"OpenAI call failed after {elapsed*1000:.1f}ms: {e}")
            raise


class AnthropicClient(ModelClient):
    """Anthropic Claude client."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.1,
        max_tokens: int = 1000,
    ):
        from anthropic import Anthropic

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = Anthropic(api_key=api_key)

    def call(self, request: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=build_system_prompt(),
                messages=[{"role": "user", "content": format_request(request)}],
                timeout=timeout,
            )
            elapsed = time.perf_counter() - start
            log.info(f"Anthropic call completed in {elapsed*1000:.1f}ms")

            return extract_json(response.content[0].text)

        except Exception as e:
            elapsed = time.perf_counter() - start
            log.error(f"Anthropic call failed after {elapsed*1000:.1f}ms: {e}")
            raise


class MockClient(ModelClient):
    """Mock client for testing and dry runs - never trades unless told to."""

    model = "mock"

    def __init__(self, fixed_response: Optional[Dict[str, Any]] = None):
        self.fixed_response = fixed_response
        self.calls = 0

    def call(self, request: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        self.calls += 1
        if self.fixed_response is not None:
            return self.fixed_response
        return {
            "trade": "false",
            "direction": "buy",
            "confidence": 0.0,
            "size": 0,
            "reasoning": {"price_analysis": "Mock client"},
        }


def create_model_client(
    provider: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs
) -> ModelClient:
    """
    Factory function to create appropriate model client.

    Args:
        provider: "openai", "anthropic", or "mock"
        api_key: API key for the provider
        model: Model name (provider-specific)
        **kwargs: temperature / max_tokens / base_url / fixed_response

    Raises:
        ValueError: If provider is unknown or the key is missing
    """
    provider = provider.lower()

    if provider == "openai":
        if not api_key:
            raise ValueError("OpenAI requires api_key")
        return OpenAIClient(
            api_key=api_key,
            model=model or "gpt-4o",
            base_url=kwargs.get("base_url"),
            temperature=kwargs.get("temperature", 0.1),
            max_tokens=kwargs.get("max_tokens", 1000),
        )

    elif provider == "anthropic":
        if not api_key:
            raise ValueError("Anthropic requires api_key")
        return AnthropicClient(
            api_key=api_key,
            model=model or "claude-3-5-sonnet-20241022",
            temperature=kwargs.get("temperature", 0.1),
            max_tokens=kwargs.get("max_tokens", 1000),
        )

    elif provider == "mock":
        return MockClient(fixed_response=kwargs.get("fixed_response"))

    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'openai', 'anthropic', or 'mock'")
