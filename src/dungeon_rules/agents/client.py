"""Narration API client -- single-shot calls with bounded retry.

Wraps the Anthropic SDK to provide:
- Plain text completions for combat narration
- Structured output via forced tool_choice
- Exponential backoff with jitter on transient API failures
- Cumulative token usage tracking

Every call is stateless: the numeric combat state is already committed by
the time narration is requested, so there is no conversation to keep.
"""

from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")


@dataclass
class TokenUsage:
    """Cumulative token usage across all API calls.

    ``api_calls`` counts raw round-trips, so retried attempts are
    included.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    api_calls: int = 0

    @property
    def total_input_tokens(self) -> int:
        return (
            self.input_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )

    def record(self, usage: Any) -> None:
        """Add one response's ``usage`` block to the running totals."""
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.cache_creation_input_tokens += usage.cache_creation_input_tokens or 0
        self.cache_read_input_tokens += usage.cache_read_input_tokens or 0
        self.api_calls += 1


class NarrationClient:
    """Stateless Anthropic client used by :class:`~dungeon_rules.agents.narrator.Narrator`.

    Parameters
    ----------
    model:
        Anthropic model ID.
    system_prompt:
        System prompt prepended to every API call.
    max_tokens:
        Maximum tokens per API response.
    temperature:
        Sampling temperature.
    api_key:
        Anthropic API key.  Falls back to ``ANTHROPIC_API_KEY`` env var.
    max_attempts:
        Total tries per call, the first included.
    base_delay:
        Seconds to wait before the first retry; doubles on each retry.
    max_jitter:
        Upper bound, in seconds, of the uniform jitter added to each delay.
    sleep:
        Blocking sleep function.  Tests pass a recorder.
    rng:
        Source of jitter.  Defaults to a private ``random.Random``.
    """

    def __init__(
        self,
        *,
        model: str = "claude-sonnet-4-20250514",
        system_prompt: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.7,
        api_key: str | None = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_jitter: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        resolved_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not resolved_key:
            raise ValueError(
                "No API key provided. Pass api_key= or set ANTHROPIC_API_KEY."
            )
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self._client = anthropic.Anthropic(api_key=resolved_key)
        self._model = model
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_jitter = max_jitter
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._usage = TokenUsage()

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def complete(self, user_message: str) -> str:
        """Return the model's text reply to *user_message*."""

        def call() -> str:
            response = self._call_api(user_message)
            return "\n".join(
                block.text for block in response.content if block.type == "text"
            ).strip()

        return self._with_retry(call)

    def structured_output(
        self,
        user_message: str,
        output_schema: type[M],
        output_tool_name: str = "respond",
    ) -> M:
        """Force a structured response matching a Pydantic schema.

        Raises
        ------
        RuntimeError
            If the model never calls the forced tool, after every attempt.
        pydantic.ValidationError
            If the tool input does not match *output_schema*.  Not retried.
        """
        forced_tool = {
            "name": output_tool_name,
            "description": (
                f"Return a structured response matching the "
                f"{output_schema.__name__} schema."
            ),
            "input_schema": output_schema.model_json_schema(),
        }

        def call() -> M:
            response = self._call_api(
                user_message,
                tools=[forced_tool],
                tool_choice={"type": "tool", "name": output_tool_name},
            )
            for block in response.content:
                if block.type == "tool_use" and block.name == output_tool_name:
                    return output_schema.model_validate(block.input)
            raise RuntimeError(
                f"Model did not call the forced tool '{output_tool_name}'."
            )

        return self._with_retry(call)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def usage(self) -> TokenUsage:
        """Cumulative token usage across all API calls."""
        return self._usage

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _delay_for(self, attempt: int) -> float:
        """Backoff before retry number *attempt* (0-based)."""
        return self._base_delay * 2**attempt + self._rng.uniform(0, self._max_jitter)

    def _with_retry(self, call: Callable[[], R]) -> R:
        for attempt in range(self._max_attempts):
            try:
                return call()
            except ValidationError:
                raise
            except (anthropic.APIError, RuntimeError) as exc:
                if attempt == self._max_attempts - 1:
                    raise
                delay = self._delay_for(attempt)
                logger.debug(
                    "Narration call failed (attempt %d/%d): %s; retrying in %.2fs",
                    attempt + 1,
                    self._max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

    def _call_api(
        self,
        user_message: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
    ) -> anthropic.types.Message:
        """Make a single API call and track token usage."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": "user", "content": user_message}],
        }
        if self._system_prompt:
            kwargs["system"] = self._system_prompt
        if tools:
            kwargs["tools"] = tools
        if tool_choice:
            kwargs["tool_choice"] = tool_choice

        response = self._client.messages.create(**kwargs)
        self._usage.record(response.usage)
        return response
