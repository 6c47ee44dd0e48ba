"""Narrator -- turns committed combat outcomes into flavor text.

Sits strictly downstream of the rules engine.  Any failure of the model
call (API error, missing tool call, schema mismatch) falls back to the
engine's own deterministic narration; a numeric outcome is never held up
or rolled back because narration failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import anthropic
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError

from dungeon_rules.content.registry import RulesRegistry
from dungeon_rules.defs.constraints import ConstraintSource
from dungeon_rules.defs.status_effects import StatusEffect
from dungeon_rules.sim.mechanics.validation import clamp_effect

from .client import NarrationClient
from .schemas import GeneratedEffect, NarrationOutput

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

_NARRATION_FAILURES = (anthropic.APIError, RuntimeError, ValidationError)


def _load_system_prompt() -> str:
    """Load narrator system prompt from prompts/narrator_system.md."""
    prompt_path = Path(__file__).parent / "prompts" / "narrator_system.md"
    return prompt_path.read_text()


def fallback_narration(lines: Sequence[str]) -> str:
    """Join the engine's narration lines into one paragraph."""
    return " ".join(line.strip() for line in lines if line and line.strip())


class Narrator:
    """Model-backed narration with deterministic fallback.

    Parameters
    ----------
    registry:
        Supplies constraint buckets for generated effects.
    client:
        Narration client.  ``None`` runs fully offline: every call returns
        fallback text and :meth:`generate_effect` returns ``None``.
    """

    def __init__(
        self,
        registry: RulesRegistry,
        client: NarrationClient | None = None,
    ) -> None:
        self._registry = registry
        self._client = client
        self._jinja = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            keep_trailing_newline=True,
        )

    @classmethod
    def connect(cls, registry: RulesRegistry, **client_kwargs: object) -> Narrator:
        """Build a narrator with a live client using the narrator system prompt.

        *client_kwargs* are passed to :class:`NarrationClient` (``model``,
        ``api_key``, ``max_attempts``, ...).
        """
        client = NarrationClient(system_prompt=_load_system_prompt(), **client_kwargs)
        return cls(registry, client)

    @property
    def online(self) -> bool:
        return self._client is not None

    def narrate(
        self,
        lines: Sequence[str],
        *,
        actor: str,
        target: str | None = None,
        context: str = "",
    ) -> str:
        """Describe one resolved action.

        *lines* are the outcome record's narration lines; they double as
        the fallback text.
        """
        fallback = fallback_narration(lines)
        if self._client is None or not lines:
            return fallback

        prompt = self._jinja.get_template("narrate_action.j2").render(
            actor=actor, target=target, context=context, lines=lines
        )
        try:
            output = self._client.structured_output(prompt, NarrationOutput, "narrate")
        except _NARRATION_FAILURES as exc:
            logger.info("Narration failed, using fallback text: %s", exc)
            return fallback
        return output.narration

    def generate_effect(
        self,
        theme: str,
        source: ConstraintSource | str,
    ) -> StatusEffect | None:
        """Ask the model for a themed effect and clamp it for *source*.

        Returns ``None`` when the model call fails.

        Raises
        ------
        KeyError
            If the registry has no constraint bucket for *source*.
        """
        source = ConstraintSource(source)
        constraints = self._registry.get_constraints(source)
        if self._client is None:
            return None

        prompt = self._jinja.get_template("generate_effect.j2").render(
            theme=theme, source=source.value, constraints=constraints
        )
        try:
            generated = self._client.structured_output(
                prompt, GeneratedEffect, "submit_effect"
            )
        except _NARRATION_FAILURES as exc:
            logger.info("Effect generation failed for %r: %s", theme, exc)
            return None

        effect = generated.to_status_effect(source_name=theme)
        return clamp_effect(effect, source, self._registry)
