"""LLM narration boundary -- API client, output schemas and the narrator."""

from .client import NarrationClient, TokenUsage
from .narrator import Narrator, fallback_narration
from .schemas import GeneratedEffect, NarrationOutput

__all__ = [
    "GeneratedEffect",
    "NarrationClient",
    "NarrationOutput",
    "Narrator",
    "TokenUsage",
    "fallback_narration",
]
