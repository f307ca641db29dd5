"""Chat providers."""

from chatadapter.llm.providers.base import Provider
from chatadapter.llm.providers.openai_compat import OpenAICompatProvider

__all__ = ["OpenAICompatProvider", "Provider"]
