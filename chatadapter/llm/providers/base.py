"""Abstract base class for chat providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chatadapter.cancellation import CancellationToken
from chatadapter.llm.progress import ProgressSink
from chatadapter.llm.types import ChatInformation, ChatMessage, RequestOptions


class Provider(ABC):
    """
    A provider answers the host's three queries for one endpoint.

    Implementations must support:
      - Listing selectable models (``chat_information``).
      - Streaming a response into a progress sink (``provide_response``).
      - Token counting (``count_tokens``).
    """

    @abstractmethod
    def chat_information(self) -> list[ChatInformation]:
        """Models the host may offer to the user."""
        ...

    @abstractmethod
    async def provide_response(
        self,
        model: ChatInformation | str,
        messages: list[ChatMessage],
        options: RequestOptions,
        progress: ProgressSink,
        token: CancellationToken | None = None,
    ) -> None:
        """
        Stream one response into *progress*.

        Returns when the turn is complete.  Raises ``RequestCancelled`` when
        *token* fires and an ``AdapterError`` subclass on failure; parts
        already reported are not retracted.
        """
        ...

    @abstractmethod
    def count_tokens(self, value: str | ChatMessage) -> int:
        """Estimate tokens for a raw string or a single message."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name (e.g. ``"openai-compat"``)."""
        ...
