"""
OpenAI-compatible chat-completion provider.

Works with any endpoint that speaks the OpenAI ``/chat/completions`` wire
protocol with streaming, tool calling and the ``reasoning_content`` delta
extension.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack

import httpx

from chatadapter import __version__
from chatadapter.cancellation import CancellationToken, raise_if_cancelled, run_cancellable
from chatadapter.errors import PermissionDeniedError, RequestCancelled, error_for_status
from chatadapter.llm.budget import check_budget, validate_request
from chatadapter.llm.dispatcher import DeltaDispatcher
from chatadapter.llm.models import ModelCatalog
from chatadapter.llm.normalizer import (
    DEFAULT_MAX_TOOL_RESULT_CHARS,
    convert_messages,
    convert_tools,
)
from chatadapter.llm.progress import GuardedProgress, ProgressSink
from chatadapter.llm.providers.base import Provider
from chatadapter.llm.request_builder import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    build_request_body,
)
from chatadapter.llm.sse import iter_frames
from chatadapter.llm.token_counter import TokenCounter
from chatadapter.llm.types import ChatInformation, ChatMessage, RequestOptions
from chatadapter.llm.vision import ImageCaptioner, route_vision

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.z.ai/api/coding/paas/v4"
DEFAULT_USER_AGENT = f"chatadapter/{__version__}"


class OpenAICompatProvider(Provider):
    """
    Stream-capable provider for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    url:
        Base URL of the API, e.g. ``"https://api.openai.com/v1"``.
    api_key:
        Bearer token.  An empty key fails every request with
        ``PermissionDeniedError``.
    catalog:
        Model capability table used for budgets and vision routing.
    show_reasoning:
        Request thinking mode and render the reasoning channel.
    captioner:
        Image captioning service for models without a vision fallback.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str = DEFAULT_BASE_URL,
        api_key: str = "",
        catalog: ModelCatalog | None = None,
        show_reasoning: bool = True,
        captioner: ImageCaptioner | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 120.0,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        default_temperature: float = DEFAULT_TEMPERATURE,
        max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._catalog = catalog or ModelCatalog()
        self.show_reasoning = show_reasoning
        self._captioner = captioner
        self._user_agent = user_agent
        self._timeout = timeout
        self._default_max_tokens = default_max_tokens
        self._default_temperature = default_temperature
        self._max_tool_result_chars = max_tool_result_chars
        self._transport = transport
        self._counter = TokenCounter(max_tool_result_chars)

    # ------------------------------------------------------------------
    # Provider interface
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "openai-compat"

    @property
    def catalog(self) -> ModelCatalog:
        return self._catalog

    def chat_information(self) -> list[ChatInformation]:
        if not self._api_key:
            return []
        return self._catalog.chat_information()

    def count_tokens(self, value: str | ChatMessage) -> int:
        return self._counter.count(value)

    async def provide_response(
        self,
        model: ChatInformation | str,
        messages: list[ChatMessage],
        options: RequestOptions,
        progress: ProgressSink,
        token: CancellationToken | None = None,
    ) -> None:
        model_id = model if isinstance(model, str) else model.id
        sink = GuardedProgress(progress, model_id)
        dispatcher = DeltaDispatcher(show_reasoning=self.show_reasoning)

        try:
            body = await self._prepare(model, messages, options, token)
            await self._stream(body, dispatcher, sink, token)
        except RequestCancelled:
            raise
        except Exception as exc:
            if token is not None and token.cancelled:
                raise RequestCancelled() from exc
            logger.error(
                "Chat request failed: model=%s messages=%d error=%s: %s",
                model_id,
                len(messages),
                type(exc).__name__,
                exc,
            )
            raise
        finally:
            dispatcher.reset()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            "User-Agent": self._user_agent,
        }

    async def _prepare(
        self,
        model: ChatInformation | str,
        messages: list[ChatMessage],
        options: RequestOptions,
        token: CancellationToken | None,
    ) -> dict:
        if not self._api_key:
            raise PermissionDeniedError("API key not found")

        requested_id = model if isinstance(model, str) else model.id
        validate_request(messages, options.tools)

        route = await route_vision(
            requested_id, messages, self._catalog, self._captioner, token
        )
        model_id = route.model_id

        wire_messages = convert_messages(route.messages, self._max_tool_result_chars)
        wire_tools = convert_tools(options.tools)

        info = self._catalog.get(model_id)
        if info is not None:
            token_limit = info.input_budget
            max_output = info.max_output
        elif isinstance(model, ChatInformation):
            token_limit = model.max_input_tokens
            max_output = model.max_output_tokens
        else:
            token_limit = 128_000 - self._default_max_tokens
            max_output = self._default_max_tokens
        check_budget(route.messages, wire_tools, token_limit, self._counter)

        body = build_request_body(
            model_id,
            wire_messages,
            max_output_tokens=max_output,
            model_options=options.model_options,
            tools=wire_tools,
            tool_choice=options.tool_choice,
            thinking=self.show_reasoning,
            default_max_tokens=self._default_max_tokens,
            default_temperature=self._default_temperature,
        )
        logger.info(
            "REQUEST: model=%s tools=%d messages=%d thinking=%s api_key=%s...",
            model_id,
            len(wire_tools),
            len(wire_messages),
            self.show_reasoning,
            self._api_key[:12],
        )
        return body

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def _stream(
        self,
        body: dict,
        dispatcher: DeltaDispatcher,
        sink: GuardedProgress,
        token: CancellationToken | None,
    ) -> None:
        raise_if_cancelled(token)
        url = f"{self._url}/chat/completions"

        async with AsyncExitStack() as stack:
            client = await stack.enter_async_context(
                httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
            )
            request = client.build_request(
                "POST", url, json=body, headers=self._build_headers()
            )
            response = await run_cancellable(client.send(request, stream=True), token)
            stack.push_async_callback(response.aclose)

            if response.is_error:
                await response.aread()
                error_text = response.text
                logger.warning(
                    "API error response: %d %s", response.status_code, error_text[:200]
                )
                raise error_for_status(
                    response.status_code, response.reason_phrase, error_text
                )

            async for frame in iter_frames(response.aiter_bytes(), token):
                for part in dispatcher.handle_frame(frame):
                    sink.report(part)
