"""Tests for chatadapter.llm.vision."""

from __future__ import annotations

import json

import httpx
import pytest

from chatadapter.cancellation import CancellationToken, RequestCancelled
from chatadapter.errors import RateLimitedError, RequestValidationError
from chatadapter.llm.models import ModelCatalog, ModelInfo
from chatadapter.llm.reasoning import format_reasoning
from chatadapter.llm.types import ChatMessage, ImagePart, TextPart
from chatadapter.llm.vision import (
    CAPTION_HEADER,
    CAPTION_SEPARATOR,
    DEFAULT_CAPTION_PROMPT,
    VisionCaptioner,
    route_vision,
)
from tests.mock_upstream import FakeCaptioner

IMG = ImagePart("image/png", b"png-bytes")

TEXT_ONLY = ModelCatalog(
    [ModelInfo("chat", "Chat", "Chat", 8000, 1000)], preferred_vision_model=None
)


class TestRouting:
    @pytest.mark.asyncio
    async def test_no_images_passthrough(self):
        msgs = [ChatMessage.user("hi")]
        route = await route_vision("glm-4.7", msgs, ModelCatalog())
        assert route.model_id == "glm-4.7"
        assert route.messages is msgs
        assert not route.rerouted

    @pytest.mark.asyncio
    async def test_vision_model_passthrough(self):
        route = await route_vision("glm-4.6v", [ChatMessage.user(IMG)], ModelCatalog())
        assert route.model_id == "glm-4.6v"
        assert not route.rerouted

    @pytest.mark.asyncio
    async def test_reroute_to_vision_model(self):
        captioner = FakeCaptioner()
        msgs = [ChatMessage.user("what is this", IMG)]
        route = await route_vision("glm-4.7", msgs, ModelCatalog(), captioner)
        assert route.model_id == "glm-4.6v"
        assert route.rerouted
        assert route.messages is msgs
        assert captioner.images == []

    @pytest.mark.asyncio
    async def test_caption_when_no_vision_model(self):
        captioner = FakeCaptioner("a cat")
        msgs = [
            ChatMessage.user("first"),
            ChatMessage.user("what are these", IMG, IMG),
        ]
        route = await route_vision("chat", msgs, TEXT_ONLY, captioner)

        assert route.model_id == "chat"
        assert route.captioned == 2
        assert route.messages[0] is msgs[0]
        captioned = route.messages[1]
        assert captioned.images() == []
        assert captioned.parts == [
            TextPart("what are these"),
            TextPart(CAPTION_HEADER + CAPTION_SEPARATOR.join(["a cat #1", "a cat #2"])),
        ]
        assert captioner.prompts == ["what are these", "what are these"]

    @pytest.mark.asyncio
    async def test_default_prompt_for_image_only_message(self):
        captioner = FakeCaptioner()
        await route_vision("chat", [ChatMessage.user(IMG)], TEXT_ONLY, captioner)
        assert captioner.prompts == [DEFAULT_CAPTION_PROMPT]

    @pytest.mark.asyncio
    async def test_no_captioner_is_validation_error(self):
        with pytest.raises(RequestValidationError):
            await route_vision("chat", [ChatMessage.user(IMG)], TEXT_ONLY, None)

    @pytest.mark.asyncio
    async def test_cancellation_between_images(self):
        token = CancellationToken()

        class CancellingCaptioner(FakeCaptioner):
            async def describe(self, image, prompt):
                token.cancel()
                return await super().describe(image, prompt)

        captioner = CancellingCaptioner()
        with pytest.raises(RequestCancelled):
            await route_vision("chat", [ChatMessage.user(IMG, IMG, IMG)], TEXT_ONLY, captioner, token)
        assert len(captioner.images) == 1


class TestVisionCaptioner:
    @pytest.mark.asyncio
    async def test_posts_image_and_reads_caption(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "A red square."}}]}
            )

        captioner = VisionCaptioner(
            url="https://vision.test/v4/",
            api_key="k",
            transport=httpx.MockTransport(handler),
        )
        caption = await captioner.describe(IMG, "Describe")

        assert caption == "A red square."
        req = seen[0]
        assert str(req.url) == "https://vision.test/v4/chat/completions"
        assert req.headers["Authorization"] == "Bearer k"
        body = json.loads(req.content)
        assert body["model"] == "glm-4v-plus"
        assert body["max_tokens"] == 2000
        content = body["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "Describe"}
        assert content[1]["image_url"]["url"] == IMG.to_data_url()

    @pytest.mark.asyncio
    async def test_empty_choices_fallback_text(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": []}))
        caption = await VisionCaptioner(transport=transport).describe(IMG, "x")
        assert caption == "Failed to analyze image"

    @pytest.mark.asyncio
    async def test_error_status_mapped(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(429, text="slow down"))
        with pytest.raises(RateLimitedError) as exc_info:
            await VisionCaptioner(transport=transport).describe(IMG, "x")
        assert exc_info.value.status == 429
        assert "slow down" in str(exc_info.value)


class TestReasoningFormat:
    def test_quoted_block(self):
        block = format_reasoning("line one\r\nline two\n")
        assert block == (
            "> **🧠 Thinking Process**\n>\n> line one\n> line two\n\n---\n\n"
        )

    def test_in_progress_header(self):
        assert format_reasoning("x", complete=False).startswith("> *🧠 Thinking...*")
