"""
Vision fallback for models that cannot accept image input.

If the requested model handles images, nothing changes.  Otherwise the whole
request is rerouted to a vision-capable model when the catalog has one, and
only failing that is each image captioned through an external service and
replaced by text.  Captioning runs one image at a time so a cancellation
observed between images stops any further calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from chatadapter.cancellation import CancellationToken, raise_if_cancelled, run_cancellable
from chatadapter.errors import RequestValidationError, error_for_status
from chatadapter.llm.models import ModelCatalog
from chatadapter.llm.types import ChatMessage, ContentPart, ImagePart, TextPart

logger = logging.getLogger(__name__)

DEFAULT_CAPTION_PROMPT = "Describe this image in detail."
CAPTION_HEADER = "\n\n[Image Analysis]:\n"
CAPTION_SEPARATOR = "\n\n---\n\n"


class ImageCaptioner(Protocol):
    async def describe(self, image: ImagePart, prompt: str) -> str: ...


class VisionCaptioner:
    """
    Captions images with a vision model over the chat-completions API.

    Parameters
    ----------
    url:
        Base URL of the API serving *model*.
    api_key:
        Bearer token.
    model:
        Vision model used for captioning.
    max_tokens:
        Caption length limit.
    """

    def __init__(
        self,
        url: str = "https://api.z.ai/api/paas/v4",
        api_key: str = "",
        model: str = "glm-4v-plus",
        max_tokens: int = 2000,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._transport = transport

    async def describe(self, image: ImagePart, prompt: str) -> str:
        body = {
            "model": self._model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image.to_data_url()}},
                    ],
                }
            ],
            "max_tokens": self._max_tokens,
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(f"{self._url}/chat/completions", json=body, headers=headers)
            if resp.is_error:
                raise error_for_status(resp.status_code, resp.reason_phrase, resp.text)
            data = resp.json()

        choices = data.get("choices") or []
        if choices:
            content = (choices[0].get("message") or {}).get("content")
            if content:
                return str(content)
        return "Failed to analyze image"


@dataclass
class VisionRoute:
    model_id: str
    messages: list[ChatMessage]
    rerouted: bool = False
    captioned: int = 0


def has_image_input(messages: list[ChatMessage]) -> bool:
    return any(msg.images() for msg in messages)


async def caption_images(
    messages: list[ChatMessage],
    captioner: ImageCaptioner,
    token: CancellationToken | None = None,
) -> tuple[list[ChatMessage], int]:
    """Replace every image with a caption text block.  Returns ``(messages, count)``."""
    processed: list[ChatMessage] = []
    count = 0
    for msg in messages:
        images = msg.images()
        if not images:
            processed.append(msg)
            continue

        prompt = " ".join(msg.texts()) or DEFAULT_CAPTION_PROMPT
        captions: list[str] = []
        for image in images:
            raise_if_cancelled(token)
            captions.append(await run_cancellable(captioner.describe(image, prompt), token))
            count += 1

        parts: list[ContentPart] = [p for p in msg.parts if not isinstance(p, ImagePart)]
        parts.append(TextPart(CAPTION_HEADER + CAPTION_SEPARATOR.join(captions)))
        processed.append(ChatMessage(role=msg.role, parts=parts, name=msg.name))
    return processed, count


async def route_vision(
    model_id: str,
    messages: list[ChatMessage],
    catalog: ModelCatalog,
    captioner: ImageCaptioner | None = None,
    token: CancellationToken | None = None,
) -> VisionRoute:
    if not has_image_input(messages) or catalog.supports_vision(model_id):
        return VisionRoute(model_id, messages)

    fallback = catalog.vision_fallback_id()
    if fallback and fallback != model_id:
        logger.info(
            "Switching to vision model for image input: %s -> %s", model_id, fallback
        )
        return VisionRoute(fallback, messages, rerouted=True)

    if captioner is None:
        raise RequestValidationError(
            f"Model {model_id!r} does not accept image input and no captioning service is configured"
        )
    logger.info("No vision model available for %s, captioning images", model_id)
    processed, count = await caption_images(messages, captioner, token)
    return VisionRoute(model_id, processed, captioned=count)
