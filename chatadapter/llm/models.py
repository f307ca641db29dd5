"""Static model capability table."""

from __future__ import annotations

from dataclasses import dataclass, fields

from chatadapter.llm.budget import MAX_TOOLS_PER_REQUEST
from chatadapter.llm.types import ChatInformation

DEFAULT_VISION_MODEL = "glm-4.6v"


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    display_name: str
    context_window: int
    max_output: int
    supports_tools: bool = True
    supports_vision: bool = False
    internal: bool = False  # usable as a routing target, never listed to the host

    @property
    def input_budget(self) -> int:
        return max(1, self.context_window - self.max_output)

    @classmethod
    def from_dict(cls, raw: dict) -> ModelInfo:
        valid = {f.name for f in fields(cls)}
        data = {k: v for k, v in raw.items() if k in valid}
        data.setdefault("name", data.get("id", ""))
        data.setdefault("display_name", data["name"])
        return cls(**data)


DEFAULT_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("glm-4.7", "GLM-4.7", "GLM-4.7", 128_000, 16_000),
    ModelInfo("glm-4.7-flash", "GLM-4.7 Flash", "GLM-4.7 Flash", 128_000, 16_000),
    ModelInfo("glm-4.6v", "GLM-4.6V", "GLM-4.6V", 128_000, 16_000, supports_vision=True),
)


class ModelCatalog:
    """Lookup over the capability table."""

    def __init__(
        self,
        models: list[ModelInfo] | tuple[ModelInfo, ...] = DEFAULT_MODELS,
        preferred_vision_model: str | None = DEFAULT_VISION_MODEL,
    ) -> None:
        self._models = {m.id: m for m in models}
        self._preferred_vision = preferred_vision_model

    def __iter__(self):
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def get(self, model_id: str) -> ModelInfo | None:
        return self._models.get(model_id)

    def supports_vision(self, model_id: str) -> bool:
        info = self._models.get(model_id)
        return info.supports_vision if info else False

    def vision_fallback_id(self) -> str | None:
        """Return the preferred vision model, else the first one in the table."""
        if self._preferred_vision:
            preferred = self._models.get(self._preferred_vision)
            if preferred is not None and preferred.supports_vision:
                return preferred.id
        for m in self._models.values():
            if m.supports_vision:
                return m.id
        return None

    def public(self) -> list[ModelInfo]:
        return [m for m in self._models.values() if not m.internal]

    def chat_information(self) -> list[ChatInformation]:
        return [
            ChatInformation(
                id=m.id,
                name=m.display_name,
                tooltip=f"Z.ai {m.name}",
                family="zai",
                version="1.0.0",
                max_input_tokens=m.input_budget,
                max_output_tokens=m.max_output,
                tool_calling=MAX_TOOLS_PER_REQUEST if m.supports_tools else 0,
                # Non-vision models are rerouted or captioned, so images are always accepted.
                image_input=True,
            )
            for m in self.public()
        ]
