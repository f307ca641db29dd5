"""LLM subsystem -- message conversion, streaming decode, and tool-call assembly."""

from chatadapter.llm.dispatcher import DeltaDispatcher
from chatadapter.llm.models import ModelCatalog, ModelInfo
from chatadapter.llm.progress import ResponseCollector
from chatadapter.llm.token_counter import TokenCounter
from chatadapter.llm.tool_call_assembler import ToolCallAssembler
from chatadapter.llm.types import (
    ChatInformation,
    ChatMessage,
    ImagePart,
    RawToolDelta,
    RequestOptions,
    StreamDelta,
    TextPart,
    ToolCall,
    ToolDefinition,
    ToolResultPart,
)

__all__ = [
    "ChatInformation",
    "ChatMessage",
    "DeltaDispatcher",
    "ImagePart",
    "ModelCatalog",
    "ModelInfo",
    "RawToolDelta",
    "RequestOptions",
    "ResponseCollector",
    "StreamDelta",
    "TextPart",
    "TokenCounter",
    "ToolCall",
    "ToolCallAssembler",
    "ToolDefinition",
    "ToolResultPart",
]
