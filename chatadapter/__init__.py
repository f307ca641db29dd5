"""chatadapter -- OpenAI-compatible chat-completion adapter with streaming tool-call decoding."""

__version__ = "0.1.0"
