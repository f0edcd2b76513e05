"""Public testing utilities for audience-lab.

Mock chat models and canned payloads for writing self-contained tests and
offline runs without API keys.
"""

from audience_lab.testing.mock_llm import (
    MockStructuredChatModel,
    ScriptedChatModel,
    ai_message,
    tool_call,
)
from audience_lab.testing.payloads import segment_payload

__all__ = [
    "MockStructuredChatModel",
    "ScriptedChatModel",
    "ai_message",
    "segment_payload",
    "tool_call",
]
