"""
LLM response utilities for handling multi-format model outputs.

Supports both plain string content and structured content blocks
(reasoning models emit `[{'type': 'reasoning', ...}, {'type': 'text', ...}]`).
"""

from typing import Any


def extract_text_from_response(response: Any) -> str:
    """
    Extract visible text from an LLM message or stream chunk.

    Reasoning blocks and tool-call chunks are skipped.

    Example:
        >>> extract_text_from_response(AIMessage(content="hello"))
        'hello'
        >>> extract_text_from_response(AIMessage(content=[
        ...     {'type': 'reasoning', 'text': '...'},
        ...     {'type': 'text', 'text': 'SELECT 1'},
        ... ]))
        'SELECT 1'
    """
    content = response.content if hasattr(response, "content") else response

    if not content:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for block in content:
            if isinstance(block, str):
                text_parts.append(block)
            elif isinstance(block, dict) and block.get("type") in (None, "text") and "text" in block:
                text_parts.append(block["text"])
        return "".join(text_parts)

    return str(content)
