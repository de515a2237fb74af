"""
Stream events emitted by the agent loop
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

TERMINAL_EVENT_TYPES = ("response", "error")


class StreamEvent(BaseModel):
    """
    Event emitted during a run.

    Event types:
    - thought: Model text streamed while it reasons
    - tool_start: Tool call about to run (tool, input, id)
    - tool_end: Tool call finished (tool, output, id)
    - response: Terminal answer, submission (sql/lucene) or clarification (options)
    - error: Terminal failure (error_kind)
    """
    type: Literal["thought", "tool_start", "tool_end", "response", "error"]

    tool: Optional[str] = None
    input: Optional[Dict[str, Any]] = None
    output: Optional[str] = None
    id: Optional[str] = None
    content: Optional[str] = None
    sql: Optional[str] = None
    lucene: Optional[str] = None
    options: Optional[List[str]] = None
    error_kind: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_sse(self) -> str:
        """Server-sent events framing."""
        payload = self.model_dump(exclude_none=True)
        return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"
