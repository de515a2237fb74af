"""
Agent loop state - terminal outcomes and per-run bookkeeping
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Optional, Set, Tuple

from langchain_core.messages import BaseMessage

from querypilot.tools.base import ValidationVerdict


class LoopStatus(str, Enum):
    SUBMITTED = "submitted"
    CLARIFIED = "clarified"
    ANSWERED = "answered"
    ERRORED = "errored"
    BUDGET_EXHAUSTED = "budget_exhausted"


class ErrorKind(str, Enum):
    LOOP_DETECTED = "loop_detected"
    INFRASTRUCTURE = "infrastructure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class Submission:
    """Final statement handed to the user. The system never executes it."""
    query_text: str
    target_dialect: Literal["sql", "lucene"]
    explanation: str
    risk_level: Literal["safe", "modification"] = "safe"
    error: Optional[str] = None
    index: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return not self.query_text and self.error is not None


@dataclass
class Clarification:
    question: str
    options: List[str] = field(default_factory=list)


@dataclass
class LoopOutcome:
    """How a run ended. Exactly one of submission / clarification / answer / error is set."""
    status: LoopStatus
    submission: Optional[Submission] = None
    clarification: Optional[Clarification] = None
    answer: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    iterations: int = 0
    messages: List[BaseMessage] = field(default_factory=list)


# (tool name, normalized statement, scope)
CandidateKey = Tuple[str, str, Optional[str]]


class RunState:
    """
    Mutable state of one run: transcript, verdicts and attempted candidates.

    Owned by a single LoopRun; the lock guards the attempted-candidate set
    when tool calls of a turn are dispatched concurrently.
    """

    def __init__(self, messages: List[BaseMessage]):
        self.messages = messages
        self.iterations = 0
        self.verdicts: Dict[CandidateKey, ValidationVerdict] = {}
        self.attempted: Set[CandidateKey] = set()
        self.lock = asyncio.Lock()

    async def claim_candidates(self, keys: List[CandidateKey]) -> Optional[CandidateKey]:
        """
        Record every key of a turn, or return the first repeated one.

        A key repeated within the same turn counts as a repeat. Nothing is
        recorded when a repeat is found.
        """
        async with self.lock:
            seen: Set[CandidateKey] = set()
            for key in keys:
                if key in self.attempted or key in seen:
                    return key
                seen.add(key)
            self.attempted.update(seen)
            return None

    def record_verdict(self, tool_name: str, verdict: ValidationVerdict) -> None:
        self.verdicts[(tool_name, verdict.candidate, verdict.scope)] = verdict

    def has_passed(self, tool_name: str, candidate: str, scope: Optional[str] = None) -> bool:
        verdict = self.verdicts.get((tool_name, candidate, scope))
        return verdict is not None and verdict.passed
