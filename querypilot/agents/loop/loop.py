"""
Agentic control loop

Drives one model through reason -> tool calls -> observe until it submits a
validated statement, asks for clarification, answers in plain text, or a
limit is hit. Submissions are gated mechanically: the exact normalized text
must have passed the matching validation tool earlier in the same run.
"""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
    message_chunk_to_message,
)
from loguru import logger

from querypilot.agents.loop.events import StreamEvent
from querypilot.agents.loop.state import (
    CandidateKey,
    Clarification,
    ErrorKind,
    LoopOutcome,
    LoopStatus,
    RunState,
    Submission,
)
from querypilot.config.settings import DataSourceType, Settings, settings as default_settings
from querypilot.llm.response_utils import extract_text_from_response
from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.composer import ComposedSkills, compose_skills
from querypilot.skills.roles import AgentRole, resolve_role, skills_for_role
from querypilot.sql.analysis.safety import is_read_only, normalize_candidate
from querypilot.tools.base import AgentServices, ValidationVerdict
from querypilot.tools.registry import (
    CANDIDATE_ARGUMENTS,
    SCOPE_ARGUMENTS,
    SUBMISSION_ARGUMENTS,
    VALIDATION_TOOLS,
    TerminalKind,
    ToolRegistry,
    is_terminal_tool,
    is_validation_tool,
)
from querypilot.utils.errors import InfrastructureError, ModelUnavailableError

MODIFICATION_WARNING = (
    "> **Warning:** this statement modifies data. Review it carefully before running it."
)


def _verdict_scope(tool_name: str, args: Dict[str, Any]) -> Optional[str]:
    """Index a Lucene call targets; None for tools whose verdicts are not scoped."""
    argument = SCOPE_ARGUMENTS.get(tool_name)
    return (args.get(argument) or None) if argument else None


@dataclass
class LoopConfig:
    max_iterations: int = 12
    run_timeout_seconds: float = 300
    model_timeout_seconds: float = 60
    tool_timeout_seconds: float = 45
    parallel_tool_calls: bool = False
    max_history_messages: int = 20

    @classmethod
    def from_settings(cls, app_settings: Optional[Settings] = None) -> "LoopConfig":
        s = app_settings or default_settings
        return cls(
            max_iterations=s.agent_max_iterations,
            run_timeout_seconds=s.agent_run_timeout_seconds,
            model_timeout_seconds=s.model_timeout_seconds,
            tool_timeout_seconds=s.tool_timeout_seconds,
            parallel_tool_calls=s.agent_parallel_tool_calls,
            max_history_messages=s.max_history_messages,
        )


# ============================================================================
# History
# ============================================================================

def _flatten_tool_calls(message: AIMessage) -> str:
    """Keep what the user saw from a previous run: submitted statements and clarifying questions."""
    parts = []
    for call in message.tool_calls:
        args = call.get("args") or {}
        if call["name"] in SUBMISSION_ARGUMENTS:
            statement = args.get(SUBMISSION_ARGUMENTS[call["name"]])
            if statement:
                parts.append(f"Submitted statement:\n{statement}")
            elif args.get("error"):
                parts.append(f"Could not answer: {args['error']}")
        elif call["name"] == "clarify_intent" and args.get("question"):
            parts.append(f"Asked: {args['question']}")
    return "\n".join(parts)


def sanitize_history(history: Sequence[BaseMessage], max_messages: int) -> List[BaseMessage]:
    """
    Prepare prior conversation for a new run.

    System and tool messages are dropped, AI tool-call scaffolding is
    flattened to text, consecutive same-role messages are merged and only
    the last `max_messages` are kept.
    """
    cleaned: List[BaseMessage] = []
    for message in history:
        if isinstance(message, HumanMessage):
            text = extract_text_from_response(message)
            flattened: BaseMessage = HumanMessage(content=text)
        elif isinstance(message, AIMessage):
            text = extract_text_from_response(message)
            if message.tool_calls:
                text = "\n\n".join(p for p in (text, _flatten_tool_calls(message)) if p.strip())
            flattened = AIMessage(content=text)
        else:
            continue

        if not text.strip():
            continue
        if cleaned and type(cleaned[-1]) is type(flattened):
            cleaned[-1] = type(flattened)(content=f"{cleaned[-1].content}\n\n{text}")
        else:
            cleaned.append(flattened)

    if max_messages <= 0:
        return []
    return cleaned[-max_messages:]


def build_submission(
    tool_name: str,
    args: Dict[str, Any],
    dialect: str,
) -> Submission:
    """Turn accepted submit-tool arguments into a Submission; risk is derived from the statement itself."""
    lucene = tool_name == "submit_lucene_solution"
    query_text = normalize_candidate(args.get(SUBMISSION_ARGUMENTS[tool_name]) or "")
    explanation = (args.get("explanation") or "").strip()
    error = args.get("error") or None

    if not query_text:
        return Submission(
            query_text="",
            target_dialect="lucene" if lucene else "sql",
            explanation=explanation or error or "",
            risk_level="safe",
            error=error,
            index=args.get("index") if lucene else None,
        )

    if lucene or dialect == DataSourceType.API.value:
        risk_level = "safe"
    else:
        risk_level = "safe" if is_read_only(query_text, dialect) else "modification"

    declared = args.get("risk_level")
    if declared and declared != risk_level:
        logger.warning(f"Declared risk level '{declared}' overridden by statement analysis: {risk_level}")

    fence = "lucene" if lucene else ("bash" if dialect == DataSourceType.API.value else "sql")
    markdown = f"{explanation}\n\n```{fence}\n{query_text}\n```" if explanation else f"```{fence}\n{query_text}\n```"
    if risk_level == "modification":
        markdown = f"{markdown}\n\n{MODIFICATION_WARNING}"

    return Submission(
        query_text=query_text,
        target_dialect="lucene" if lucene else "sql",
        explanation=markdown,
        risk_level=risk_level,
        error=error,
        index=args.get("index") if lucene else None,
    )


# ============================================================================
# Loop
# ============================================================================

class AgentLoop:
    """
    Reusable loop definition: model, skills and limits.

    Each `start()` creates an independent LoopRun; nothing mutable is shared
    between runs.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        skills: Sequence[Skill],
        loop_config: Optional[LoopConfig] = None,
        role_title: str = "a data assistant",
    ):
        self.llm = llm
        self.skills = list(skills)
        self.config = loop_config or LoopConfig.from_settings()
        self.role_title = role_title

    @classmethod
    def for_role(
        cls,
        role: AgentRole,
        llm: BaseChatModel,
        services: AgentServices,
        context: SkillContext,
        loop_config: Optional[LoopConfig] = None,
        audited_sql: Optional[str] = None,
    ) -> "AgentLoop":
        role = resolve_role(role, context.dialect)
        skills = skills_for_role(role, services, context, audited_sql=audited_sql)
        return cls(
            llm,
            skills,
            loop_config=loop_config or LoopConfig.from_settings(services.settings),
            role_title=role.label,
        )

    def start(
        self,
        question: str,
        history: Sequence[BaseMessage],
        context: SkillContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> "LoopRun":
        composed = compose_skills(self.skills, context, role_title=self.role_title)
        return LoopRun(self, composed, question, history, context, cancel_event)

    async def run(
        self,
        question: str,
        history: Sequence[BaseMessage],
        context: SkillContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> LoopOutcome:
        loop_run = self.start(question, history, context, cancel_event)
        async for _ in loop_run.events():
            pass
        return loop_run.outcome


class LoopRun:
    """
    One execution of the loop.

    Consume `events()` once; `outcome` is set when the terminal event is
    emitted (exactly one `response` or `error` event per run).
    """

    def __init__(
        self,
        loop: AgentLoop,
        composed: ComposedSkills,
        question: str,
        history: Sequence[BaseMessage],
        context: SkillContext,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.llm = loop.llm
        self.config = loop.config
        self.registry: ToolRegistry = composed.registry
        self.context = context
        self.question = question
        self.cancel_event = cancel_event
        self.outcome: Optional[LoopOutcome] = None

        conversation = sanitize_history(
            [*history, HumanMessage(content=question)],
            max(self.config.max_history_messages, 1),
        )
        self.state = RunState([SystemMessage(content=composed.system_prompt), *conversation])
        self._consumed = False
        self._deadline = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._consumed:
            raise RuntimeError("LoopRun events can only be consumed once")
        self._consumed = True
        self._deadline = asyncio.get_running_loop().time() + self.config.run_timeout_seconds

        try:
            async for event in self._drive():
                yield event
        except Exception as e:
            if self.outcome is not None:
                raise
            logger.exception(f"Agent run failed unexpectedly: {e}")
            yield self._fail(ErrorKind.INFRASTRUCTURE, f"Agent run failed: {e}")

        if self.outcome is None:
            # _drive always terminates with an outcome; kept as a guard for subclasses
            yield self._fail(ErrorKind.INFRASTRUCTURE, "Agent run ended without an outcome.")

    # ------------------------------------------------------------------
    # Terminal helpers
    # ------------------------------------------------------------------

    def _finish(self, status: LoopStatus, event: StreamEvent, **fields: Any) -> StreamEvent:
        if self.outcome is not None:
            raise RuntimeError("Run already produced a terminal event")
        self.outcome = LoopOutcome(
            status=status,
            iterations=self.state.iterations,
            messages=list(self.state.messages),
            **fields,
        )
        return event

    def _fail(self, kind: ErrorKind, message: str) -> StreamEvent:
        log = logger.warning if kind in (ErrorKind.LOOP_DETECTED, ErrorKind.CANCELLED) else logger.error
        log(f"Agent run ended with {kind.value}: {message}")
        return self._finish(
            LoopStatus.ERRORED,
            StreamEvent(type="error", content=message, error_kind=kind.value),
            error_kind=kind,
            error_message=message,
        )

    def _remaining(self) -> float:
        return self._deadline - asyncio.get_running_loop().time()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _drive(self) -> AsyncIterator[StreamEvent]:
        bound = self.llm.bind_tools(self.registry.as_list())

        while self.state.iterations < self.config.max_iterations:
            if self.cancel_event is not None and self.cancel_event.is_set():
                yield self._fail(ErrorKind.CANCELLED, "Run cancelled.")
                return
            if self._remaining() <= 0:
                yield self._fail(ErrorKind.TIMEOUT, "Run timed out before a final answer.")
                return

            self.state.iterations += 1
            logger.debug(f"Agent iteration {self.state.iterations}/{self.config.max_iterations}")

            ai_message: Optional[AIMessage] = None
            try:
                async for item in self._stream_model(bound):
                    if isinstance(item, StreamEvent):
                        yield item
                    else:
                        ai_message = item
            except (asyncio.TimeoutError, TimeoutError):
                yield self._fail(ErrorKind.TIMEOUT, "AI reasoning timed out.")
                return
            except ModelUnavailableError as e:
                yield self._fail(ErrorKind.INFRASTRUCTURE, f"AI reasoning failed: {e}")
                return

            if ai_message is None:
                ai_message = AIMessage(content="")
            self.state.messages.append(ai_message)

            if not ai_message.tool_calls:
                answer = extract_text_from_response(ai_message)
                yield self._finish(
                    LoopStatus.ANSWERED,
                    StreamEvent(type="response", content=answer),
                    answer=answer,
                )
                return

            terminal_event = self._handle_terminal_calls(ai_message.tool_calls)
            if terminal_event is not None:
                yield terminal_event
                return

            async for event in self._dispatch(ai_message.tool_calls):
                yield event
            if self.outcome is not None:
                return

        yield self._finish(
            LoopStatus.BUDGET_EXHAUSTED,
            StreamEvent(
                type="error",
                content=f"Max iterations reached ({self.config.max_iterations}) without a validated answer.",
                error_kind=LoopStatus.BUDGET_EXHAUSTED.value,
            ),
            error_message="Max iterations reached",
        )

    async def _stream_model(self, bound: Any) -> AsyncIterator[Any]:
        """Yield thought events for streamed text, then the aggregated AIMessage."""
        stream = bound.astream(self.state.messages)
        aggregate = None
        try:
            while True:
                timeout = min(self.config.model_timeout_seconds, max(self._remaining(), 0.001))
                try:
                    chunk = await asyncio.wait_for(anext(stream), timeout=timeout)
                except StopAsyncIteration:
                    break
                except (asyncio.TimeoutError, TimeoutError):
                    raise
                except Exception as e:
                    raise ModelUnavailableError(str(e)) from e
                text = extract_text_from_response(chunk)
                if text:
                    yield StreamEvent(type="thought", content=text)
                aggregate = chunk if aggregate is None else aggregate + chunk
        finally:
            await stream.aclose()

        if isinstance(aggregate, AIMessageChunk):
            aggregate = message_chunk_to_message(aggregate)
        if isinstance(aggregate, AIMessage):
            for call in aggregate.tool_calls:
                if not call.get("id"):
                    call["id"] = f"call_{uuid.uuid4().hex[:12]}"
            yield aggregate

    # ------------------------------------------------------------------
    # Terminal tools
    # ------------------------------------------------------------------

    def _handle_terminal_calls(self, tool_calls: List[Dict[str, Any]]) -> Optional[StreamEvent]:
        """
        Process terminal calls of a turn before anything is dispatched.

        Returns the terminal event when one is accepted. Rejected submissions
        get a tool result explaining why, so the model can correct itself.
        """
        for call in tool_calls:
            kind = is_terminal_tool(call["name"])
            if kind is None or call["name"] not in self.registry:
                continue
            args = call.get("args") or {}

            if kind == TerminalKind.CLARIFICATION:
                clarification = Clarification(
                    question=str(args.get("question") or ""),
                    options=[str(o) for o in args.get("options") or []],
                )
                logger.info(f"Clarification requested: {clarification.question}")
                return self._finish(
                    LoopStatus.CLARIFIED,
                    StreamEvent(type="response", content=clarification.question, options=clarification.options),
                    clarification=clarification,
                )

            rejection = self._submission_rejection(call["name"], args)
            if rejection:
                logger.warning(f"Submission rejected: {rejection}")
                self.state.messages.append(
                    ToolMessage(content=f"Submission rejected: {rejection}", tool_call_id=call["id"], name=call["name"])
                )
                continue

            submission = build_submission(call["name"], args, self.context.dialect)
            logger.success(
                f"Submission accepted ({submission.target_dialect}, {submission.risk_level}) "
                f"after {self.state.iterations} iteration(s)"
            )
            event = StreamEvent(type="response", content=submission.explanation)
            if submission.target_dialect == "lucene":
                event.lucene = submission.query_text
            else:
                event.sql = submission.query_text
            return self._finish(LoopStatus.SUBMITTED, event, submission=submission)

        return None

    def _submission_rejection(self, tool_name: str, args: Dict[str, Any]) -> Optional[str]:
        statement = normalize_candidate(str(args.get(SUBMISSION_ARGUMENTS[tool_name]) or ""))
        validator = VALIDATION_TOOLS[tool_name]
        if not statement:
            if args.get("error"):
                return None
            return (
                "the statement is empty. Submit the validated statement, or set 'error' "
                "when the request cannot be answered from this data source."
            )
        scope = _verdict_scope(tool_name, args)
        if not self.state.has_passed(validator, statement, scope):
            target = f" against index '{scope}'" if scope else ""
            return (
                f"this exact statement has not passed {validator}{target}. "
                f"Call {validator} with it first, then submit the same text unchanged."
            )
        return None

    # ------------------------------------------------------------------
    # Regular tools
    # ------------------------------------------------------------------

    def _prepare_call(self, call: Dict[str, Any]) -> Dict[str, Any]:
        args = dict(call.get("args") or {})
        tool = self.registry.get(call["name"])
        schema = getattr(tool, "args_schema", None) if tool is not None else None
        fields = getattr(schema, "model_fields", {}) if isinstance(schema, type) else {}
        if (
            "data_source_id" in fields
            and args.get("data_source_id") is None
            and self.context.data_source_id is not None
        ):
            args["data_source_id"] = self.context.data_source_id
        return {"name": call["name"], "args": args, "id": call["id"], "type": "tool_call"}

    @staticmethod
    def _candidate_key(call: Dict[str, Any]) -> Optional[CandidateKey]:
        if not is_validation_tool(call["name"]):
            return None
        text = call["args"].get(CANDIDATE_ARGUMENTS[call["name"]]) or ""
        return call["name"], normalize_candidate(str(text)), _verdict_scope(call["name"], call["args"])

    async def _dispatch(self, tool_calls: List[Dict[str, Any]]) -> AsyncIterator[StreamEvent]:
        calls = [self._prepare_call(c) for c in tool_calls if is_terminal_tool(c["name"]) is None]
        if not calls:
            return

        keys = [k for k in (self._candidate_key(c) for c in calls) if k is not None]
        repeated = await self.state.claim_candidates(keys)
        if repeated is not None:
            yield self._fail(
                ErrorKind.LOOP_DETECTED,
                f"Repeated {repeated[0]} call with an already attempted statement; stopping to avoid a loop.",
            )
            return

        if self.config.parallel_tool_calls and len(calls) > 1:
            for call in calls:
                yield StreamEvent(type="tool_start", tool=call["name"], input=call["args"], id=call["id"])
            results = await asyncio.gather(*(self._invoke(c) for c in calls), return_exceptions=True)
        else:
            results = []
            for call in calls:
                yield StreamEvent(type="tool_start", tool=call["name"], input=call["args"], id=call["id"])
                try:
                    results.append(await self._invoke(call))
                except InfrastructureError as e:
                    results.append(e)
                    break

        infrastructure_error: Optional[InfrastructureError] = None
        for call, result in zip(calls, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                infrastructure_error = infrastructure_error or result
                message = ToolMessage(
                    content=f"Error executing tool: {result}", tool_call_id=call["id"], name=call["name"]
                )
            else:
                message = result
            self.state.messages.append(message)
            self._record_artifact(call["name"], message)
            yield StreamEvent(type="tool_end", tool=call["name"], output=str(message.content), id=call["id"])

        if infrastructure_error is not None:
            yield self._fail(ErrorKind.INFRASTRUCTURE, str(infrastructure_error))

    async def _invoke(self, call: Dict[str, Any]) -> ToolMessage:
        """Run one tool call. Only infrastructure failures escape; everything else is a result string."""
        name = call["name"]
        tool = self.registry.get(name)
        if tool is None:
            return ToolMessage(content=f"Error: Tool '{name}' not found.", tool_call_id=call["id"], name=name)

        timeout = min(self.config.tool_timeout_seconds, max(self._remaining(), 0.001))
        try:
            result = await asyncio.wait_for(tool.ainvoke(call), timeout=timeout)
        except InfrastructureError:
            raise
        except (asyncio.TimeoutError, TimeoutError):
            logger.warning(f"Tool {name} timed out after {timeout:.0f}s")
            return ToolMessage(
                content=f"Error: Tool '{name}' timed out after {timeout:.0f} seconds.",
                tool_call_id=call["id"],
                name=name,
            )
        except Exception as e:
            logger.warning(f"Tool {name} raised: {e}")
            return ToolMessage(content=f"Error executing tool: {e}", tool_call_id=call["id"], name=name)

        if isinstance(result, ToolMessage):
            return result
        return ToolMessage(content=str(result), tool_call_id=call["id"], name=name)

    def _record_artifact(self, tool_name: str, message: ToolMessage) -> None:
        verdict = getattr(message, "artifact", None)
        if is_validation_tool(tool_name) and isinstance(verdict, ValidationVerdict):
            self.state.record_verdict(tool_name, verdict)
