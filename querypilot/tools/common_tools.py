"""
Universal tools available to every role: current time / relative date
resolution and the clarification exit.
"""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from querypilot.tools.base import to_json

_RELATIVE = re.compile(r"(?:last|past) (\d+) (day|week|month|year)s?")


def _shift_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def resolve_relative_range(expression: str, today: date) -> Optional[Tuple[date, date]]:
    """
    Resolve a relative time expression to an inclusive (start, end) date range.

    Supported: today, yesterday, this/last week|month|year, last|past N days|weeks|months|years.
    "last N <unit>" ends today and spans exactly N units counting today, so
    "last 7 days" is seven calendar days. Returns None for anything else.
    """
    expr = " ".join(expression.strip().lower().split())

    if expr == "today":
        return today, today
    if expr == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if expr == "this week":
        return today - timedelta(days=today.weekday()), today
    if expr == "last week":
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)
    if expr == "this month":
        return today.replace(day=1), today
    if expr == "last month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if expr == "this year":
        return date(today.year, 1, 1), today
    if expr == "last year":
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)

    match = _RELATIVE.fullmatch(expr)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        if amount < 1:
            return None
        if unit == "day":
            return today - timedelta(days=amount - 1), today
        if unit == "week":
            return today - timedelta(days=7 * amount - 1), today
        months = amount if unit == "month" else amount * 12
        return _shift_months(today, months) + timedelta(days=1), today

    return None


class CurrentTimeInput(BaseModel):
    timezone: Optional[str] = Field(default=None, description="IANA timezone, e.g. 'Europe/Berlin'. Defaults to UTC.")
    expression: Optional[str] = Field(
        default=None,
        description="Optional relative period to resolve, e.g. 'yesterday', 'last month', 'last 7 days'.",
    )


class ClarifyIntentInput(BaseModel):
    question: str = Field(description="One short question that resolves the ambiguity.")
    options: List[str] = Field(default_factory=list, description="Candidate answers the user can pick from.")


class GetCurrentTimeTool(BaseTool):
    name: str = "get_current_time"
    description: str = (
        "Return the current date and time as JSON, and optionally resolve a relative period "
        "('yesterday', 'last month', 'last 7 days') into an inclusive start/end date range. "
        "Use it before writing any date filter."
    )
    args_schema: Type[BaseModel] = CurrentTimeInput

    def _run(self, timezone: Optional[str] = None, expression: Optional[str] = None) -> str:
        tz_name = timezone or "UTC"
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            return f"Error: Unknown timezone '{tz_name}'."

        now = datetime.now(tz)
        payload = {
            "iso": now.isoformat(timespec="seconds"),
            "human": now.strftime("%Y-%m-%d %H:%M:%S %Z"),
            "weekday": now.strftime("%A"),
            "timezone": tz_name,
        }

        if expression:
            resolved = resolve_relative_range(expression, now.date())
            if resolved is None:
                return f"Error: Cannot resolve time expression '{expression}'."
            payload["range"] = {
                "expression": expression,
                "start": resolved[0].isoformat(),
                "end": resolved[1].isoformat(),
            }
        return to_json(payload)


class ClarifyIntentTool(BaseTool):
    name: str = "clarify_intent"
    description: str = (
        "Ask the user one disambiguating question instead of guessing, when the request maps to "
        "several tables, fields or meanings. Ends the task; the user's answer starts a new turn."
    )
    args_schema: Type[BaseModel] = ClarifyIntentInput

    def _run(self, **kwargs: Any) -> str:
        # Intercepted by the agent loop before dispatch; reaching here is a no-op
        return "Clarification requested."
