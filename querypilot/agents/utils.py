"""
Agent utilities
"""

import functools
import time
import uuid

from loguru import logger


def trace_step(step_name: str):
    """Decorator for tracing async workflow node execution."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(state, ctx, *args, **kwargs):
            trace_id = state.get("trace_id") or str(uuid.uuid4())
            state = dict(state)
            state["trace_id"] = trace_id
            start = time.time()
            logger.info(
                f"[TRACE] step_start: {step_name} | trace_id={trace_id} | input_keys={list(state.keys())}"
            )
            try:
                result = await func(state, ctx, *args, **kwargs)
                duration = time.time() - start
                logger.info(
                    f"[TRACE] step_end: {step_name} | trace_id={trace_id} | "
                    f"duration_ms={int(duration * 1000)} | output_keys={list(result.keys())}"
                )
                return result
            except Exception as e:
                logger.error(f"[TRACE] step_error: {step_name} | trace_id={trace_id} | error={e}")
                raise

        return wrapper

    return decorator
