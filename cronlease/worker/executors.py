"""
Executor registry and built-in executors.

An executor receives the job's opaque config and performs the actual work.
The core imposes a timeout and never retries a failed run; any retry policy
belongs to the executor itself.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

import httpx

from cronlease.types.job import ExecutionContext, ExecutionResult

logger = logging.getLogger(__name__)

# Type alias for executor functions
Executor = Callable[[ExecutionContext], Awaitable[ExecutionResult]]

# Executor registry
_executors: dict[str, Executor] = {}


def register_executor(name: str) -> Callable[[Executor], Executor]:
    """
    Decorator to register an executor.

    Args:
        name: The identifier jobs reference in their `executor` column.

    Returns:
        Decorator function.

    Example:
        @register_executor("send_digest")
        async def send_digest(context: ExecutionContext) -> ExecutionResult:
            ...
    """
    def decorator(executor: Executor) -> Executor:
        _executors[name] = executor
        logger.debug(f"Registered executor: {name}")
        return executor
    return decorator


def unregister_executor(name: str) -> None:
    """Remove an executor from the registry."""
    _executors.pop(name, None)


def get_executor(name: str) -> Executor | None:
    """
    Get the executor registered under a name.

    Args:
        name: The executor identifier.

    Returns:
        The executor function or None if not found.
    """
    return _executors.get(name)


def list_executors() -> list[str]:
    """List all registered executor identifiers."""
    return list(_executors.keys())


# ============================================================================
# Built-in executors
# ============================================================================


@register_executor("echo")
async def echo(context: ExecutionContext) -> ExecutionResult:
    """Return the config as output."""
    return ExecutionResult(
        success=True,
        output={"echo": context.config},
    )


@register_executor("sleep")
async def sleep(context: ExecutionContext) -> ExecutionResult:
    """
    Sleep for a while.

    Config:
    - duration_seconds: How long to sleep
    """
    duration = context.config.get("duration_seconds", 1)
    await asyncio.sleep(duration)
    return ExecutionResult(
        success=True,
        output={"slept_for": duration},
    )


@register_executor("failing")
async def failing(context: ExecutionContext) -> ExecutionResult:
    """Always fail."""
    return ExecutionResult(
        success=False,
        error=f"Intentional failure for job {context.name}",
    )


@register_executor("http_request")
async def http_request(context: ExecutionContext) -> ExecutionResult:
    """
    Make an HTTP request.

    Config:
    - url: The URL to request
    - method: HTTP method (GET, POST, etc.)
    - headers: Optional headers
    - body: Optional JSON request body
    - timeout_seconds: Optional request timeout
    """
    url = context.config.get("url")
    method = context.config.get("method", "GET").upper()
    headers = context.config.get("headers", {})
    body = context.config.get("body")
    timeout = context.config.get("timeout_seconds", 30.0)

    if not url:
        return ExecutionResult(
            success=False,
            error="Missing 'url' in config",
        )

    try:
        async with httpx.AsyncClient() as client:
            response = await client.request(
                method=method,
                url=url,
                headers=headers,
                json=body if method in ["POST", "PUT", "PATCH"] else None,
                timeout=timeout,
            )
    except httpx.HTTPError as e:
        return ExecutionResult(
            success=False,
            error=f"HTTP request failed: {e}",
        )

    return ExecutionResult(
        success=response.is_success,
        output={
            "status_code": response.status_code,
            "body": response.text[:1000],
        },
        error=None if response.is_success else f"HTTP {response.status_code}",
    )


async def run_executor(context: ExecutionContext) -> ExecutionResult:
    """
    Run the executor for a job. Never raises except on cancellation.

    Args:
        context: The execution context.

    Returns:
        ExecutionResult from the executor, or a failed result if the
        executor is unknown or raised.
    """
    executor = get_executor(context.executor)

    if executor is None:
        logger.error(
            f"No executor registered: {context.executor}",
            extra={"job_id": context.job_id}
        )
        return ExecutionResult(
            success=False,
            error=f"No executor registered: {context.executor}",
        )

    start = time.monotonic()
    try:
        result = await executor(context)
    except Exception as e:
        logger.exception(
            "Executor raised exception",
            extra={"job_id": context.job_id, "executor": context.executor}
        )
        result = ExecutionResult(
            success=False,
            error=f"Executor exception: {e}",
        )

    if result.duration_ms is None:
        result.duration_ms = (time.monotonic() - start) * 1000
    return result
