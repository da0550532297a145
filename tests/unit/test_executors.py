"""
Unit tests for the executor registry and built-in executors.
"""

import pytest

from cronlease.types.job import ExecutionContext, ExecutionResult
from cronlease.worker.executors import (
    echo,
    failing,
    get_executor,
    http_request,
    list_executors,
    register_executor,
    run_executor,
    unregister_executor,
)


def make_context(executor: str = "echo", **config) -> ExecutionContext:
    return ExecutionContext(
        job_id=1,
        name="test-job",
        executor=executor,
        config=config,
        version=1,
        worker_id="test-worker",
    )


class TestExecutorRegistry:
    """Tests for executor lookup and registration."""

    def test_list_executors(self):
        """Test listing built-in executors."""
        executors = list_executors()

        assert "echo" in executors
        assert "sleep" in executors
        assert "failing" in executors
        assert "http_request" in executors

    def test_get_executor_exists(self):
        assert get_executor("echo") is echo

    def test_get_executor_not_exists(self):
        assert get_executor("nonexistent") is None

    def test_register_and_unregister(self):
        """Test registering a custom executor."""

        @register_executor("custom")
        async def custom(context: ExecutionContext) -> ExecutionResult:
            return ExecutionResult(success=True, output={"job": context.name})

        try:
            assert get_executor("custom") is custom
        finally:
            unregister_executor("custom")

        assert get_executor("custom") is None


class TestBuiltinExecutors:
    """Tests for the built-in executors."""

    async def test_echo(self):
        """Test that echo returns the config untouched."""
        result = await echo(make_context(message="hello", nested={"a": [1, 2]}))

        assert result.success is True
        assert result.output == {"echo": {"message": "hello", "nested": {"a": [1, 2]}}}

    async def test_failing(self):
        result = await failing(make_context("failing"))

        assert result.success is False
        assert "Intentional failure" in result.error

    async def test_http_request_requires_url(self):
        result = await http_request(make_context("http_request"))

        assert result.success is False
        assert result.error == "Missing 'url' in config"


class TestRunExecutor:
    """Tests for run_executor."""

    async def test_runs_registered_executor(self):
        result = await run_executor(make_context("sleep", duration_seconds=0))

        assert result.success is True
        assert result.output == {"slept_for": 0}
        assert result.duration_ms is not None

    async def test_unknown_executor(self):
        """Test that an unknown executor is a failed run, not an error."""
        result = await run_executor(make_context("does_not_exist"))

        assert result.success is False
        assert "No executor registered" in result.error

    async def test_executor_exception(self):
        """Test that executor exceptions become failed runs."""

        @register_executor("exploding")
        async def exploding(context: ExecutionContext) -> ExecutionResult:
            raise RuntimeError("boom")

        try:
            result = await run_executor(make_context("exploding"))
        finally:
            unregister_executor("exploding")

        assert result.success is False
        assert result.error == "Executor exception: boom"

    @pytest.mark.parametrize("executor", ["echo", "failing"])
    async def test_duration_recorded(self, executor: str):
        result = await run_executor(make_context(executor))
        assert result.duration_ms >= 0
