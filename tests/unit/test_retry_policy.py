"""Unit tests for RetryPolicy."""

import pytest
from sqlalchemy.exc import OperationalError

from ascendant.core.database.retry_policy import RetryConfig, RetryPolicy
from ascendant.modules.shared.exceptions import StateConflictError, ValidationError


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(RetryConfig(max_attempts=3, initial_backoff_ms=1, max_backoff_ms=2, jitter_ms=0))


@pytest.mark.unit
@pytest.mark.asyncio
class TestExecute:
    async def test_retries_state_conflict_then_succeeds(self, policy):
        # Arrange
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            if calls["n"] < 3:
                raise StateConflictError("Tracker", 1, "stale")
            return "done"

        # Act
        result = await policy.execute(operation, operation_name="test")

        # Assert
        assert result == "done"
        assert calls["n"] == 3

    async def test_gives_up_after_max_attempts(self, policy):
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            raise OperationalError("SELECT 1", {}, Exception("locked"))

        with pytest.raises(OperationalError):
            await policy.execute(operation, operation_name="test")

        assert calls["n"] == 3

    async def test_domain_errors_not_retried(self, policy):
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            raise ValidationError("days", "bad")

        with pytest.raises(ValidationError):
            await policy.execute(operation, operation_name="test")

        assert calls["n"] == 1


@pytest.mark.unit
class TestBackoff:
    def test_exponential_and_capped(self):
        policy = RetryPolicy(
            RetryConfig(max_attempts=5, initial_backoff_ms=50, max_backoff_ms=150, jitter_ms=0)
        )

        assert [policy.compute_backoff_ms(n) for n in (1, 2, 3, 4)] == [50, 100, 150, 150]
