"""Property-based tests for the caller-side retry policy.

Transient upload failures are retried with exponential backoff; anything
that is not a retryable UploadError propagates on its first occurrence.
"""

import math

import pytest
from hypothesis import given, settings, strategies as st

from media_ingest.core.errors import CredentialError, UploadError
from media_ingest.core.retry import RetryConfig, get_retry_config, retry_async

UPLOAD_RETRY_CONFIG = get_retry_config("upload")


class TestRetryBackoff:
    """Property tests for RetryConfig delays."""

    @given(attempt=st.integers(min_value=1, max_value=10))
    @settings(max_examples=100)
    def test_retry_allowed_only_within_max_attempts(self, attempt: int) -> None:
        """Retry SHALL be allowed only if attempt < max_attempts."""
        assert UPLOAD_RETRY_CONFIG.should_retry(attempt) is (
            attempt < UPLOAD_RETRY_CONFIG.max_attempts
        )

    @given(attempt=st.integers(min_value=1, max_value=10))
    @settings(max_examples=100)
    def test_delay_follows_exponential_backoff(self, attempt: int) -> None:
        """Delay SHALL follow initial_delay * multiplier^(attempt-1), capped."""
        delay = UPLOAD_RETRY_CONFIG.calculate_delay(attempt)

        expected = min(
            UPLOAD_RETRY_CONFIG.initial_delay
            * math.pow(UPLOAD_RETRY_CONFIG.backoff_multiplier, attempt - 1),
            UPLOAD_RETRY_CONFIG.max_delay,
        )
        assert abs(delay - expected) < 0.0001

    @given(
        attempt1=st.integers(min_value=1, max_value=20),
        attempt2=st.integers(min_value=1, max_value=20),
    )
    @settings(max_examples=100)
    def test_delay_increases_monotonically(self, attempt1: int, attempt2: int) -> None:
        """A later attempt SHALL never wait less than an earlier one."""
        config = get_retry_config("multipart_part")
        if attempt1 <= attempt2:
            assert config.calculate_delay(attempt1) <= config.calculate_delay(attempt2)
        else:
            assert config.calculate_delay(attempt1) >= config.calculate_delay(attempt2)

    @given(attempt=st.integers(min_value=1, max_value=50))
    @settings(max_examples=100)
    def test_delay_never_exceeds_max(self, attempt: int) -> None:
        assert UPLOAD_RETRY_CONFIG.calculate_delay(attempt) <= UPLOAD_RETRY_CONFIG.max_delay

    def test_unknown_preset_falls_back_to_default(self) -> None:
        assert get_retry_config("nope") is get_retry_config("default")


class TestRetryAsync:
    """Tests for retry_async."""

    @pytest.mark.asyncio
    async def test_retryable_errors_are_retried_until_success(self, recording_sleep) -> None:
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise UploadError.from_status(503)
            return "done"

        config = RetryConfig(max_attempts=3, initial_delay=1.0, backoff_multiplier=2.0)
        result = await retry_async(operation, config, sleep=recording_sleep)

        assert result == "done"
        assert len(calls) == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, recording_sleep) -> None:
        calls = []

        async def operation():
            calls.append(1)
            raise UploadError.from_status(403)

        with pytest.raises(UploadError) as exc_info:
            await retry_async(operation, RetryConfig(max_attempts=5), sleep=recording_sleep)

        assert exc_info.value.status == 403
        assert len(calls) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_last_error_raised_when_attempts_exhausted(self, recording_sleep) -> None:
        calls = []
        retried = []

        async def operation():
            calls.append(1)
            raise UploadError.from_status(None)

        with pytest.raises(UploadError) as exc_info:
            await retry_async(
                operation,
                RetryConfig(max_attempts=3),
                sleep=recording_sleep,
                on_retry=lambda attempt, error: retried.append(attempt),
            )

        assert exc_info.value.retryable is True
        assert len(calls) == 3
        assert retried == [1, 2]

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, recording_sleep) -> None:
        calls = []

        async def operation():
            calls.append(1)
            raise CredentialError("rejected")

        with pytest.raises(CredentialError):
            await retry_async(operation, RetryConfig(max_attempts=3), sleep=recording_sleep)

        assert len(calls) == 1
