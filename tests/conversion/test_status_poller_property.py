"""Property-based tests for conversion status polling.

Pending -> Converting -> Ready/Failed. Failed is inferred from outputs
still missing after the poll budget, never reported by the server.
"""

import asyncio
from datetime import timedelta

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from media_ingest.core.errors import PollingExhausted
from media_ingest.core.http import ApiClient, ApiResponseError
from media_ingest.modules.conversion.client import ConversionStatusClient
from media_ingest.modules.conversion.poller import ConversionStatusPoller
from media_ingest.modules.conversion.schemas import ConversionState, ConversionStatusResponse

CONVERTING = ConversionStatusResponse(is_converting=True)
READY = ConversionStatusResponse(is_converting=False, main_video_exists=True)
READY_WITH_SAMPLE = ConversionStatusResponse(
    is_converting=False, main_video_exists=True, sample_video_exists=True
)
DONE_WITHOUT_SAMPLE = ConversionStatusResponse(
    is_converting=False, main_video_exists=True, sample_video_exists=False
)


class ScriptedStatus:
    """Status source replaying a fixed sequence of responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    async def get_status(self, post_id: str) -> ConversionStatusResponse:
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        if isinstance(response, Exception):
            raise response
        return response


async def no_sleep(delay: float) -> None:
    return None


class TestPollingTransitions:
    """Property tests for poller state transitions."""

    @given(k=st.integers(min_value=1, max_value=30))
    @settings(max_examples=50, deadline=timedelta(seconds=5))
    @pytest.mark.asyncio
    async def test_ready_after_exactly_k_plus_one_polls(self, k: int) -> None:
        """k converting responses then one ready response SHALL reach READY after k + 1 polls."""
        source = ScriptedStatus([CONVERTING] * k + [READY])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=100, sleep=no_sleep)

        state = await poller.run()

        assert state == ConversionState.READY
        assert source.calls == k + 1
        assert poller.polls == k + 1
        assert poller.history == [
            ConversionState.PENDING,
            ConversionState.CONVERTING,
            ConversionState.READY,
        ]

    @pytest.mark.asyncio
    async def test_immediately_ready(self) -> None:
        source = ScriptedStatus([READY])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=5, sleep=no_sleep)

        assert await poller.run() == ConversionState.READY
        assert source.calls == 1

    @given(k=st.integers(min_value=0, max_value=10))
    @settings(max_examples=30, deadline=timedelta(seconds=5))
    @pytest.mark.asyncio
    async def test_sample_required_waits_for_sample(self, k: int) -> None:
        """With a trimmed sample requested, main alone SHALL NOT be enough."""
        source = ScriptedStatus([CONVERTING] * k + [DONE_WITHOUT_SAMPLE, READY_WITH_SAMPLE])
        poller = ConversionStatusPoller(
            source, "post-1", sample_required=True, max_attempts=50, sleep=no_sleep
        )

        assert await poller.run() == ConversionState.READY
        assert source.calls == k + 2

    @pytest.mark.asyncio
    async def test_missing_output_at_budget_is_failed(self) -> None:
        source = ScriptedStatus([CONVERTING, CONVERTING, DONE_WITHOUT_SAMPLE])
        states = []
        poller = ConversionStatusPoller(
            source,
            "post-1",
            sample_required=True,
            max_attempts=3,
            sleep=no_sleep,
            on_state_change=states.append,
        )

        assert await poller.run() == ConversionState.FAILED
        assert states == [ConversionState.CONVERTING, ConversionState.FAILED]

    @given(budget=st.integers(min_value=1, max_value=20))
    @settings(max_examples=30, deadline=timedelta(seconds=5))
    @pytest.mark.asyncio
    async def test_still_converting_at_budget_raises_polling_exhausted(self, budget: int) -> None:
        """A job still converting after the budget SHALL raise PollingExhausted, not FAILED."""
        source = ScriptedStatus([CONVERTING])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=budget, sleep=no_sleep)

        with pytest.raises(PollingExhausted) as exc_info:
            await poller.run()

        assert exc_info.value.attempts == budget
        assert source.calls == budget
        assert poller.state == ConversionState.CONVERTING
        assert ConversionState.FAILED not in poller.history

    @pytest.mark.asyncio
    async def test_interval_between_polls(self, recording_sleep) -> None:
        source = ScriptedStatus([CONVERTING, CONVERTING, READY])
        poller = ConversionStatusPoller(
            source, "post-1", interval=5, max_attempts=10, sleep=recording_sleep
        )

        await poller.run()

        assert recording_sleep.delays == [5, 5]

    @pytest.mark.asyncio
    async def test_failed_polls_count_against_budget(self) -> None:
        error = ApiResponseError("GET failed", status_code=502)
        source = ScriptedStatus([error, httpx.ConnectError("refused"), READY])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=5, sleep=no_sleep)

        assert await poller.run() == ConversionState.READY
        assert poller.polls == 3


    @pytest.mark.asyncio
    async def test_malformed_status_body_counts_as_failed_poll(self) -> None:
        replies = iter(
            [
                httpx.Response(200, json={"message": "busy"}),
                httpx.Response(200, text="<html>gateway</html>"),
                httpx.Response(200, json={"is_converting": False, "main_video_exists": True}),
            ]
        )
        client = ConversionStatusClient(
            ApiClient(
                base_url="http://api.test",
                transport=httpx.MockTransport(lambda request: next(replies)),
            )
        )
        poller = ConversionStatusPoller(client, "post-1", max_attempts=5, sleep=no_sleep)

        assert await poller.run() == ConversionState.READY
        assert poller.polls == 3

    @pytest.mark.asyncio
    async def test_failed_final_poll_uses_last_answer(self) -> None:
        """Outputs missing on the last answered poll SHALL still end FAILED."""
        error = ApiResponseError("GET failed", status_code=502)
        source = ScriptedStatus([CONVERTING, DONE_WITHOUT_SAMPLE, error])
        poller = ConversionStatusPoller(
            source, "post-1", sample_required=True, max_attempts=3, sleep=no_sleep
        )

        assert await poller.run() == ConversionState.FAILED
        assert poller.polls == 3

    @pytest.mark.asyncio
    async def test_failed_final_poll_while_converting_is_exhausted(self) -> None:
        source = ScriptedStatus([CONVERTING, httpx.ConnectError("refused")])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=2, sleep=no_sleep)

        with pytest.raises(PollingExhausted):
            await poller.run()

        assert poller.state == ConversionState.CONVERTING

    @pytest.mark.asyncio
    async def test_every_poll_failing_is_exhausted(self) -> None:
        source = ScriptedStatus([ApiResponseError("GET failed", status_code=503)])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=3, sleep=no_sleep)

        with pytest.raises(PollingExhausted):
            await poller.run()

        assert poller.state == ConversionState.PENDING


class TestPollingCancellation:
    """Tests for stopping and re-entering the poller."""

    @pytest.mark.asyncio
    async def test_stop_interrupts_waiting(self) -> None:
        source = ScriptedStatus([CONVERTING])
        poller = ConversionStatusPoller(source, "post-1", interval=3600, max_attempts=10)

        task = asyncio.create_task(poller.run())
        while source.calls == 0:
            await asyncio.sleep(0)
        poller.stop()
        state = await asyncio.wait_for(task, timeout=5)

        assert state == ConversionState.CONVERTING
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_rerun_after_stop_starts_fresh(self) -> None:
        source = ScriptedStatus([CONVERTING])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=10, sleep=no_sleep)
        poller.stop()
        source_calls_before = source.calls

        # A stop before the run starts is cleared by run()
        source.responses = [CONVERTING, READY]
        state = await poller.run()

        assert state == ConversionState.READY
        assert source.calls - source_calls_before == 2
        assert poller.polls == 2

    @pytest.mark.asyncio
    async def test_stopped_run_can_be_resumed(self) -> None:
        source = ScriptedStatus([CONVERTING, READY])
        poller = ConversionStatusPoller(source, "post-1", interval=3600, max_attempts=10)

        task = asyncio.create_task(poller.run())
        while source.calls == 0:
            await asyncio.sleep(0)
        poller.stop()
        assert await task == ConversionState.CONVERTING

        assert await poller.run() == ConversionState.READY
        assert poller.polls == 1
        assert poller.history[0] == ConversionState.PENDING
        assert poller.history[-1] == ConversionState.READY

    @pytest.mark.asyncio
    async def test_terminal_state_is_sticky(self) -> None:
        source = ScriptedStatus([READY])
        poller = ConversionStatusPoller(source, "post-1", max_attempts=3, sleep=no_sleep)

        await poller.run()
        assert await poller.run() == ConversionState.READY
        assert source.calls == 1
