"""Conversion status polling.

The status endpoint has no failure flag, only booleans for "in progress"
and "output exists". ``FAILED`` is therefore inferred: the job reports it
is no longer converting, yet a required output is still missing once the
poll budget is spent. A job that is still converting when the budget runs
out raises ``PollingExhausted`` and stays ``CONVERTING``. When the final
poll itself fails, the last status seen in the same run decides.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import httpx

from media_ingest.core import metrics
from media_ingest.core.config import settings
from media_ingest.core.errors import PollingExhausted
from media_ingest.core.http import ApiResponseError
from media_ingest.core.logging import log_info, log_warning
from media_ingest.core.tracing import create_span
from media_ingest.modules.conversion.schemas import ConversionState, ConversionStatusResponse

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    async def get_status(self, post_id: str) -> ConversionStatusResponse:
        ...


class ConversionStatusPoller:
    """Polls one post's conversion status until it reaches a terminal state."""

    def __init__(
        self,
        client: StatusSource,
        post_id: str,
        sample_required: bool = False,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        on_state_change: Optional[Callable[[ConversionState], None]] = None,
    ):
        """Initialize poller.

        Args:
            client: Status endpoint client
            post_id: Post whose video is converting
            sample_required: Whether a trimmed sample output must also exist
            interval: Seconds between polls
            max_attempts: Poll budget per run
            sleep: Awaitable sleep, injectable for tests
            on_state_change: Called with every new state
        """
        self.client = client
        self.post_id = post_id
        self.sample_required = sample_required
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self.max_attempts = max_attempts if max_attempts is not None else settings.POLL_MAX_ATTEMPTS
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._sleep = sleep
        self._on_state_change = on_state_change
        self._stopped = asyncio.Event()

        self.state = ConversionState.PENDING
        self.history: list[ConversionState] = [ConversionState.PENDING]
        self.polls = 0
        self.last_status: Optional[ConversionStatusResponse] = None

    def _transition(self, state: ConversionState) -> None:
        if state == self.state:
            return
        self.state = state
        self.history.append(state)
        if self._on_state_change:
            self._on_state_change(state)

    def stop(self) -> None:
        """Stop scheduling polls. The server-side job is unaffected."""
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    async def run(self) -> ConversionState:
        """Poll until a terminal state, a stop, or the budget is spent.

        Running again after a stop starts over from ``PENDING`` with a
        fresh budget. A poller already in a terminal state returns at once.

        Returns:
            READY, FAILED, or the non-terminal state current at a stop

        Raises:
            PollingExhausted: If the job is still converting after the last poll
        """
        if self.state.is_terminal:
            return self.state

        self._stopped.clear()
        self.polls = 0
        self._transition(ConversionState.PENDING)

        latest: Optional[ConversionStatusResponse] = None
        for attempt in range(1, self.max_attempts + 1):
            if self.stopped:
                log_info(logger, "Conversion polling stopped", post_id=self.post_id, polls=self.polls)
                return self.state

            status = await self._poll()
            if status is not None:
                latest = status
                if not status.is_converting and status.outputs_ready(self.sample_required):
                    self._finish(ConversionState.READY)
                    return self.state
                if not status.is_converting and attempt == self.max_attempts:
                    self._finish(ConversionState.FAILED)
                    return self.state
                self._transition(ConversionState.CONVERTING)

            if attempt < self.max_attempts:
                await self._wait()

        if self.stopped:
            return self.state

        # Final poll failed; the last answer of this run decides
        if latest is not None and not latest.is_converting:
            self._finish(ConversionState.FAILED)
            return self.state

        metrics.CONVERSION_OUTCOMES_TOTAL.labels(outcome="exhausted").inc()
        log_warning(
            logger,
            "Conversion still running after poll budget",
            post_id=self.post_id,
            polls=self.polls,
        )
        raise PollingExhausted(self.post_id, self.polls)

    async def _poll(self) -> Optional[ConversionStatusResponse]:
        self.polls += 1
        metrics.CONVERSION_POLLS_TOTAL.inc()
        with create_span(
            "media_ingest.conversion.poll",
            {"post_id": self.post_id, "attempt": self.polls},
        ):
            try:
                status = await self.client.get_status(self.post_id)
            except (ApiResponseError, httpx.TransportError) as e:
                # Counts against the budget; the next poll may succeed
                log_warning(logger, f"Status poll failed: {e}", post_id=self.post_id, attempt=self.polls)
                return None
        self.last_status = status
        return status

    def _finish(self, state: ConversionState) -> None:
        self._transition(state)
        metrics.CONVERSION_OUTCOMES_TOTAL.labels(outcome=state.value).inc()
        log_info(logger, f"Conversion {state.value}", post_id=self.post_id, polls=self.polls)

    async def _wait(self) -> None:
        if self._sleep is not None:
            await self._sleep(self.interval)
            return
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
