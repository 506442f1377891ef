"""
Pytest configuration and shared fixtures for ingestion tests
"""

import pytest


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep():
    """Sleep that returns immediately and remembers each delay"""
    return RecordingSleep()


@pytest.fixture
def sample_video_bytes():
    """Small fake video payload"""
    return bytes(range(256)) * 40
