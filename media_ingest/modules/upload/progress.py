"""Per-kind upload progress.

Each executor is handed the ``ProgressCell`` for its own kind and can only
write there, so concurrent uploads never touch each other's progress.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from media_ingest.modules.upload.models import FileKind


class ProgressListener(Protocol):
    """Receives progress events, e.g. to drive a progress bar."""

    def on_progress(self, kind: FileKind, percent: int) -> None:
        ...

    def on_uploaded(self, kind: FileKind) -> None:
        ...


@dataclass(frozen=True)
class ProgressSnapshot:
    percent: int
    uploaded: bool


class ProgressCell:
    """Progress of one kind. Percent never decreases until reset."""

    def __init__(self, kind: FileKind, listener: Optional[ProgressListener] = None):
        self.kind = kind
        self._listener = listener
        self._percent = 0
        self._uploaded = False

    @property
    def percent(self) -> int:
        return self._percent

    @property
    def uploaded(self) -> bool:
        return self._uploaded

    def report(self, percent: float) -> int:
        """Record progress, clamped to [0, 100] and never moving backwards.

        Args:
            percent: Reported percentage

        Returns:
            The percentage now recorded
        """
        value = int(max(0, min(100, round(percent))))
        if value > self._percent:
            self._percent = value
            if self._listener:
                self._listener.on_progress(self.kind, value)
        return self._percent

    def mark_uploaded(self) -> None:
        self.report(100)
        self._uploaded = True
        if self._listener:
            self._listener.on_uploaded(self.kind)

    def reset(self) -> None:
        """Discard partial progress after a failed or cancelled upload."""
        self._percent = 0
        self._uploaded = False

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(percent=self._percent, uploaded=self._uploaded)


class UploadProgressState:
    """Progress of every kind in one ingestion, partitioned by kind."""

    def __init__(
        self,
        kinds: Iterable[FileKind] = (),
        listener: Optional[ProgressListener] = None,
    ):
        self._listener = listener
        self._cells: dict[FileKind, ProgressCell] = {}
        for kind in kinds:
            self.cell_for(kind)

    def cell_for(self, kind: FileKind) -> ProgressCell:
        """The cell an executor for ``kind`` writes to (created on demand)."""
        cell = self._cells.get(kind)
        if cell is None:
            cell = ProgressCell(kind, self._listener)
            self._cells[kind] = cell
        return cell

    @property
    def kinds(self) -> list[FileKind]:
        return list(self._cells)

    def snapshot(self) -> dict[FileKind, ProgressSnapshot]:
        """Read-only view of every kind's progress."""
        return {kind: cell.snapshot() for kind, cell in self._cells.items()}

    def all_uploaded(self) -> bool:
        return bool(self._cells) and all(c.uploaded for c in self._cells.values())


def overall_progress(
    state: UploadProgressState,
    base: float = 30.0,
    span: float = 70.0,
) -> int:
    """Combined progress across all files.

    ``base`` percent is credited once descriptors exist; the remaining
    ``span`` is split evenly between files. Stays below 100 until every
    file has uploaded.

    Args:
        state: Progress of every kind
        base: Share credited before any bytes move
        span: Share distributed across file uploads

    Returns:
        Overall percentage
    """
    cells = state.snapshot()
    if not cells:
        return int(base)

    share = span / len(cells)
    value = base + sum(share * cell.percent / 100 for cell in cells.values())
    if state.all_uploaded():
        return 100
    return int(min(99, value))
