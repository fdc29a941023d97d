"""Checkpoint files: durable snapshots of the decay log.

Each checkpoint is a complete, self-describing text file; a newer file
supersedes all older ones, so a crash loses at most the events recorded
since the last successful write.
"""
from __future__ import annotations

import datetime as _dt
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Tuple, Union

from shared.errors import CheckpointIoError
from shared.models import CheckpointRecord, DecayEvent, EventLogSnapshot

logger = logging.getLogger(__name__)

HEADER_WRITTEN_AT = "Checkpoint written at"
HEADER_ATTEMPTS = "Number of coincident pulses"
HEADER_DECAYS = "Number of decays"
COLUMNS = "timestamp,separation"


class CheckpointSequence:
    """Monotonic checkpoint numbering shared by every run of one controller.

    Numbers are handed out even when the write later fails, so a number is
    never reused within the process.
    """

    def __init__(self, start: int = 0) -> None:
        self._lock = threading.Lock()
        self._next = int(start)

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value


class CheckpointWriter:
    """Renders EventLog snapshots to ``checkpoint_<n>.txt`` files in ``directory``."""

    def __init__(self, directory: Union[str, os.PathLike], sequence: CheckpointSequence) -> None:
        self._directory = Path(directory)
        self._sequence = sequence

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, sequence: int) -> Path:
        return self._directory / f"checkpoint_{sequence}.txt"

    def write(self, snapshot: EventLogSnapshot, *, final: bool = False) -> CheckpointRecord:
        """Write ``snapshot`` to the next numbered file.

        Raises CheckpointIoError on any filesystem failure; the partially
        written temporary file is removed.
        """
        sequence = self._sequence.next()
        path = self.path_for(sequence)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="ascii", newline="\n") as fh:
                fh.write(render_checkpoint(snapshot))
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise CheckpointIoError(str(path), exc) from exc

        logger.debug(
            "Wrote checkpoint %s (%d decays, %d pulses%s)",
            path,
            snapshot.total_accepted,
            snapshot.total_attempts,
            ", final" if final else "",
        )
        return CheckpointRecord(sequence=sequence, path=path, n_events=len(snapshot.events), final=final)


def render_checkpoint(snapshot: EventLogSnapshot, *, written_at: _dt.datetime | None = None) -> str:
    """Return the full text of a checkpoint file.

    Floats use ``repr``, the shortest decimal that parses back to the same double.
    """
    stamp = (written_at or _dt.datetime.now().astimezone()).isoformat()
    lines = [
        f"{HEADER_WRITTEN_AT}: {stamp}",
        f"{HEADER_ATTEMPTS}: {snapshot.total_attempts}",
        f"{HEADER_DECAYS}: {snapshot.total_accepted}",
        "",
        COLUMNS,
    ]
    lines.extend(f"{ev.timestamp!r},{ev.interval!r}" for ev in snapshot.events)
    return "\n".join(lines) + "\n"


def read_checkpoint(path: Union[str, os.PathLike]) -> Tuple[Dict[str, str], List[DecayEvent]]:
    """Parse a checkpoint file back into its header fields and events."""
    header: Dict[str, str] = {}
    events: List[DecayEvent] = []
    with open(path, "r", encoding="ascii") as fh:
        lines = fh.read().splitlines()
    try:
        blank = lines.index("")
    except ValueError:
        raise ValueError(f"{path}: missing blank line after header") from None
    for line in lines[:blank]:
        key, _, value = line.partition(": ")
        header[key] = value
    if blank + 1 >= len(lines) or lines[blank + 1] != COLUMNS:
        raise ValueError(f"{path}: missing column header {COLUMNS!r}")
    for line in lines[blank + 2:]:
        if not line:
            continue
        ts, interval = line.split(",")
        events.append(DecayEvent(timestamp=float(ts), interval=float(interval)))
    return header, events


__all__ = [
    "CheckpointSequence",
    "CheckpointWriter",
    "render_checkpoint",
    "read_checkpoint",
]
