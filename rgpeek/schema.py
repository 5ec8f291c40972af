"""Shared constants, lightweight data structures and errors."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

# ---------------------------------------------------------------------------
# Configuration constants
SEARCH_PROGRAM = ("rg",)
PREVIEW_PROGRAM = ("bat",)
DRAIN_BATCH_SIZE = 10
TICK_INTERVAL = 0.05
REAP_TIMEOUT = 2.0
GLOB_SEPARATOR = ";"

# Status values reported by a preview job.
PENDING = "PENDING"
READY = "READY"
FAILED = "FAILED"
OUTCOME_VALUES: set[str] = {PENDING, READY, FAILED}


# ---------------------------------------------------------------------------
# Errors
class RgpeekError(Exception):
    """Base class for errors raised by the job pipeline."""


class SpawnError(RgpeekError):
    """A subprocess could not be started or its output could not be captured."""


# ---------------------------------------------------------------------------
# Data structures
@dataclass(frozen=True)
class SearchOptions:
    """Everything that determines one search invocation.

    * ``query`` - literal text handed to the search program.
    * ``show_hidden`` - include hidden files and directories.
    * ``globs`` - trimmed glob filters, empty means no filter.
    """
    query: str = ""
    show_hidden: bool = False
    globs: Tuple[str, ...] = ()

    @staticmethod
    def parse_globs(text: str) -> Tuple[str, ...]:
        segments = (segment.strip() for segment in text.split(GLOB_SEPARATOR))
        return tuple(segment for segment in segments if segment)


@dataclass(frozen=True)
class ResultRecord:
    """One line of search output.

    ``display_text`` keeps the producer's styling. ``file_path`` and
    ``line_number`` are both ``None`` when the line could not be parsed,
    in which case the record is shown but cannot be opened or previewed.
    """
    display_text: str
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    raw: bytes = field(default=b"", repr=False, compare=False)

    @property
    def actionable(self) -> bool:
        return (self.file_path is not None) and (self.line_number is not None)


@dataclass(frozen=True)
class PreviewArtifact:
    """Rendered preview text for one target line."""
    text: str
    line_number: Optional[int] = None
    failed: bool = False

    # Vertical offset that centers the target line in a pane of *height* rows.
    def scroll_offset(self, height: int) -> int:
        if self.line_number is None:
            return 0
        return max(0, self.line_number - height // 2)


@dataclass(frozen=True)
class PreviewOutcome:
    """Result of one non-blocking poll of a preview job."""
    status: str = PENDING
    artifact: Optional[PreviewArtifact] = None
    reason: str = ""

    def __post_init__(self) -> None:
        if self.status not in OUTCOME_VALUES:
            raise ValueError(f"Unknown preview status '{self.status}'.")
