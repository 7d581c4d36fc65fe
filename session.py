# ------------------------------------------------
# SESSION TYPES
# ------------------------------------------------
from dataclasses import dataclass, field
from typing import List, Tuple

Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class SessionInfo:
    id: str
    name: str        # observer
    subject: str
    date: str


@dataclass(frozen=True)
class FaceResult:
    box: Box
    interested: bool
    score: float = 0.0
    classified: bool = True


@dataclass
class FrameAnalysis:
    faces: List[FaceResult] = field(default_factory=list)

    @property
    def person_count(self):
        return len(self.faces)

    @property
    def interested_count(self):
        return sum(1 for f in self.faces if f.interested)

    @property
    def uninterested_count(self):
        return self.person_count - self.interested_count


@dataclass(frozen=True)
class HistoricalEntry:
    """One row of the per-minute log, formatted for display."""
    timestamp: str
    person_count: int
    interested: str
    uninterested: str


@dataclass(frozen=True)
class TimelineRecord:
    """Per-minute averaged counts written to Firestore."""
    person_count: int
    interested_count: int
    uninterested_count: int
