"""Group module: burst and session detection over analyzed images."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from shotgrade.analyze import ImageAnalysis
from shotgrade.scoring.utils import round_int

# (capture time, analysis) as supplied by the caller's EXIF reader
TimedAnalysis = tuple[datetime, ImageAnalysis]


@dataclass
class Burst:
    """A group of images taken in quick succession."""

    group_id: int
    images: list[TimedAnalysis]
    best_key: str | None = None

    @property
    def size(self) -> int:
        return len(self.images)

    @property
    def time_span(self) -> timedelta:
        return self.images[-1][0] - self.images[0][0]


@dataclass
class Session:
    """Images separated from the neighbouring sessions by a long pause."""

    index: int  # 1-based
    images: list[TimedAnalysis]
    average_score: int = 0
    min_score: int = 0
    max_score: int = 0

    @property
    def count(self) -> int:
        return len(self.images)

    @property
    def start(self) -> datetime:
        return self.images[0][0]

    @property
    def end(self) -> datetime:
        return self.images[-1][0]

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass
class GroupBest:
    """Winner of a group and the score of every member."""

    best: ImageAnalysis
    index: int
    scores: list[tuple[int, int, bool]] = field(default_factory=list)  # (index, score, is_best)


def _sorted_successes(items: Iterable[TimedAnalysis]) -> list[TimedAnalysis]:
    ok = [item for item in items if item[0] is not None and item[1].success]
    return sorted(ok, key=lambda item: item[0])


def detect_bursts(
    items: Iterable[TimedAnalysis],
    max_interval: timedelta = timedelta(seconds=1),
    min_size: int = 2,
) -> list[Burst]:
    """Detect burst sequences from capture times.

    Consecutive successful images no more than max_interval apart form a
    burst; runs shorter than min_size are dropped.

    Args:
        items: (capture time, analysis) pairs in any order.
        max_interval: Maximum gap between consecutive burst images.
        min_size: Minimum images per burst.

    Returns:
        Detected bursts in chronological order.
    """
    timed = _sorted_successes(items)
    if not timed:
        return []

    bursts: list[Burst] = []
    current: list[TimedAnalysis] = [timed[0]]

    for item in timed[1:]:
        if item[0] - current[-1][0] <= max_interval:
            current.append(item)
        else:
            if len(current) >= min_size:
                bursts.append(Burst(group_id=len(bursts), images=current))
            current = [item]

    if len(current) >= min_size:
        bursts.append(Burst(group_id=len(bursts), images=current))

    return bursts


def detect_sessions(
    items: Iterable[TimedAnalysis],
    gap: timedelta = timedelta(minutes=30),
) -> list[Session]:
    """Split a shoot into sessions wherever the pause exceeds gap."""
    timed = _sorted_successes(items)
    if not timed:
        return []

    sessions: list[Session] = []
    current: list[TimedAnalysis] = [timed[0]]

    for item in timed[1:]:
        if item[0] - current[-1][0] <= gap:
            current.append(item)
        else:
            sessions.append(_summarize_session(current, len(sessions) + 1))
            current = [item]

    sessions.append(_summarize_session(current, len(sessions) + 1))
    return sessions


def _summarize_session(images: list[TimedAnalysis], index: int) -> Session:
    scores = [analysis.score.overall for _, analysis in images]
    return Session(
        index=index,
        images=images,
        average_score=round_int(sum(scores) / len(scores)),
        min_score=min(scores),
        max_score=max(scores),
    )


def find_best_in_group(images: list[ImageAnalysis]) -> GroupBest | None:
    """Pick the highest-scoring image; ties go to the earliest."""
    if not images:
        return None

    best_index = 0
    best_score = images[0].score.overall
    for i, analysis in enumerate(images[1:], 1):
        if analysis.score.overall > best_score:
            best_score = analysis.score.overall
            best_index = i

    return GroupBest(
        best=images[best_index],
        index=best_index,
        scores=[(i, a.score.overall, i == best_index) for i, a in enumerate(images)],
    )


def select_best_of_bursts(bursts: list[Burst]) -> list[Burst]:
    """Mark the best image of every burst (sets best_key) and return them."""
    for burst in bursts:
        winner = find_best_in_group([analysis for _, analysis in burst.images])
        burst.best_key = winner.best.key if winner else None
    return bursts
