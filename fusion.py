# ------------------------------------------------
# FUSION MODULE
# Live counts + per-minute engagement averages
# ------------------------------------------------
import logging
import math
from datetime import datetime

import numpy as np
import pandas as pd

import config
from session import HistoricalEntry, TimelineRecord

_log = logging.getLogger(__name__)

HIGH_ENGAGEMENT = 60      # mean interested % for a HIGH verdict
MODERATE_ENGAGEMENT = 30

HISTORY_COLUMNS = ["Time", "Average persons", "Interested (%)", "Not interested (%)"]


def round_half_up(value):
    """Rounds .5 upward, unlike round() which rounds half to even."""
    return int(math.floor(value + 0.5))


def percentage(part, whole):
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def format_percentage(part, whole):
    return f"{percentage(part, whole)}%"


def format_offset(seconds):
    """Video position as HH:MM:SS."""
    total = int(seconds)
    return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"


class LiveStats:
    def __init__(self, person_count=0, interested_count=0):
        self.person_count = person_count
        self.interested_count = interested_count

    @classmethod
    def from_analysis(cls, analysis):
        return cls(analysis.person_count, analysis.interested_count)

    @property
    def uninterested_count(self):
        return self.person_count - self.interested_count

    @property
    def interested_percentage(self):
        return percentage(self.interested_count, self.person_count)

    @property
    def uninterested_percentage(self):
        return percentage(self.uninterested_count, self.person_count)


class MinuteAggregator:
    """
    Running average of the per-frame counts over a fixed interval.

    `now` is any monotonically increasing clock in seconds: time.monotonic()
    for the camera, the playback position for a recorded video.
    """

    def __init__(self, interval_seconds=config.SUMMARY_INTERVAL_SECONDS, start=None):
        self.interval_seconds = interval_seconds
        self.last_flush = start
        self.reset()

    def reset(self):
        self.frame_count = 0
        self.total_persons = 0
        self.total_interested = 0

    def add(self, analysis):
        self.frame_count += 1
        self.total_persons += analysis.person_count
        self.total_interested += analysis.interested_count

    def due(self, now):
        if self.last_flush is None:
            self.last_flush = now
            return False
        return now - self.last_flush >= self.interval_seconds

    @property
    def pending(self):
        return self.frame_count > 0

    def restart(self, now):
        """Start a new interval at `now`, e.g. when the camera is switched on again."""
        self.last_flush = now

    def flush(self, now, label=None):
        """
        Close the current interval.

        Returns:
            (HistoricalEntry, TimelineRecord), or None if no frame was seen
        """
        self.last_flush = now
        frames = self.frame_count
        if frames == 0:
            return None

        avg_persons = round_half_up(self.total_persons / frames)
        avg_interested = round_half_up(self.total_interested / frames)
        avg_uninterested = avg_persons - avg_interested
        self.reset()

        if label is None:
            label = datetime.now().strftime(config.TIMESTAMP_FORMAT)

        entry = HistoricalEntry(
            timestamp=label,
            person_count=avg_persons,
            interested=format_percentage(avg_interested, avg_persons),
            uninterested=format_percentage(avg_uninterested, avg_persons),
        )
        record = TimelineRecord(
            person_count=avg_persons,
            interested_count=avg_interested,
            uninterested_count=avg_uninterested,
        )
        return entry, record


class SessionHistory:
    """Per-minute entries, newest first."""

    def __init__(self, entries=None):
        self.entries = list(entries or [])

    def prepend(self, entry):
        self.entries.insert(0, entry)

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def to_frame(self):
        rows = [[e.timestamp, e.person_count, e.interested, e.uninterested] for e in self.entries]
        return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def record_summary(history, aggregator, now, label=None):
    """Flushes the aggregator into the history. Returns the timeline record or None."""
    flushed = aggregator.flush(now, label=label)
    if flushed is None:
        return None
    entry, record = flushed
    history.prepend(entry)
    _log.info("Minute summary %s: %d persons, %s interested",
              entry.timestamp, entry.person_count, entry.interested)
    return record


def _parse_percentage(text):
    return int(text.rstrip("%"))


def summarize_session(history):
    if not len(history):
        return None

    entries = list(history)
    avg_persons = round(float(np.mean([e.person_count for e in entries])), 1)
    avg_interested = round(float(np.mean([_parse_percentage(e.interested) for e in entries])), 1)

    if avg_interested >= HIGH_ENGAGEMENT:
        verdict = "HIGH ENGAGEMENT"
    elif avg_interested >= MODERATE_ENGAGEMENT:
        verdict = "MODERATE ENGAGEMENT"
    else:
        verdict = "LOW ENGAGEMENT"

    return {
        "Minutes": len(entries),
        "Average_Persons": avg_persons,
        "Average_Interested_Pct": avg_interested,
        "Final_Verdict": verdict,
    }
