"""
EnviroWatch — Stability Filter
Per-key debounce between freshly computed bands and the bands shown to users.
First sample commits; a later change must repeat MIN_CONSECUTIVE times
(or outlast MAX_WAIT_MS) before it is committed.
"""
import threading
import time
from collections.abc import Mapping

from config.settings import MIN_CONSECUTIVE, MAX_WAIT_MS, READY_MIN_KNOWN
from risk_model.indicators import RiskInfo, RiskLevel

_LEVELS = frozenset(level.value for level in RiskLevel)


def is_info(value):
    """Well-formed band: a RiskInfo, or a mapping carrying a known level."""
    if isinstance(value, RiskInfo):
        return True
    if not isinstance(value, Mapping):
        return False
    level = value.get("level")
    return isinstance(level, str) and level in _LEVELS


def _level(info):
    return info.level if isinstance(info, RiskInfo) else info["level"]


def same_info(a, b):
    """Bands are equal for stability purposes iff their levels match."""
    if not is_info(a) or not is_info(b):
        return False
    return _level(a) == _level(b)


def known_count(sample):
    """Number of keys holding a non-na band."""
    if not isinstance(sample, Mapping):
        return 0
    return sum(1 for v in sample.values() if is_info(v) and _level(v) != RiskLevel.NA)


class PendingState:
    """Working memory of the filter. Mutated in place on every sample."""

    def __init__(self, pending_infos, counts, first_observed_at):
        self.pending_infos = pending_infos
        self.counts = counts
        self.first_observed_at = first_observed_at

    def __repr__(self):
        return (
            f"PendingState(keys={len(self.pending_infos)}, counts={self.counts}, "
            f"first_observed_at={self.first_observed_at})"
        )


def confirm_per_key_change(
    last_accepted,
    last_pending,
    next_sample,
    min_consecutive=MIN_CONSECUTIVE,
    max_wait_ms=MAX_WAIT_MS,
    now=None,
):
    """
    Fold one sample into the committed bands.

    Returns (committed, next_pending). Callers thread both values into the
    next call; nothing is kept between calls inside this function.
    `now` is in seconds on the same clock as `first_observed_at`
    (time.monotonic() when omitted).
    """
    if now is None:
        now = time.monotonic()
    if not isinstance(next_sample, Mapping):
        next_sample = {}

    # Bootstrap: the very first sample commits as-is
    if last_accepted is None and last_pending is None:
        committed = {k: v for k, v in next_sample.items() if is_info(v)}
        pending = PendingState(dict(committed), {k: 1 for k in next_sample}, now)
        return committed, pending

    committed = dict(last_accepted or {})
    pending = last_pending if last_pending is not None else PendingState({}, {}, now)
    infos, counts = pending.pending_infos, pending.counts

    for key, nxt in next_sample.items():
        if not is_info(nxt):
            counts[key] = 1
            continue

        prev = committed.get(key)
        if not is_info(prev):
            committed[key] = nxt
            infos[key] = nxt
            counts[key] = 1
            continue

        if same_info(nxt, prev):
            # Back at the committed level: refresh label/color, no evidence of change
            infos[key] = nxt
            counts[key] = 1
            continue

        if same_info(nxt, infos.get(key)):
            counts[key] = counts.get(key, 1) + 1
        else:
            infos[key] = nxt
            counts[key] = 1

        waited_ms = (now - pending.first_observed_at) * 1000
        if counts[key] >= min_consecutive or waited_ms >= max_wait_ms:
            committed[key] = nxt
            counts[key] = 1

    return committed, pending


class StabilityFilter:
    """
    Session-scoped holder for committed/pending state.
    Updates are serialised; one sample is folded in at a time.
    """

    def __init__(self, min_consecutive=MIN_CONSECUTIVE, max_wait_ms=MAX_WAIT_MS,
                 clock=time.monotonic):
        self.min_consecutive = min_consecutive
        self.max_wait_ms = max_wait_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._committed = None
        self._pending = None

    @property
    def committed(self):
        return dict(self._committed or {})

    @property
    def pending(self):
        return self._pending

    def update(self, sample):
        """Fold a fresh sample in. Returns a copy of the committed bands."""
        with self._lock:
            self._committed, self._pending = confirm_per_key_change(
                self._committed,
                self._pending,
                sample,
                min_consecutive=self.min_consecutive,
                max_wait_ms=self.max_wait_ms,
                now=self._clock(),
            )
            return dict(self._committed)

    def known_count(self):
        return known_count(self._committed)

    @property
    def ready(self):
        return self.known_count() >= READY_MIN_KNOWN

    def reset(self):
        with self._lock:
            self._committed = None
            self._pending = None
