import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from risk_model.indicators import risk_info
from risk_model.stability import (
    PendingState, StabilityFilter, confirm_per_key_change, known_count, same_info, is_info,
)

A = risk_info("low")
B = risk_info("high")
C = risk_info("medium")


def _levels(committed):
    return {k: v.level.value if hasattr(v, "level") else v["level"] for k, v in committed.items()}


def _feed(samples, start=0.0, step=1.0, **kw):
    """Feed samples one second apart. Returns committed levels after each step."""
    committed, pending = None, None
    history = []
    for i, sample in enumerate(samples):
        committed, pending = confirm_per_key_change(committed, pending, sample, now=start + i * step, **kw)
        history.append(_levels(committed))
    return committed, pending, history


def test_bootstrap_commits_first_sample():
    sample = {"airInfo": A, "rainInfo": B}
    committed, pending = confirm_per_key_change(None, None, sample, now=100.0)
    assert committed == sample
    assert committed is not sample
    assert pending.counts == {"airInfo": 1, "rainInfo": 1}
    assert pending.first_observed_at == 100.0


def test_same_sample_is_idempotent():
    sample = {"airInfo": A, "rainInfo": B, "tempInfo": C}
    committed, pending, history = _feed([sample] * 6)
    assert all(h == _levels(sample) for h in history)
    assert set(pending.counts.values()) == {1}


def test_change_commits_on_second_occurrence():
    _, _, history = _feed([{"k": A}, {"k": B}, {"k": B}])
    assert [h["k"] for h in history] == ["low", "low", "high"]


def test_min_consecutive_three():
    _, _, history = _feed([{"k": A}, {"k": B}, {"k": B}, {"k": B}], min_consecutive=3)
    assert [h["k"] for h in history] == ["low", "low", "low", "high"]


def test_oscillation_never_commits():
    _, pending, history = _feed([{"k": A}, {"k": B}, {"k": A}, {"k": B}, {"k": A}])
    assert all(h["k"] == "low" for h in history)
    assert pending.counts["k"] == 1


def test_changing_candidate_restarts_count():
    _, _, history = _feed([{"k": A}, {"k": B}, {"k": C}, {"k": C}])
    assert [h["k"] for h in history] == ["low", "low", "low", "medium"]


def test_forced_commit_after_max_wait():
    committed, pending = confirm_per_key_change(None, None, {"k": A}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": B}, now=10.0)
    assert committed["k"] == A
    committed, pending = confirm_per_key_change(committed, pending, {"k": C}, now=30.0)
    assert committed["k"] == C
    assert pending.counts["k"] == 1


def test_forced_commit_with_single_occurrence():
    committed, pending = confirm_per_key_change(None, None, {"k": A}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": B}, max_wait_ms=500, now=0.5)
    assert committed["k"] == B


def test_malformed_candidate_is_ignored():
    committed, pending = confirm_per_key_change(None, None, {"k": A, "j": A}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": B, "j": B}, now=1.0)
    assert pending.counts["k"] == 1
    committed, pending = confirm_per_key_change(committed, pending, {"k": {"label": "x"}, "j": B}, now=2.0)
    assert committed["k"] == A
    assert pending.counts["k"] == 1
    assert committed["j"] == B
    committed, pending = confirm_per_key_change(committed, pending, {"k": None}, now=3.0)
    assert committed["k"] == A


def test_new_key_commits_immediately():
    committed, pending = confirm_per_key_change(None, None, {"k": A}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": A, "new": B}, now=1.0)
    assert committed["new"] == B
    assert pending.pending_infos["new"] == B


def test_return_to_committed_refreshes_pending():
    committed, pending = confirm_per_key_change(None, None, {"k": A}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": B}, now=1.0)
    assert pending.pending_infos["k"] == B
    committed, pending = confirm_per_key_change(committed, pending, {"k": A}, now=2.0)
    assert pending.pending_infos["k"] == A
    assert pending.counts["k"] == 1


def test_mapping_bands_are_accepted():
    committed, pending = confirm_per_key_change(None, None, {"k": {"level": "low"}}, now=0.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": {"level": "high"}}, now=1.0)
    committed, pending = confirm_per_key_change(committed, pending, {"k": {"level": "high"}}, now=2.0)
    assert committed["k"] == {"level": "high"}


def test_existing_commit_without_pending_state():
    committed, pending = confirm_per_key_change({"k": A}, None, {"k": B}, now=0.0)
    assert committed["k"] == A
    assert isinstance(pending, PendingState)
    committed, pending = confirm_per_key_change(committed, pending, {"k": B}, now=1.0)
    assert committed["k"] == B


def test_non_mapping_sample_is_harmless():
    committed, pending = confirm_per_key_change({"k": A}, PendingState({}, {}, 0.0), None, now=1.0)
    assert committed == {"k": A}


def test_same_info_and_is_info():
    assert same_info(A, risk_info("low"))
    assert same_info(A, {"level": "low", "label": "whatever"})
    assert not same_info(A, B)
    assert not same_info(A, None)
    assert is_info({"level": "na"})
    assert not is_info({"level": 3})
    assert not is_info("low")
    assert not is_info({"level": "bogus"})
    assert not is_info({"level": ["low"]})


def test_unknown_levels_are_not_committed_or_counted():
    bogus = {"level": "bogus", "label": "Bogus", "color": "#000"}
    sample = {"a": bogus, "b": bogus, "c": bogus}
    committed, pending = confirm_per_key_change({}, None, sample, now=0.0)
    assert committed == {}
    assert known_count(sample) == 0

    f = StabilityFilter(clock=lambda: 0.0)
    f.update(sample)
    assert f.ready is False


def test_known_count():
    sample = {f"k{i}": risk_info("na") for i in range(10)}
    for i in range(4):
        sample[f"k{i}"] = risk_info("medium")
    assert known_count(sample) == 4
    assert known_count({"a": {"level": "na"}, "b": {"level": "low"}, "c": None}) == 1
    assert known_count(None) == 0
    assert known_count([]) == 0


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_stability_filter_threads_state():
    clock = FakeClock()
    f = StabilityFilter(clock=clock)
    f.update({"a": A, "b": C, "c": risk_info("na")})
    assert f.known_count() == 2
    assert not f.ready

    clock.t = 1.0
    f.update({"a": B, "b": C, "c": A})
    assert f.committed["a"] == A
    assert f.committed["c"].level == "na"   # na → low needs confirmation too
    clock.t = 2.0
    f.update({"a": B, "b": C, "c": A})
    assert f.committed["a"] == B
    assert f.known_count() == 3
    assert f.ready

    f.reset()
    assert f.committed == {}
    assert f.pending is None
