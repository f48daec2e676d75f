"""Tests for the output size guard."""

import io
import math

import pytest

from lidar_catalog.processing.memory_guard import (
    MemoryDecision,
    abort_policy,
    decide,
    estimate_output_size,
    format_size,
    interactive_policy,
    policy_from_name,
    proceed_policy,
    spill_policy,
)


class _RecordingPolicy:
    def __init__(self, answer):
        self.answer = answer
        self.calls = []

    def __call__(self, nbytes, threshold):
        self.calls.append((nbytes, threshold))
        return self.answer


class TestEstimate:

    def test_cells_times_bytes(self):
        # 1000 x 1000 at 2 m -> 250000 cells
        assert estimate_output_size(1e6, 2.0) == 250_000 * 24
        assert estimate_output_size(1e6, 2.0, bytes_per_cell=8) == 250_000 * 8

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            estimate_output_size(1e6, 0.0)

    def test_format_size(self):
        assert format_size(512) == "512 bytes"
        assert format_size(1536) == "1.5 Kb"
        assert format_size(3 * 1024 ** 3) == "3.0 Gb"
        assert format_size(math.inf) == "inf"


class TestDecide:

    def test_over_threshold_consults_policy(self):
        for answer in MemoryDecision:
            policy = _RecordingPolicy(answer)
            assert decide(10, 5, False, policy) is answer
            assert policy.calls == [(10, 5)]

    def test_under_threshold_proceeds_silently(self):
        policy = _RecordingPolicy(MemoryDecision.ABORT)
        assert decide(5, 5, False, policy) is MemoryDecision.PROCEED
        assert policy.calls == []

    def test_infinite_threshold_disables_guard(self):
        policy = _RecordingPolicy(MemoryDecision.ABORT)
        assert decide(1e30, math.inf, False, policy) is MemoryDecision.PROCEED
        assert policy.calls == []

    def test_spill_requested_never_asks(self):
        policy = _RecordingPolicy(MemoryDecision.ABORT)
        assert decide(10, 5, True, policy) is MemoryDecision.SPILL
        assert decide(1, 5, True, policy) is MemoryDecision.SPILL
        assert policy.calls == []

    def test_default_policy_aborts(self):
        assert decide(10, 5, False) is MemoryDecision.ABORT

    def test_policy_may_return_plain_value(self):
        assert decide(10, 5, False, lambda n, t: "spill") is MemoryDecision.SPILL


class TestPolicies:

    def test_fixed_policies(self):
        assert abort_policy(1, 0) is MemoryDecision.ABORT
        assert proceed_policy(1, 0) is MemoryDecision.PROCEED
        assert spill_policy(1, 0) is MemoryDecision.SPILL

    def test_policy_from_name(self):
        assert policy_from_name("spill") is spill_policy
        assert policy_from_name("ask") is interactive_policy
        with pytest.raises(ValueError, match="Unknown memory policy"):
            policy_from_name("maybe")

    def test_interactive_policy_reprompts(self, monkeypatch, capsys):
        answers = iter(["", "9", "2"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

        assert interactive_policy(2 * 1024 ** 3, 5e8) is MemoryDecision.SPILL
        out = capsys.readouterr().out
        assert "2.0 Gb" in out
        assert out.count("Please enter 1, 2 or 3") == 2

    def test_interactive_policy_without_answer_aborts(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))

        assert interactive_policy(2 * 1024 ** 3, 5e8) is MemoryDecision.ABORT
        assert "aborting" in capsys.readouterr().out
