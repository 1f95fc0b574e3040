"""Tests for the proof engine adapter."""

import time

import pytest

from vc_disclosure.engine import EngineTimeoutError, ProofEngine, call_engine, prefix_messages

from helpers import FakeBbsEngine


class TestPrefixMessages:
    """Tests for message encoding."""

    def test_zero_byte_prefix(self):
        assert prefix_messages(["a", "23"]) == [b"\x00a", b"\x0023"]

    def test_utf8(self):
        assert prefix_messages(["Zoë"]) == [b"\x00Zo\xc3\xab"]

    def test_empty_message(self):
        assert prefix_messages([""]) == [b"\x00"]


class TestCallEngine:
    """Tests for time-bounded engine calls."""

    def test_passthrough(self):
        assert call_engine(lambda a, b: a + b, 1, 2) == 3

    def test_passthrough_with_timeout(self):
        assert call_engine(lambda a: a * 2, 21, timeout=5) == 42

    def test_errors_propagate(self):
        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            call_engine(fail, timeout=5)

    def test_timeout(self):
        def slow():
            time.sleep(0.5)

        with pytest.raises(EngineTimeoutError, match="slow"):
            call_engine(slow, timeout=0.05)


def test_fake_engine_satisfies_protocol():
    assert isinstance(FakeBbsEngine(), ProofEngine)
