"""
Tests for leadflow/services/disposition.py - MCUBE dialstatus mapping,
HH:MM:SS durations, webhook call notes, agent call status validation.
"""
import pytest

from leadflow.errors import EventValidationError
from leadflow.services.disposition import (
    build_webhook_call_notes,
    call_outcome_from_status,
    map_dialstatus,
    parse_duration,
)
from leadflow.vocabulary import CallOutcome


class TestMapDialstatus:
    @pytest.mark.parametrize("raw", ["ANSWER", "answer", "Answered", " ANSWER "])
    def test_answered_is_positive(self, raw):
        assert map_dialstatus(raw) == CallOutcome.CONNECTED_POSITIVE

    @pytest.mark.parametrize("raw", ["Busy", "NoAnswer", "NO ANSWER", "no_answer", "CANCEL"])
    def test_unanswered_is_not_connected(self, raw):
        assert map_dialstatus(raw) == CallOutcome.NOT_CONNECTED

    @pytest.mark.parametrize("raw", [None, "", "   ", "CONGESTION", "???"])
    def test_unknown_or_empty_is_not_connected(self, raw):
        assert map_dialstatus(raw) == CallOutcome.NOT_CONNECTED


class TestParseDuration:
    def test_seconds(self):
        assert parse_duration("00:00:04") == 4

    def test_hours_minutes_seconds(self):
        assert parse_duration("01:02:03") == 3723

    @pytest.mark.parametrize("raw", [None, "", "4", "00:04", "aa:bb:cc", "00:-1:00"])
    def test_malformed_is_none(self, raw):
        assert parse_duration(raw) is None


class TestWebhookCallNotes:
    def test_full(self):
        notes = build_webhook_call_notes("C-1", "https://rec.example/1.mp3")
        assert notes == (
            "System Auto-Logged via MCUBE.\n"
            "Call ID: C-1\n"
            "Recording: https://rec.example/1.mp3"
        )

    def test_placeholders(self):
        notes = build_webhook_call_notes(None, "")
        assert "Call ID: N/A" in notes
        assert "Recording: No recording provided" in notes


class TestCallOutcomeFromStatus:
    def test_normalizes_case_and_whitespace(self):
        assert call_outcome_from_status(" Connected_Positive ") == CallOutcome.CONNECTED_POSITIVE

    @pytest.mark.parametrize("raw", [None, "", "answered", "connected"])
    def test_rejects_unknown(self, raw):
        with pytest.raises(EventValidationError):
            call_outcome_from_status(raw)
