"""Property-based tests for the session stats aggregate."""

import pytest
from hypothesis import given, strategies as st

from citadel.models import SessionStats

# True = violation, False = clean message
events = st.lists(st.booleans(), max_size=300)


@given(events)
def test_toxicity_stays_in_unit_interval(sequence):
    stats = SessionStats()
    for violation in sequence:
        if violation:
            stats.record_violation()
        else:
            stats.record_clean()
        assert 0.0 <= stats.toxicity_score <= 1.0


@given(st.integers(min_value=11, max_value=100))
def test_toxicity_saturates_at_one(violations):
    stats = SessionStats()
    for _ in range(violations):
        stats.record_violation()
    assert stats.toxicity_score == 1.0


def test_clean_messages_never_go_negative():
    stats = SessionStats()
    stats.record_clean()
    assert stats.toxicity_score == 0.0


def test_snapshot_is_a_copy():
    stats = SessionStats(messages_analyzed=3)
    snapshot = stats.snapshot()
    stats.messages_analyzed += 1
    assert snapshot.messages_analyzed == 3


def test_reset_zeroes_everything():
    stats = SessionStats(
        messages_analyzed=5,
        timeouts_issued=2,
        bans_issued=1,
        messages_deleted=2,
        spam_blocked=1,
        toxicity_score=0.3,
    )
    stats.reset()
    assert stats == SessionStats()


def test_to_dict_rounds_toxicity():
    stats = SessionStats(messages_analyzed=1, toxicity_score=0.123456)
    data = stats.to_dict()
    assert data["chats_analyzed"] == 1
    assert data["toxicity_score"] == pytest.approx(0.1235)


def test_every_violation_adds_the_same_increment():
    stats = SessionStats()
    stats.record_violation()
    stats.record_violation()
    assert stats.toxicity_score == pytest.approx(0.2)
