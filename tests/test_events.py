import json

import pytest

from vidgro.events import (
    KNOWN_MESSAGE_TYPES,
    CoinsEligible,
    LoadingTimeout,
    ParseError,
    PlayerError,
    PlayerReadySuccess,
    PlayerWarning,
    ProgressUpdate,
    ReadyTimeout,
    StateChange,
    UnknownEvent,
    VideoCompleted,
    VideoStarted,
    is_error_event,
    parse_message,
)


def parse(**payload):
    return parse_message(json.dumps(payload))


def test_progress_update():
    assert parse(type="PROGRESS_UPDATE", currentTime=12.5, progress=40) == ProgressUpdate(12.5)


def test_integer_time_becomes_float():
    event = parse(type="PROGRESS_UPDATE", currentTime=3)
    assert event.current_time == 3.0
    assert isinstance(event.current_time, float)


@pytest.mark.parametrize("wire_type", ["PLAYER_READY_SUCCESS", "PLAYER_READY"])
def test_ready_aliases(wire_type):
    assert isinstance(parse(type=wire_type), PlayerReadySuccess)


@pytest.mark.parametrize("wire_type", ["PLAYER_READY_TIMEOUT", "READY_TIMEOUT"])
def test_ready_timeout_keeps_widget_message(wire_type):
    assert parse(type=wire_type, message="slow") == ReadyTimeout("slow")


def test_loading_timeout_default_message():
    assert parse(type="LOADING_TIMEOUT") == LoadingTimeout()


def test_coins_earned_is_eligibility():
    assert parse(type="COINS_EARNED", currentTime=30, coinsEarned=10) == CoinsEligible(30.0)
    assert parse(type="COINS_ELIGIBLE") == CoinsEligible(None)


def test_video_completed_fields():
    event = parse(type="VIDEO_COMPLETED", reason="auto_complete_after_coins", currentTime=31)
    assert event == VideoCompleted("auto_complete_after_coins", 31.0)
    assert parse(type="VIDEO_ENDED_EARLY", currentTime=8) == VideoCompleted("ended_early", 8.0)


@pytest.mark.parametrize("code, embedding", [(100, True), (101, True), (150, True), (2, False), (5, False)])
def test_player_error_embedding_flag_derived_from_code(code, embedding):
    event = parse(type="PLAYER_ERROR", error=code)
    assert isinstance(event, PlayerError)
    assert event.is_embedding_error is embedding
    assert event.message != "Unknown error"


def test_player_error_explicit_flag_wins():
    event = parse(type="PLAYER_ERROR", error=5, message="boom", isEmbeddingError=True)
    assert event == PlayerError(5, "boom", True)


def test_video_unplayable_follows_instant_skip():
    assert parse(type="VIDEO_UNPLAYABLE", instantSkip=True).is_embedding_error is True
    assert parse(type="VIDEO_UNPLAYABLE").is_embedding_error is False


def test_state_change_and_warning():
    assert parse(type="STATE_CHANGE", state=-1) == StateChange(-1)
    assert parse(type="PLAYER_WARNING", message="buffering") == PlayerWarning("buffering")


def test_unknown_type():
    event = parse(type="SOMETHING_NEW", value=1)
    assert isinstance(event, UnknownEvent)
    assert event.event_type == "SOMETHING_NEW"
    assert is_error_event(event)


@pytest.mark.parametrize("raw", [
    "{not json",
    "[1, 2]",
    '"PLAYER_READY"',
    "{}",
    '{"type": 7}',
    '{"type": ""}',
    '{"type": "PROGRESS_UPDATE"}',
    '{"type": "PROGRESS_UPDATE", "currentTime": "12"}',
    '{"type": "PROGRESS_UPDATE", "currentTime": -1}',
    '{"type": "PROGRESS_UPDATE", "currentTime": true}',
    '{"type": "PROGRESS_UPDATE", "currentTime": NaN}',
    '{"type": "STATE_CHANGE", "state": "1"}',
    '{"type": "STATE_CHANGE", "state": false}',
    '{"type": "PLAYER_ERROR", "error": 5, "isEmbeddingError": "yes"}',
    '{"type": "VIDEO_COMPLETED", "reason": 3}',
])
def test_malformed_messages(raw):
    event = parse_message(raw)
    assert isinstance(event, ParseError)
    assert event.detail
    assert is_error_event(event)


def test_bytes_are_decoded():
    assert isinstance(parse_message(b'{"type": "VIDEO_STARTED"}'), VideoStarted)
    assert isinstance(parse_message(b"\xff\xfe"), ParseError)


def test_non_text_input():
    assert isinstance(parse_message(None), ParseError)


def test_success_events_are_not_errors():
    assert not is_error_event(PlayerReadySuccess())
    assert not is_error_event(ProgressUpdate(1.0))


@pytest.mark.parametrize("message_type", sorted(KNOWN_MESSAGE_TYPES))
def test_every_known_type_has_a_parser(message_type):
    assert not isinstance(parse(type=message_type), UnknownEvent)
