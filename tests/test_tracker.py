import pytest

from vidgro.domain import PlaybackSession, PlaybackStatus, TerminalReason
from vidgro.events import (
    CoinsEligible,
    PlayerReadySuccess,
    ProgressUpdate,
    StateChange,
    VideoCompleted,
    VideoStarted,
)
from vidgro.settings import ControllerSettings
from vidgro.tracker import (
    LivenessFailure,
    ProgressReported,
    ProgressTracker,
    ReadyStateChanged,
    ResumeRequested,
    RewardEligible,
    SessionFinished,
    StopRequested,
)


@pytest.fixture
def tracker():
    return ProgressTracker(ControllerSettings())


def playing_session(target=30.0):
    session = PlaybackSession(video_id="dQw4w9WgXcQ", target_duration_seconds=target)
    session.transition(PlaybackStatus.READY)
    session.transition(PlaybackStatus.PLAYING)
    return session


def rewards(effects):
    return [e for e in effects if isinstance(e, RewardEligible)]


def test_ready_only_from_loading(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    assert tracker.handle(session, PlayerReadySuccess()) == [ReadyStateChanged(True)]
    assert session.status is PlaybackStatus.READY
    assert tracker.handle(session, PlayerReadySuccess()) == []


def test_started_latch(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    tracker.handle(session, PlayerReadySuccess())
    tracker.handle(session, VideoStarted())
    assert session.has_started
    assert session.status is PlaybackStatus.PLAYING


@pytest.mark.parametrize("target, expected", [(30, 28.5), (100, 98.0), (10, 9.5)])
def test_threshold_is_larger_of_ratio_and_tolerance(tracker, target, expected):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=target)
    assert tracker.threshold_for(session) == pytest.approx(expected)


def test_threshold_crossed_at_first_update_past_28_5(tracker):
    session = playing_session(30)
    crossed_at = []
    for t in [0, 5, 10, 15, 20, 25, 28, 29, 30]:
        if rewards(tracker.handle(session, ProgressUpdate(float(t)))):
            crossed_at.append(t)
    assert crossed_at == [29]
    assert session.has_reached_completion_threshold
    assert session.reward_signaled


def test_reward_never_repeats(tracker):
    session = playing_session(30)
    total = []
    for t in [29, 30, 31]:
        total += rewards(tracker.handle(session, ProgressUpdate(float(t))))
    total += rewards(tracker.handle(session, CoinsEligible(31.0)))
    total += rewards(tracker.handle(session, VideoCompleted("natural_end", 32.0)))
    assert len(total) == 1


def test_every_update_is_reported(tracker):
    session = playing_session()
    effects = tracker.handle(session, ProgressUpdate(4.0))
    assert ProgressReported(4.0) in effects
    assert session.current_time_seconds == 4.0


def test_stuck_progress_requests_one_resume_per_episode(tracker):
    session = playing_session()
    resumes = []
    for t in [10, 10, 10, 10]:
        resumes += [e for e in tracker.handle(session, ProgressUpdate(float(t))) if isinstance(e, ResumeRequested)]
    # Three non-advancing ticks after the first report
    assert len(resumes) == 1
    assert session.stuck_ticks == 0

    tracker.handle(session, ProgressUpdate(10.05))  # below epsilon
    assert session.stuck_ticks == 1
    tracker.handle(session, ProgressUpdate(11.0))
    assert session.stuck_ticks == 0
    assert not session.resume_requested


def test_stuck_again_after_resume_is_a_liveness_failure(tracker):
    session = playing_session()
    effects = []
    for _ in range(7):
        effects += tracker.handle(session, ProgressUpdate(10.0))
    assert len([e for e in effects if isinstance(e, ResumeRequested)]) == 1
    failures = [e for e in effects if isinstance(e, LivenessFailure)]
    assert len(failures) == 1
    assert failures[0].event.current_time == 10.0


def test_stuck_not_counted_while_paused(tracker):
    session = playing_session()
    tracker.handle(session, StateChange(2))
    for _ in range(6):
        assert not [e for e in tracker.handle(session, ProgressUpdate(10.0)) if isinstance(e, ResumeRequested)]
    assert session.stuck_ticks == 0


def test_state_changes(tracker):
    session = playing_session()
    tracker.handle(session, StateChange(3))
    assert session.status is PlaybackStatus.BUFFERING
    tracker.handle(session, StateChange(1))
    assert session.status is PlaybackStatus.PLAYING
    assert tracker.handle(session, StateChange(0)) == [StopRequested()]


def test_progress_resumes_from_buffering(tracker):
    session = playing_session()
    tracker.handle(session, ProgressUpdate(3.0))
    tracker.handle(session, StateChange(3))
    tracker.handle(session, ProgressUpdate(4.0))
    assert session.status is PlaybackStatus.PLAYING


def test_completion_after_threshold(tracker):
    session = playing_session(30)
    tracker.handle(session, ProgressUpdate(29.0))
    effects = tracker.handle(session, VideoCompleted("natural_end", 30.0))
    assert effects == [SessionFinished(TerminalReason.COMPLETED, "natural_end")]
    assert session.status is PlaybackStatus.COMPLETED


def test_completion_crossing_threshold_emits_reward_first(tracker):
    session = playing_session(30)
    effects = tracker.handle(session, VideoCompleted("natural_end", 30.0))
    assert isinstance(effects[0], RewardEligible)
    assert effects[-1].reason is TerminalReason.COMPLETED


def test_video_ending_early_is_terminal_without_reward(tracker):
    session = playing_session(60)
    tracker.handle(session, ProgressUpdate(20.0))
    effects = tracker.handle(session, VideoCompleted("natural_end", 21.0))
    assert effects == [SessionFinished(TerminalReason.ENDED_EARLY, "natural_end")]
    assert not session.reward_signaled
    assert session.terminal_reason is TerminalReason.ENDED_EARLY


def test_terminal_session_ignores_everything(tracker):
    session = playing_session(30)
    tracker.handle(session, VideoCompleted("natural_end", 10.0))
    assert tracker.handle(session, ProgressUpdate(29.0)) == []
    assert tracker.handle(session, CoinsEligible(30.0)) == []
    assert not session.reward_signaled


def test_completion_while_loading_is_ignored(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    assert tracker.handle(session, VideoCompleted()) == []
    assert session.status is PlaybackStatus.LOADING


def test_coins_eligible_below_threshold_does_nothing(tracker):
    session = playing_session(30)
    assert tracker.handle(session, CoinsEligible(10.0)) == []
    assert not session.has_reached_completion_threshold


def test_progress_while_loading_implies_ready(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    effects = tracker.handle(session, ProgressUpdate(29.0))
    assert effects[0] == ReadyStateChanged(True)
    assert session.status is PlaybackStatus.PLAYING
    assert len(rewards(effects)) == 1


def test_playing_state_while_loading_implies_ready(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    assert tracker.handle(session, StateChange(1)) == [ReadyStateChanged(True)]
    assert session.status is PlaybackStatus.PLAYING
    assert session.has_started


def test_no_reward_while_loading(tracker):
    session = PlaybackSession(video_id="x" * 11, target_duration_seconds=30)
    assert tracker.handle(session, CoinsEligible(30.0)) == []
    assert not session.has_reached_completion_threshold
    assert session.status is PlaybackStatus.LOADING
