"""
Session Controller Tests
========================

Lifecycle transitions, per-minute cues, end of run, restart, resume from a
saved start time, and publish/subscribe.

Run with: python -m pytest tests/test_session_controller.py -v
"""

import datetime
import threading

import pytest

from conftest import T0, FakeNotifier
from session_controller import (
    NOTIFICATION_DELAY_SECONDS,
    SessionController,
    SessionState,
)


def at(seconds):
    return T0 + datetime.timedelta(seconds=seconds)


GMT = datetime.timezone.utc
BST = datetime.timezone(datetime.timedelta(hours=1))


class BrokenSound:
    def play_cue(self):
        raise OSError("audio session unavailable")


class BrokenNotifier(FakeNotifier):
    def request_permission(self, callback):
        raise RuntimeError("no notification daemon")

    def schedule_notification(self, body_text, badge_count, delay_seconds):
        raise RuntimeError("no notification daemon")


# ============================================================================
# Initial state and warning
# ============================================================================

class TestWarning:

    def test_initial_state(self, controller):
        s = controller.session
        assert s.state is SessionState.SHOW_WARNING
        assert s.start_time is None
        assert s.last_observed_minute == -1
        assert s.total_units == 60

    def test_acknowledge_without_saved_run(self, controller, notifier, sound):
        controller.acknowledge_warning()
        assert controller.state is SessionState.BEFORE_START
        assert controller.session.start_time is None
        assert notifier.permission_requests == 1
        assert sound.plays == 0

    def test_acknowledge_resumes_saved_run(self, store, notifier, sound):
        store.set_start_time(at(0))
        c = SessionController(store, notifier, sound, now=lambda: at(150))
        c.acknowledge_warning()
        s = c.session
        assert s.state is SessionState.STARTED
        assert s.start_time == at(0)
        assert s.last_observed_minute == 2
        assert sound.plays == 1
        assert notifier.badges == [58]

    def test_acknowledge_ends_expired_saved_run(self, store, notifier, sound):
        store.set_start_time(at(0))
        c = SessionController(store, notifier, sound, now=lambda: at(4000))
        c.acknowledge_warning()
        assert c.state is SessionState.ENDED
        assert store.get_start_time() is None
        assert notifier.badges == [0]

    def test_acknowledge_twice_is_noop(self, controller, notifier):
        controller.acknowledge_warning()
        controller.acknowledge_warning()
        assert notifier.permission_requests == 1
        assert controller.state is SessionState.BEFORE_START

    def test_permission_failure_does_not_block(self, store, sound):
        c = SessionController(store, BrokenNotifier(), sound, now=lambda: T0)
        c.acknowledge_warning()
        assert c.state is SessionState.BEFORE_START

    def test_permission_denied_still_transitions(self, store, sound):
        c = SessionController(store, FakeNotifier(granted=False), sound, now=lambda: T0)
        c.acknowledge_warning()
        assert c.state is SessionState.BEFORE_START

    def test_unreadable_state_file_starts_fresh(self, store, notifier, sound):
        with open(store.path, "wb") as f:
            f.write(b'{"start_time": "\xff\xfe"}')
        c = SessionController(store, notifier, sound, now=lambda: T0)
        c.acknowledge_warning()
        assert c.state is SessionState.BEFORE_START

    def test_resume_saved_time_with_offset(self, store, notifier, sound):
        with open(store.path, "w", encoding="utf-8") as f:
            f.write('{"start_time": "2024-03-01T20:00:00+00:00"}')
        c = SessionController(store, notifier, sound, now=lambda: at(90))
        c.acknowledge_warning()
        c.on_tick(at(125))
        assert c.state is SessionState.STARTED
        assert c.session.last_observed_minute == 2

    def test_naive_tick_time_is_treated_as_local(self, store, notifier, sound):
        c = SessionController(store, notifier, sound)
        c.acknowledge_warning()
        start = datetime.datetime.now()
        c.start(start)
        c.on_tick(start + datetime.timedelta(seconds=61))
        assert c.session.start_time.tzinfo is not None
        assert c.session.last_observed_minute == 1


# ============================================================================
# Start and ticking
# ============================================================================

class TestRunning:

    def test_start_persists_and_cues_immediately(self, started, store, notifier, sound):
        s = started.session
        assert s.state is SessionState.STARTED
        assert s.start_time == T0
        assert s.last_observed_minute == 0
        assert store.get_start_time() == T0
        assert sound.plays == 1
        assert notifier.scheduled == [("60", 60, NOTIFICATION_DELAY_SECONDS)]
        assert notifier.badges == [60]

    def test_start_defaults_to_now(self, controller, store):
        controller.acknowledge_warning()
        controller.start()
        assert store.get_start_time() == T0

    def test_start_ignored_before_warning(self, controller, store, sound):
        controller.start(T0)
        assert controller.state is SessionState.SHOW_WARNING
        assert store.get_start_time() is None
        assert sound.plays == 0

    def test_start_ignored_while_running(self, started, store):
        started.start(at(30))
        assert started.session.start_time == T0
        assert store.get_start_time() == T0

    def test_same_minute_fires_nothing(self, started, sound):
        started.on_tick(at(59))
        assert started.session.last_observed_minute == 0
        assert sound.plays == 1

    def test_minute_boundary_fires_one_cue(self, started, notifier, sound):
        started.on_tick(at(60))
        assert started.session.last_observed_minute == 1
        assert sound.plays == 2
        assert notifier.scheduled[-1] == ("59", 59, NOTIFICATION_DELAY_SECONDS)
        assert notifier.badges[-1] == 59

    def test_repeated_ticks_within_minute(self, started, sound):
        started.on_tick(at(65))
        started.on_tick(at(66))
        assert sound.plays == 2
        assert started.session.last_observed_minute == 1

    def test_skipped_minutes_fire_once(self, started, sound, notifier):
        started.on_tick(at(305))
        assert started.session.last_observed_minute == 5
        assert sound.plays == 2
        assert notifier.badges[-1] == 55

    def test_last_observed_minute_is_monotonic(self, started):
        seen = []
        for offset in range(0, 3600, 13):
            started.on_tick(at(offset))
            seen.append(started.session.last_observed_minute)
        assert seen == sorted(seen)
        assert max(seen) < 60

    def test_backwards_clock_does_not_cue(self, started, sound):
        started.on_tick(at(-120))
        assert sound.plays == 1
        assert started.session.last_observed_minute == 0

    def test_clock_stepping_back_keeps_minute(self, started, sound):
        started.on_tick(at(310))
        started.on_tick(at(190))
        assert started.session.last_observed_minute == 5
        assert sound.plays == 2

    def test_spring_forward_does_not_end_run(self, controller, sound):
        # 00:30 GMT, then 31 real minutes later the wall clock reads 02:01 BST
        controller.acknowledge_warning()
        controller.start(datetime.datetime(2024, 3, 31, 0, 30, tzinfo=GMT))
        controller.on_tick(datetime.datetime(2024, 3, 31, 2, 1, tzinfo=BST))
        s = controller.session
        assert s.state is SessionState.STARTED
        assert s.last_observed_minute == 31
        assert sound.plays == 2

    def test_fall_back_keeps_cueing(self, controller, sound):
        # 01:30 BST, then 40 real minutes later the wall clock reads 01:10 GMT
        controller.acknowledge_warning()
        controller.start(datetime.datetime(2024, 10, 27, 1, 30, tzinfo=BST))
        controller.on_tick(datetime.datetime(2024, 10, 27, 1, 10, tzinfo=GMT))
        assert controller.session.last_observed_minute == 40
        assert sound.plays == 2

    def test_readout(self, started):
        r = started.readout(at(125))
        assert r.state is SessionState.STARTED
        assert r.total_time == "2:05"
        assert r.seconds_to_next == 55
        assert r.units_remaining == 58

    def test_sound_failure_is_swallowed(self, store, notifier):
        c = SessionController(store, notifier, BrokenSound(), now=lambda: T0)
        c.acknowledge_warning()
        c.start(T0)
        c.on_tick(at(60))
        assert c.session.last_observed_minute == 1
        assert notifier.badges == [60, 59]


# ============================================================================
# End and restart
# ============================================================================

class TestEnd:

    def test_hour_ends_run(self, started, store, notifier, sound):
        started.on_tick(at(3600))
        s = started.session
        assert s.state is SessionState.ENDED
        assert s.start_time == T0
        assert store.get_start_time() is None
        assert sound.plays == 2
        assert notifier.badges[-1] == 0
        assert notifier.scheduled[-1][1] == 0

    def test_ticks_after_end_are_ignored(self, started, sound):
        started.on_tick(at(3600))
        before = started.session
        started.on_tick(at(3700))
        started.on_tick(at(9999))
        assert started.session == before
        assert sound.plays == 2

    def test_restart(self, started, store, sound):
        started.on_tick(at(3600))
        started.restart(at(4000))
        s = started.session
        assert s.state is SessionState.STARTED
        assert s.start_time == at(4000)
        assert s.last_observed_minute == 0
        assert store.get_start_time() == at(4000)
        assert sound.plays == 3

    def test_restart_has_fresh_last_observed_minute(self, started, notifier):
        started.on_tick(at(3600))
        started.restart(at(4000))
        # -1 on the new run means the first tick cues at minute 0
        assert notifier.badges[-1] == 60

    def test_restart_ignored_while_running(self, started):
        started.restart(at(100))
        assert started.session.start_time == T0

    def test_readout_after_end(self, started):
        started.on_tick(at(3600))
        assert started.readout().units_remaining == 0


# ============================================================================
# Ticks outside a run
# ============================================================================

@pytest.mark.parametrize("prepare", ["warning", "before_start", "ended"])
def test_tick_outside_run_changes_nothing(controller, sound, notifier, prepare):
    if prepare != "warning":
        controller.acknowledge_warning()
    if prepare == "ended":
        controller.start(T0)
        controller.on_tick(at(3600))
    before = controller.session
    plays, badges = sound.plays, list(notifier.badges)
    pulse = controller.pulse

    controller.on_tick(at(5000))

    assert controller.session == before
    assert sound.plays == plays
    assert notifier.badges == badges
    assert controller.pulse == pulse + 1


# ============================================================================
# Publish / subscribe
# ============================================================================

class TestSubscribers:

    def test_subscriber_sees_each_change(self, controller):
        states = []
        controller.subscribe(lambda c: states.append(c.state))
        controller.acknowledge_warning()
        controller.start(T0)
        assert states[0] is SessionState.BEFORE_START
        assert states[-1] is SessionState.STARTED

    def test_unsubscribe(self, controller):
        calls = []
        unsubscribe = controller.subscribe(lambda c: calls.append(c.pulse))
        controller.on_tick()
        unsubscribe()
        controller.on_tick()
        assert calls == [1]

    def test_failing_subscriber_does_not_break_others(self, controller):
        calls = []

        def boom(c):
            raise ValueError("render failed")

        controller.subscribe(boom)
        controller.subscribe(lambda c: calls.append(c.state))
        controller.acknowledge_warning()
        assert calls == [SessionState.BEFORE_START]

    def test_session_is_a_copy(self, started):
        s = started.session
        s.last_observed_minute = 42
        assert started.session.last_observed_minute == 0

    def test_cue_count_tracks_cues(self, started):
        assert started.cue_count == 1
        started.on_tick(at(61))
        started.on_tick(at(62))
        assert started.cue_count == 2


# ============================================================================
# Concurrent callers
# ============================================================================

class TestSingleWriter:

    def test_threads_ticking_across_minutes_cue_once_per_minute(self, started, sound):
        seen = []
        started.subscribe(lambda c: seen.append(c.session.last_observed_minute))
        barrier = threading.Barrier(8)
        errors = []

        def worker():
            try:
                barrier.wait()
                for offset in range(0, 180):
                    started.on_tick(at(offset))
                    if offset % 45 == 0:
                        started.start(at(offset))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert seen == sorted(seen)
        assert started.session.last_observed_minute == 2
        assert started.session.start_time == T0
        # minute 0 at start, then minutes 1 and 2
        assert sound.plays == 3
        assert started.cue_count == 3
