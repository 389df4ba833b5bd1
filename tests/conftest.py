"""Shared pytest fixtures: fake notifier and sound, a file-backed store."""

import datetime

import pytest

from cue_services import StartTimeStore
from session_controller import SessionController

T0 = datetime.datetime(2024, 3, 1, 20, 0, 0, tzinfo=datetime.timezone.utc)


class FakeNotifier:
    def __init__(self, granted=True):
        self.granted = granted
        self.permission_requests = 0
        self.scheduled = []
        self.badges = []

    def request_permission(self, callback):
        self.permission_requests += 1
        callback(self.granted)

    def schedule_notification(self, body_text, badge_count, delay_seconds):
        self.scheduled.append((body_text, badge_count, delay_seconds))

    def set_badge_count(self, count):
        self.badges.append(count)


class FakeSound:
    def __init__(self):
        self.plays = 0

    def play_cue(self):
        self.plays += 1


@pytest.fixture
def store(tmp_path):
    return StartTimeStore(str(tmp_path / "state.json"))


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def sound():
    return FakeSound()


@pytest.fixture
def controller(store, notifier, sound):
    return SessionController(store, notifier, sound, now=lambda: T0)


@pytest.fixture
def started(controller):
    """Controller that has acknowledged the warning and started at T0."""
    controller.acknowledge_warning()
    controller.start(T0)
    return controller
