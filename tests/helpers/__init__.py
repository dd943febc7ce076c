from .fakes import FailingHistoryStore, RecordingNotifier, ScriptedSubsystem, StaticFetcher
from .http import mock_client, raising, replying
from .setup import NOW, TEST_CFG, make_pipeline
from .wire import (
    COORDINATOR,
    PUBLIC_V4,
    PUBLIC_V6,
    body,
    notif,
    server_time,
    task,
)

__all__ = [
    "COORDINATOR",
    "FailingHistoryStore",
    "NOW",
    "PUBLIC_V4",
    "PUBLIC_V6",
    "RecordingNotifier",
    "ScriptedSubsystem",
    "StaticFetcher",
    "TEST_CFG",
    "body",
    "make_pipeline",
    "mock_client",
    "notif",
    "raising",
    "replying",
    "server_time",
    "task",
]
