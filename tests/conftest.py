import itertools
import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterator, List

import pytest

from agent_display.machine.input_request import InputRequestManager
from agent_display.session import DisplaySession, Snapshot


def sequential_ids(prefix: str = "r") -> Callable[[], str]:
    """Request id factory producing r1, r2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


class FakeTransport:
    """Stands in for a websocket connection in broadcaster tests."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[str] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def messages(self) -> List[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]


class SnapshotRecorder:
    """Session listener that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots: List[Snapshot] = []

    def __call__(self, snapshot: Snapshot) -> None:
        self.snapshots.append(snapshot)

    @property
    def last(self) -> Snapshot:
        return self.snapshots[-1]


@pytest.fixture
def session() -> DisplaySession:
    return DisplaySession(inputs=InputRequestManager(id_factory=sequential_ids()))


@pytest.fixture
def recorder(session: DisplaySession) -> SnapshotRecorder:
    rec = SnapshotRecorder()
    session.subscribe(rec)
    return rec


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep log files and AGENT_DISPLAY_* settings out of the real environment."""
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for key in (
        "AGENT_DISPLAY_HOST",
        "AGENT_DISPLAY_PORT",
        "AGENT_DISPLAY_LOG_LEVEL",
        "AGENT_DISPLAY_MAX_HISTORY",
    ):
        monkeypatch.delenv(key, raising=False)

    # setup_logging() reconfigures the package logger; undo that after each test
    package_logger = logging.getLogger("agent_display")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
            handler.close()
    package_logger.setLevel(level)
    package_logger.propagate = propagate
