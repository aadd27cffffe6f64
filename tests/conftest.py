import socket
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pytest

from wait_for_tcp.reporting import Level


class RecordingReporter:
    """Collects probe events in arrival order."""

    def __init__(self, on_event: Optional[Callable[["RecordingReporter"], None]] = None) -> None:
        self.events: List[Tuple[Level, str, Dict[str, Any]]] = []
        self._on_event = on_event

    def report(self, level: Level, message: str, fields: Mapping[str, Any]) -> None:
        self.events.append((level, message, dict(fields)))
        if self._on_event is not None:
            self._on_event(self)

    @property
    def messages(self) -> List[str]:
        return [message for _, message, _ in self.events]

    def count(self, suffix: str) -> int:
        return sum(1 for message in self.messages if message.endswith(suffix))


def open_listener(port: int = 0) -> socket.socket:
    """Listening socket on 127.0.0.1; the kernel backlog accepts connects."""

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", port))
    sock.listen(16)
    return sock


@pytest.fixture
def listener():
    sock = open_listener()
    yield sock
    sock.close()


@pytest.fixture
def closed_port() -> int:
    """A port on 127.0.0.1 that nothing listens on."""

    sock = open_listener()
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def lookup_from():
    def _factory(env: Mapping[str, str]) -> Callable[[str], Optional[str]]:
        return env.get

    return _factory
