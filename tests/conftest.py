"""Shared pytest fixtures for frp-fleet tests."""

import threading
from pathlib import Path

import pytest

from frp_fleet.common.exceptions import SupervisorError
from frp_fleet.common.settings import FleetSettings
from frp_fleet.index.indexer import Indexer
from frp_fleet.index.query import QueryEngine
from frp_fleet.index.tags import TagManager
from frp_fleet.ops.supervisor import ServiceStatus

SERVER_CONFIG = """bindAddr = "0.0.0.0"
bindPort = 7000
auth.token = "server-secret-token"
"""


def client_config(server_addr: str = "10.0.0.1", server_port: int = 7000, proxies: int = 1) -> str:
    """Render a minimal frpc TOML document."""
    lines = [
        f'serverAddr = "{server_addr}"',
        f"serverPort = {server_port}",
        'auth.token = "client-secret-token"',
        "",
    ]
    for i in range(proxies):
        lines += [
            "[[proxies]]",
            f'name = "proxy-{i}"',
            'type = "tcp"',
            f"localPort = {8000 + i}",
            f"remotePort = {9000 + i}",
            "",
        ]
    return "\n".join(lines)


VISITOR_CONFIG = """serverAddr = "10.0.0.9"
serverPort = 7000

[[visitors]]
name = "secret_ssh_visitor"
type = "stcp"
serverName = "secret_ssh"
bindPort = 6000
"""


@pytest.fixture
def settings(tmp_path: Path) -> FleetSettings:
    """Settings rooted in a temporary directory.

    Returns:
        FleetSettings: config_dir and index_root under tmp_path
    """
    config_dir = tmp_path / "frp"
    config_dir.mkdir()
    return FleetSettings(
        config_dir=config_dir,
        index_root=tmp_path / "data",
        restart_cooldown=0.0,
    )


@pytest.fixture
def write_config(settings: FleetSettings):
    """Write a config file into the managed directory.

    Returns:
        Callable[[str, str], Path]: (file name, content) -> resolved path
    """

    def _write(name: str, content: str) -> Path:
        path = settings.config_dir / name
        path.write_text(content)
        return path.resolve()

    return _write


@pytest.fixture
def indexer(settings: FleetSettings) -> Indexer:
    return Indexer(settings)


@pytest.fixture
def query(settings: FleetSettings, indexer: Indexer) -> QueryEngine:
    return QueryEngine(settings, indexer)


@pytest.fixture
def tags(query: QueryEngine) -> TagManager:
    return TagManager(query)


@pytest.fixture
def fleet_files(write_config):
    """A server, three clients and a visitor on disk.

    Returns:
        dict[str, Path]: file name -> resolved path
    """
    files = {
        "frps.toml": write_config("frps.toml", SERVER_CONFIG),
        "frpc-a.toml": write_config("frpc-a.toml", client_config("10.0.0.1", proxies=2)),
        "frpc-b.toml": write_config("frpc-b.toml", client_config("10.0.0.1", proxies=1)),
        "frpc-c.toml": write_config("frpc-c.toml", client_config("10.0.0.2", 7001, proxies=3)),
        "visitor.toml": write_config("visitor.toml", VISITOR_CONFIG),
    }
    return files


class FakeSupervisor:
    """In-memory ServiceSupervisor recording every call.

    Services listed in ``failing`` raise SupervisorError for every verb.
    """

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.calls: list[tuple[str, str]] = []
        self.states: dict[str, ServiceStatus] = {}
        self._lock = threading.Lock()

    def _call(self, verb: str, service: str, state: ServiceStatus | None) -> None:
        with self._lock:
            self.calls.append((verb, service))
        if service in self.failing:
            raise SupervisorError(service, f"Job for {service}.service failed")
        if state is not None:
            self.states[service] = state

    def start(self, service: str) -> None:
        self._call("start", service, ServiceStatus.ACTIVE)

    def stop(self, service: str) -> None:
        self._call("stop", service, ServiceStatus.INACTIVE)

    def restart(self, service: str) -> None:
        self._call("restart", service, ServiceStatus.ACTIVE)

    def reload(self, service: str) -> None:
        self._call("reload", service, None)

    def status(self, service: str) -> ServiceStatus:
        return self.states.get(service, ServiceStatus.UNKNOWN)

    def services_for(self, verb: str) -> list[str]:
        return [service for v, service in self.calls if v == verb]


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()
