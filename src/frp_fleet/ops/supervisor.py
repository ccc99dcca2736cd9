"""Service supervisor contract and its systemd implementation."""

from __future__ import annotations

import shutil
import subprocess
from enum import Enum
from typing import Protocol

from ..common.exceptions import SupervisorError
from ..common.logging import get_logger
from ..common.settings import FleetSettings

logger = get_logger(__name__)


class ServiceStatus(str, Enum):
    """Service state as reported by the supervisor."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ServiceSupervisor(Protocol):
    """Protocol for the OS process supervisor driving managed services."""

    def start(self, service: str) -> None:
        """Start a service. Raises SupervisorError on failure."""
        ...

    def stop(self, service: str) -> None:
        """Stop a service. Raises SupervisorError on failure."""
        ...

    def restart(self, service: str) -> None:
        """Restart a service. Raises SupervisorError on failure."""
        ...

    def reload(self, service: str) -> None:
        """Reload a service's configuration. Raises SupervisorError on failure."""
        ...

    def status(self, service: str) -> ServiceStatus:
        """Current state of a service."""
        ...


class SystemdSupervisor:
    """ServiceSupervisor backed by ``systemctl``.

    Starting an active unit and stopping an inactive one are no-ops. Failures
    carry systemctl's own stderr text.
    """

    def __init__(self, settings: FleetSettings, systemctl: str | None = None):
        self.settings = settings
        self.systemctl = systemctl or shutil.which("systemctl") or "systemctl"
        self.timeout = settings.supervisor_timeout

    def _run(self, service: str, *args: str) -> subprocess.CompletedProcess[str]:
        command = [self.systemctl, *args]
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SupervisorError(
                service, f"systemctl {args[0]} timed out after {self.timeout}s"
            ) from e
        except OSError as e:
            raise SupervisorError(service, f"Failed to run systemctl: {e}") from e

    def _verb(self, verb: str, service: str) -> None:
        result = self._run(service, verb, service)
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip()
            raise SupervisorError(
                service, message or f"systemctl {verb} exited with code {result.returncode}"
            )
        logger.info(f"Service {verb} succeeded", service=service)

    def start(self, service: str) -> None:
        if self.status(service) is ServiceStatus.ACTIVE:
            logger.warning("Service is already running", service=service)
            return
        self._verb("start", service)

    def stop(self, service: str) -> None:
        if self.status(service) is not ServiceStatus.ACTIVE:
            logger.warning("Service is not running", service=service)
            return
        self._verb("stop", service)

    def restart(self, service: str) -> None:
        self._verb("restart", service)

    def reload(self, service: str) -> None:
        self._verb("reload", service)

    def status(self, service: str) -> ServiceStatus:
        try:
            result = self._run(service, "is-active", service)
        except SupervisorError as e:
            logger.warning("Cannot query service status", service=service, error=e.message)
            return ServiceStatus.UNKNOWN

        state = result.stdout.strip()
        if state in ("active", "reloading", "activating"):
            return ServiceStatus.ACTIVE
        if state == "failed":
            return ServiceStatus.FAILED
        if state in ("inactive", "deactivating"):
            return ServiceStatus.INACTIVE
        return ServiceStatus.UNKNOWN

    def list_services(self) -> list[str]:
        """Installed service units carrying the configured prefix."""
        result = self._run(
            "*",
            "list-unit-files",
            "--type=service",
            "--all",
            "--no-pager",
            "--no-legend",
        )
        prefix = f"{self.settings.service_prefix}-"
        services = []
        for line in result.stdout.splitlines():
            fields = line.split()
            if not fields:
                continue
            unit = fields[0]
            if unit.startswith(prefix) and unit.endswith(".service"):
                services.append(unit.removesuffix(".service"))
        return sorted(services)
