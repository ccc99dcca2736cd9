"""TCP reachability checks for rendezvous servers."""

import socket
import threading
import time
from collections.abc import Callable, Iterable

from ..common.exceptions import ProbeError, ProbeRefusedError, ProbeTimeoutError
from ..common.logging import get_logger
from ..common.settings import FleetSettings
from ..common.utils import validate_port
from ..index.models import ConfigRecord
from .executor import BatchResult, OperationExecutor, ProgressCallback

logger = get_logger(__name__)

Connector = Callable[..., socket.socket]


def split_endpoint(endpoint: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into host and port.

    Raises:
        ValueError: If the endpoint has no valid port
    """
    host, sep, port_text = endpoint.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Endpoint must be host:port, got '{endpoint}'")
    host = host.strip("[]")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in endpoint '{endpoint}'") from None
    validate_port(port)
    return host, port


class ConnectivityProber:
    """Raw TCP connect probes run through the operation executor.

    No protocol handshake is attempted; a completed TCP connect counts as
    reachable. Each attempt is bounded by ``settings.probe_timeout`` so a
    batch takes roughly ``ceil(N / max_parallel) * timeout`` at worst.
    """

    def __init__(
        self,
        settings: FleetSettings,
        executor: OperationExecutor | None = None,
        connect: Connector = socket.create_connection,
    ):
        self.settings = settings
        self.timeout = settings.probe_timeout
        self.executor = executor or OperationExecutor(settings.probe_max_parallel)
        self._connect = connect

    def probe(self, host: str, port: int, timeout: float | None = None) -> float:
        """Attempt one TCP connect.

        Returns:
            Seconds taken to connect

        Raises:
            ProbeTimeoutError: If no connection is made within the timeout
            ProbeRefusedError: If the endpoint refuses the connection
            ProbeError: On any other socket error (e.g. DNS failure)
        """
        validate_port(port)
        timeout = self.timeout if timeout is None else timeout
        started = time.monotonic()
        try:
            with self._connect((host, port), timeout=timeout):
                pass
        except TimeoutError as e:
            raise ProbeTimeoutError(f"{host}:{port} timed out after {timeout}s") from e
        except ConnectionRefusedError as e:
            raise ProbeRefusedError(f"{host}:{port} refused connection") from e
        except OSError as e:
            raise ProbeError(f"{host}:{port} unreachable: {e}") from e
        return time.monotonic() - started

    def probe_endpoint(self, endpoint: str) -> float:
        """Probe a ``host:port`` string."""
        host, port = split_endpoint(endpoint)
        return self.probe(host, port)

    def probe_endpoints(
        self,
        endpoints: Iterable[str],
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Probe unique ``host:port`` endpoints concurrently."""
        unique = list(dict.fromkeys(endpoints))
        logger.info(
            "Testing connectivity",
            servers=len(unique),
            timeout=self.timeout,
        )
        return self.executor.execute(
            unique,
            self.probe_endpoint,
            operation="probe",
            max_parallel=max_parallel,
            progress=progress,
            cancel=cancel,
        )

    def test_records(
        self,
        records: Iterable[ConfigRecord],
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Probe the rendezvous server of every record that has one.

        Records without server address or port are reported as skipped by
        path. Records sharing an endpoint are probed once.
        """
        endpoints: list[str] = []
        missing: list[str] = []
        for record in records:
            if record.endpoint is None:
                missing.append(record.path)
            else:
                endpoints.append(record.endpoint)

        if missing:
            logger.debug("Skipping configs without server endpoint", count=len(missing))

        if not endpoints:
            logger.warning("No server endpoints to test")
            return BatchResult(
                operation="probe",
                total=len(missing),
                max_parallel=max_parallel or self.executor.max_parallel,
                skipped=missing,
            )

        result = self.probe_endpoints(endpoints, max_parallel, progress, cancel)
        return result.model_copy(
            update={
                "total": result.total + len(missing),
                "skipped": result.skipped + missing,
            }
        )
