"""Wait for workloads to become ready.

A workload is ready when it reports zero unavailable replicas and at least
one available replica. Deployments are always checked; DeploymentConfigs are
checked first on OpenShift clusters.

One deadline covers the whole wait, not each workload. A read error ends
the wait immediately, whether the workload is missing or the API failed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from common import DriverError
from kube.client import KubeClient, TransportError
from manifest import ManifestObject

logger = logging.getLogger(__name__)

DEFAULT_MAX_WAIT = 60 * 60.0
DEFAULT_POLL_INTERVAL = 1.0

# Floor for a status read issued just before the deadline
MIN_READ_TIMEOUT = 0.1


class ReadinessTimeoutError(DriverError):
    """Workloads were not ready before the deadline."""

    def __init__(self, max_wait: float, pending: str = ''):
        self.max_wait = max_wait
        self.pending = pending
        detail = f" ({pending} not ready)" if pending else ''
        super().__init__("E300", f"Timed out waiting for deployments after {max_wait:g}s{detail}")


class Deadline:
    """Timer armed once for a whole wait operation.

    Use as a context manager; the timer is cancelled on exit.
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._started: Optional[float] = None
        self._expired = threading.Event()
        self._timer = threading.Timer(seconds, self._expired.set)
        self._timer.daemon = True

    def __enter__(self) -> 'Deadline':
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()

    def start(self) -> None:
        self._started = time.monotonic()
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def expired(self) -> bool:
        if self._expired.is_set():
            return True
        return self._started is not None and self.remaining() == 0.0

    def remaining(self) -> float:
        """Seconds left before the deadline fires."""
        if self._started is None:
            return self.seconds
        return max(0.0, self.seconds - (time.monotonic() - self._started))

    def wait(self, interval: float) -> bool:
        """Sleep for interval; True if the deadline fired meanwhile."""
        return self._expired.wait(interval)


@dataclass
class ReplicaStatus:
    """Replica counts reported by a workload."""
    available: int = 0
    unavailable: int = 0
    replicas: int = 0

    @property
    def is_ready(self) -> bool:
        return self.unavailable == 0 and self.available > 0

    @classmethod
    def from_object(cls, obj: ManifestObject) -> 'ReplicaStatus':
        # The API omits zero counts
        status = obj.get('status') or {}
        return cls(
            available=int(status.get('availableReplicas') or 0),
            unavailable=int(status.get('unavailableReplicas') or 0),
            replicas=int(status.get('replicas') or 0),
        )


StatusFetcher = Callable[[str], ReplicaStatus]


def wait_for_resource(
    fetch: StatusFetcher,
    name: str,
    interval: float,
    deadline: Deadline,
    kind: str = 'Deployment',
) -> ReplicaStatus:
    """Poll one workload until it is ready.

    Raises:
        ReadinessTimeoutError: If the deadline fires first, including while
                               a status read is in flight
        DriverError: Whatever fetch raises (aborts the whole wait)
    """
    logger.info(f"{kind} {name} waiting for it to be ready...")
    while True:
        if deadline.expired:
            raise ReadinessTimeoutError(deadline.seconds, f"{kind} {name}")
        try:
            status = fetch(name)
        except TransportError as e:
            if deadline.expired:
                raise ReadinessTimeoutError(deadline.seconds, f"{kind} {name}") from e
            raise
        if status.is_ready:
            logger.info(f"{kind} {name} now has {status.available} available replicas")
            return status
        logger.debug(
            f"{kind} {name}: {status.available} available, {status.unavailable} unavailable"
        )
        if deadline.wait(interval):
            raise ReadinessTimeoutError(deadline.seconds, f"{kind} {name}")


def _fetcher(client: KubeClient, kind: str, namespace: str, deadline: Deadline) -> StatusFetcher:
    def fetch(name: str) -> ReplicaStatus:
        # A read may not outlive the deadline
        timeout = min(client.timeout, max(deadline.remaining(), MIN_READ_TIMEOUT))
        return ReplicaStatus.from_object(client.get(kind, name, namespace, timeout=timeout))
    return fetch


def workload_kinds(is_openshift: bool) -> list[str]:
    """Workload kinds to wait for, in order."""
    if is_openshift:
        return ['DeploymentConfig', 'Deployment']
    return ['Deployment']


def wait_for_ready(
    client: KubeClient,
    names: list[str],
    namespace: str,
    wait_all: bool = False,
    max_wait: float = DEFAULT_MAX_WAIT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    is_openshift: Optional[bool] = None,
) -> None:
    """Wait until the named workloads (or all of them) are ready.

    Args:
        client: Cluster client
        names: Workload names; ignored when wait_all is set
        namespace: Namespace to watch
        wait_all: Wait for every workload in the namespace
        max_wait: Deadline for the whole operation, in seconds
        poll_interval: Sleep between status reads, in seconds
        is_openshift: Platform; detected from the cluster when None

    Raises:
        ValueError: If neither names nor wait_all is given
        ReadinessTimeoutError: If the deadline fires first
        DriverError: First read error
    """
    if not wait_all and not names:
        raise ValueError("Specify workload names or wait for all")

    with Deadline(max_wait) as deadline:
        if is_openshift is None:
            is_openshift = client.is_openshift()
        logger.info(f"Waiting for deployments to be ready in namespace {namespace}")

        for kind in workload_kinds(is_openshift):
            if wait_all:
                targets = [obj.name for obj in client.list_objects(kind, namespace)]
            else:
                targets = list(names)
            fetch = _fetcher(client, kind, namespace, deadline)
            for name in targets:
                wait_for_resource(fetch, name, poll_interval, deadline, kind)

    logger.info("Deployments are ready now")
