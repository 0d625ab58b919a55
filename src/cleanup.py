"""Best-effort bulk cleanup of tenant namespaces.

Kinds are swept in a fixed order: OpenShift build/deploy/route kinds first
(when applicable), then native workloads and configuration, and for the
primary tenant namespace only, volumes, pods and the namespace itself.

Unlike apply, a failure never stops the sweep: it is logged as a warning,
recorded, and the next kind is processed. Cleanup is safe to re-run.
"""

import logging
from typing import Iterable, Optional

from common import DriverError, SweepReport
from kube.client import KubeClient
from kube.resources import get_resource
from tenant.init_tenant import satellite_namespaces

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = 'provider=fabric8'

PLATFORM_KINDS = ('DeploymentConfig', 'Build', 'BuildConfig', 'Route')
NATIVE_KINDS = (
    'Deployment',
    'ReplicationController',
    'ReplicaSet',
    'Service',
    'Secret',
    'Ingress',
    'ConfigMap',
    'ServiceAccount',
)
PRIMARY_ONLY_KINDS = ('PersistentVolumeClaim', 'Pod')


def cleanup_kinds(is_openshift: bool, primary: bool = True) -> list[str]:
    """Kinds to sweep, in order."""
    kinds = list(PLATFORM_KINDS) if is_openshift else []
    for kind in NATIVE_KINDS:
        # Routes replace ingress rules on OpenShift
        if kind == 'Ingress' and is_openshift:
            continue
        kinds.append(kind)
    if primary:
        kinds.extend(PRIMARY_ONLY_KINDS)
        kinds.append('Project' if is_openshift else 'Namespace')
    return kinds


class CleanupSweeper:
    """Delete every object matching a selector, kind by kind.

    Args:
        client: Cluster client
        kinds: Kinds to sweep in order (see cleanup_kinds)
    """

    def __init__(self, client: KubeClient, kinds: Iterable[str]):
        self.client = client
        self.kinds = list(kinds)

    def _record(self, report: SweepReport, message: str, error: DriverError) -> None:
        logger.warning(f"{message}: {error}")
        report.errors.append(error)

    def sweep(self, namespace: str, selector: str = DEFAULT_SELECTOR) -> SweepReport:
        """Sweep one namespace. Never raises for cluster errors."""
        report = SweepReport(namespace=namespace)
        for kind in self.kinds:
            try:
                matches = self.client.list_objects(kind, namespace, selector)
            except DriverError as e:
                self._record(report, f"Failed to list {kind} in {namespace}", e)
                continue

            resource = get_resource(kind)
            for obj in matches:
                try:
                    name = obj.name
                    # Cluster-scoped kinds: only the namespace being swept
                    if resource is not None and not resource.namespaced and name != namespace:
                        continue
                    self.client.delete(kind, name, namespace)
                except DriverError as e:
                    self._record(report, f"Failed to delete {obj.describe()} in {namespace}", e)
                    continue
                logger.info(f"Deleted {kind} {name} in {namespace}")
                report.deleted.append(f"{kind}/{name}")
        return report


def cleanup(
    client: KubeClient,
    namespace: str,
    selector: str = DEFAULT_SELECTOR,
    is_openshift: Optional[bool] = None,
    primary: bool = True,
) -> list[Exception]:
    """Sweep one namespace with the default kind catalog.

    Returns:
        Errors that were logged as warnings
    """
    if is_openshift is None:
        is_openshift = client.is_openshift()
    sweeper = CleanupSweeper(client, cleanup_kinds(is_openshift, primary=primary))
    return sweeper.sweep(namespace, selector).errors


def cleanup_tenant(
    client: KubeClient,
    name: str,
    selector: str = DEFAULT_SELECTOR,
    is_openshift: Optional[bool] = None,
) -> list[SweepReport]:
    """Sweep a tenant's satellite namespaces, then its primary namespace."""
    if is_openshift is None:
        is_openshift = client.is_openshift()

    reports = []
    for namespace in satellite_namespaces(name):
        sweeper = CleanupSweeper(client, cleanup_kinds(is_openshift, primary=False))
        reports.append(sweeper.sweep(namespace, selector))
    sweeper = CleanupSweeper(client, cleanup_kinds(is_openshift, primary=True))
    reports.append(sweeper.sweep(name, selector))
    return reports
