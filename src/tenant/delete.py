"""Tenant deletion: remove the primary and satellite namespaces."""

import logging
from typing import Optional

from common import DriverError, MultiError
from config import Credentials
from kube.apply import ApplyOptions, DecisionCallback, apply_object
from kube.client import APIError, KubeClient
from manifest import ManifestObject
from tenant.init_tenant import satellite_namespaces

logger = logging.getLogger(__name__)

NOT_FOUND = 404


def namespace_object(name: str, is_openshift: bool) -> ManifestObject:
    kind = 'Project' if is_openshift else 'Namespace'
    api_version = 'project.openshift.io/v1' if is_openshift else 'v1'
    return ManifestObject({'apiVersion': api_version, 'kind': kind, 'metadata': {'name': name}})


def delete_tenant(
    credentials: Credentials,
    name: str,
    is_openshift: Optional[bool] = None,
    callback: Optional[DecisionCallback] = None,
) -> list[str]:
    """Delete a tenant's namespaces, satellites first.

    Namespaces that are already gone are skipped. A failure for one
    namespace does not stop the others.

    Returns:
        Namespaces deleted

    Raises:
        MultiError: Every deletion that failed
    """
    if is_openshift is None:
        is_openshift = KubeClient(credentials).is_openshift()

    options = ApplyOptions(credentials=credentials, callback=callback)
    errors = MultiError()
    deleted = []
    for namespace in satellite_namespaces(name) + [name]:
        obj = namespace_object(namespace, is_openshift)
        try:
            apply_object(obj, 'DELETE', options)
        except APIError as e:
            if e.status == NOT_FOUND:
                logger.info(f"{obj.describe()} already deleted")
                continue
            errors.append(e)
        except DriverError as e:
            errors.append(e)
        else:
            logger.info(f"Deleted {obj.describe()}")
            deleted.append(namespace)

    if errors:
        raise errors
    return deleted
