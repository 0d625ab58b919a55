"""Decision callbacks for the apply engine."""

import logging
from typing import Optional

from config import Credentials
from kube.client import KubeClient, is_success
from kube.endpoints import resolve_endpoint
from kube.resources import supports
from manifest import ManifestFieldError, ManifestObject

logger = logging.getLogger(__name__)

CONFLICT = 409


def log_status(
    status: int, verb: str, request: ManifestObject, response: ManifestObject,
) -> tuple[str, Optional[ManifestObject]]:
    """Log the outcome and never ask for a follow-up."""
    if is_success(status):
        logger.info(f"{verb} {request.describe()}: {status}")
    else:
        logger.warning(f"{verb} {request.describe()}: {status} {response.get('message', '')}")
    return '', None


class UpdateOnConflict:
    """Turn a creation conflict into an update of the existing object.

    On 409 for POST the current object is fetched and its resourceVersion
    copied onto the request, which is then re-sent with PUT. Kinds that
    cannot be read or replaced (e.g. ProjectRequest) already exist, so the
    conflict response is accepted as the result.
    """

    def __init__(self, credentials: Credentials):
        self.credentials = credentials

    def __call__(
        self, status: int, verb: str, request: ManifestObject, response: ManifestObject,
    ) -> tuple[str, Optional[ManifestObject]]:
        log_status(status, verb, request, response)
        if status != CONFLICT or verb != 'POST':
            return '', None

        kind = request.get('kind')
        if not (supports('GET', kind) and supports('PUT', kind)):
            logger.info(f"{request.describe()} already exists")
            return '', response

        client = KubeClient(self.credentials)
        current_status, current = client.request('GET', resolve_endpoint('GET', request))
        if not is_success(current_status):
            logger.warning(f"Could not read {request.describe()} after conflict: {current_status}")
            return '', None

        try:
            version = ManifestObject(current).resource_version
        except ManifestFieldError as e:
            logger.warning(f"Cannot update {request.describe()}: {e}")
            return '', None

        updated = request.copy()
        updated.set_resource_version(version)
        logger.debug(f"Updating {request.describe()} at resourceVersion {version}")
        return 'PUT', updated
