"""HTTP client for the cluster REST API.

Requests carry a bearer token and YAML bodies; responses are decoded with
PyYAML (JSON is a subset, so either wire format works).
"""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import requests
import urllib3
import yaml

from common import DriverError
from config import Credentials
from kube.resources import get_resource
from manifest import ManifestObject

logger = logging.getLogger(__name__)

YAML_CONTENT = 'application/yaml'
MERGE_PATCH_CONTENT = 'application/merge-patch+json'
ACCEPT = 'application/json, application/yaml'

DEFAULT_TIMEOUT = 30

DELETE_OPTIONS = {
    'apiVersion': 'v1',
    'kind': 'DeleteOptions',
    'gracePeriodSeconds': 0,
    'orphanDependents': False,
}


class TransportError(DriverError):
    """Network, TLS or DNS failure talking to the cluster."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__("E200", f"Request to {url} failed: {cause}")


class APIError(DriverError):
    """Cluster answered with an error status or an undecodable body."""

    def __init__(self, status: int, message: str, verb: str = '', target: str = ''):
        self.status = status
        self.verb = verb
        self.target = target
        prefix = f"{verb} {target} " if verb and target else ''
        super().__init__("E201", f"{prefix}returned {status}: {message}")


def is_success(status: int) -> bool:
    return 200 <= status < 300


def status_message(body: dict, default: str = '') -> str:
    """Human-readable message from a Status response body."""
    message = body.get('message') if isinstance(body, dict) else None
    return message if isinstance(message, str) and message else default


class KubeClient:
    """Thin REST client bound to one set of credentials.

    Args:
        credentials: Cluster URL, bearer token and optional transport override
        timeout: Per-request timeout in seconds
    """

    def __init__(self, credentials: Credentials, timeout: float = DEFAULT_TIMEOUT):
        self.credentials = credentials
        self.timeout = timeout
        self._http = credentials.session or requests
        if credentials.insecure:
            # Self-signed development clusters
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def url(self, path: str) -> str:
        return f"{self.credentials.base_url}{path}"

    def headers(self, content_type: str = YAML_CONTENT) -> dict[str, str]:
        return {
            'Accept': ACCEPT,
            'Content-Type': content_type,
            'Authorization': f"Bearer {self.credentials.token}",
        }

    def request(
        self,
        verb: str,
        path: str,
        body: Optional[str] = None,
        content_type: str = YAML_CONTENT,
        timeout: Optional[float] = None,
    ) -> tuple[int, dict]:
        """Issue one request and decode the response body.

        timeout overrides the client default for this request only.

        Returns:
            (status_code, decoded body); an empty body decodes to {}

        Raises:
            TransportError: On connection, TLS or timeout failures
            APIError: If the body is not a YAML/JSON mapping
        """
        url = self.url(path)
        logger.debug(f"{verb} {url}")
        try:
            resp = self._http.request(
                verb,
                url,
                headers=self.headers(content_type),
                data=body.encode('utf-8') if body is not None else None,
                verify=self.credentials.verify,
                timeout=self.timeout if timeout is None else timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(url, e) from e

        text = resp.text or ''
        try:
            decoded: Any = yaml.safe_load(text) if text.strip() else {}
        except yaml.YAMLError as e:
            raise APIError(resp.status_code, f"undecodable response body: {e}", verb, url) from e
        if decoded is None:
            decoded = {}
        if not isinstance(decoded, dict):
            raise APIError(
                resp.status_code,
                f"expected a mapping in response body, got {type(decoded).__name__}",
                verb, url,
            )
        logger.debug(f"{verb} {url} -> {resp.status_code}")
        return resp.status_code, decoded

    def _checked(
        self,
        verb: str,
        path: str,
        body: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        status, decoded = self.request(verb, path, body, timeout=timeout)
        if not is_success(status):
            raise APIError(status, status_message(decoded, 'request failed'), verb, path)
        return decoded

    def _path(self, kind: str, namespace: str = '', name: str = '') -> str:
        resource = get_resource(kind)
        if resource is None:
            raise APIError(0, f"kind {kind} is not in the resource catalog")
        template = resource.item_template if name else resource.collection_template
        return template.format(namespace=namespace, name=name)

    def get(
        self,
        kind: str,
        name: str,
        namespace: str = '',
        timeout: Optional[float] = None,
    ) -> ManifestObject:
        """Fetch one object.

        Raises:
            APIError: On a non-2xx response (including 404)
        """
        path = self._path(kind, namespace, name)
        return ManifestObject(self._checked('GET', path, timeout=timeout))

    def list_objects(self, kind: str, namespace: str = '', selector: str = '') -> list[ManifestObject]:
        """List objects of a kind, optionally filtered by a label selector."""
        path = self._path(kind, namespace)
        if selector:
            path = f"{path}?{urlencode({'labelSelector': selector})}"
        body = self._checked('GET', path)
        items = body.get('items') or []
        if not isinstance(items, list):
            raise APIError(200, f"list of {kind} has malformed 'items'", 'GET', path)
        objects = []
        for item in items:
            if not isinstance(item, dict):
                continue
            # List items omit kind
            item.setdefault('kind', kind)
            objects.append(ManifestObject(item))
        return objects

    def delete(self, kind: str, name: str, namespace: str = '') -> None:
        """Delete one object immediately (zero grace period, no orphans)."""
        body = yaml.safe_dump(DELETE_OPTIONS, default_flow_style=False, sort_keys=False)
        self._checked('DELETE', self._path(kind, namespace, name), body)

    def root_paths(self) -> list[str]:
        """API paths the cluster advertises at '/'."""
        body = self._checked('GET', '/')
        paths = body.get('paths') or []
        return [p for p in paths if isinstance(p, str)]

    def is_openshift(self) -> bool:
        """True if the cluster exposes the OpenShift API groups."""
        for path in self.root_paths():
            if path == '/oapi' or path.startswith('/apis/project.openshift.io'):
                return True
        return False
