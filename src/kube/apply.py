"""Apply engine: push manifests to the cluster one object at a time.

Objects are applied strictly in order (kind priority encodes dependencies)
and the batch stops at the first failure. Nothing already applied is rolled
back; re-applying the same document is the recovery path.

An optional decision callback sees every response and may ask for one
follow-up request, e.g. turning a POST conflict into a PUT that carries the
server's current resourceVersion.
"""

import json
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import yaml

from config import Credentials
from kube.client import (
    DELETE_OPTIONS,
    MERGE_PATCH_CONTENT,
    YAML_CONTENT,
    APIError,
    KubeClient,
    is_success,
    status_message,
)
from kube.endpoints import resolve_endpoint
from manifest import ManifestObject, parse_objects, sort_by_kind, validate_kinds

logger = logging.getLogger(__name__)

# Give the control plane time to finish namespace creation before the
# objects that live inside it are submitted
FIRST_OBJECT_PAUSE = 2.0

# (status_code, verb, request, response) -> (next_verb, next_object)
DecisionCallback = Callable[
    [int, str, ManifestObject, ManifestObject],
    tuple[str, Optional[ManifestObject]],
]

APPLYING = 'applying'
RETRYING = 'retrying'


@dataclass
class ApplyOptions:
    """Where and how to apply.

    Attributes:
        credentials: Identity used for every request
        namespace: Default namespace for objects that declare none
        callback: Decision callback consulted after each response
    """
    credentials: Credentials
    namespace: str = ''
    callback: Optional[DecisionCallback] = None

    def with_namespace(self, namespace: str) -> 'ApplyOptions':
        return replace(self, namespace=namespace)

    def with_credentials(self, credentials: Credentials) -> 'ApplyOptions':
        return replace(self, credentials=credentials)


def encode_body(obj: ManifestObject, verb: str) -> tuple[str, str]:
    """Serialize the request body for verb.

    Returns:
        (body, content_type)
    """
    if verb == 'DELETE':
        return yaml.safe_dump(DELETE_OPTIONS, default_flow_style=False, sort_keys=False), YAML_CONTENT
    if verb == 'PATCH':
        return json.dumps(obj.document), MERGE_PATCH_CONTENT
    return obj.to_yaml(), YAML_CONTENT


def apply_object(obj: ManifestObject, verb: str, options: ApplyOptions) -> Optional[ManifestObject]:
    """Apply one object with verb.

    Returns:
        The decoded response (or the callback's recovered object), None when
        (verb, kind) has no endpoint and nothing was sent

    Raises:
        TransportError: On network failure
        APIError: On a non-2xx response the callback did not recover
        ManifestFieldError: If the endpoint needs metadata the object lacks
    """
    client = KubeClient(options.credentials)
    state = APPLYING

    while True:
        path = resolve_endpoint(verb, obj)
        if path is None:
            logger.debug(f"No {verb} endpoint for {obj.describe()}, skipping")
            return None

        body, content_type = encode_body(obj, verb)
        status, decoded = client.request(verb, path, body, content_type)
        response = ManifestObject(decoded)
        logger.debug(f"{verb} {obj.describe()} -> {status}")

        if options.callback is not None:
            next_verb, next_obj = options.callback(status, verb, obj, response)
            if next_verb and state == APPLYING:
                state = RETRYING
                verb = next_verb
                if next_obj is not None:
                    obj = next_obj
                continue
            if next_verb:
                logger.warning(
                    f"Ignoring {next_verb} requested after retrying {obj.describe()}"
                )
            elif next_obj is not None:
                return next_obj

        if not is_success(status):
            raise APIError(status, status_message(decoded, 'request failed'), verb, obj.describe())
        return response


def apply_all(
    objects: list[ManifestObject],
    options: ApplyOptions,
    pause: float = FIRST_OBJECT_PAUSE,
) -> None:
    """POST objects in order, stopping at the first failure."""
    for index, obj in enumerate(objects):
        logger.info(f"Applying {obj.describe()}")
        apply_object(obj, 'POST', options)
        if index == 0 and len(objects) > 1 and pause > 0:
            time.sleep(pause)


def preflight(objects: list[ManifestObject], verb: str = 'POST') -> None:
    """Check that every object can be addressed before anything is sent.

    Raises:
        UnknownKindError: Some object has no endpoint for verb
        ManifestFieldError: Some object lacks the namespace or name its
                            endpoint needs
    """
    validate_kinds(objects, verb)
    for obj in objects:
        resolve_endpoint(verb, obj)


def prepare(documents: list[str | dict], namespace: str = '') -> list[ManifestObject]:
    """Parse documents into one batch ordered by kind priority and pre-flight it."""
    objects = []
    for document in documents:
        objects.extend(parse_objects(document, namespace))
    objects = sort_by_kind(objects)
    preflight(objects)
    return objects


def apply(document: str | dict, options: ApplyOptions, pause: float = FIRST_OBJECT_PAUSE) -> None:
    """Parse, validate and apply a manifest document.

    Parse and validation errors are raised before any request is sent.

    Raises:
        ParseError: Malformed document, or an object missing the metadata
                    its endpoint needs
        UnknownKindError: Some object has no creation endpoint
        TransportError, APIError: First failing request
    """
    apply_all(prepare([document], options.namespace), options, pause=pause)
