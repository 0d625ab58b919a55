"""Manifest parsing, ordering and pre-flight validation.

A manifest document is either a single resource or a bundle:
- kind: Template  - members under 'objects'
- kind: List      - members under 'items'

Parsed objects receive the default namespace when they declare none and are
then ordered so that objects other objects depend on (project requests,
namespaces, quotas) are created first.
"""

import copy
import logging
from typing import Any, Callable, Iterable

import yaml

from common import DriverError
from kube.resources import supports

logger = logging.getLogger(__name__)

# Bundle kind -> field holding its members
BUNDLE_FIELDS = {
    'Template': 'objects',
    'List': 'items',
}

# Lower sorts first; kinds not listed share DEFAULT_PRIORITY
KIND_PRIORITY = {
    'ProjectRequest': 1,
    'Namespace': 1,
    'RoleBindingRestriction': 2,
    'LimitRange': 3,
    'ResourceQuota': 4,
}
DEFAULT_PRIORITY = 30


class ParseError(DriverError):
    """Manifest document could not be parsed."""

    def __init__(self, message: str):
        super().__init__("E100", message)


class ManifestFieldError(ParseError):
    """A required manifest field is absent or has the wrong shape."""

    def __init__(self, path: str, problem: str = 'missing'):
        self.path = path
        super().__init__(f"Manifest field '{path}' is {problem}")


class UnknownKindError(DriverError):
    """Objects whose kind has no creation endpoint."""

    def __init__(self, objects: list['ManifestObject']):
        self.objects = objects
        described = ', '.join(obj.describe() for obj in objects)
        super().__init__("E101", f"No endpoint registered for: {described}")


class ManifestObject:
    """One resource document with typed accessors.

    The document is the plain value tree PyYAML produces. Accessors raise
    ManifestFieldError instead of returning a default when the field is
    absent or not of the expected type.
    """

    __slots__ = ('document',)

    def __init__(self, document: dict):
        if not isinstance(document, dict):
            raise ParseError(f"Expected a mapping, got {type(document).__name__}")
        self.document = document

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ManifestObject):
            return NotImplemented
        return self.document == other.document

    def __repr__(self) -> str:
        return f"ManifestObject({self.describe()})"

    def __getitem__(self, key: str) -> Any:
        return self.document[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.document.get(key, default)

    def _field(self, path: str, expected: type) -> Any:
        value: Any = self.document
        for part in path.split('.'):
            if not isinstance(value, dict) or part not in value:
                raise ManifestFieldError(path)
            value = value[part]
        if not isinstance(value, expected):
            raise ManifestFieldError(path, f"not a {expected.__name__}")
        return value

    @property
    def kind(self) -> str:
        return self._field('kind', str)

    @property
    def metadata(self) -> dict:
        return self._field('metadata', dict)

    @property
    def name(self) -> str:
        return self._field('metadata.name', str)

    @property
    def namespace(self) -> str:
        return self._field('metadata.namespace', str)

    @property
    def has_namespace(self) -> bool:
        metadata = self.document.get('metadata')
        return isinstance(metadata, dict) and 'namespace' in metadata

    @property
    def labels(self) -> dict:
        return self._field('metadata.labels', dict)

    @property
    def resource_version(self) -> str:
        return self._field('metadata.resourceVersion', str)

    def set_namespace(self, namespace: str) -> None:
        metadata = self.document.get('metadata')
        if not isinstance(metadata, dict):
            metadata = {}
            self.document['metadata'] = metadata
        metadata['namespace'] = namespace

    def set_resource_version(self, version: str) -> None:
        self.metadata['resourceVersion'] = version

    def copy(self) -> 'ManifestObject':
        return ManifestObject(copy.deepcopy(self.document))

    def describe(self) -> str:
        """Short 'Kind/name' label that never raises."""
        kind = self.document.get('kind', '?')
        metadata = self.document.get('metadata')
        name = metadata.get('name', '?') if isinstance(metadata, dict) else '?'
        return f"{kind}/{name}"

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.document, default_flow_style=False, sort_keys=False)


def load_document(document: str | dict) -> dict:
    """Decode YAML text (or accept an already-decoded mapping).

    Raises:
        ParseError: If the text is not YAML or the top level is not a mapping
    """
    if isinstance(document, dict):
        return document
    try:
        data = yaml.safe_load(document)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Expected a mapping at top level, got {type(data).__name__}")
    return data


def parse_objects(document: str | dict, default_namespace: str = '') -> list[ManifestObject]:
    """Parse a manifest document into ordered objects.

    Args:
        document: YAML text or decoded mapping
        default_namespace: Namespace for objects that declare none (ignored if empty)

    Returns:
        Objects sorted by kind priority

    Raises:
        ParseError: On malformed YAML or malformed bundle structure
    """
    data = load_document(document)
    top_kind = data.get('kind')

    if top_kind in BUNDLE_FIELDS:
        member_field = BUNDLE_FIELDS[top_kind]
        members = data.get(member_field)
        if not isinstance(members, list):
            raise ParseError(f"{top_kind} document has no '{member_field}' list")
        objects = []
        for index, member in enumerate(members):
            if not isinstance(member, dict):
                raise ParseError(f"{top_kind} {member_field}[{index}] is not a mapping")
            objects.append(ManifestObject(member))
    else:
        objects = [ManifestObject(data)]

    if default_namespace:
        for obj in objects:
            if not obj.has_namespace:
                obj.set_namespace(default_namespace)

    return sort_by_kind(objects)


def kind_priority(obj: ManifestObject) -> int:
    kind = obj.get('kind')
    if not isinstance(kind, str):
        return DEFAULT_PRIORITY
    return KIND_PRIORITY.get(kind, DEFAULT_PRIORITY)


def sort_by_kind(objects: Iterable[ManifestObject]) -> list[ManifestObject]:
    """Order objects by kind priority, keeping input order within a priority."""
    return sorted(objects, key=kind_priority)


def validate_kinds(objects: Iterable[ManifestObject], verb: str = 'POST') -> None:
    """Fail before any network call if some object cannot be applied.

    Raises:
        UnknownKindError: Listing every object with no endpoint for verb
    """
    unknown = [obj for obj in objects if not supports(verb, obj.get('kind'))]
    if unknown:
        raise UnknownKindError(unknown)


def is_of_kind(*kinds: str) -> Callable[[ManifestObject], bool]:
    def _match(obj: ManifestObject) -> bool:
        return obj.get('kind') in kinds
    return _match


def is_not_of_kind(*kinds: str) -> Callable[[ManifestObject], bool]:
    def _match(obj: ManifestObject) -> bool:
        return obj.get('kind') not in kinds
    return _match


def filter_objects(
    objects: Iterable[ManifestObject],
    predicate: Callable[[ManifestObject], bool],
) -> list[ManifestObject]:
    return [obj for obj in objects if predicate(obj)]

