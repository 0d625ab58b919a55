"""Endpoint table: (verb, kind) -> URL template.

Templates carry {namespace} and {name} placeholders, resolved against the
manifest's own metadata when a request is built.
"""

from typing import Optional

from kube.resources import API_RESOURCES
from manifest import ManifestObject

VERBS = ('POST', 'PUT', 'PATCH', 'GET', 'DELETE')


def build_endpoint_table() -> dict[str, dict[str, str]]:
    """Derive the verb -> kind -> template table from the resource catalog."""
    table: dict[str, dict[str, str]] = {verb: {} for verb in VERBS}
    for kind, resource in API_RESOURCES.items():
        for verb in VERBS:
            if verb in resource.verbs:
                table[verb][kind] = resource.url_template(verb)
    return table


ENDPOINTS = build_endpoint_table()


def endpoint_template(verb: str, kind: str) -> Optional[str]:
    """URL template for (verb, kind), None when unregistered."""
    return ENDPOINTS.get(verb.upper(), {}).get(kind)


def resolve_endpoint(verb: str, obj: ManifestObject) -> Optional[str]:
    """Resolve the request path for applying obj with verb.

    Returns:
        Path relative to the cluster base URL, or None if (verb, kind) has no
        endpoint

    Raises:
        ManifestFieldError: If the template needs a namespace or name the
                            object does not carry
    """
    kind = obj.get('kind')
    template = endpoint_template(verb, kind) if isinstance(kind, str) else None
    if template is None:
        return None

    values = {}
    if '{namespace}' in template:
        values['namespace'] = obj.namespace
    if '{name}' in template:
        values['name'] = obj.name
    return template.format(**values)
