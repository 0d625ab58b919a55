"""Catalog of API resources the driver knows how to address.

Each entry maps a manifest kind to its REST collection. URL templates use
{namespace} and {name} placeholders filled from the manifest metadata.
"""

from dataclasses import dataclass

ALL_VERBS = frozenset({'GET', 'POST', 'PUT', 'PATCH', 'DELETE'})

CORE = '/api/v1'
APPS = '/apis/apps/v1'
NETWORKING = '/apis/networking.k8s.io/v1'
RBAC = '/apis/rbac.authorization.k8s.io/v1'
OS_PROJECT = '/apis/project.openshift.io/v1'
OS_APPS = '/apis/apps.openshift.io/v1'
OS_ROUTE = '/apis/route.openshift.io/v1'
OS_BUILD = '/apis/build.openshift.io/v1'
OS_AUTHORIZATION = '/apis/authorization.openshift.io/v1'


@dataclass(frozen=True)
class APIResource:
    """A REST resource collection.

    Attributes:
        kind: Manifest kind (e.g., Service)
        group_path: API group prefix (e.g., /api/v1)
        plural: Collection name in URLs (e.g., services)
        namespaced: Whether objects live inside a namespace
        verbs: HTTP verbs the driver may issue against this resource
    """
    kind: str
    group_path: str
    plural: str
    namespaced: bool = True
    verbs: frozenset = ALL_VERBS

    @property
    def collection_template(self) -> str:
        if self.namespaced:
            return f"{self.group_path}/namespaces/{{namespace}}/{self.plural}"
        return f"{self.group_path}/{self.plural}"

    @property
    def item_template(self) -> str:
        return f"{self.collection_template}/{{name}}"

    def url_template(self, verb: str) -> str:
        """URL template for verb; POST targets the collection, others the item."""
        if verb == 'POST':
            return self.collection_template
        return self.item_template


API_RESOURCES: dict[str, APIResource] = {r.kind: r for r in (
    APIResource('ProjectRequest', OS_PROJECT, 'projectrequests', namespaced=False,
                verbs=frozenset({'POST'})),
    APIResource('Project', OS_PROJECT, 'projects', namespaced=False),
    APIResource('Namespace', CORE, 'namespaces', namespaced=False),
    APIResource('RoleBinding', RBAC, 'rolebindings'),
    APIResource('RoleBindingRestriction', OS_AUTHORIZATION, 'rolebindingrestrictions'),
    APIResource('LimitRange', CORE, 'limitranges'),
    APIResource('ResourceQuota', CORE, 'resourcequotas'),
    APIResource('PersistentVolumeClaim', CORE, 'persistentvolumeclaims'),
    APIResource('Service', CORE, 'services'),
    APIResource('Secret', CORE, 'secrets'),
    APIResource('ServiceAccount', CORE, 'serviceaccounts'),
    APIResource('ConfigMap', CORE, 'configmaps'),
    APIResource('Pod', CORE, 'pods'),
    APIResource('ReplicationController', CORE, 'replicationcontrollers'),
    APIResource('Deployment', APPS, 'deployments'),
    APIResource('ReplicaSet', APPS, 'replicasets'),
    APIResource('Ingress', NETWORKING, 'ingresses'),
    APIResource('DeploymentConfig', OS_APPS, 'deploymentconfigs'),
    APIResource('Route', OS_ROUTE, 'routes'),
    APIResource('Build', OS_BUILD, 'builds'),
    APIResource('BuildConfig', OS_BUILD, 'buildconfigs'),
)}


def get_resource(kind: str) -> APIResource | None:
    """Look up a resource by kind, None when the kind is not cataloged."""
    return API_RESOURCES.get(kind)


def supports(verb: str, kind: str) -> bool:
    """True if the catalog has an endpoint for (verb, kind)."""
    if not isinstance(kind, str):
        return False
    resource = API_RESOURCES.get(kind)
    return resource is not None and verb in resource.verbs
