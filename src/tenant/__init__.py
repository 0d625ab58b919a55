"""Tenant provisioning and deletion."""

from tenant.init_tenant import SatelliteError, create_name, init_tenant, satellite_namespaces
from tenant.delete import delete_tenant

__all__ = [
    "SatelliteError",
    "create_name",
    "init_tenant",
    "satellite_namespaces",
    "delete_tenant",
]
