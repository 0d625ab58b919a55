"""Cluster API access: resource catalog, endpoints, HTTP client, apply engine."""
