"""Tests for kube.client.KubeClient."""

import pytest
import requests
import yaml

from kube.client import DELETE_OPTIONS, APIError, KubeClient, TransportError


class TestRequest:
    """Tests for KubeClient.request()."""

    def test_sends_bearer_and_yaml_headers(self, cluster, credentials):
        KubeClient(credentials).request('POST', '/api/v1/namespaces/a/secrets', 'kind: Secret\n')

        call = cluster.calls[0]
        assert call.headers['Authorization'] == 'Bearer admin-token'
        assert call.headers['Content-Type'] == 'application/yaml'
        assert 'application/yaml' in call.headers['Accept']
        assert call.data == b'kind: Secret\n'

    def test_decodes_json_body(self, cluster, credentials):
        cluster.route('GET', '/x', (200, {'kind': 'Status', 'code': 200}))
        status, body = KubeClient(credentials).request('GET', '/x')
        assert status == 200
        assert body == {'kind': 'Status', 'code': 200}

    def test_decodes_yaml_body(self, cluster, credentials):
        cluster.route('GET', '/x', (200, "kind: Secret\nmetadata:\n  name: s\n"))
        _, body = KubeClient(credentials).request('GET', '/x')
        assert body['metadata']['name'] == 's'

    def test_empty_body_is_empty_mapping(self, cluster, credentials):
        cluster.route('DELETE', '/x', (200, ''))
        assert KubeClient(credentials).request('DELETE', '/x') == (200, {})

    def test_error_status_is_returned_not_raised(self, cluster, credentials):
        cluster.route('POST', '/x', (409, {'kind': 'Status', 'reason': 'AlreadyExists'}))
        status, body = KubeClient(credentials).request('POST', '/x', '')
        assert status == 409
        assert body['reason'] == 'AlreadyExists'

    def test_non_mapping_body_raises(self, cluster, credentials):
        cluster.route('GET', '/x', (200, '[1, 2]'))
        with pytest.raises(APIError, match='expected a mapping'):
            KubeClient(credentials).request('GET', '/x')

    def test_undecodable_body_raises(self, cluster, credentials):
        cluster.route('GET', '/x', (502, '{unclosed: ['))
        with pytest.raises(APIError) as exc_info:
            KubeClient(credentials).request('GET', '/x')
        assert exc_info.value.status == 502

    def test_transport_error_wrapped(self, cluster, credentials):
        cluster.route('GET', '/x', requests.exceptions.ConnectionError('refused'))
        with pytest.raises(TransportError) as exc_info:
            KubeClient(credentials).request('GET', '/x')
        assert exc_info.value.code == 'E200'
        assert 'refused' in str(exc_info.value)

    def test_insecure_disables_verification(self, cluster, credentials):
        from unittest.mock import patch
        insecure = credentials.with_token('t')
        insecure.insecure = True
        with patch.object(cluster, 'request', wraps=cluster.request) as spy:
            KubeClient(insecure).request('GET', '/x')
        assert spy.call_args.kwargs['verify'] is False


class TestResourceHelpers:
    """Tests for get/list/delete helpers."""

    def test_get_returns_object(self, cluster, credentials):
        cluster.route('GET', '/apis/apps/v1/namespaces/a/deployments/web',
                      (200, {'kind': 'Deployment', 'metadata': {'name': 'web'}}))
        obj = KubeClient(credentials).get('Deployment', 'web', 'a')
        assert obj.describe() == 'Deployment/web'

    def test_get_not_found_raises(self, cluster, credentials):
        cluster.route('GET', '/apis/apps/v1/namespaces/a/deployments/web',
                      (404, {'kind': 'Status', 'message': 'deployments "web" not found'}))
        with pytest.raises(APIError) as exc_info:
            KubeClient(credentials).get('Deployment', 'web', 'a')
        assert exc_info.value.status == 404
        assert 'not found' in str(exc_info.value)

    def test_list_with_selector(self, cluster, credentials):
        cluster.route('GET', '/api/v1/namespaces/a/services?labelSelector=provider%3Dfabric8',
                      (200, {'kind': 'ServiceList', 'items': [{'metadata': {'name': 'web'}}]}))
        objects = KubeClient(credentials).list_objects('Service', 'a', 'provider=fabric8')
        assert [o.describe() for o in objects] == ['Service/web']

    def test_list_without_items(self, cluster, credentials):
        cluster.route('GET', '/api/v1/namespaces/a/secrets', (200, {'kind': 'SecretList'}))
        assert KubeClient(credentials).list_objects('Secret', 'a') == []

    def test_delete_sends_delete_options(self, cluster, credentials):
        cluster.route('DELETE', '/api/v1/namespaces/a/services/web', (200, {}))
        KubeClient(credentials).delete('Service', 'web', 'a')
        assert yaml.safe_load(cluster.calls[0].data) == DELETE_OPTIONS

    def test_uncataloged_kind_raises(self, credentials):
        with pytest.raises(APIError, match='Widget'):
            KubeClient(credentials).get('Widget', 'w', 'a')


class TestIsOpenshift:
    """Tests for platform detection."""

    def test_legacy_oapi_path(self, cluster, credentials):
        cluster.route('GET', '/', (200, {'paths': ['/api', '/oapi', '/healthz']}))
        assert KubeClient(credentials).is_openshift() is True

    def test_project_api_group(self, cluster, credentials):
        cluster.route('GET', '/', (200, {'paths': ['/api', '/apis/project.openshift.io/v1']}))
        assert KubeClient(credentials).is_openshift() is True

    def test_plain_kubernetes(self, cluster, credentials):
        cluster.route('GET', '/', (200, {'paths': ['/api', '/apis/apps/v1']}))
        assert KubeClient(credentials).is_openshift() is False
