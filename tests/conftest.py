"""Shared pytest fixtures for tenant-driver tests."""

import json
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import pytest
import yaml

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

BASE_URL = 'https://api.cluster.test:6443'


def make_response(status: int = 200, body=None):
    """requests.Response stand-in with status_code and text."""
    resp = MagicMock()
    resp.status_code = status
    if body is None:
        resp.text = ''
    elif isinstance(body, str):
        resp.text = body
    else:
        resp.text = json.dumps(body)
    return resp


@dataclass
class RecordedCall:
    verb: str
    path: str
    headers: dict
    data: Optional[bytes]
    timeout: Optional[float] = None

    @property
    def body(self):
        return yaml.safe_load(self.data.decode('utf-8')) if self.data else None


class FakeCluster:
    """Transport override that records requests and answers from routes.

    Routes map (verb, path) to a list of answers; each answer is a
    (status, body) tuple or an exception to raise. The last answer repeats.
    Unrouted requests get the default answer.
    """

    def __init__(self, default=(201, {})):
        self.default = default
        self.routes: dict = {}
        self.rules: list = []
        self.calls: list[RecordedCall] = []
        self._lock = threading.Lock()

    def route(self, verb: str, path: str, *answers) -> None:
        self.routes[(verb, path)] = list(answers)

    def answer_when(self, predicate, answer) -> None:
        """Answer every call matching predicate(call), ahead of routes."""
        self.rules.append((predicate, answer))

    def request(self, verb, url, headers=None, data=None, verify=True, timeout=None):
        assert url.startswith(BASE_URL)
        path = url[len(BASE_URL):]
        with self._lock:
            call = RecordedCall(verb, path, headers or {}, data, timeout)
            self.calls.append(call)
            answers = self.routes.get((verb, path))
            matched = [answer for predicate, answer in self.rules if predicate(call)]
            if matched:
                answer = matched[0]
            elif answers:
                answer = answers.pop(0) if len(answers) > 1 else answers[0]
            else:
                answer = self.default
        if isinstance(answer, Exception):
            raise answer
        status, body = answer
        return make_response(status, body)

    def calls_for(self, verb: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.verb == verb]

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.calls]


@pytest.fixture
def cluster():
    """Fake cluster answering 201 {} unless routed otherwise."""
    return FakeCluster()


@pytest.fixture
def credentials(cluster):
    """Admin credentials bound to the fake cluster."""
    from config import Credentials
    return Credentials(base_url=BASE_URL, token='admin-token', username='admin', session=cluster)


@pytest.fixture
def kubeconfig_file(tmp_path):
    """Kubeconfig with one OpenShift-style context."""
    path = tmp_path / 'config'
    path.write_text(f"""
apiVersion: v1
kind: Config
current-context: dev/api-cluster/admin
clusters:
- name: api-cluster
  cluster:
    server: {BASE_URL}
- name: other
  cluster:
    server: https://other.test
contexts:
- name: dev/api-cluster/admin
  context:
    cluster: api-cluster
    namespace: dev
    user: admin/api-cluster
users:
- name: admin/api-cluster
  user:
    token: kube-token
""")
    return path
