"""Cluster credentials and tenant configuration.

Credentials are resolved from explicit values first, then from the current
context of a kubeconfig file:
- KUBECONFIG environment variable (first path of the list)
- ~/.kube/config

Tenant settings come from TenantConfig, optionally overlaid from environment:
- TENANT_TEMPLATE_DIR: directory holding template overrides
- TENANT_TEAM_VERSION: published template version to download
- TENANT_KUBERNETES_MODE: 'true' selects the Kubernetes template variants
"""

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""


# Published tenant templates, {package} and {version} are substituted
DEFAULT_TEMPLATE_REPOSITORY = (
    'https://repo1.maven.org/maven2/io/fabric8/online/packages/'
    '{package}/{version}/{package}-{version}-{flavor}.yml'
)

DEFAULT_EXPOSER = 'Ingress'

_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|h|m|s)')
_DURATION_UNITS = {'ms': 0.001, 's': 1.0, 'm': 60.0, 'h': 3600.0}


@dataclass
class Credentials:
    """Connection settings for one cluster identity.

    Attributes:
        base_url: Cluster API URL (e.g., https://api.cluster:6443)
        token: Opaque bearer token
        username: Admin identity the token belongs to
        insecure: Skip TLS verification (self-signed development clusters)
        session: Transport override, any object with a requests-style
                 request(method, url, **kwargs)
    """
    base_url: str
    token: str
    username: str = ''
    insecure: bool = False
    session: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip('/')

    def with_token(self, token: str) -> 'Credentials':
        """Same cluster and transport, different bearer token."""
        return replace(self, token=token)

    @property
    def verify(self) -> bool:
        return not self.insecure


@dataclass
class TenantConfig:
    """Settings for tenant provisioning.

    Attributes:
        credentials: Admin credentials (cluster-wide privileges)
        template_dir: Directory checked for template overrides
        team_version: Published template version to fetch, empty for local
        template_repository: URL pattern for published templates
        kubernetes_mode: Use Kubernetes template variants instead of OpenShift
        oso_quotas: Apply satellite quota templates (OpenShift only)
        exposer: Strategy the expose controller uses for services (Kubernetes only)
        expose_domain: Domain exposed services are published under
        log_callback: Sink for human-readable progress messages
    """
    credentials: Credentials
    template_dir: Optional[Path] = None
    team_version: str = ''
    template_repository: str = DEFAULT_TEMPLATE_REPOSITORY
    kubernetes_mode: bool = False
    oso_quotas: bool = True
    exposer: str = DEFAULT_EXPOSER
    expose_domain: str = ''
    log_callback: Optional[Callable[[str], None]] = field(default=None, repr=False)

    def __post_init__(self):
        if isinstance(self.template_dir, str):
            self.template_dir = Path(self.template_dir) if self.template_dir else None

    @property
    def admin_user(self) -> str:
        return self.credentials.username

    def log(self, message: str) -> None:
        if self.log_callback is not None:
            self.log_callback(message)

    def expose_variables(self) -> dict[str, str]:
        """Template variables for the expose controller."""
        return {'EXPOSER': self.exposer, 'DOMAIN': self.expose_domain}

    @classmethod
    def from_env(cls, credentials: Credentials, **overrides) -> 'TenantConfig':
        """Build config from TENANT_* environment variables plus overrides.

        DISABLE_OSO_QUOTAS=true turns off the satellite quota templates.

        Overrides that are None or empty leave the environment value in place.
        """
        values: dict[str, Any] = {
            'template_dir': os.environ.get('TENANT_TEMPLATE_DIR') or None,
            'team_version': os.environ.get('TENANT_TEAM_VERSION', ''),
            'kubernetes_mode': os.environ.get('TENANT_KUBERNETES_MODE', '').lower() == 'true',
            'oso_quotas': os.environ.get('DISABLE_OSO_QUOTAS', '').lower() != 'true',
            'exposer': os.environ.get('TENANT_EXPOSER') or DEFAULT_EXPOSER,
            'expose_domain': os.environ.get('TENANT_EXPOSE_DOMAIN', ''),
        }
        for key, value in overrides.items():
            if value not in (None, ''):
                values[key] = value
        return cls(credentials=credentials, **values)


def discover_kubeconfig() -> Path:
    """Locate the kubeconfig file.

    Resolution order:
    1. First entry of the KUBECONFIG environment variable
    2. ~/.kube/config
    """
    if env_path := os.environ.get('KUBECONFIG'):
        first = env_path.split(os.pathsep)[0]
        if first:
            return Path(first)
    return Path.home() / '.kube' / 'config'


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file into a dict (empty file yields {})."""
    with open(path, encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}")
    return data


def _named_entry(entries: list, name: str, key: str) -> dict:
    """Find {name: ..., <key>: {...}} in a kubeconfig list section."""
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get('name') == name:
            value = entry.get(key) or {}
            return value if isinstance(value, dict) else {}
    return {}


def read_kubeconfig_context(path: Path) -> dict[str, str]:
    """Read server, token and username from the current kubeconfig context.

    Returns:
        Dict with 'server', 'token', 'username' (missing values are '')
    """
    data = _parse_yaml(path)
    current = data.get('current-context', '')
    context = _named_entry(data.get('contexts', []), current, 'context')
    cluster = _named_entry(data.get('clusters', []), context.get('cluster', ''), 'cluster')
    user_name = context.get('user', '')
    user = _named_entry(data.get('users', []), user_name, 'user')

    username = user.get('username', '')
    if not username and user_name:
        # OpenShift names user entries "<user>/<cluster>"
        username = user_name.split('/')[0]

    return {
        'server': cluster.get('server', ''),
        'token': user.get('token', ''),
        'username': username,
    }


def load_credentials(
    kubeconfig: Optional[Path] = None,
    server: str = '',
    token: str = '',
    username: str = '',
    insecure: bool = False,
) -> Credentials:
    """Resolve credentials from explicit values, falling back to kubeconfig.

    Raises:
        ConfigError: If server, token or username cannot be determined
    """
    path = Path(kubeconfig) if kubeconfig else discover_kubeconfig()
    if (not server or not token or not username) and path.exists():
        ctx = read_kubeconfig_context(path)
        server = server or ctx['server']
        token = token or ctx['token']
        username = username or ctx['username']

    for label, value in (('server', server), ('token', token), ('username', username)):
        if not value:
            raise ConfigError(
                f"No value detected or configured for '{label}'. "
                f"Pass --{label} or set it in {path}"
            )

    return Credentials(base_url=server, token=token, username=username, insecure=insecure)


def parse_duration(text: str) -> float:
    """Parse a duration like '1.5h', '12m', '10s', '500ms' or '1m30s' to seconds.

    Raises:
        ConfigError: If the expression is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ConfigError("Empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ConfigError(f"Could not parse duration '{text}' (e.g. 1.5h, 12m, 10s)")
    return total
