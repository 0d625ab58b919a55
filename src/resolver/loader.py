"""Template loading for tenant provisioning.

Resolution order for a template file:
1. Published package at the team version (when a version is configured and
   the template belongs to a published package)
2. <template_dir>/<file> override
3. Template bundled with this package (src/tenant/templates/)
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import requests

from common import DriverError
from config import DEFAULT_TEMPLATE_REPOSITORY

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'tenant' / 'templates'

# Template file -> (published package, flavor) for versioned downloads
PUBLISHED_TEMPLATES = {
    'fabric8-online-team-openshift.yml': ('fabric8-online-team', 'openshift'),
    'fabric8-online-team-kubernetes.yml': ('fabric8-online-team', 'k8s-template'),
    'fabric8-online-jenkins-openshift.yml': ('fabric8-online-jenkins', 'openshift'),
    'fabric8-online-jenkins-kubernetes.yml': ('fabric8-online-jenkins', 'k8s-template'),
    'fabric8-online-jenkins-quotas-oso-openshift.yml': ('fabric8-online-jenkins-quotas-oso', 'openshift'),
    'fabric8-online-che-openshift.yml': ('fabric8-online-che', 'openshift'),
    'fabric8-online-che-kubernetes.yml': ('fabric8-online-che', 'k8s-template'),
    'fabric8-online-che-quotas-oso-openshift.yml': ('fabric8-online-che-quotas-oso', 'openshift'),
}


class TemplateNotFoundError(DriverError):
    """Template not found in any source."""

    def __init__(self, name: str, detail: str = ''):
        message = f"Template not found: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__("E102", message)


class TemplateLoader:
    """Load raw template text from the configured sources.

    Attributes:
        template_dir: Override directory, checked after the published package
        team_version: Published version to download, empty disables downloads
        repository_url: URL pattern with {package}, {version}, {flavor}
    """

    def __init__(
        self,
        template_dir: Optional[Path] = None,
        team_version: str = '',
        repository_url: str = DEFAULT_TEMPLATE_REPOSITORY,
        log_callback: Optional[Callable[[str], None]] = None,
        bundled_dir: Path = BUNDLED_TEMPLATE_DIR,
        timeout: float = 30,
    ):
        self.template_dir = Path(template_dir) if template_dir else None
        self.team_version = team_version
        self.repository_url = repository_url
        self.log_callback = log_callback
        self.bundled_dir = bundled_dir
        self.timeout = timeout

    def _log(self, message: str) -> None:
        logger.debug(message)
        if self.log_callback is not None:
            self.log_callback(message)

    def published_url(self, name: str) -> Optional[str]:
        """URL of the published template, or None if not downloadable."""
        if not self.team_version or name not in PUBLISHED_TEMPLATES:
            return None
        package, flavor = PUBLISHED_TEMPLATES[name]
        return self.repository_url.format(
            package=package, version=self.team_version, flavor=flavor,
        )

    def load(self, name: str) -> str:
        """Return template text for a template file name.

        Raises:
            TemplateNotFoundError: If no source provides the template
        """
        url = self.published_url(name)
        if url:
            self._log(f"Downloading template {name} from {url}")
            try:
                resp = requests.get(url, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise TemplateNotFoundError(name, f"download failed: {e}") from e
            if resp.status_code != 200:
                raise TemplateNotFoundError(name, f"HTTP {resp.status_code} from {url}")
            return resp.text

        if self.template_dir is not None:
            path = self.template_dir / name
            if path.is_file():
                self._log(f"Loading template {name} from {path}")
                return path.read_text(encoding='utf-8')

        path = self.bundled_dir / name
        if path.is_file():
            logger.debug(f"Loading bundled template {name}")
            return path.read_text(encoding='utf-8')

        raise TemplateNotFoundError(name)
