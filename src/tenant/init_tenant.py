"""Tenant provisioning.

A tenant is one user's primary namespace plus satellite namespaces for CI
(<name>-jenkins) and workspaces (<name>-che).

Provisioning runs in two phases:
1. Primary namespace, strictly ordered, stops at the first failure:
   user project, collaborators, role bindings, team quotas/limits
2. Satellites, one concurrent task each; every task runs to completion and
   failures are reported together in a MultiError

A satellite task applies its template together with its companions in one
batch ordered by kind priority:
- OpenShift quota templates, so limits and quotas land right after the
  namespace and before any workload (unless disabled)
- the Kubernetes expose controller template

Nothing is rolled back. Re-running init_tenant re-applies every template.
"""

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Mapping, Optional

from common import DriverError, MultiError, ProvisioningResult
from config import TenantConfig
from kube.apply import (
    FIRST_OBJECT_PAUSE,
    ApplyOptions,
    DecisionCallback,
    apply,
    apply_all,
    prepare,
)
from resolver.loader import TemplateLoader
from resolver.template import process_template

logger = logging.getLogger(__name__)

VAR_PROJECT_NAME = 'PROJECT_NAME'
VAR_PROJECT_TEMPLATE_NAME = 'PROJECT_TEMPLATE_NAME'
VAR_PROJECT_DISPLAYNAME = 'PROJECT_DISPLAYNAME'
VAR_PROJECT_DESCRIPTION = 'PROJECT_DESCRIPTION'
VAR_PROJECT_USER = 'PROJECT_USER'
VAR_PROJECT_REQUESTING_USER = 'PROJECT_REQUESTING_USER'
VAR_PROJECT_ADMIN_USER = 'PROJECT_ADMIN_USER'
VAR_PROJECT_NAMESPACE = 'PROJECT_NAMESPACE'

SATELLITE_SUFFIXES = ('jenkins', 'che')


class SatelliteError(DriverError):
    """Failure provisioning one satellite namespace; keeps the cause's code."""

    def __init__(self, namespace: str, cause: Exception):
        self.namespace = namespace
        self.cause = cause
        if isinstance(cause, DriverError):
            code, message = cause.code, cause.message
        else:
            code, message = "E401", str(cause)
        super().__init__(code, f"{namespace}: {message}")


@dataclass(frozen=True)
class TemplateSet:
    """Template file names for one platform flavor.

    Empty companion names mean the flavor has no such template.
    """
    user_project: str
    user_collaborators: str
    user_rolebindings: str
    team: str
    jenkins: str
    che: str
    jenkins_quotas: str = ''
    che_quotas: str = ''
    expose: str = ''

    def satellite(self, suffix: str) -> str:
        return getattr(self, suffix)

    def quotas(self, suffix: str) -> str:
        return getattr(self, f"{suffix}_quotas")


OPENSHIFT_TEMPLATES = TemplateSet(
    user_project='fabric8-online-user-project.yml',
    user_collaborators='fabric8-online-user-collaborators.yml',
    user_rolebindings='fabric8-online-user-rolebindings.yml',
    team='fabric8-online-team-openshift.yml',
    jenkins='fabric8-online-jenkins-openshift.yml',
    che='fabric8-online-che-openshift.yml',
    jenkins_quotas='fabric8-online-jenkins-quotas-oso-openshift.yml',
    che_quotas='fabric8-online-che-quotas-oso-openshift.yml',
)

KUBERNETES_TEMPLATES = TemplateSet(
    user_project='fabric8-online-user-project-kubernetes.yml',
    user_collaborators='fabric8-online-user-collaborators.yml',
    user_rolebindings='fabric8-online-user-rolebindings.yml',
    team='fabric8-online-team-kubernetes.yml',
    jenkins='fabric8-online-jenkins-kubernetes.yml',
    che='fabric8-online-che-kubernetes.yml',
    expose='fabric8-online-expose-kubernetes.yml',
)


@dataclass
class SatelliteJob:
    """One satellite namespace to provision concurrently.

    Attributes:
        companions: Extra (template, variables) pairs applied in the same batch
    """
    namespace: str
    template: str
    variables: dict
    options: ApplyOptions
    companions: list[tuple[str, dict]] = field(default_factory=list)

    def documents(self) -> list[str]:
        documents = [process_template(self.template, self.variables)]
        for template, variables in self.companions:
            documents.append(process_template(template, variables))
        return documents


def templates_for(kubernetes_mode: bool) -> TemplateSet:
    return KUBERNETES_TEMPLATES if kubernetes_mode else OPENSHIFT_TEMPLATES


def create_name(username: str) -> str:
    """Namespace-safe tenant name: local part of the username, dots as dashes.

    Example:
        create_name('first.last@example.com') -> 'first-last'
    """
    return username.split('@')[0].replace('.', '-')


def satellite_namespaces(name: str) -> list[str]:
    return [f"{name}-{suffix}" for suffix in SATELLITE_SUFFIXES]


def build_variables(
    username: str,
    admin_user: str,
    template_vars: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Template variables for a tenant.

    Derived values win; caller variables only fill keys not already set.
    """
    name = create_name(username)
    variables = {
        VAR_PROJECT_NAME: name,
        VAR_PROJECT_TEMPLATE_NAME: name,
        VAR_PROJECT_DISPLAYNAME: name,
        VAR_PROJECT_DESCRIPTION: name,
        VAR_PROJECT_USER: username,
        VAR_PROJECT_REQUESTING_USER: username,
        VAR_PROJECT_ADMIN_USER: admin_user,
    }
    for key, value in (template_vars or {}).items():
        variables.setdefault(key, value)
    return variables


def execute_template(
    template: str,
    variables: Mapping[str, str],
    options: ApplyOptions,
    pause: float = FIRST_OBJECT_PAUSE,
) -> None:
    """Resolve placeholders and apply the result."""
    apply(process_template(template, variables), options, pause=pause)


def _provision_satellite(job: SatelliteJob, results: queue.Queue, pause: float) -> None:
    """Task body: apply one satellite batch and report the outcome."""
    result = ProvisioningResult(namespace=job.namespace)
    result.start()
    try:
        objects = prepare(job.documents(), job.options.namespace)
        apply_all(objects, job.options, pause=pause)
    except Exception as e:
        logger.error(f"Provisioning {job.namespace} failed: {e}")
        result.fail(SatelliteError(job.namespace, e))
    else:
        logger.info(f"Provisioned {job.namespace}")
        result.succeed()
    results.put(result)


def provision_satellites(
    jobs: list[SatelliteJob],
    pause: float = FIRST_OBJECT_PAUSE,
) -> list[ProvisioningResult]:
    """Provision satellite namespaces concurrently.

    Every job runs to completion regardless of its siblings. The pool is
    scoped to this call, so no task outlives it.

    Returns:
        One result per job, in job order

    Raises:
        MultiError: Errors of every failed job, in job order
    """
    if not jobs:
        return []

    results: queue.Queue = queue.Queue()
    with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix='satellite') as pool:
        for job in jobs:
            pool.submit(_provision_satellite, job, results, pause)
        reports = {}
        for _ in jobs:
            report = results.get()
            reports[report.namespace] = report

    ordered = [reports[job.namespace] for job in jobs]
    errors = MultiError()
    for report in ordered:
        if not report.success:
            errors.append(report.error)
    if errors:
        raise errors
    return ordered


def init_tenant(
    config: TenantConfig,
    callback: Optional[DecisionCallback],
    username: str,
    user_token: str,
    template_vars: Optional[Mapping[str, str]] = None,
    pause: float = FIRST_OBJECT_PAUSE,
) -> list[ProvisioningResult]:
    """Provision a tenant for username.

    Args:
        config: Admin credentials and template settings
        callback: Decision callback for every apply (e.g. UpdateOnConflict)
        username: Tenant owner, e.g. 'first.last@example.com'
        user_token: Bearer token of the tenant owner
        template_vars: Extra template variables (never override derived ones)
        pause: Delay after the first object of each template

    Returns:
        Satellite provisioning results

    Raises:
        TemplateNotFoundError: Before any request, if a template is missing
        DriverError: First failure of the primary phase
        MultiError: Failures of the satellite phase
    """
    name = create_name(username)
    variables = build_variables(username, config.admin_user, template_vars)
    templates = templates_for(config.kubernetes_mode)

    loader = TemplateLoader(
        template_dir=config.template_dir,
        team_version=config.team_version,
        repository_url=config.template_repository,
        log_callback=config.log_callback,
    )
    # Load everything up front so a missing template fails before any request
    user_project = loader.load(templates.user_project)
    user_collaborators = loader.load(templates.user_collaborators)
    user_rolebindings = loader.load(templates.user_rolebindings)
    team = loader.load(templates.team)
    satellite_templates = {suffix: loader.load(templates.satellite(suffix))
                           for suffix in SATELLITE_SUFFIXES}
    quota_templates = {}
    if config.oso_quotas and not config.kubernetes_mode:
        quota_templates = {suffix: loader.load(templates.quotas(suffix))
                           for suffix in SATELLITE_SUFFIXES}
    expose = loader.load(templates.expose) if templates.expose else None

    admin_opts = ApplyOptions(credentials=config.credentials, namespace=name, callback=callback)
    user_opts = ApplyOptions(
        credentials=config.credentials.with_token(user_token),
        namespace=name,
        callback=callback,
    )

    config.log(f"Provisioning tenant {name} for {username}")
    logger.info(f"Provisioning user project {name}")
    execute_template(user_project, variables, user_opts, pause)
    execute_template(user_collaborators, variables, admin_opts, pause)
    execute_template(user_rolebindings, variables, user_opts, pause)

    team_vars = dict(variables)
    team_vars[VAR_PROJECT_DISPLAYNAME] = team_vars[VAR_PROJECT_NAME]
    execute_template(team, team_vars, admin_opts, pause)

    jobs = []
    for suffix in SATELLITE_SUFFIXES:
        namespace = f"{name}-{suffix}"
        satellite_vars = dict(variables)
        satellite_vars[VAR_PROJECT_NAMESPACE] = name
        companions = []
        if suffix in quota_templates:
            companions.append((quota_templates[suffix], satellite_vars))
        if expose is not None:
            expose_vars = dict(satellite_vars)
            expose_vars.update(config.expose_variables())
            companions.append((expose, expose_vars))
        jobs.append(SatelliteJob(
            namespace=namespace,
            template=satellite_templates[suffix],
            variables=satellite_vars,
            options=admin_opts.with_namespace(namespace),
            companions=companions,
        ))

    config.log(f"Provisioning namespaces {', '.join(job.namespace for job in jobs)}")
    results = provision_satellites(jobs, pause)
    config.log(f"Tenant {name} provisioned")
    return results
