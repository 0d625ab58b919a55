#!/usr/bin/env python3
"""CLI entry point for tenant-driver.

Noun-action subcommands:
- tenant init --user alice@example.com --user-token <token>
- tenant delete --user alice@example.com
- tenant cleanup --user alice@example.com
- manifest apply app.yml -n alice
- manifest validate app.yml
- wait-for jenkins -n alice-jenkins --timeout 10m

Cluster credentials come from flags, falling back to the current kubeconfig
context.
"""

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from cleanup import DEFAULT_SELECTOR, cleanup_tenant
from common import DriverError, MultiError
from config import ConfigError, Credentials, TenantConfig, load_credentials, parse_duration
from kube.apply import ApplyOptions, apply, prepare
from kube.callbacks import UpdateOnConflict, log_status
from kube.client import KubeClient
from readiness import wait_for_ready
from resolver.template import find_placeholders, process_template
from tenant.delete import delete_tenant
from tenant.init_tenant import create_name, init_tenant

NOUN_COMMANDS = {
    "tenant": "Tenant lifecycle (init/delete/cleanup)",
    "manifest": "Apply or validate manifest documents (apply/validate)",
    "wait-for": "Wait for deployments to become ready",
}

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def get_version():
    """Get version from git tags (do not use hardcoded VERSION constant)."""
    try:
        result = subprocess.run(
            ['git', 'describe', '--tags', '--abbrev=0'],
            capture_output=True, text=True,
            cwd=Path(__file__).parent,
            check=False,
        )
        return result.stdout.strip() if result.returncode == 0 else 'dev'
    except OSError:
        return 'dev'


def _common_parser(prog: str, description: str, cluster: bool = True) -> argparse.ArgumentParser:
    """Build argument parser with options shared by all commands."""
    parser = argparse.ArgumentParser(prog=f'tenant-driver {prog}', description=description)
    if cluster:
        parser.add_argument(
            '--kubeconfig',
            type=Path,
            help='Kubeconfig file (default: $KUBECONFIG or ~/.kube/config)',
        )
        parser.add_argument('--server', default='', help='Cluster API URL')
        parser.add_argument('--token', default='', help='Admin bearer token')
        parser.add_argument('--username', default='', help='Admin username')
        parser.add_argument(
            '--insecure',
            action='store_true',
            help='Skip TLS verification (self-signed clusters)',
        )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    return parser


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on flags."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _credentials(args) -> Credentials:
    return load_credentials(
        kubeconfig=args.kubeconfig,
        server=args.server,
        token=args.token,
        username=args.username,
        insecure=args.insecure,
    )


def _parse_vars(pairs: Optional[list]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options.

    Raises:
        ConfigError: If an entry has no '='
    """
    variables = {}
    for pair in pairs or []:
        key, sep, value = pair.partition('=')
        if not sep or not key:
            raise ConfigError(f"Expected KEY=VALUE, got '{pair}'")
        variables[key] = value
    return variables


def _read_document(path: str) -> str:
    if path == '-':
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def _report_error(error: Exception) -> int:
    """Print the first or aggregate error and return the failure exit code."""
    if isinstance(error, MultiError):
        print(f"Error: {len(error)} operation(s) failed:", file=sys.stderr)
        for sub in error.errors:
            print(f"  {sub}", file=sys.stderr)
    else:
        print(f"Error: {error}", file=sys.stderr)
    return 1


def tenant_init_main(argv: list) -> int:
    """Provision a tenant's namespaces."""
    parser = _common_parser('tenant init', 'Provision the namespaces of a tenant')
    parser.add_argument('--user', required=True, help='Tenant owner (e.g. alice@example.com)')
    parser.add_argument('--user-token', required=True, help="Tenant owner's bearer token")
    parser.add_argument('--var', action='append', metavar='KEY=VALUE',
                        help='Extra template variable (can be repeated)')
    parser.add_argument('--template-dir', help='Directory with template overrides')
    parser.add_argument('--team-version', help='Published template version to download')
    parser.add_argument('--kubernetes', action='store_true', default=None,
                        help='Use Kubernetes templates instead of OpenShift')
    parser.add_argument('--no-oso-quotas', action='store_true',
                        help='Skip the satellite quota templates (OpenShift)')
    parser.add_argument('--exposer', help='Expose controller strategy (Kubernetes), e.g. Ingress')
    parser.add_argument('--expose-domain', help='Domain for exposed services (Kubernetes)')
    parser.add_argument('--no-update', action='store_true',
                        help='Fail on existing objects instead of updating them')
    parser.add_argument('--json-output', action='store_true',
                        help='Print satellite results as JSON')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        credentials = _credentials(args)
        config = TenantConfig.from_env(
            credentials,
            template_dir=args.template_dir,
            team_version=args.team_version,
            kubernetes_mode=args.kubernetes,
            oso_quotas=False if args.no_oso_quotas else None,
            exposer=args.exposer,
            expose_domain=args.expose_domain,
            log_callback=logger.info,
        )
        callback = log_status if args.no_update else UpdateOnConflict(credentials)
        results = init_tenant(config, callback, args.user, args.user_token, _parse_vars(args.var))
    except (DriverError, ConfigError) as e:
        return _report_error(e)

    if args.json_output:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    return 0


def tenant_delete_main(argv: list) -> int:
    """Delete a tenant's namespaces."""
    parser = _common_parser('tenant delete', 'Delete the namespaces of a tenant')
    parser.add_argument('--user', required=True, help='Tenant owner (e.g. alice@example.com)')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        deleted = delete_tenant(_credentials(args), create_name(args.user))
    except (DriverError, ConfigError) as e:
        return _report_error(e)

    for namespace in deleted:
        print(f"Deleted {namespace}")
    return 0


def tenant_cleanup_main(argv: list) -> int:
    """Sweep a tenant's namespaces. Sweep errors are warnings only."""
    parser = _common_parser('tenant cleanup', 'Delete labelled resources in tenant namespaces')
    parser.add_argument('--user', required=True, help='Tenant owner (e.g. alice@example.com)')
    parser.add_argument('--selector', '-l', default=DEFAULT_SELECTOR,
                        help=f'Label selector (default: {DEFAULT_SELECTOR})')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        client = KubeClient(_credentials(args))
        reports = cleanup_tenant(client, create_name(args.user), args.selector)
    except (DriverError, ConfigError) as e:
        return _report_error(e)

    for report in reports:
        suffix = f", {len(report.errors)} warning(s)" if report.errors else ''
        print(f"{report.namespace}: deleted {len(report.deleted)} object(s){suffix}")
    return 0


def manifest_apply_main(argv: list) -> int:
    """Apply a manifest document."""
    parser = _common_parser('manifest apply', 'Apply a manifest or template to the cluster')
    parser.add_argument('file', help="Manifest file ('-' for stdin)")
    parser.add_argument('--namespace', '-n', default='',
                        help='Namespace for objects that declare none')
    parser.add_argument('--var', action='append', metavar='KEY=VALUE',
                        help='Template variable (can be repeated)')
    parser.add_argument('--update', action='store_true',
                        help='Update objects that already exist')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        credentials = _credentials(args)
        document = process_template(_read_document(args.file), _parse_vars(args.var))
        callback = UpdateOnConflict(credentials) if args.update else log_status
        apply(document, ApplyOptions(credentials, namespace=args.namespace, callback=callback))
    except (DriverError, ConfigError) as e:
        return _report_error(e)
    return 0


def manifest_validate_main(argv: list) -> int:
    """Parse and pre-flight a manifest document without contacting the cluster."""
    parser = _common_parser('manifest validate', 'Validate a manifest or template', cluster=False)
    parser.add_argument('file', help="Manifest file ('-' for stdin)")
    parser.add_argument('--namespace', '-n', default='',
                        help='Namespace for objects that declare none')
    parser.add_argument('--var', action='append', metavar='KEY=VALUE',
                        help='Template variable (can be repeated)')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        document = process_template(_read_document(args.file), _parse_vars(args.var))
        objects = prepare([document], args.namespace)
    except (DriverError, ConfigError) as e:
        return _report_error(e)

    unresolved = find_placeholders(document)
    if unresolved:
        logger.warning(f"Unresolved variables: {', '.join(unresolved)}")
    for obj in objects:
        namespace = obj.namespace if obj.has_namespace else '-'
        print(f"{obj.describe():<50} {namespace}")
    return 0


def wait_for_main(argv: list) -> int:
    """Wait for deployments to become ready."""
    parser = _common_parser('wait-for', 'Wait for Deployments and DeploymentConfigs to be ready')
    parser.add_argument('names', nargs='*', help='Deployment or DeploymentConfig names')
    parser.add_argument('--all', action='store_true', dest='wait_all',
                        help='Wait for every deployment in the namespace')
    parser.add_argument('--namespace', '-n', required=True, help='Namespace to watch')
    parser.add_argument('--timeout', default='60m',
                        help='Maximum wait, e.g. 1.5h, 12m, 10s (default: 60m)')
    parser.add_argument('--sleep', default='1s',
                        help='Polling interval (default: 1s)')
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.wait_all and not args.names:
        print("Error: specify deployment names or --all", file=sys.stderr)
        return 1

    try:
        max_wait = parse_duration(args.timeout)
        interval = parse_duration(args.sleep)
        client = KubeClient(_credentials(args))
        wait_for_ready(client, args.names, args.namespace, args.wait_all, max_wait, interval)
    except (DriverError, ConfigError) as e:
        return _report_error(e)
    return 0


TENANT_ACTIONS = {
    "init": tenant_init_main,
    "delete": tenant_delete_main,
    "cleanup": tenant_cleanup_main,
}

MANIFEST_ACTIONS = {
    "apply": manifest_apply_main,
    "validate": manifest_validate_main,
}


def _dispatch_actions(noun: str, actions: dict, argv: list) -> int:
    """Dispatch '<noun> <action>' to the action handler."""
    if not argv or argv[0].startswith('-'):
        print(f"Usage: tenant-driver {noun} <action> [options]")
        print()
        print(f"Actions: {', '.join(actions)}")
        print()
        print(f"Run 'tenant-driver {noun} <action> --help' for action-specific options.")
        return 1 if not argv else 0

    action = argv[0]
    handler = actions.get(action)
    if handler is None:
        print(f"Error: Unknown {noun} action '{action}'")
        print(f"Available actions: {', '.join(actions)}")
        return 1
    rc: int = handler(argv[1:])
    return rc


def dispatch_noun(noun: str, argv: list) -> int:
    """Dispatch to noun-specific CLI handler.

    Args:
        noun: The noun command (e.g., "tenant", "manifest")
        argv: Remaining command line arguments

    Returns:
        Exit code
    """
    if noun == "tenant":
        return _dispatch_actions(noun, TENANT_ACTIONS, argv)
    if noun == "manifest":
        return _dispatch_actions(noun, MANIFEST_ACTIONS, argv)
    if noun == "wait-for":
        return wait_for_main(argv)

    print(f"Error: Noun '{noun}' not yet implemented")
    return 1


def print_usage():
    """Print top-level usage showing noun commands."""
    print(f"tenant-driver {get_version()}")
    print()
    print("Usage: tenant-driver <noun> <action> [options]")
    print()
    print("Commands:")
    for noun, desc in NOUN_COMMANDS.items():
        print(f"  {noun:<12} {desc}")
    print()
    print("Examples:")
    print("  tenant-driver tenant init --user alice@example.com --user-token $TOKEN")
    print("  tenant-driver manifest apply app.yml -n alice --update")
    print("  tenant-driver wait-for --all -n alice-jenkins --timeout 10m")


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ('-h', '--help'):
        print_usage()
        return 0
    if argv[0] == '--version':
        print(f"tenant-driver {get_version()}")
        return 0

    noun = argv[0]
    if noun not in NOUN_COMMANDS:
        print(f"Error: Unknown command '{noun}'")
        print_usage()
        return 1
    return dispatch_noun(noun, argv[1:])


if __name__ == '__main__':
    sys.exit(main())
