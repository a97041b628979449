"""Command line entry points: tfstate-bootstrap and tfstate-oidc"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from tfstate_bootstrap.azure.api import AzureError, StageFailure
from tfstate_bootstrap.azure.backend import CloudBackend
from tfstate_bootstrap.azure.cli_backend import AzureCliBackend
from tfstate_bootstrap.azure.provisioner import Provisioner, ProvisioningResult
from tfstate_bootstrap.core.config import PARAMETERS, DeploymentRequest, UsageError, resolve_request
from tfstate_bootstrap.core.utils import setup_logging
from tfstate_bootstrap.terraform.oidc import OidcFederationModule, OidcModuleParameters

GREEN = "\033[0;32m"
RED = "\033[0;31m"
NC = "\033[0m"

PROG = "tfstate-bootstrap"

USAGE = (
    f"Usage: {PROG} [-f <params_file>] [-r <resource_group>] [-l <location>] [-s <storage_account_name>]"
    " [-v <vnet_name>] [-n <subnet_name>] [-p <private_endpoint_name>] [-d <dns_subscription_id>]"
    " [-g <dns_resource_group>] [-z <dns_zone_name>] [-c <container_name>]"
    " [--backend {cli,sdk}] [--subscription <id>] [--auth-file <path>] [--strict-dns-lookup] [--verbose]\n"
    "  -f: Path to parameters file (e.g., params_dev.json)\n"
    f"  Required parameters: {', '.join(p.key for p in PARAMETERS)}\n"
    f"  Example with file: {PROG} -f params_dev.json\n"
    f"  Example with args: {PROG} -r my-rg -l eastus -s mystorage123 -v my-vnet -n my-subnet -p mystorage123-pe"
    " -d <dns-sub-id> -g dns-rg -z privatelink.blob.core.windows.net -c tfstate"
)


class _UsageExit(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser which reports problems through the usage text instead of exiting with 2"""

    def error(self, message):
        error(message)
        raise _UsageExit()


def error(message: str) -> None:
    print(f"{RED}Error: {message}{NC}", file=sys.stderr)


def usage() -> int:
    print(USAGE)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=PROG, add_help=False)
    parser.add_argument("-h", action="store_true", dest="help")
    parser.add_argument("-f", dest="params_file")
    for p in PARAMETERS:
        parser.add_argument(f"-{p.flag}", dest=p.key)
    parser.add_argument("--backend", choices=["cli", "sdk"], default="cli")
    parser.add_argument("--subscription", help="starting subscription for the sdk backend")
    parser.add_argument("--auth-file", type=Path, help="service principal identity file for the sdk backend")
    parser.add_argument("--strict-dns-lookup", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser


def create_backend(args: argparse.Namespace) -> CloudBackend:
    """Create the cloud backend selected on the command line

    Args:
        args (argparse.Namespace): parsed arguments

    Returns:
        CloudBackend: the az CLI or the SDK backend
    """
    if args.backend == "sdk":
        from tfstate_bootstrap.azure.manager import AzureManager

        return AzureManager(auth_path=args.auth_file, subscription_id=args.subscription)
    return AzureCliBackend()


def print_settings(request: DeploymentRequest) -> None:
    print(f"{GREEN}Starting deployment with the following settings:{NC}")
    for label, value in request.settings():
        print(f"{label}: {value}")


def print_summary(result: ProvisioningResult) -> None:
    print(f"{GREEN}Deployment completed successfully!{NC}")
    print(f"Storage Account: {result.storage_account_name}")
    print(f"Private Endpoint IP: {result.private_ip}")
    print(f"DNS A Record: {result.dns_record_fqdn}")
    print(f"Container: {result.container_name}")


def main(argv: Optional[List[str]] = None, backend: Optional[CloudBackend] = None) -> int:
    """Provision the state backend

    Args:
        argv (Optional[List[str]], optional): command line arguments. Defaults to sys.argv[1:].
        backend (Optional[CloudBackend], optional): backend to use instead of the one selected by --backend.

    Returns:
        int: exit code
    """
    try:
        args = build_parser().parse_args(argv)
    except _UsageExit:
        return usage()
    if args.help:
        return usage()

    setup_logging(args.verbose)

    try:
        request = resolve_request({p.key: getattr(args, p.key) for p in PARAMETERS}, args.params_file)
    except UsageError as e:
        if e.missing:
            for key in e.missing:
                error(f"Missing required parameter: {key}")
        else:
            error(str(e))
        return usage()

    print_settings(request)

    try:
        if backend is None:
            backend = create_backend(args)
        result = Provisioner(backend, strict_dns_lookup=args.strict_dns_lookup).run(request)
    except StageFailure as e:
        error(f"{e.label} failed")
        return 1
    except AzureError as e:
        error(str(e))
        return 1

    print_summary(result)
    return 0


def build_oidc_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tfstate-oidc", description="Apply the pinned OIDC federation module for a managed identity."
    )
    parser.add_argument("--source", required=True, help="module source, e.g. git::https://github.com/org/module.git")
    parser.add_argument("--ref", required=True, help="pinned module ref (tag or commit)")
    parser.add_argument("--workdir", type=Path, default=Path("oidc"), help="where to render and run terraform")
    parser.add_argument("--subscription-id", required=True)
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--resource-group", required=True)
    parser.add_argument("--location", required=True)
    parser.add_argument("--identity-name", required=True)
    parser.add_argument("--scope", required=True)
    parser.add_argument("--org", required=True, help="source control organization")
    parser.add_argument("--repo", required=True, help="source control repository")
    parser.add_argument("--plan-only", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser


def oidc_main(argv: Optional[List[str]] = None) -> int:
    """Render and apply the OIDC federation module

    Args:
        argv (Optional[List[str]], optional): command line arguments. Defaults to sys.argv[1:].

    Returns:
        int: exit code
    """
    args = build_oidc_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        params = OidcModuleParameters(
            subscription_id=args.subscription_id,
            tenant_id=args.tenant_id,
            resource_group=args.resource_group,
            location=args.location,
            identity_name=args.identity_name,
            scope=args.scope,
            github_org=args.org,
            github_repo=args.repo,
        )
        module = OidcFederationModule(args.source, args.ref, args.workdir)
    except UsageError as e:
        error(str(e))
        return 1

    try:
        module.deploy(params, plan_only=args.plan_only)
    except RuntimeError as e:
        error(f"OIDC module deployment failed: {e}")
        return 1

    print(f"{GREEN}OIDC federation module {'planned' if args.plan_only else 'applied'} successfully!{NC}")
    return 0
