"""Terraform wrapper for the remote OIDC federation module of the managed identity"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Tuple, Union

from tfstate_bootstrap.core.config import UsageError
from tfstate_bootstrap.core.utils import run_shell_command

MODULE_NAME = "oidc"


@dataclass(frozen=True)
class OidcModuleParameters:
    """Inputs passed through to the module unchanged"""

    subscription_id: str
    tenant_id: str
    resource_group: str
    location: str
    identity_name: str
    scope: str
    github_org: str
    github_repo: str

    def __post_init__(self):
        missing = [name for name, value in asdict(self).items() if not value]
        if missing:
            raise UsageError(f"Missing required parameters: {', '.join(missing)}", missing)


class OidcFederationModule:
    """Renders a root configuration calling the pinned module and runs terraform on it"""

    def __init__(self, source: str, ref: str, workdir: Union[str, Path], terraform_path: str = "terraform"):
        """Create the module wrapper

        Args:
            source (str): module source, e.g. a git URL
            ref (str): pinned git ref (tag or commit) of the module
            workdir (Union[str, Path]): directory to render the configuration in and run terraform from
            terraform_path (str, optional): terraform executable. Defaults to "terraform".

        Raises:
            UsageError: If source or ref is empty
        """
        missing = [name for name, value in (("source", source), ("ref", ref)) if not value]
        if missing:
            raise UsageError(f"Missing required parameters: {', '.join(missing)}", missing)

        self.source = source
        self.ref = ref
        self.workdir = Path(workdir)
        self.terraform_path = terraform_path
        self.logger = logging.getLogger(OidcFederationModule.__name__)

    @property
    def module_source(self) -> str:
        separator = "&" if "?" in self.source else "?"
        return f"{self.source}{separator}ref={self.ref}"

    @property
    def config_path(self) -> Path:
        return self.workdir / "main.tf.json"

    def render(self, params: OidcModuleParameters) -> Path:
        """Write main.tf.json with a single module block

        Args:
            params (OidcModuleParameters): module inputs

        Returns:
            Path: the written configuration file
        """
        config = {"module": {MODULE_NAME: dict(source=self.module_source, **asdict(params))}}

        self.workdir.mkdir(parents=True, exist_ok=True)
        with self.config_path.open("w") as f:
            json.dump(config, f, indent=2)
            f.write("\n")

        self.logger.info(f"Rendered OIDC module configuration: {self.config_path}")
        return self.config_path

    def terraform(self, args: List[str]) -> Tuple[str, str]:
        return run_shell_command(
            [self.terraform_path, f"-chdir={self.workdir}"] + args, show_info=True, log=self.logger
        )

    def init(self) -> None:
        self.terraform(["init", "-input=false"])

    def plan(self) -> None:
        self.terraform(["plan", "-input=false"])

    def apply(self, auto_approve: bool = True) -> None:
        args = ["apply", "-input=false"]
        if auto_approve:
            args.append("-auto-approve")
        self.terraform(args)

    def deploy(self, params: OidcModuleParameters, plan_only: bool = False) -> None:
        """Render the configuration, initialize it and plan or apply it

        Args:
            params (OidcModuleParameters): module inputs
            plan_only (bool, optional): only show the plan. Defaults to False.
        """
        self.render(params)
        self.init()
        if plan_only:
            self.plan()
        else:
            self.apply()
