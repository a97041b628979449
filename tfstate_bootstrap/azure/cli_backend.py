""" Azure CLI (az) backend for the provisioner """
import logging
from typing import List

from tfstate_bootstrap.azure.backend import (
    PRIVATE_ENDPOINT_GROUP_ID,
    STORAGE_ACCESS_TIER,
    STORAGE_BYPASS,
    STORAGE_DEFAULT_ACTION,
    STORAGE_KIND,
    STORAGE_MIN_TLS_VERSION,
    STORAGE_SKU,
    CloudBackend,
    RecordLookup,
)
from tfstate_bootstrap.core.utils import ShellCommandError, run_shell_command

NOT_FOUND_MARKERS = ("NotFound", "was not found", "could not be found")


class AzureCliBackend(CloudBackend):
    """Runs every operation through the az command line tool, using its current login and subscription"""

    def __init__(self, az_path: str = "az"):
        self.az_path = az_path
        self.logger = logging.getLogger(AzureCliBackend.__name__)

    def az(self, args: List[str], log_errors: bool = True) -> str:
        """Run an az command

        Args:
            args (List[str]): arguments after "az"
            log_errors (bool, optional): log the command's stderr on failure as error. Defaults to True.

        Returns:
            str: the stripped standard output
        """
        out, _ = run_shell_command([self.az_path] + args, log=self.logger, poll=False, log_errors=log_errors)
        return out.strip()

    def create_storage_account(self, name: str, resource_group: str, location: str) -> None:
        self.az(
            [
                "storage",
                "account",
                "create",
                "--name",
                name,
                "--resource-group",
                resource_group,
                "--location",
                location,
                "--kind",
                STORAGE_KIND,
                "--access-tier",
                STORAGE_ACCESS_TIER,
                "--min-tls-version",
                STORAGE_MIN_TLS_VERSION,
                "--require-infrastructure-encryption",
                "--https-only",
                "true",
                "--sku",
                STORAGE_SKU,
                "--default-action",
                STORAGE_DEFAULT_ACTION,
                "--bypass",
                STORAGE_BYPASS,
                "--output",
                "none",
            ]
        )

    def get_storage_account_id(self, name: str, resource_group: str) -> str:
        return self.az(
            ["storage", "account", "show", "--name", name, "--resource-group", resource_group, "--query", "id", "-o", "tsv"]
        )

    def get_subnet_id(self, resource_group: str, vnet_name: str, subnet_name: str) -> str:
        return self.az(
            [
                "network",
                "vnet",
                "subnet",
                "show",
                "--resource-group",
                resource_group,
                "--vnet-name",
                vnet_name,
                "--name",
                subnet_name,
                "--query",
                "id",
                "-o",
                "tsv",
            ]
        )

    def create_private_endpoint(
        self,
        name: str,
        resource_group: str,
        location: str,
        subnet_id: str,
        resource_id: str,
        connection_name: str,
    ) -> None:
        self.az(
            [
                "network",
                "private-endpoint",
                "create",
                "--name",
                name,
                "--resource-group",
                resource_group,
                "--subnet-id",
                subnet_id,
                "--private-connection-resource-id",
                resource_id,
                "--group-id",
                PRIVATE_ENDPOINT_GROUP_ID,
                "--connection-name",
                connection_name,
                "--location",
                location,
                "--output",
                "none",
            ]
        )

    def get_private_endpoint_ip(self, name: str, resource_group: str) -> str:
        return self.az(
            [
                "network",
                "private-endpoint",
                "show",
                "--name",
                name,
                "--resource-group",
                resource_group,
                "--query",
                "customDnsConfigs[0].ipAddresses[0]",
                "-o",
                "tsv",
            ]
        )

    def add_storage_network_rule(self, account_name: str, resource_group: str, subnet_id: str) -> None:
        self.az(
            [
                "storage",
                "account",
                "network-rule",
                "add",
                "--resource-group",
                resource_group,
                "--account-name",
                account_name,
                "--subnet",
                subnet_id,
                "--output",
                "none",
            ]
        )

    def get_subscription(self) -> str:
        return self.az(["account", "show", "--query", "id", "-o", "tsv"])

    def set_subscription(self, subscription_id: str) -> None:
        self.az(["account", "set", "--subscription", subscription_id])

    def show_a_record(self, resource_group: str, zone: str, name: str) -> RecordLookup:
        try:
            record_id = self.az(
                [
                    "network",
                    "private-dns",
                    "record-set",
                    "a",
                    "show",
                    "--resource-group",
                    resource_group,
                    "--zone-name",
                    zone,
                    "--name",
                    name,
                    "--query",
                    "id",
                    "-o",
                    "tsv",
                ],
                log_errors=False,
            )
        except ShellCommandError as e:
            if any(marker in e.stderr for marker in NOT_FOUND_MARKERS):
                return RecordLookup.absent()
            return RecordLookup.absent(error=e.stderr.strip() or str(e))

        return RecordLookup.present(record_id) if record_id else RecordLookup.absent()

    def create_a_record_set(self, resource_group: str, zone: str, name: str, ttl: int) -> None:
        self.az(
            [
                "network",
                "private-dns",
                "record-set",
                "a",
                "create",
                "--resource-group",
                resource_group,
                "--zone-name",
                zone,
                "--name",
                name,
                "--ttl",
                str(ttl),
                "--output",
                "none",
            ]
        )

    def add_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        self.az(
            [
                "network",
                "private-dns",
                "record-set",
                "a",
                "add-record",
                "--resource-group",
                resource_group,
                "--zone-name",
                zone,
                "--record-set-name",
                name,
                "--ipv4-address",
                ip,
                "--output",
                "none",
            ]
        )

    def update_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        self.az(
            [
                "network",
                "private-dns",
                "record-set",
                "a",
                "update",
                "--resource-group",
                resource_group,
                "--zone-name",
                zone,
                "--name",
                name,
                "--set",
                f"aRecords[0].ipv4Address={ip}",
                "--output",
                "none",
            ]
        )

    def create_container(self, account_name: str, resource_group: str, container_name: str) -> None:
        self.az(
            [
                "storage",
                "container",
                "create",
                "--account-name",
                account_name,
                "--name",
                container_name,
                "--public-access",
                "off",
                "--auth-mode",
                "login",
                "--output",
                "none",
            ]
        )
