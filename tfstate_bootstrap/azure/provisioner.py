"""
Provisioning of the Terraform state backend: storage account, private endpoint, private DNS record and container.
The stages run in order and the first failing step aborts the deployment, created resources are left in place.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from tfstate_bootstrap.azure.api import StageFailure
from tfstate_bootstrap.azure.backend import DNS_RECORD_TTL, CloudBackend
from tfstate_bootstrap.core.config import DeploymentRequest

from azure.core.exceptions import AzureError as AzureCoreError


@dataclass(frozen=True)
class EndpointBinding:
    subnet_id: str
    storage_account_id: str
    private_ip: str


@dataclass(frozen=True)
class ProvisioningResult:
    storage_account_name: str
    private_ip: str
    dns_record_fqdn: str
    container_name: str
    dns_action: str


class Provisioner:
    """Runs the deployment stages against a cloud backend"""

    def __init__(self, backend: CloudBackend, strict_dns_lookup: bool = False):
        """Create the provisioner

        Args:
            backend (CloudBackend): backend executing the Azure operations
            strict_dns_lookup (bool, optional): fail when the DNS record lookup errors for a reason
                                                other than a missing record. Defaults to False.
        """
        self.backend = backend
        self.strict_dns_lookup = strict_dns_lookup
        self.logger = logging.getLogger(Provisioner.__name__)

    @contextmanager
    def _stage(self, label: str) -> Iterator[None]:
        try:
            yield
        except (RuntimeError, AzureCoreError) as e:
            if isinstance(e, StageFailure):
                raise
            self.logger.debug(f"{label} failed: {e}")
            raise StageFailure(label) from e

    def run(self, request: DeploymentRequest) -> ProvisioningResult:
        """Execute all stages in order

        Args:
            request (DeploymentRequest): the deployment parameters

        Raises:
            StageFailure: on the first failing step

        Returns:
            ProvisioningResult: what was deployed
        """
        self.provision_storage(request)
        binding = self.bind_private_endpoint(request)

        with self._stage("Reading current subscription"):
            subscription = self.backend.get_subscription()
        _, dns_action = self.reconcile_dns_record(request, binding.private_ip, subscription)

        self.initialize_container(request)

        return ProvisioningResult(
            storage_account_name=request.storage_account_name,
            private_ip=binding.private_ip,
            dns_record_fqdn=request.dns_record_fqdn,
            container_name=request.container_name,
            dns_action=dns_action,
        )

    def provision_storage(self, request: DeploymentRequest) -> None:
        self.logger.info(f"Creating storage account: {request.storage_account_name}")
        with self._stage("Storage account creation"):
            self.backend.create_storage_account(
                request.storage_account_name, request.resource_group, request.location
            )

    def bind_private_endpoint(self, request: DeploymentRequest) -> EndpointBinding:
        """Create the private endpoint for the blob service and allow its subnet on the storage account

        Args:
            request (DeploymentRequest): the deployment parameters

        Raises:
            StageFailure: if any step fails or the endpoint has no private IP

        Returns:
            EndpointBinding: subnet, storage account and the endpoint's private IP
        """
        self.logger.info("Creating private endpoint for storage account")
        with self._stage("Subnet ID retrieval"):
            subnet_id = self.backend.get_subnet_id(request.resource_group, request.vnet_name, request.subnet_name)

        with self._stage("Storage account ID retrieval"):
            storage_account_id = self.backend.get_storage_account_id(
                request.storage_account_name, request.resource_group
            )

        with self._stage("Private endpoint creation"):
            self.backend.create_private_endpoint(
                request.private_endpoint_name,
                request.resource_group,
                request.location,
                subnet_id,
                storage_account_id,
                request.private_link_connection_name,
            )

        self.logger.info("Configuring storage account network rules")
        with self._stage("Private endpoint IP retrieval"):
            private_ip = self.backend.get_private_endpoint_ip(request.private_endpoint_name, request.resource_group)
        if not private_ip:
            self.logger.error(f"Private endpoint {request.private_endpoint_name} has no private IP address")
            raise StageFailure("Private endpoint IP retrieval")

        with self._stage("Network rule addition"):
            self.backend.add_storage_network_rule(request.storage_account_name, request.resource_group, subnet_id)

        return EndpointBinding(subnet_id=subnet_id, storage_account_id=storage_account_id, private_ip=private_ip)

    def reconcile_dns_record(self, request: DeploymentRequest, private_ip: str, subscription: str) -> tuple:
        """Create or update the storage account's A record in the private DNS zone of the DNS subscription.
        The subscription passed in is active again when this returns, whichever branch ran and even on failure.
        If restoring it fails while a record change is already failing, the record failure is raised.

        Args:
            request (DeploymentRequest): the deployment parameters
            private_ip (str): the private endpoint's IP address
            subscription (str): the subscription active before the DNS stage

        Raises:
            StageFailure: if switching subscriptions or changing the record fails

        Returns:
            tuple: the active subscription afterwards and "created" or "updated"
        """
        self.logger.info(f"Creating DNS A record in subscription {request.dns_subscription_id}")
        with self._stage("Switching to DNS subscription"):
            self.backend.set_subscription(request.dns_subscription_id)

        try:
            lookup = self.backend.show_a_record(request.dns_resource_group, request.dns_zone_name, request.dns_record_name)
            if lookup.error:
                if self.strict_dns_lookup:
                    self.logger.error(f"A record lookup failed: {lookup.error}")
                    raise StageFailure("A record lookup")
                self.logger.warning(f"A record lookup failed, assuming there is no record: {lookup.error}")

            if lookup.exists:
                self.logger.info("Updating existing A record")
                with self._stage("A record update"):
                    self.backend.update_a_record(
                        request.dns_resource_group, request.dns_zone_name, request.dns_record_name, private_ip
                    )
                action = "updated"
            else:
                self.logger.info("Creating new A record")
                with self._stage("A record creation"):
                    self.backend.create_a_record_set(
                        request.dns_resource_group, request.dns_zone_name, request.dns_record_name, DNS_RECORD_TTL
                    )
                with self._stage("A record IP addition"):
                    self.backend.add_a_record(
                        request.dns_resource_group, request.dns_zone_name, request.dns_record_name, private_ip
                    )
                action = "created"
        except Exception:
            try:
                self._restore_subscription(subscription)
            except StageFailure as restore_failure:
                self.logger.error(f"{restore_failure} while handling a DNS record failure")
            raise

        self._restore_subscription(subscription)
        return subscription, action

    def _restore_subscription(self, subscription: str) -> None:
        with self._stage("Switching back to original subscription"):
            self.backend.set_subscription(subscription)

    def initialize_container(self, request: DeploymentRequest) -> None:
        self.logger.info(f"Creating storage container: {request.container_name}")
        with self._stage("Storage container creation"):
            self.backend.create_container(request.storage_account_name, request.resource_group, request.container_name)
