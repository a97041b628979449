"""
Module manager containing the AzureManager class,
which provisions the state backend resources through the Azure management SDK.
"""
from pathlib import Path
from typing import Optional

from tfstate_bootstrap.azure.api import AzureApi, AzureError
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

from azure.core.exceptions import AzureError as AzureCoreError
from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import PrivateEndpoint, PrivateLinkServiceConnection, Subnet
from azure.mgmt.privatedns import PrivateDnsManagementClient
from azure.mgmt.privatedns.models import ARecord, RecordSet
from azure.mgmt.storage import StorageManagementClient
from azure.mgmt.storage.models import Encryption, NetworkRuleSet
from azure.mgmt.storage.models import Sku as StorageSku
from azure.mgmt.storage.models import StorageAccountCreateParameters, StorageAccountUpdateParameters, VirtualNetworkRule
from azure.storage.blob import BlobServiceClient


class AzureManager(AzureApi, CloudBackend):
    """Azure Python API wrapper for the state backend deployment.

    The active subscription is the one the management clients are created for,
    switching it only changes which clients are handed out.

    Raises:
        AzureError: When something goes wrong an AzureError with description is raised
    """

    def __init__(self, auth_path: Optional[Path] = None, subscription_id: Optional[str] = None):
        """Initialize the AzureManager class

        Args:
            auth_path (Path, optional): location of azure auth json file. Defaults to None.
            subscription_id (str, optional): subscription to start in. Defaults to None.
        """
        super(AzureManager, self).__init__(auth_path, subscription_id)
        self.logger.debug("Azure Manager API init completed.")

    def create_storage_account(self, name: str, resource_group: str, location: str) -> None:
        self.logger.info(f"Creating storage account: {name}")

        params = StorageAccountCreateParameters(
            sku=StorageSku(name=STORAGE_SKU),
            kind=STORAGE_KIND,
            location=location,
            access_tier=STORAGE_ACCESS_TIER,
            minimum_tls_version=STORAGE_MIN_TLS_VERSION,
            enable_https_traffic_only=True,
            allow_blob_public_access=False,
            encryption=Encryption(key_source="Microsoft.Storage", require_infrastructure_encryption=True),
            network_rule_set=NetworkRuleSet(
                default_action=STORAGE_DEFAULT_ACTION,
                bypass=STORAGE_BYPASS,
                virtual_network_rules=[],
                ip_rules=[],
            ),
        )

        poller = self.client(StorageManagementClient).storage_accounts.begin_create(resource_group, name, params)
        poller.result()

    def get_storage_account_id(self, name: str, resource_group: str) -> str:
        return self.client(StorageManagementClient).storage_accounts.get_properties(resource_group, name).id

    def get_subnet_id(self, resource_group: str, vnet_name: str, subnet_name: str) -> str:
        return self.client(NetworkManagementClient).subnets.get(resource_group, vnet_name, subnet_name).id

    def create_private_endpoint(
        self,
        name: str,
        resource_group: str,
        location: str,
        subnet_id: str,
        resource_id: str,
        connection_name: str,
    ) -> None:
        self.logger.info(f"Creating private endpoint: {name}")

        params = PrivateEndpoint(
            location=location,
            subnet=Subnet(id=subnet_id),
            private_link_service_connections=[
                PrivateLinkServiceConnection(
                    name=connection_name,
                    private_link_service_id=resource_id,
                    group_ids=[PRIVATE_ENDPOINT_GROUP_ID],
                )
            ],
        )

        poller = self.client(NetworkManagementClient).private_endpoints.begin_create_or_update(
            resource_group, name, params
        )
        poller.result()

    def get_private_endpoint_ip(self, name: str, resource_group: str) -> str:
        """Get the first IP address of the private endpoint's DNS configuration

        Raises:
            AzureError: If the endpoint has no IP address assigned yet

        Returns:
            str: private IP address
        """
        endpoint = self.client(NetworkManagementClient).private_endpoints.get(resource_group, name)
        configs = endpoint.custom_dns_configs or []
        if not configs or not configs[0].ip_addresses:
            raise AzureError(f"Private endpoint {name} has no IP address in its DNS configuration")
        return configs[0].ip_addresses[0]

    def add_storage_network_rule(self, account_name: str, resource_group: str, subnet_id: str) -> None:
        self.logger.info(f"Allowing subnet access on storage account: {account_name}")

        storage_client = self.client(StorageManagementClient)
        account = storage_client.storage_accounts.get_properties(resource_group, account_name)

        rules = account.network_rule_set or NetworkRuleSet(default_action=STORAGE_DEFAULT_ACTION)
        vnet_rules = list(rules.virtual_network_rules or [])
        if subnet_id not in [rule.virtual_network_resource_id for rule in vnet_rules]:
            vnet_rules.append(VirtualNetworkRule(virtual_network_resource_id=subnet_id, action="Allow"))
        rules.virtual_network_rules = vnet_rules

        storage_client.storage_accounts.update(
            resource_group, account_name, StorageAccountUpdateParameters(network_rule_set=rules)
        )

    def get_subscription(self) -> str:
        return self.subscription_id

    def set_subscription(self, subscription_id: str) -> None:
        self.logger.debug(f"Switching subscription: {self.subscription_id} -> {subscription_id}")
        self.subscription_id = subscription_id

    def show_a_record(self, resource_group: str, zone: str, name: str) -> RecordLookup:
        try:
            record_set = self.client(PrivateDnsManagementClient).record_sets.get(resource_group, zone, "A", name)
        except ResourceNotFoundError:
            return RecordLookup.absent()
        except AzureCoreError as e:
            return RecordLookup.absent(error=str(e))

        return RecordLookup.present(record_set.id) if record_set.id else RecordLookup.absent()

    def create_a_record_set(self, resource_group: str, zone: str, name: str, ttl: int) -> None:
        self.logger.info(f"Creating Private DNS record set {name}.{zone}")
        self.client(PrivateDnsManagementClient).record_sets.create_or_update(
            resource_group,
            zone,
            "A",
            name,
            RecordSet(ttl=ttl, a_records=[]),
            if_none_match="*",
        )

    def add_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        self.logger.info(f"Adding {ip} to Private DNS record {name}.{zone}")
        dns_client = self.client(PrivateDnsManagementClient)

        record_set = dns_client.record_sets.get(resource_group, zone, "A", name)
        record_set.a_records = list(record_set.a_records or []) + [ARecord(ipv4_address=ip)]

        dns_client.record_sets.create_or_update(resource_group, zone, "A", name, record_set)

    def update_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        """Point the first A value of the record set to a new IP address

        Raises:
            AzureError: If the record set has no A values
        """
        self.logger.info(f"Updating Private DNS record {name}.{zone} to {ip}")
        dns_client = self.client(PrivateDnsManagementClient)

        record_set = dns_client.record_sets.get(resource_group, zone, "A", name)
        if not record_set.a_records:
            raise AzureError(f"Private DNS record set {name}.{zone} has no A records to update")
        record_set.a_records[0].ipv4_address = ip

        dns_client.record_sets.update(resource_group, zone, "A", name, record_set)

    def create_container(self, account_name: str, resource_group: str, container_name: str) -> None:
        """Create a private blob container through the account's own blob endpoint

        Raises:
            AzureError: If the storage account does not publish a blob endpoint
        """
        self.logger.info(f"Creating blob container: {container_name}")
        account = self.client(StorageManagementClient).storage_accounts.get_properties(resource_group, account_name)
        endpoints = account.primary_endpoints
        if endpoints is None or not endpoints.blob:
            raise AzureError(f"Storage account {account_name} has no blob endpoint")

        blob_service = BlobServiceClient(account_url=endpoints.blob, credential=self.credentials)
        blob_service.create_container(container_name, public_access=None)
