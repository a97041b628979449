from typing import Dict, List, Optional, Tuple

import pytest
from tfstate_bootstrap.azure.api import AzureError
from tfstate_bootstrap.azure.backend import CloudBackend, RecordLookup
from tfstate_bootstrap.core.config import DeploymentRequest


class FakeBackend(CloudBackend):
    """In-memory Azure: records every call, keeps private DNS zones per subscription"""

    def __init__(self, subscription: str = "sub-main", private_ip: str = "10.0.0.5"):
        self.subscription = subscription
        self.private_ip = private_ip
        self.calls: List[Tuple] = []
        self.fail: set = set()
        self.fail_subscriptions: set = set()
        self.lookup_error: Optional[str] = None
        self.zones: Dict[Tuple[str, str, str], Dict[str, dict]] = {}
        self.storage_accounts: Dict[str, dict] = {}
        self.containers: List[Tuple[str, str]] = []

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise AzureError(f"{name} failed")

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def zone(self, resource_group: str, zone: str, subscription: str = None) -> Dict[str, dict]:
        return self.zones.setdefault((subscription or self.subscription, resource_group, zone), {})

    def create_storage_account(self, name, resource_group, location):
        self._call("create_storage_account", name, resource_group, location)
        self.storage_accounts[name] = {"resource_group": resource_group, "subnets": []}

    def get_storage_account_id(self, name, resource_group):
        self._call("get_storage_account_id", name, resource_group)
        return f"/subscriptions/{self.subscription}/resourceGroups/{resource_group}/storageAccounts/{name}"

    def get_subnet_id(self, resource_group, vnet_name, subnet_name):
        self._call("get_subnet_id", resource_group, vnet_name, subnet_name)
        return f"/vnets/{vnet_name}/subnets/{subnet_name}"

    def create_private_endpoint(self, name, resource_group, location, subnet_id, resource_id, connection_name):
        self._call("create_private_endpoint", name, resource_group, location, subnet_id, resource_id, connection_name)

    def get_private_endpoint_ip(self, name, resource_group):
        self._call("get_private_endpoint_ip", name, resource_group)
        return self.private_ip

    def add_storage_network_rule(self, account_name, resource_group, subnet_id):
        self._call("add_storage_network_rule", account_name, resource_group, subnet_id)
        account = self.storage_accounts.setdefault(account_name, {"resource_group": resource_group, "subnets": []})
        account["subnets"].append(subnet_id)

    def get_subscription(self):
        self._call("get_subscription")
        return self.subscription

    def set_subscription(self, subscription_id):
        self._call("set_subscription", subscription_id)
        if subscription_id in self.fail_subscriptions:
            raise AzureError(f"cannot switch to {subscription_id}")
        self.subscription = subscription_id

    def show_a_record(self, resource_group, zone, name):
        self.calls.append(("show_a_record", resource_group, zone, name))
        if self.lookup_error:
            return RecordLookup.absent(error=self.lookup_error)
        record = self.zone(resource_group, zone).get(name)
        return RecordLookup.present(record["id"]) if record else RecordLookup.absent()

    def create_a_record_set(self, resource_group, zone, name, ttl):
        self._call("create_a_record_set", resource_group, zone, name, ttl)
        self.zone(resource_group, zone)[name] = {"id": f"/{zone}/A/{name}", "ttl": ttl, "ips": []}

    def add_a_record(self, resource_group, zone, name, ip):
        self._call("add_a_record", resource_group, zone, name, ip)
        self.zone(resource_group, zone)[name]["ips"].append(ip)

    def update_a_record(self, resource_group, zone, name, ip):
        self._call("update_a_record", resource_group, zone, name, ip)
        self.zone(resource_group, zone)[name]["ips"][0] = ip

    def create_container(self, account_name, resource_group, container_name):
        self._call("create_container", account_name, resource_group, container_name)
        self.containers.append((account_name, container_name))


PARAMS = {
    "resourceGroup": "rg1",
    "location": "eastus",
    "storageAccountName": "st1",
    "vnetName": "vnet1",
    "subnetName": "snet1",
    "privateEndpointName": "st1-pe",
    "dnsSubscriptionId": "sub-dns",
    "dnsResourceGroup": "dns-rg",
    "dnsZoneName": "privatelink.blob.core.windows.net",
    "containerName": "tfstate",
}


@pytest.fixture
def params() -> dict:
    return dict(PARAMS)


@pytest.fixture
def request_params(params) -> DeploymentRequest:
    return DeploymentRequest.from_dict(params)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
