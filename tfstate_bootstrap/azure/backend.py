"""Cloud backend interface used by the provisioner, and the DNS record lookup result"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Storage account security posture, the same for every backend
STORAGE_KIND = "StorageV2"
STORAGE_ACCESS_TIER = "Hot"
STORAGE_SKU = "Standard_LRS"
STORAGE_MIN_TLS_VERSION = "TLS1_2"
STORAGE_DEFAULT_ACTION = "Deny"
STORAGE_BYPASS = "AzureServices"

PRIVATE_ENDPOINT_GROUP_ID = "blob"
DNS_RECORD_TTL = 3600


class RecordState(Enum):
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class RecordLookup:
    """Result of looking up a private DNS A record set.

    ``error`` is set when the lookup failed for a reason other than the record not existing,
    the state is ABSENT in that case too.
    """

    state: RecordState
    record_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def absent(cls, error: Optional[str] = None) -> "RecordLookup":
        return cls(RecordState.ABSENT, error=error)

    @classmethod
    def present(cls, record_id: str) -> "RecordLookup":
        return cls(RecordState.PRESENT, record_id=record_id)

    @property
    def exists(self) -> bool:
        return self.state is RecordState.PRESENT


class CloudBackend(ABC):
    """Operations the provisioner needs from Azure.

    Failing operations raise a RuntimeError (AzureError, ShellCommandError) or an azure.core error,
    except show_a_record, which reports failures in its result.
    """

    @abstractmethod
    def create_storage_account(self, name: str, resource_group: str, location: str) -> None:
        ...

    @abstractmethod
    def get_storage_account_id(self, name: str, resource_group: str) -> str:
        ...

    @abstractmethod
    def get_subnet_id(self, resource_group: str, vnet_name: str, subnet_name: str) -> str:
        ...

    @abstractmethod
    def create_private_endpoint(
        self,
        name: str,
        resource_group: str,
        location: str,
        subnet_id: str,
        resource_id: str,
        connection_name: str,
    ) -> None:
        ...

    @abstractmethod
    def get_private_endpoint_ip(self, name: str, resource_group: str) -> str:
        ...

    @abstractmethod
    def add_storage_network_rule(self, account_name: str, resource_group: str, subnet_id: str) -> None:
        ...

    @abstractmethod
    def get_subscription(self) -> str:
        ...

    @abstractmethod
    def set_subscription(self, subscription_id: str) -> None:
        ...

    @abstractmethod
    def show_a_record(self, resource_group: str, zone: str, name: str) -> RecordLookup:
        ...

    @abstractmethod
    def create_a_record_set(self, resource_group: str, zone: str, name: str, ttl: int) -> None:
        ...

    @abstractmethod
    def add_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        ...

    @abstractmethod
    def update_a_record(self, resource_group: str, zone: str, name: str, ip: str) -> None:
        ...

    @abstractmethod
    def create_container(self, account_name: str, resource_group: str, container_name: str) -> None:
        ...
