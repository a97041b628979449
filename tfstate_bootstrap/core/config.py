"""
Deployment parameters: the Deployment Request and its sources (command line flags and a JSON parameters file).
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Union


class UsageError(ValueError):
    """Missing or invalid input, detected before any Azure call is made"""

    def __init__(self, message: str, missing: List[str] = None):
        super(UsageError, self).__init__(message)
        self.missing = missing or []


class Parameter(NamedTuple):
    key: str
    flag: str
    field: str
    label: str


PARAMETERS = (
    Parameter("resourceGroup", "r", "resource_group", "Resource Group"),
    Parameter("location", "l", "location", "Location"),
    Parameter("storageAccountName", "s", "storage_account_name", "Storage Account"),
    Parameter("vnetName", "v", "vnet_name", "VNet"),
    Parameter("subnetName", "n", "subnet_name", "Subnet"),
    Parameter("privateEndpointName", "p", "private_endpoint_name", "Private Endpoint"),
    Parameter("dnsSubscriptionId", "d", "dns_subscription_id", "DNS Subscription"),
    Parameter("dnsResourceGroup", "g", "dns_resource_group", "DNS Resource Group"),
    Parameter("dnsZoneName", "z", "dns_zone_name", "DNS Zone"),
    Parameter("containerName", "c", "container_name", "Container"),
)


@dataclass(frozen=True)
class DeploymentRequest:
    """Everything needed to provision the state backend, fixed for the whole run"""

    resource_group: str
    location: str
    storage_account_name: str
    vnet_name: str
    subnet_name: str
    private_endpoint_name: str
    dns_subscription_id: str
    dns_resource_group: str
    dns_zone_name: str
    container_name: str

    def __post_init__(self):
        missing = [p.key for p in PARAMETERS if not getattr(self, p.field)]
        if missing:
            raise UsageError(f"Missing required parameters: {', '.join(missing)}", missing)

    @property
    def dns_record_name(self) -> str:
        """The A record is named after the storage account"""
        return self.storage_account_name

    @property
    def dns_record_fqdn(self) -> str:
        return f"{self.dns_record_name}.{self.dns_zone_name}"

    @property
    def private_link_connection_name(self) -> str:
        return f"{self.storage_account_name}-plink"

    def settings(self) -> List[tuple]:
        """Label / value pairs in parameter order, for display

        Returns:
            List[tuple]: (label, value) pairs
        """
        return [(p.label, getattr(self, p.field)) for p in PARAMETERS]

    @classmethod
    def from_dict(cls, params: Dict[str, str]) -> "DeploymentRequest":
        """Create the request from a dict keyed by JSON parameter names

        Args:
            params (Dict[str, str]): parameter values, e.g. {"resourceGroup": "rg1", ...}

        Raises:
            UsageError: If any of the required values is missing or empty

        Returns:
            DeploymentRequest: the request
        """
        return cls(**{p.field: params.get(p.key) or "" for p in PARAMETERS})


def _to_value(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    value = str(value)
    return value if value else None


def load_params_file(path: Union[str, Path]) -> Dict[str, str]:
    """Load deployment parameters from a JSON file like params_dev.json

    Args:
        path (Union[str, Path]): path to the parameters file

    Raises:
        UsageError: If the file does not exist or it is not a JSON object

    Returns:
        Dict[str, str]: the known parameters present in the file, empty and null values are left out
    """
    path = Path(path)
    if not path.is_file():
        raise UsageError(f"Parameters file '{path}' not found")

    try:
        with path.open("r") as f:
            content = json.load(f)
    except (OSError, ValueError) as e:
        raise UsageError(f"Could not read parameters file '{path}': {e}") from e

    if not isinstance(content, dict):
        raise UsageError(f"Parameters file '{path}' must contain a JSON object")

    params = {}
    for p in PARAMETERS:
        value = _to_value(content.get(p.key))
        if value is not None:
            params[p.key] = value
    return params


def resolve_request(
    flag_values: Dict[str, Optional[str]], params_file: Union[str, Path, None] = None
) -> DeploymentRequest:
    """Build the Deployment Request from command line values or a parameters file.
    A parameters file is the only source when given: flag values are ignored, the file must set every parameter.

    Args:
        flag_values (Dict[str, Optional[str]]): values from the command line keyed by JSON parameter name
        params_file (Union[str, Path, None], optional): JSON parameters file. Defaults to None.

    Raises:
        UsageError: If the file cannot be read or required values are missing

    Returns:
        DeploymentRequest: the resolved request
    """
    if params_file:
        return DeploymentRequest.from_dict(load_params_file(params_file))
    return DeploymentRequest.from_dict({key: value for key, value in flag_values.items() if value})
