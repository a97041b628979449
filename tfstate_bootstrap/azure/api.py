"""
Module azure_api containing the AzureApi class,
which is responsible for Azure identity handling and the management client caching mechanism.
"""
import json
import logging
from pathlib import Path
from typing import Any, Optional, Type

from tfstate_bootstrap.core.utils import get_environment_variable

from azure.identity import ClientSecretCredential, DefaultAzureCredential


class AzureError(RuntimeError):
    """Internal Azure error to propagate deployment related errors"""


class StageFailure(AzureError):
    """A provisioning stage failed, the deployment is aborted"""

    def __init__(self, label: str):
        super(StageFailure, self).__init__(f"{label} failed")
        self.label = label


class AzureApi:
    """Base class for Azure SDK operations with logger and identity handling"""

    def __init__(self, azure_auth_path: Optional[Path] = None, subscription_id: Optional[str] = None):
        """Initialize the class including identity, logger, logging configuration.

        Without an identity file the caller's own identity is used (Azure CLI login, managed identity, env vars).

        Args:
            azure_auth_path (Path, optional): Azure identity file path with service principal credentials.
                                              Defaults to None.
            subscription_id (str, optional): subscription to work in, overrides the identity file's.
                                             Defaults to None, which means AZURE_SUBSCRIPTION_ID.

        Raises:
            AzureError: If the identity file is missing or incomplete, or no subscription is known.
        """
        AzureApi._suppress_azure_internal_logs()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.azure_auth_path = azure_auth_path
        if azure_auth_path is not None:
            if not azure_auth_path.is_file():
                raise AzureError(f"Azure identity file not found: {azure_auth_path}")
            self.credentials = ClientSecretCredential(
                client_secret=self._get_client_secret(), client_id=self._get_client_id(), tenant_id=self._get_tenant_id()
            )
        else:
            self.credentials = DefaultAzureCredential()

        self.subscription_id = subscription_id or self._get_subscription_id()

        self._clients = {}

    def _load_azure_credential(self) -> dict:
        """Loads the azure identity file.

        Raises:
            AzureError: If the file cannot be read or it is not a JSON object

        Returns:
            dict: the credential dict
        """
        try:
            with open(self.azure_auth_path, "r") as file:
                azure_json = json.load(file)
        except (OSError, ValueError) as e:
            raise AzureError(f"Could not read Azure identity file {self.azure_auth_path}: {e}") from e
        if not isinstance(azure_json, dict):
            raise AzureError(f"Azure identity file {self.azure_auth_path} must contain a JSON object")
        return azure_json

    def _get_auth_value(self, *keys: str) -> str:
        azure_auth = self._load_azure_credential()
        for key in keys:
            if key in azure_auth:
                return azure_auth[key]
        raise AzureError(f"Azure identity file {self.azure_auth_path} has no {' or '.join(keys)}")

    def _get_tenant_id(self) -> str:
        return self._get_auth_value("tenantId", "tenant")

    def _get_client_id(self) -> str:
        return self._get_auth_value("clientId", "appId")

    def _get_client_secret(self) -> str:
        return self._get_auth_value("clientSecret", "password")

    def _get_subscription_id(self) -> str:
        """Get the subscription ID string from the auth file or from the environment.

        Raises:
            AzureError: If there is no subscription configured

        Returns:
            str: Subscription ID on Azure
        """
        if self.azure_auth_path is not None:
            subscription_id = self._load_azure_credential().get("subscriptionId")
            if subscription_id:
                return subscription_id
        try:
            return get_environment_variable("AZURE_SUBSCRIPTION_ID")
        except RuntimeError as e:
            raise AzureError(f"No subscription configured: {e}") from e

    @staticmethod
    def _suppress_azure_internal_logs() -> None:
        """Suppress Azure Python libraries internal verbose logs"""
        logging.getLogger("azure").setLevel(logging.WARNING)
        logging.getLogger("azure.core").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("msal").setLevel(logging.WARNING)
        logging.getLogger("azure.storage").setLevel(logging.WARNING)
        logging.getLogger("azure.identity").setLevel(logging.WARNING)

    def client(self, client_class: Type[Any]) -> Any:
        """Get an Azure Management client by it's class using caching.
        Clients are bound to the current subscription, a client is created once per subscription.

        Args:
            client_class (Type[Any]): The client you want to use, for example StorageManagementClient

        Returns:
            Any: An object of the requested class is returned, and cached.
        """
        key = (client_class.__name__, self.subscription_id)
        if key not in self._clients:
            self.logger.debug(f"Creating client: {client_class.__name__} for subscription {self.subscription_id}")
            self._clients[key] = client_class(self.credentials, self.subscription_id)

        return self._clients[key]
