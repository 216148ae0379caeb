"""Azure Resource Manager helpers for the function app and its resource group."""

import logging
import random
import string
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import requests
from azure.identity import ClientSecretCredential
from azure.mgmt.resource import ResourceManagementClient, SubscriptionClient
from azure.mgmt.web import WebSiteManagementClient
from azure.mgmt.web.models import (
    AppServicePlan,
    CsmPublishingCredentialsPoliciesEntity,
    CsmPublishingProfileOptions,
    FunctionEnvelope,
    NameValuePair,
    Site,
    SiteConfig,
    SkuDescription,
)

from funclogs_agent import config

logger = logging.getLogger(__name__)

SKU_TIERS = {
    "B": "Basic",
    "S": "Standard",
    "P": "PremiumV2",
    "Y": "Dynamic",
}

FUNCTION_APP_SETTINGS = {
    "FUNCTIONS_EXTENSION_VERSION": "~4",
    "FUNCTIONS_WORKER_RUNTIME": "node",
    "WEBSITE_NODE_DEFAULT_VERSION": "~18",
}


def create_random_name(prefix: str, length: int = 8) -> str:
    """Return ``prefix`` followed by ``length`` random lowercase letters and digits."""
    alphabet = string.ascii_lowercase + string.digits
    return prefix + "".join(random.choice(alphabet) for _ in range(length))


def sku_tier(sku: str) -> str:
    """Map an App Service SKU name (``S1``, ``P1v3``...) to its tier."""
    if sku.upper().startswith("P") and sku.lower().endswith("v3"):
        return "PremiumV3"
    return SKU_TIERS.get(sku[:1].upper(), "Standard")


def get_credential() -> ClientSecretCredential:
    return ClientSecretCredential(
        tenant_id=config.TENANT_ID,
        client_id=config.CLIENT_ID,
        client_secret=config.CLIENT_SECRET,
    )


class LogStream:
    """Line reader over a streaming HTTP response.

    ``readline`` returns ``None`` once the server ends the response; ``close``
    may be called more than once but releases the connection only the first
    time.
    """

    def __init__(self, response: requests.Response):
        self._response = response
        if not response.encoding:
            response.encoding = "utf-8"
        self._lines = response.iter_lines(decode_unicode=True)
        self.closed = False

    def readline(self) -> Optional[str]:
        try:
            line = next(self._lines)
        except StopIteration:
            return None
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        return line

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._response.close()


class Provisioner:
    """Creates and removes the resources the sample runs against."""

    def __init__(self, credential: Any, subscription_id: str, location: str = config.AZURE_REGION):
        self.credential = credential
        self.subscription_id = subscription_id
        self.location = location
        self.resource_client = ResourceManagementClient(credential, subscription_id)
        self.web_client = WebSiteManagementClient(credential, subscription_id)

    def describe_subscription(self) -> str:
        sub = SubscriptionClient(self.credential).subscriptions.get(self.subscription_id)
        return f"{sub.id} ({sub.display_name})"

    def create_resource_group(self, name: str) -> Any:
        logger.info("Creating resource group %s in %s", name, self.location)
        group = self.resource_client.resource_groups.create_or_update(name, {"location": self.location})
        logger.debug("Resource group created: %s", group.id)
        return group

    def delete_resource_group(self, name: str) -> None:
        self.resource_client.resource_groups.begin_delete(name).result()

    def create_app_with_plan(self, resource_group: str, app_name: str, sku: str = config.APP_SERVICE_SKU) -> Any:
        """Create an App Service plan named after the app, then the function app on it."""
        logger.info("Creating app service plan %s (%s)", app_name, sku)
        plan = self.web_client.app_service_plans.begin_create_or_update(
            resource_group,
            app_name,
            AppServicePlan(location=self.location, sku=SkuDescription(name=sku, tier=sku_tier(sku))),
        ).result()

        logger.info("Creating function app %s on plan %s", app_name, plan.name)
        site = Site(
            location=self.location,
            kind="functionapp",
            server_farm_id=plan.id,
            site_config=SiteConfig(
                ftps_state="FtpsOnly",
                app_settings=[NameValuePair(name=k, value=v) for k, v in FUNCTION_APP_SETTINGS.items()],
            ),
        )
        app = self.web_client.web_apps.begin_create_or_update(resource_group, app_name, site).result()
        self.enable_basic_publishing(resource_group, app_name)
        return app

    def enable_basic_publishing(self, resource_group: str, app_name: str) -> None:
        # New sites have basic auth off for both FTP and SCM; upload and log stream need it.
        allow = CsmPublishingCredentialsPoliciesEntity(allow=True)
        self.web_client.web_apps.update_ftp_allowed(resource_group, app_name, allow)
        self.web_client.web_apps.update_scm_allowed(resource_group, app_name, allow)
        logger.debug("Basic publishing credentials enabled for %s", app_name)

    def create_function(
        self,
        resource_group: str,
        app_name: str,
        function_name: str,
        function_config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        logger.info("Creating function %s under %s", function_name, app_name)
        envelope = FunctionEnvelope(config=function_config or {})
        return self.web_client.web_apps.begin_create_function(
            resource_group, app_name, function_name, envelope
        ).result()

    def get_publishing_profile(self, resource_group: str, app_name: str, fmt: str = "Ftp") -> str:
        """Return the publishing profile XML, secrets included."""
        resp = self.web_client.web_apps.list_publishing_profile_xml_with_secrets(
            resource_group, app_name, CsmPublishingProfileOptions(format=fmt)
        )
        # Depending on the SDK version this is a stream with readall() or a chunk iterator.
        if hasattr(resp, "readall"):
            data = resp.readall()
        else:
            data = b"".join(chunk for chunk in resp)
        return data.decode("utf-8")

    def sync_triggers(self, resource_group: str, app_name: str) -> None:
        logger.debug("Syncing function triggers for %s", app_name)
        self.web_client.web_apps.sync_function_triggers(resource_group, app_name)

    def get_log_stream(self, resource_group: str, app_name: str) -> LogStream:
        """Open the Kudu log stream of the app."""
        creds = self.web_client.web_apps.begin_list_publishing_credentials(resource_group, app_name).result()
        url = f"https://{app_name}.scm.azurewebsites.net/api/logstream"
        logger.debug("Opening log stream %s", url)
        resp = requests.get(
            url,
            auth=(creds.publishing_user_name, creds.publishing_password),
            stream=True,
            timeout=(10, config.LOG_STREAM_READ_TIMEOUT_SECONDS),
        )
        try:
            resp.raise_for_status()
        except requests.HTTPError:
            resp.close()
            raise
        return LogStream(resp)


@contextmanager
def resource_group_scope(provisioner: Provisioner, name: str) -> Iterator[Any]:
    """Create a resource group and delete it again however the block exits.

    Deletion failures are logged and never raised. When the group could not be
    created there is nothing to remove and the creation error propagates.
    """
    group = None
    try:
        group = provisioner.create_resource_group(name)
        yield group
    finally:
        if group is None:
            logger.info("Did not create any resources in Azure. No clean up is necessary")
        else:
            try:
                logger.info("Deleting Resource Group: %s", name)
                provisioner.delete_resource_group(name)
                logger.info("Deleted Resource Group: %s", name)
            except Exception:
                logger.exception("Failed to delete resource group %s", name)
