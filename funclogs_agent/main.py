import json
import logging
import os
import sys

# Ensure package imports work when executed directly
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from azure.core.exceptions import HttpResponseError

from funclogs_agent import config
from funclogs_agent.arm_client import Provisioner, create_random_name, get_credential, resource_group_scope
from funclogs_agent.deployer import deploy_function_assets, parse_publishing_profile
from funclogs_agent.report import format_function, format_site
from funclogs_agent.stimulus import build_schedule, warm_up
from funclogs_agent.tail import run_tail

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
)
# The SDK's HTTP pipeline logs every request and header at DEBUG.
logging.getLogger("azure").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

APP_SUFFIX = ".azurewebsites.net"


def _function_config(asset_dir: str) -> dict:
    path = os.path.join(asset_dir, "square", "function.json")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning("Function definition %s not found", path)
        return {}


def run_sample(provisioner: Provisioner) -> None:
    """Create a function app, deploy the square function over FTP and tail its logs."""
    app_name = create_random_name("webapp1-")
    function_name = create_random_name("function-")
    rg_name = create_random_name("rg1NEMV_")
    app_url = f"http://{app_name}{APP_SUFFIX}/api/square"

    with resource_group_scope(provisioner, rg_name):
        try:
            logger.info("Creating function app %s in resource group %s...", app_name, rg_name)
            app = provisioner.create_app_with_plan(rg_name, app_name)
            function = provisioner.create_function(
                rg_name, app_name, function_name, _function_config(config.FUNCTION_ASSET_DIR)
            )
            logger.info("Created function app %s", function.name)
            logger.info(format_function(function))

            logger.info("Deploying a function app to %s through FTP...", app_name)
            profile = parse_publishing_profile(provisioner.get_publishing_profile(rg_name, app_name))
            deploy_function_assets(profile, config.FUNCTION_ASSET_DIR)
            provisioner.sync_triggers(rg_name, app_name)
            logger.info("Deployment square app to web app %s completed", app.name)
            logger.info(format_site(app))
        except HttpResponseError as exc:
            logger.error("Azure rejected a request while provisioning %s: %s", app_name, exc.message)
            raise

        response = warm_up(app_url)
        if response is None:
            logger.warning("No response from %s during warm-up", app_url)
        else:
            logger.info("Warm-up response: %s", response)

        stream = provisioner.get_log_stream(rg_name, app_name)
        logger.info("Streaming logs from function app %s...", app_name)
        schedule = build_schedule(app_url, config.STIMULUS_BODIES)
        outcome = run_tail(stream, schedule, config.TAIL_SECONDS)
        logger.info("Stopped streaming logs from %s (%s)", app_name, outcome.value)


def main() -> int:
    logger.info("Starting function app log sample")
    try:
        provisioner = Provisioner(get_credential(), config.SUBSCRIPTION_ID, config.AZURE_REGION)
        logger.info("Selected subscription: %s", provisioner.describe_subscription())
        run_sample(provisioner)
    except Exception:
        logger.exception("Sample run failed")
        return 1
    logger.info("Run completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
