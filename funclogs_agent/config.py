"""Load configuration from the environment."""

import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv(override=True)
logger.debug("Environment variables loaded")

# Service principal used to talk to Azure Resource Manager
CLIENT_ID = os.getenv("CLIENT_ID")
CLIENT_SECRET = os.getenv("CLIENT_SECRET")
TENANT_ID = os.getenv("TENANT_ID")
SUBSCRIPTION_ID = os.getenv("SUBSCRIPTION_ID")

AZURE_REGION = os.getenv("AZURE_REGION", "eastus")
APP_SERVICE_SKU = os.getenv("APP_SERVICE_SKU", "S1")
FUNCTION_ASSET_DIR = os.getenv(
    "FUNCTION_ASSET_DIR",
    os.path.join(os.path.dirname(__file__), "assets", "square-function-app"),
)

# Log tail window and the traffic fired at the app while tailing
TAIL_SECONDS = float(os.getenv("TAIL_SECONDS", "90"))
WARMUP_BODY = os.getenv("WARMUP_BODY", "625")
WARMUP_PAUSE_SECONDS = float(os.getenv("WARMUP_PAUSE_SECONDS", "1"))
STIMULUS_BODIES = [b.strip() for b in os.getenv("STIMULUS_BODIES", "625,725,825").split(",") if b.strip()]
STIMULUS_INTERVAL_SECONDS = float(os.getenv("STIMULUS_INTERVAL_SECONDS", "10"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
# Kudu writes a heartbeat line every minute while the app is idle
LOG_STREAM_READ_TIMEOUT_SECONDS = float(os.getenv("LOG_STREAM_READ_TIMEOUT_SECONDS", "120"))
logger.debug("Tail window: %ss, stimulus bodies: %s", TAIL_SECONDS, STIMULUS_BODIES)

# Validate required variables
_required = {
    "CLIENT_ID": CLIENT_ID,
    "CLIENT_SECRET": CLIENT_SECRET,
    "TENANT_ID": TENANT_ID,
    "SUBSCRIPTION_ID": SUBSCRIPTION_ID,
}
_missing = [k for k, v in _required.items() if not v]
if _missing:
    raise EnvironmentError(f"Missing environment variables: {', '.join(_missing)}")
