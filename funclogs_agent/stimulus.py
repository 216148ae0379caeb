"""HTTP calls used to warm up the deployed function and generate log traffic."""

import logging
import time
from functools import partial
from typing import List, Optional

import requests

from funclogs_agent import config
from funclogs_agent.tail import Stimulus

logger = logging.getLogger(__name__)


def post_address(url: str, body: str, timeout: float = config.HTTP_TIMEOUT_SECONDS) -> Optional[str]:
    """POST ``body`` to ``url`` and return the response text, or None on failure."""
    logger.debug("POST %s with body %s", url, body)
    try:
        resp = requests.post(
            url,
            data=body.encode("utf-8"),
            headers={"Content-Type": "text/plain"},
            timeout=timeout,
        )
        logger.debug("Response status: %s", resp.status_code)
        resp.raise_for_status()
        return resp.text
    except requests.RequestException as exc:
        logger.error("Request to %s failed: %s", url, exc)
    return None


def warm_up(
    url: str,
    body: str = config.WARMUP_BODY,
    pause: float = config.WARMUP_PAUSE_SECONDS,
    timeout: float = config.HTTP_TIMEOUT_SECONDS,
) -> Optional[str]:
    """Hit ``url`` once to wake the app, then again and return that response."""
    logger.info("Warming up %s...", url)
    post_address(url, body, timeout)
    time.sleep(pause)
    logger.info("CURLing %s...", url)
    return post_address(url, body, timeout)


def build_schedule(
    url: str,
    bodies: List[str],
    interval: float = config.STIMULUS_INTERVAL_SECONDS,
    timeout: float = config.HTTP_TIMEOUT_SECONDS,
) -> List[Stimulus]:
    """Return one POST per body; the first fires at once, the rest ``interval`` apart."""
    return [
        Stimulus(
            delay=0 if i == 0 else interval,
            action=partial(post_address, url, body, timeout),
            name=f"POST {body}",
        )
        for i, body in enumerate(bodies)
    ]
