"""public ip lookup."""

import logging
import re

import requests

from sg_ip_updater.config import HTTP_TIMEOUT
from sg_ip_updater.errors import IpLookupError

logger = logging.getLogger(__name__)

# four groups of 1-3 digits; octet ranges are not checked
IPV4_RE = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$")


def is_ipv4(value):
    """dotted quad check."""
    return isinstance(value, str) and IPV4_RE.fullmatch(value) is not None


def current_ip(url, timeout=HTTP_TIMEOUT):
    """Ask the grabber service for the caller's public ip.

    The whole trimmed response body is the ip. No retries.
    """
    logger.debug("Looking up current ip via %s", url)
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise IpLookupError("Unable to grab current IP address", details=str(e)) from e

    ip = resp.text.strip()
    if not is_ipv4(ip):
        raise IpLookupError(
            "The IP grabber URL returned an unexpected response", details=resp.text[:200]
        )
    logger.info("Current public ip: %s", ip)
    return ip
