"""updater configuration."""

import logging
import os
import shutil
from dataclasses import dataclass
from typing import Optional, Tuple

from sg_ip_updater.errors import ConfigurationError, PrerequisiteMissingError

logger = logging.getLogger(__name__)

PROTOCOLS = ("tcp", "udp", "icmp")
BACKENDS = ("cli", "boto3")

DEFAULT_PORT = 22
DEFAULT_PROTOCOL = "tcp"
DEFAULT_GRABBER_URL = "http://icanhazip.com"
HTTP_TIMEOUT = 15

STORAGE_ENV = "SG_UPDATER_STORAGE"
GRABBER_ENV = "SG_UPDATER_GRABBER_URL"


def aws_dir():
    """~/.aws, where the aws cli keeps its config."""
    return os.path.join(os.path.expanduser("~"), ".aws")


def default_storage():
    """default last ip file."""
    return os.path.join(aws_dir(), "lastip")


@dataclass(frozen=True)
class Config:
    groups: Tuple[str, ...]
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    storage: str = ""
    grabber_url: str = DEFAULT_GRABBER_URL
    backend: str = "cli"
    region: Optional[str] = None
    profile: Optional[str] = None
    timeout: float = HTTP_TIMEOUT
    dry_run: bool = False


def _parse_port(port):
    if port is None or port == "":
        raise ConfigurationError("No port provided")
    if isinstance(port, bool):
        raise ConfigurationError("Port must be an integer")
    try:
        value = int(str(port).strip())
    except ValueError:
        raise ConfigurationError("Port must be an integer") from None
    if value <= 0:
        raise ConfigurationError("Port must be an integer")
    return value


def resolve_config(
    groups=None,
    port=None,
    protocol=None,
    storage=None,
    grabber_url=None,
    backend=None,
    region=None,
    profile=None,
    timeout=None,
    dry_run=False,
) -> Config:
    """merge explicit values, environment and defaults into a validated Config."""
    if isinstance(groups, str):
        groups = [groups]
    groups = tuple(g for g in (groups or []) if g)
    if not groups:
        raise ConfigurationError("No security group provided")

    port = _parse_port(DEFAULT_PORT if port is None else port)

    protocol = protocol or DEFAULT_PROTOCOL
    if protocol not in PROTOCOLS:
        raise ConfigurationError(
            f"Protocol must be one of the following: {', '.join(PROTOCOLS)}"
        )

    storage = storage or os.environ.get(STORAGE_ENV) or default_storage()

    if grabber_url is None:
        grabber_url = os.environ.get(GRABBER_ENV, DEFAULT_GRABBER_URL)
    if not grabber_url:
        raise ConfigurationError("No IP grabber URL provided")

    backend = backend or "cli"
    if backend not in BACKENDS:
        raise ConfigurationError(
            f"Backend must be one of the following: {', '.join(BACKENDS)}"
        )

    if timeout is None:
        timeout = HTTP_TIMEOUT
    try:
        timeout = float(timeout)
    except (TypeError, ValueError):
        raise ConfigurationError("Timeout must be a number") from None
    if timeout <= 0:
        raise ConfigurationError("Timeout must be a positive number")

    config = Config(
        groups=groups,
        port=port,
        protocol=protocol,
        storage=os.path.expanduser(storage),
        grabber_url=grabber_url,
        backend=backend,
        region=region,
        profile=profile,
        timeout=timeout,
        dry_run=bool(dry_run),
    )
    logger.debug("Resolved config: %s", config)
    return config


def check_prerequisites(config: Config):
    """make sure the aws tooling this run shells out to is in place."""
    if not os.path.isdir(aws_dir()):
        raise PrerequisiteMissingError(
            "'~/.aws' directory is missing. AWS CLI doesn't seem to be installed"
        )
    if config.backend == "cli" and shutil.which("aws") is None:
        raise PrerequisiteMissingError(
            "'aws' executable not found on PATH. Install the AWS CLI or use --backend boto3"
        )
