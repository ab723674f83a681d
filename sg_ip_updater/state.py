"""last ip storage."""

import logging
import os
import tempfile

from sg_ip_updater.errors import StorageReadError, StorageWriteError
from sg_ip_updater.ip_lookup import is_ipv4

logger = logging.getLogger(__name__)


def read_last_ip(path):
    """Return the stored ip, or None on first run.

    The value always comes back with its /32 suffix. Anything that is not a
    dotted quad is logged and treated as a first run.
    """
    if not os.path.exists(path):
        logger.debug("No last ip file at %s", path)
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            value = f.read().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise StorageReadError("Unable to read last IP from storage file", details=str(e)) from e
    if not value:
        return None
    ip = value[:-3] if value.endswith("/32") else value
    if not is_ipv4(ip):
        logger.warning("Ignoring unexpected content in %s: %r", path, value[:50])
        return None
    return f"{ip}/32"


def write_last_ip(path, ip):
    """Replace the stored ip.

    Written to a temp file next to `path` then moved over it, so a crash
    never leaves a half written file behind.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".lastip-")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(ip)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise StorageWriteError(
            "Unable to write current IP to storage file", details=str(e)
        ) from e
    logger.info("Wrote %s to %s", ip, path)
