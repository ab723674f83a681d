"""security group reconciliation."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sg_ip_updater import state
from sg_ip_updater.backends import make_backend
from sg_ip_updater.config import check_prerequisites, resolve_config
from sg_ip_updater.errors import UpdaterError
from sg_ip_updater.ip_lookup import current_ip
from sg_ip_updater.reporter import Reporter

logger = logging.getLogger(__name__)


@dataclass
class Result:
    old_ip: Optional[str]
    new_ip: str
    changed: bool = False
    revoked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    authorized: List[str] = field(default_factory=list)


class Updater:
    """Move the configured groups' ingress rule from the last ip to the current one.

    Old rules are revoked from every group that still holds one, then every
    existing group gets a rule for the current ip, then the ip is stored.
    Unknown group names are skipped. Any other failure propagates and leaves
    the stored ip untouched.
    """

    def __init__(self, config, backend=None, reporter=None, lookup=None):
        self.config = config
        self.backend = backend if backend is not None else make_backend(config)
        self.reporter = reporter if reporter is not None else Reporter(enabled=False)
        self.lookup = lookup if lookup is not None else current_ip

    def run(self) -> Result:
        config = self.config
        msg = self.reporter

        msg.field("Groups", ", ".join(config.groups))

        old = state.read_last_ip(config.storage)
        ip = self.lookup(config.grabber_url, timeout=config.timeout) + "/32"
        msg.field("Your old IP", old or "<not available>")
        msg.field("Your current IP", ip)
        msg.write()

        result = Result(old_ip=old, new_ip=ip)
        if old == ip:
            logger.info("IP unchanged (%s), nothing to do", ip)
            msg.write("Nothing to do.")
            msg.write()
            return result

        result.changed = True
        if old is not None:
            self.cleanup(old, result)
        else:
            msg.write("Nothing to cleanup")
        msg.write()

        self.add(ip, result)
        msg.write()

        if config.dry_run:
            logger.info("Dry run, not storing %s", ip)
        else:
            state.write_last_ip(config.storage, ip)
        return result

    def _status(self, applied):
        if self.config.dry_run:
            return "dry-run"
        return "ok" if applied else "n/a"

    def cleanup(self, old, result):
        """revoke the old ip from every group still holding it."""
        config = self.config
        msg = self.reporter
        msg.heading("Old IP references cleanup")
        matched = self.backend.describe_groups(
            config.groups, port=config.port, protocol=config.protocol, cidr=old
        )
        handled = set()
        for group in matched:
            handled.add(group.name)
            msg.step(f"Removal from {group.name}")
            try:
                applied = self.backend.revoke(group.id, config.protocol, config.port, old)
            except UpdaterError:
                msg.status("nok")
                raise
            msg.status(self._status(applied))
            if applied:
                logger.info("Revoked %s from %s (%s)", old, group.name, group.id)
                result.revoked.append(group.name)
            else:
                result.skipped.append(group.name)

        for name in config.groups:
            if name in handled:
                continue
            msg.step(f"Removal from {name}")
            msg.status("n/a")
            result.skipped.append(name)

    def add(self, ip, result):
        """authorize the current ip in every existing group."""
        config = self.config
        msg = self.reporter
        msg.heading("Adding current IP to security groups")
        for group in self.backend.describe_groups(config.groups):
            msg.step(f"Adding to {group.name}")
            try:
                applied = self.backend.authorize(group.id, config.protocol, config.port, ip)
            except UpdaterError:
                msg.status("nok")
                raise
            # a duplicate rule already grants access, which is what we want
            msg.status("dry-run" if config.dry_run else "ok")
            if not applied:
                logger.info("%s already allowed in %s", ip, group.name)
            result.authorized.append(group.name)


def update(
    groups=None,
    port=None,
    protocol=None,
    storage=None,
    grabber_url=None,
    reporter=None,
    sg_backend=None,
    **options,
) -> Result:
    """Resolve configuration, check prerequisites and reconcile once.

    Errors are raised as UpdaterError subclasses; nothing is printed unless a
    Reporter is passed in. `sg_backend` replaces the aws backend built from
    the config, and skips the prerequisite checks.
    """
    config = resolve_config(
        groups=groups,
        port=port,
        protocol=protocol,
        storage=storage,
        grabber_url=grabber_url,
        **options,
    )
    if sg_backend is None:
        check_prerequisites(config)
    return Updater(config, backend=sg_backend, reporter=reporter).run()
