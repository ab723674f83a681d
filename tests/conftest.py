import pytest

from sg_ip_updater.backends import (
    DUPLICATE_RULE,
    GROUP_NOT_FOUND,
    RULE_NOT_FOUND,
    AwsApiError,
    SecurityGroup,
    SecurityGroupBackend,
)
from sg_ip_updater.config import Config


class FakeBackend(SecurityGroupBackend):
    """in memory security groups: name -> (id, set of cidrs)."""

    def __init__(self, groups):
        self.groups = {name: (gid, set(cidrs)) for name, (gid, cidrs) in groups.items()}
        self.calls = []

    def _describe(self, names, filters=None):
        self.calls.append(("describe", tuple(names), bool(filters)))
        missing = [n for n in names if n not in self.groups]
        if missing:
            raise AwsApiError("not found", details=str(missing), code=GROUP_NOT_FOUND)
        cidr = None
        if filters:
            cidr = [f for f in filters if f["Name"] == "ip-permission.cidr"][0]["Values"][0]
        return [
            SecurityGroup(name=n, id=self.groups[n][0])
            for n in names
            if cidr is None or cidr in self.groups[n][1]
        ]

    def _find(self, group_id):
        for name, (gid, cidrs) in self.groups.items():
            if gid == group_id:
                return cidrs
        raise AwsApiError("no group", code=GROUP_NOT_FOUND)

    def _revoke(self, group_id, protocol, port, cidr):
        self.calls.append(("revoke", group_id, protocol, port, cidr))
        cidrs = self._find(group_id)
        if cidr not in cidrs:
            raise AwsApiError("no rule", code=RULE_NOT_FOUND)
        cidrs.discard(cidr)
        return {"Return": True}

    def _authorize(self, group_id, protocol, port, cidr):
        self.calls.append(("authorize", group_id, protocol, port, cidr))
        cidrs = self._find(group_id)
        if cidr in cidrs:
            raise AwsApiError("dup", code=DUPLICATE_RULE)
        cidrs.add(cidr)
        return {"Return": True}

    def mutations(self):
        return [c for c in self.calls if c[0] != "describe"]


@pytest.fixture
def storage(tmp_path):
    return str(tmp_path / "lastip")


@pytest.fixture
def make_config(storage):
    def _make(groups=("web-sg",), **kwargs):
        kwargs.setdefault("storage", storage)
        kwargs.setdefault("grabber_url", "http://ip.test")
        return Config(groups=tuple(groups), **kwargs)

    return _make


def fixed_lookup(ip):
    def lookup(url, timeout=None):
        return ip

    return lookup
