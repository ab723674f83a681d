"""security group operations against aws.

Reconciliation only needs three calls: describe groups by name, revoke an
ingress rule and authorize an ingress rule. AwsCliBackend shells out to the
aws cli, Boto3Backend talks to the ec2 api directly.
"""

import json
import logging
import subprocess
from dataclasses import dataclass

import boto3
import botocore
from botocore.config import Config as BotoConfig

from sg_ip_updater.config import HTTP_TIMEOUT
from sg_ip_updater.errors import ExternalCommandError, JsonParseError

logger = logging.getLogger(__name__)

RULE_NOT_FOUND = "InvalidPermission.NotFound"
DUPLICATE_RULE = "InvalidPermission.Duplicate"
GROUP_NOT_FOUND = "InvalidGroup.NotFound"

# exit status the aws cli uses for service side errors
CLI_SERVICE_ERROR = 255


@dataclass(frozen=True)
class SecurityGroup:
    name: str
    id: str


class AwsApiError(ExternalCommandError):
    """ec2 returned an error response. `code` is the aws error code, if known."""

    def __init__(self, message, details=None, code=None):
        super().__init__(message, details=details)
        self.code = code


def rule_filters(port, protocol, cidr):
    """describe filters matching an ingress rule for port/protocol/cidr."""
    return [
        {"Name": "ip-permission.to-port", "Values": [str(port)]},
        {"Name": "ip-permission.protocol", "Values": [protocol]},
        {"Name": "ip-permission.cidr", "Values": [cidr]},
    ]


def parse_groups(response):
    """SecurityGroups in a describe response -> [SecurityGroup]."""
    try:
        return [
            SecurityGroup(name=g["GroupName"], id=g["GroupId"])
            for g in (response or {}).get("SecurityGroups", [])
        ]
    except (AttributeError, KeyError, TypeError) as e:
        raise JsonParseError(
            "Unexpected describe-security-groups response", details=str(response)
        ) from e


def _unknown_permissions(response):
    return bool((response or {}).get("UnknownIpPermissions"))


class SecurityGroupBackend:
    """describe/revoke/authorize, with the tolerated aws errors handled."""

    def _describe(self, names, filters=None):
        raise NotImplementedError

    def _revoke(self, group_id, protocol, port, cidr):
        raise NotImplementedError

    def _authorize(self, group_id, protocol, port, cidr):
        raise NotImplementedError

    def describe_groups(self, names, port=None, protocol=None, cidr=None):
        """Groups among `names` that exist, optionally only those holding a
        rule for port/protocol/cidr. Unknown names are left out."""
        filters = rule_filters(port, protocol, cidr) if cidr else None
        names = list(names)
        try:
            return self._describe(names, filters)
        except AwsApiError as e:
            if e.code != GROUP_NOT_FOUND:
                raise
            logger.info("Some groups of %s do not exist, describing one by one", names)

        groups = []
        for name in names:
            try:
                groups.extend(self._describe([name], filters))
            except AwsApiError as e:
                if e.code != GROUP_NOT_FOUND:
                    raise
                logger.info("Security group %s not found", name)
        return groups

    def revoke(self, group_id, protocol, port, cidr):
        """revoke the rule; False when there was no such rule."""
        try:
            response = self._revoke(group_id, protocol, port, cidr)
        except AwsApiError as e:
            if e.code != RULE_NOT_FOUND:
                raise
            logger.info("No %s/%s rule for %s in %s", protocol, port, cidr, group_id)
            return False
        if _unknown_permissions(response):
            logger.info("No %s/%s rule for %s in %s", protocol, port, cidr, group_id)
            return False
        return True

    def authorize(self, group_id, protocol, port, cidr):
        """authorize the rule; False when it already existed."""
        try:
            self._authorize(group_id, protocol, port, cidr)
        except AwsApiError as e:
            if e.code != DUPLICATE_RULE:
                raise
            logger.info("Rule %s/%s for %s already in %s", protocol, port, cidr, group_id)
            return False
        return True


class AwsCliBackend(SecurityGroupBackend):
    """runs `aws ec2 ...` and parses its json output."""

    def __init__(self, region=None, profile=None, timeout=HTTP_TIMEOUT, executable="aws"):
        self.region = region
        self.profile = profile
        self.timeout = timeout
        self.executable = executable

    def command(self, args):
        cmd = [self.executable, "ec2", *args, "--output", "json"]
        if self.region:
            cmd += ["--region", self.region]
        if self.profile:
            cmd += ["--profile", self.profile]
        return cmd

    def run(self, args):
        cmd = self.command(args)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout, check=False
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalCommandError(
                "EC2 command timed out", details=f"{' '.join(cmd)} ({self.timeout}s)"
            ) from e
        except OSError as e:
            raise ExternalCommandError(
                "An error occurred during EC2 command execution", details=str(e)
            ) from e

        if proc.returncode != 0:
            code = None
            if proc.returncode == CLI_SERVICE_ERROR:
                code = error_code(proc.stderr)
            raise AwsApiError(
                "An error occurred during EC2 command execution",
                details=proc.stderr.strip(),
                code=code,
            )

        if not proc.stdout.strip():
            return {}
        try:
            return json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise JsonParseError(
                "Unable to parse AWS response in JSON", details=proc.stdout[:500]
            ) from e

    def _describe(self, names, filters=None):
        args = ["describe-security-groups", "--group-names", *names]
        if filters:
            args.append("--filters")
            args += [f"Name={f['Name']},Values={','.join(f['Values'])}" for f in filters]
        return parse_groups(self.run(args))

    def _rule_args(self, group_id, protocol, port, cidr):
        return ["--group-id", group_id, "--protocol", protocol, "--port", str(port), "--cidr", cidr]

    def _revoke(self, group_id, protocol, port, cidr):
        return self.run(
            ["revoke-security-group-ingress", *self._rule_args(group_id, protocol, port, cidr)]
        )

    def _authorize(self, group_id, protocol, port, cidr):
        return self.run(
            ["authorize-security-group-ingress", *self._rule_args(group_id, protocol, port, cidr)]
        )


def error_code(stderr):
    """pull the aws error code out of cli stderr.

    e.g. "An error occurred (InvalidPermission.Duplicate) when calling ..."
    """
    marker = "An error occurred ("
    start = (stderr or "").find(marker)
    if start < 0:
        return None
    start += len(marker)
    end = stderr.find(")", start)
    if end < 0:
        return None
    return stderr[start:end]


class Boto3Backend(SecurityGroupBackend):
    """same calls through boto3."""

    def __init__(self, region=None, profile=None, timeout=HTTP_TIMEOUT, client=None):
        if client is None:
            config = BotoConfig(
                connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 0}
            )
            session = boto3.Session(profile_name=profile, region_name=region)
            client = session.client("ec2", config=config)
        self.client = client

    def call(self, method_name, **params):
        logger.debug("Calling ec2 %s %s", method_name, params)
        try:
            return getattr(self.client, method_name)(**params)
        except botocore.exceptions.ClientError as err:
            raise AwsApiError(
                f"EC2 {method_name} failed",
                details=str(err.response.get("Error", {})),
                code=err.response.get("Error", {}).get("Code"),
            ) from err
        except botocore.exceptions.BotoCoreError as err:
            raise ExternalCommandError(f"EC2 {method_name} failed", details=str(err)) from err

    def _describe(self, names, filters=None):
        params = {"GroupNames": names}
        if filters:
            params["Filters"] = filters
        return parse_groups(self.call("describe_security_groups", **params))

    def _permissions(self, protocol, port, cidr):
        return [
            {
                "IpProtocol": protocol,
                "FromPort": port,
                "ToPort": port,
                "IpRanges": [{"CidrIp": cidr}],
            }
        ]

    def _revoke(self, group_id, protocol, port, cidr):
        return self.call(
            "revoke_security_group_ingress",
            GroupId=group_id,
            IpPermissions=self._permissions(protocol, port, cidr),
        )

    def _authorize(self, group_id, protocol, port, cidr):
        return self.call(
            "authorize_security_group_ingress",
            GroupId=group_id,
            IpPermissions=self._permissions(protocol, port, cidr),
        )


class DryRunBackend(SecurityGroupBackend):
    """describes for real, only logs mutations."""

    def __init__(self, backend):
        self.backend = backend

    def describe_groups(self, names, port=None, protocol=None, cidr=None):
        return self.backend.describe_groups(names, port=port, protocol=protocol, cidr=cidr)

    def revoke(self, group_id, protocol, port, cidr):
        logger.info("DRY RUN: would revoke %s %s/%s from %s", cidr, protocol, port, group_id)
        return True

    def authorize(self, group_id, protocol, port, cidr):
        logger.info("DRY RUN: would authorize %s %s/%s in %s", cidr, protocol, port, group_id)
        return True


def make_backend(config):
    """backend for a Config."""
    if config.backend == "boto3":
        backend = Boto3Backend(region=config.region, profile=config.profile, timeout=config.timeout)
    else:
        backend = AwsCliBackend(region=config.region, profile=config.profile, timeout=config.timeout)
    if config.dry_run:
        backend = DryRunBackend(backend)
    return backend
