#!/usr/bin/env python3
"""sg-ip-updater command line."""

import argparse
import logging
import sys

from sg_ip_updater.config import (
    BACKENDS,
    DEFAULT_PORT,
    DEFAULT_PROTOCOL,
    HTTP_TIMEOUT,
    PROTOCOLS,
)
from sg_ip_updater.errors import ConfigurationError, UpdaterError
from sg_ip_updater.reporter import Reporter
from sg_ip_updater.updater import update

logger = logging.getLogger(__name__)


def configure_logging(verbosity):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        stream=sys.stderr, level=level, format="%(asctime)s - %(levelname)s - %(message)s"
    )


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser that exits 1 on bad arguments, like any other failure."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser():
    parser = ArgumentParser(
        prog="sg-ip-updater",
        description="Open a port in AWS security groups for your current public IP "
        "and remove the rule for your previous one.",
        epilog="Example: sg-ip-updater -g web-sg -g db-sg -p 22",
    )
    parser.add_argument(
        "-g", "--group", dest="groups", action="append", default=[],
        help="security group name, repeat for several groups",
    )
    parser.add_argument("-p", "--port", default=DEFAULT_PORT, help=f"port to open (default {DEFAULT_PORT})")
    parser.add_argument(
        "-t", "--protocol", default=DEFAULT_PROTOCOL,
        help=f"one of {', '.join(PROTOCOLS)} (default {DEFAULT_PROTOCOL})",
    )
    parser.add_argument("--grabber", dest="grabber_url", default=None, help="URL returning your public IP")
    parser.add_argument("--storage", default=None, help="file holding the last IP (default ~/.aws/lastip)")
    parser.add_argument("--backend", choices=BACKENDS, default="cli", help="aws cli or boto3 (default cli)")
    parser.add_argument("--region", default=None, help="AWS region")
    parser.add_argument("--profile", default=None, help="AWS profile")
    parser.add_argument(
        "--timeout", type=float, default=HTTP_TIMEOUT,
        help=f"seconds allowed for the IP lookup and each AWS call (default {HTTP_TIMEOUT})",
    )
    parser.add_argument("--dry-run", action="store_true", help="show what would change without changing it")
    parser.add_argument("-q", "--quiet", action="store_true", help="no progress output")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="log more, repeat for debug")
    return parser


def print_error(err, parser=None, stream=None):
    stream = stream if stream is not None else sys.stderr
    if parser is not None and isinstance(err, ConfigurationError):
        parser.print_usage(stream)
    stream.write(f"{err.message}\n\n")
    if err.details:
        stream.write(f"Details\n{err.details}\n\n")


def main(argv=None):
    """main."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        update(
            groups=args.groups,
            port=args.port,
            protocol=args.protocol,
            storage=args.storage,
            grabber_url=args.grabber_url,
            backend=args.backend,
            region=args.region,
            profile=args.profile,
            timeout=args.timeout,
            dry_run=args.dry_run,
            reporter=Reporter(enabled=not args.quiet),
        )
    except UpdaterError as err:
        logger.debug("Update failed", exc_info=True)
        print_error(err, parser)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
