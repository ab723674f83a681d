"""keep security group ingress rules pointed at your current public ip."""

from sg_ip_updater.updater import Result, update

__version__ = "0.1.0"

__all__ = ["Result", "update", "__version__"]
