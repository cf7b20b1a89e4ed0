"""Ubuntu Provisioner — fail-fast setup pipeline for fresh Ubuntu machines."""

__version__ = "0.1.0"
