"""DeployCtl - git-based application deployment across role-grouped hosts."""

__version__ = "0.1.0"
