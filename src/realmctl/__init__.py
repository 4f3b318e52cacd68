"""realmctl — cluster-wide authentication realm registry."""

__version__ = "0.1.0"
