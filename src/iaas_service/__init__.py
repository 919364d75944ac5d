"""Request reconciliation service layer over an IaaS management API."""

__version__ = "0.1.0"
