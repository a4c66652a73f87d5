"""xDS client status (CSDS) fetching, ordering and status reports."""

__version__ = "1.0.0"
