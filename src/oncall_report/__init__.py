"""On-call schedule reports built from the PagerDuty API."""

__version__ = "0.8.0"
