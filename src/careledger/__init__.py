"""
Caregiver expense ledger core.

The package turns receipt captures and synced bank transactions into reviewed,
deduplicated expense records, and exposes the pipeline over a small HTTP API.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
