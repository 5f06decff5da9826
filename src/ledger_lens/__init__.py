"""Transaction history and point-in-time portfolio snapshots for Ethereum addresses."""

__version__ = "0.1.0"
