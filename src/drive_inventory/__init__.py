"""Console client for Microsoft Graph mail and OneDrive inventory."""

__version__ = "0.1.0"
