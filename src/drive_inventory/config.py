"""Application configuration loaded from environment variables."""

import os
import tempfile
from dataclasses import dataclass, field

from drive_inventory.inventory.enumerator import ErrorPolicy

DEFAULT_GRAPH_SCOPES = ("User.Read", "Mail.Read", "Mail.Send", "Files.ReadWrite")


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Everything else
    has a default that can be overridden via environment variables.
    """

    # Required: no default, fail at startup if missing
    client_id: str

    # Defaults provided, overridable via env
    tenant_id: str = "common"
    graph_scopes: tuple[str, ...] = field(default=DEFAULT_GRAPH_SCOPES)
    test_file_name: str = "OneDriveTest.txt"
    download_dir: str = field(default_factory=tempfile.gettempdir)
    upload_dir: str = "Temp"
    on_error: ErrorPolicy = ErrorPolicy.ABORT
    listing_timeout: float | None = None
    request_timeout: float = 30.0
    max_retries: int = 3
    log_level: str = "WARNING"


def _optional_float(name: str) -> float | None:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


def _error_policy(name: str) -> ErrorPolicy:
    raw = os.environ.get(name, ErrorPolicy.ABORT.value).strip().lower()
    try:
        return ErrorPolicy(raw)
    except ValueError:
        allowed = ", ".join(policy.value for policy in ErrorPolicy)
        raise ValueError(f"{name} must be one of: {allowed}; got {raw!r}") from None


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        DI_CLIENT_ID: Azure AD application (client) ID registered for
            public-client (device code) sign-in.

    Optional environment variables (with defaults):
        DI_TENANT_ID: Azure AD tenant ID (default: common).
        DI_GRAPH_SCOPES: Space-separated delegated scopes
            (default: User.Read Mail.Read Mail.Send Files.ReadWrite).
        DI_TEST_FILE: Remote file used by the metadata and download actions.
        DI_DOWNLOAD_DIR: Local directory for downloads (default: system temp dir).
        DI_UPLOAD_DIR: Remote folder that uploads are written to (default: Temp).
        DI_ON_ERROR: Inventory error policy, ``abort`` or ``skip_subtree``.
        DI_LISTING_TIMEOUT: Seconds a full inventory walk may take (default: unlimited).
        DI_REQUEST_TIMEOUT: Per-request socket timeout in seconds (default: 30).
        DI_MAX_RETRIES: Retries for throttled Graph requests (default: 3).
        DI_LOG_LEVEL: Logging level name (default: WARNING).

    Returns:
        Configured AppConfig instance.

    Raises:
        KeyError: If DI_CLIENT_ID is not set.
        ValueError: If DI_ON_ERROR is not a known policy or a numeric value
            cannot be parsed.
    """
    scopes = os.environ.get("DI_GRAPH_SCOPES", "").split()
    return AppConfig(
        client_id=os.environ["DI_CLIENT_ID"],
        tenant_id=os.environ.get("DI_TENANT_ID", "common"),
        graph_scopes=tuple(scopes) if scopes else DEFAULT_GRAPH_SCOPES,
        test_file_name=os.environ.get("DI_TEST_FILE", "OneDriveTest.txt"),
        download_dir=os.environ.get("DI_DOWNLOAD_DIR", tempfile.gettempdir()),
        upload_dir=os.environ.get("DI_UPLOAD_DIR", "Temp"),
        on_error=_error_policy("DI_ON_ERROR"),
        listing_timeout=_optional_float("DI_LISTING_TIMEOUT"),
        request_timeout=float(os.environ.get("DI_REQUEST_TIMEOUT", "30")),
        max_retries=int(os.environ.get("DI_MAX_RETRIES", "3")),
        log_level=os.environ.get("DI_LOG_LEVEL", "WARNING").upper(),
    )
