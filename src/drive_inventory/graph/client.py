"""Microsoft Graph API client with MSAL device-code authentication."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

import msal

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
AUTHORITY_BASE_URL = "https://login.microsoftonline.com"

# Status codes worth retrying after a pause
RETRYABLE_STATUS_CODES = frozenset({429, 503})
DEFAULT_MAX_RETRIES = 3
DEFAULT_REQUEST_TIMEOUT = 30.0


class GraphAuthError(Exception):
    """Raised when MSAL token acquisition fails."""


class GraphApiError(Exception):
    """Raised when the Graph API returns a non-2xx response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Graph API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class GraphConnectionError(GraphApiError):
    """Raised when a Graph request fails before any HTTP status is received."""

    def __init__(self, message: str) -> None:
        super().__init__(0, message)


class GraphClient:
    """Client for Microsoft Graph API authenticated as the signed-in user."""

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        scopes: Sequence[str],
        device_code_prompt: Callable[[str], None] | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialise the MSAL public client application.

        Args:
            client_id: Azure AD application (client) ID.
            tenant_id: Azure AD tenant ID, or ``common``.
            scopes: Delegated Graph scopes to request.
            device_code_prompt: Called with the sign-in instructions when the
                device code flow starts. When omitted the instructions are
                logged at WARNING level.
            request_timeout: Socket timeout in seconds for each request.
            max_retries: Retries for throttled (429) or unavailable (503) responses.
        """
        authority = f"{AUTHORITY_BASE_URL}/{tenant_id}"
        self._app = msal.PublicClientApplication(client_id=client_id, authority=authority)
        self._scopes = list(scopes)
        self._device_code_prompt = device_code_prompt
        self._request_timeout = request_timeout
        self._max_retries = max_retries

    def _acquire_token(self) -> str:
        """Acquire a Bearer token, silently from the cache when possible.

        Falls back to the device code flow on first use or when the cached
        refresh token no longer works.

        Returns:
            Access token string.

        Raises:
            GraphAuthError: If MSAL cannot acquire a token.
        """
        result: dict[str, Any] | None = None
        accounts = self._app.get_accounts()
        if accounts:
            result = self._app.acquire_token_silent(self._scopes, account=accounts[0])

        if not result:
            flow = self._app.initiate_device_flow(scopes=self._scopes)
            if "user_code" not in flow:
                error = flow.get("error", "unknown_error")
                logger.error("[_acquire_token] device flow could not start; error:%s", error)
                raise GraphAuthError(
                    f"Device flow failed: {error} — {flow.get('error_description', '')}"
                )
            if self._device_code_prompt is not None:
                self._device_code_prompt(flow["message"])
            else:
                logger.warning("[_acquire_token] %s", flow["message"])
            result = self._app.acquire_token_by_device_flow(flow) or {}

        if "access_token" not in result:
            error = result.get("error", "unknown_error")
            description = result.get("error_description", "No description provided")
            logger.error("[_acquire_token] MSAL token acquisition failed; error:%s", error)
            raise GraphAuthError(f"Token acquisition failed: {error} — {description}")
        return str(result["access_token"])

    def get_token(self) -> str:
        """Return an access token for the configured scopes.

        Raises:
            GraphAuthError: If MSAL cannot acquire a token.
        """
        return self._acquire_token()

    def _send(
        self,
        method: str,
        path: str,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        """Send an authenticated request and return the raw response body.

        Throttled and unavailable responses are retried up to max_retries
        times, sleeping for the server's Retry-After value (or an exponential
        back-off when the header is absent).

        Raises:
            GraphAuthError: If token acquisition fails.
            GraphApiError: If the API returns a non-2xx status code.
            GraphConnectionError: If the request fails or times out without a response.
        """
        url = f"{GRAPH_BASE_URL}{path}"
        attempt = 0
        while True:
            token = self._acquire_token()
            req = urllib_request.Request(
                url,
                data=data,
                headers={"Authorization": f"Bearer {token}", **(headers or {})},
                method=method,
            )
            try:
                with urllib_request.urlopen(req, timeout=self._request_timeout) as resp:
                    return resp.read()  # type: ignore[no-any-return]
            except HTTPError as exc:
                if exc.code in RETRYABLE_STATUS_CODES and attempt < self._max_retries:
                    delay = _retry_delay(exc, attempt)
                    attempt += 1
                    logger.warning(
                        "[_send] retrying throttled request; status:%d;attempt:%d;delay:%.1f",
                        exc.code,
                        attempt,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                raw = exc.read()
                try:
                    detail = json.loads(raw).get("error", {}).get("message", exc.reason)
                except Exception:
                    detail = exc.reason
                raise GraphApiError(exc.code, detail) from exc
            except (URLError, TimeoutError, ConnectionError) as exc:
                reason = getattr(exc, "reason", exc)
                logger.warning("[_send] request failed; path:%s;reason:%s", path, reason)
                raise GraphConnectionError(str(reason)) from exc

    def get(self, path: str) -> dict[str, Any]:
        """Perform an authenticated GET request to the Graph API.

        Args:
            path: URL path relative to GRAPH_BASE_URL (must start with '/').

        Returns:
            Parsed JSON response body as a dict.

        Raises:
            GraphAuthError: If token acquisition fails.
            GraphApiError: If the API returns a non-2xx status code.
        """
        body = self._send("GET", path, headers={"Accept": "application/json"})
        return json.loads(body)  # type: ignore[no-any-return]

    def get_content(self, path: str) -> bytes:
        """Download raw bytes from the Graph API (e.g. ``.../content``)."""
        return self._send("GET", path)

    def put_content(
        self,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> dict[str, Any]:
        """Upload raw bytes with an authenticated PUT request.

        Args:
            path: URL path relative to GRAPH_BASE_URL (must start with '/').
            content: Raw bytes to upload.
            content_type: MIME type for the Content-Type header.

        Returns:
            The created or replaced item as a dict (empty if no body was returned).
        """
        body = self._send(
            "PUT",
            path,
            data=content,
            headers={"Content-Type": content_type, "Accept": "application/json"},
        )
        return json.loads(body) if body else {}

    def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body; returns the parsed response or {} for 202/204 replies."""
        body = self._send(
            "POST",
            path,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        return json.loads(body) if body else {}

    def patch_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """PATCH a JSON body and return the parsed response."""
        body = self._send(
            "PATCH",
            path,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        return json.loads(body) if body else {}


def _retry_delay(exc: HTTPError, attempt: int) -> float:
    retry_after = exc.headers.get("Retry-After") if exc.headers else None
    try:
        return float(retry_after)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float(2**attempt)


def graph_client_from_config(
    config: AppConfig,
    device_code_prompt: Callable[[str], None] | None = None,
) -> GraphClient:
    """Construct a GraphClient from application configuration.

    Args:
        config: Application configuration instance.
        device_code_prompt: Optional callback that shows sign-in instructions.

    Returns:
        Configured GraphClient instance.
    """
    return GraphClient(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        scopes=config.graph_scopes,
        device_code_prompt=device_code_prompt,
        request_timeout=config.request_timeout,
        max_retries=config.max_retries,
    )
