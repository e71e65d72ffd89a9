"""Remote listing service — the two OneDrive listing calls the inventory walk needs."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

from drive_inventory.graph.client import GRAPH_BASE_URL, GraphClient
from drive_inventory.graph.models import (
    FIELD_CHILDREN,
    FIELD_CHILDREN_NEXT_LINK,
    ODATA_NEXT_LINK,
    ODATA_VALUE,
)

logger = logging.getLogger(__name__)


class ListingUnavailableError(Exception):
    """Raised when a listing call returns no data for a path."""

    def __init__(self, path: str, reason: str = "no items found") -> None:
        super().__init__(f"Listing unavailable for '{path or '/'}': {reason}")
        self.path = path
        self.reason = reason


class RemoteListingService(Protocol):
    """What the tree enumerator needs from the remote drive."""

    def get_root_with_children(self, drive_id: str) -> list[dict[str, Any]]:
        """Return the raw children of the drive root, expanded in one call."""
        ...

    def get_children_at_path(self, drive_id: str, path: str) -> list[dict[str, Any]]:
        """Return the raw children of a root-relative folder path."""
        ...


def encode_drive_path(path: str) -> str:
    """Percent-encode a root-relative path for use in ``root:/{path}:`` addressing.

    Backslash separators are converted to forward slashes; OneDrive names
    cannot contain them.
    """
    return quote(path.replace("\\", "/").strip("/"), safe="/")


class GraphListingService:
    """RemoteListingService backed by the Microsoft Graph drive endpoints.

    Below the root, children must be addressed by path
    (``/drives/{id}/root:/{path}:/children``); unscoped child queries at
    that level are rejected by the service.
    """

    def __init__(self, graph_client: GraphClient) -> None:
        self._graph = graph_client

    def get_root_with_children(self, drive_id: str) -> list[dict[str, Any]]:
        """Fetch the drive root with ``$expand=children``.

        The expanded collection holds only the first page of children; any
        further pages behind ``children@odata.nextLink`` are fetched too.

        Raises:
            ListingUnavailableError: If the root or a later page carries no children.
        """
        response = self._graph.get(f"/drives/{drive_id}/root?$expand={FIELD_CHILDREN}")
        children = response.get(FIELD_CHILDREN) if response else None
        if children is None:
            raise ListingUnavailableError("")
        children = list(children)
        next_link = response.get(FIELD_CHILDREN_NEXT_LINK)
        if next_link:
            children.extend(self._read_pages(_relative_path(next_link), ""))
        logger.debug(
            "[get_root_with_children] listed root; drive_id:%s;child_count:%d",
            drive_id,
            len(children),
        )
        return children

    def get_children_at_path(self, drive_id: str, path: str) -> list[dict[str, Any]]:
        """Fetch all children of a folder, following @odata.nextLink pages.

        Raises:
            ListingUnavailableError: If any page carries no value collection.
        """
        children = self._read_pages(
            f"/drives/{drive_id}/root:/{encode_drive_path(path)}:/{FIELD_CHILDREN}", path
        )
        logger.debug(
            "[get_children_at_path] listed folder; path:%s;child_count:%d",
            path,
            len(children),
        )
        return children

    def _read_pages(self, first_path: str, path: str) -> list[dict[str, Any]]:
        """Collect the ``value`` entries of a collection and all its next pages."""
        next_path: str | None = first_path
        children: list[dict[str, Any]] = []
        while next_path is not None:
            response = self._graph.get(next_path)
            page = response.get(ODATA_VALUE) if response else None
            if page is None:
                raise ListingUnavailableError(path)
            children.extend(page)
            next_link = response.get(ODATA_NEXT_LINK)
            next_path = _relative_path(next_link) if next_link else None
        return children


def _relative_path(full_url: str) -> str:
    """Convert a full Graph API URL to a relative path for GraphClient.get()."""
    if full_url.startswith(GRAPH_BASE_URL):
        return full_url[len(GRAPH_BASE_URL) :]
    return full_url
