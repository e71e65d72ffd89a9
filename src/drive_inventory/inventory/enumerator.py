"""Tree enumerator — walks a drive's folder hierarchy into a flat file inventory."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, overload

from drive_inventory.graph.client import GraphApiError
from drive_inventory.graph.listing import ListingUnavailableError, RemoteListingService
from drive_inventory.graph.models import DriveItem

logger = logging.getLogger(__name__)

ItemObserver = Callable[[DriveItem], None]


class EnumerationError(Exception):
    """Base class for errors raised by the tree enumerator itself."""


class EnumeratorNotInitializedError(EnumerationError):
    """Raised when the enumerator is built without a listing service."""


class EnumerationCancelledError(EnumerationError):
    """Raised when a walk is cancelled or exceeds its timeout."""


class ErrorPolicy(str, Enum):
    """What the walk does when a listing call fails."""

    ABORT = "abort"
    SKIP_SUBTREE = "skip_subtree"


# Failures a SKIP_SUBTREE walk may step over. Auth errors and cancellation
# are never in this set.
_SKIPPABLE_ERRORS = (ListingUnavailableError, GraphApiError)


@dataclass
class ListingOutcome:
    """Result of one listing call: either children or the error it raised."""

    children: list[dict[str, Any]] = field(default_factory=list)
    error: Exception | None = None


@dataclass(frozen=True)
class SubtreeFailure:
    """A folder whose contents could not be listed."""

    path: str
    error: Exception


@dataclass
class Inventory(Sequence[DriveItem]):
    """Files discovered by one walk, in depth-first pre-order.

    ``failures`` is only populated under ``ErrorPolicy.SKIP_SUBTREE``; a
    non-empty inventory with failures does not cover the whole drive.
    """

    items: list[DriveItem] = field(default_factory=list)
    failures: list[SubtreeFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures

    @overload
    def __getitem__(self, index: int) -> DriveItem: ...

    @overload
    def __getitem__(self, index: slice) -> list[DriveItem]: ...

    def __getitem__(self, index: int | slice) -> DriveItem | list[DriveItem]:
        return self.items[index]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[DriveItem]:
        return iter(self.items)


class TreeEnumerator:
    """Recursively lists every file under a drive root."""

    def __init__(
        self,
        listing: RemoteListingService | None,
        on_item_visited: ItemObserver | None = None,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialise the enumerator.

        Args:
            listing: Remote listing service to read the drive through.
            on_item_visited: Called for every item reached, folders included,
                before any of a folder's children are listed.
            error_policy: ABORT re-raises the first listing failure; SKIP_SUBTREE
                records it on the inventory and continues with the next sibling.
            timeout: Wall-clock seconds the whole walk may take.
            cancel_event: Set from another thread to stop the walk.

        Raises:
            EnumeratorNotInitializedError: If no listing service is given.
        """
        if listing is None:
            raise EnumeratorNotInitializedError("Remote listing service has not been initialized")
        self._listing = listing
        self._on_item_visited = on_item_visited
        self._error_policy = ErrorPolicy(error_policy)
        self._timeout = timeout
        self._cancel_event = cancel_event

    def enumerate(self, drive_id: str) -> Inventory:
        """Walk the drive and return every file beneath its root.

        Args:
            drive_id: ID of the drive whose root is walked.

        Returns:
            Inventory of leaf files; folders are never included.

        Raises:
            ListingUnavailableError: A listing returned no data (ABORT policy).
            GraphApiError: A listing call failed remotely (ABORT policy).
            GraphAuthError: Token acquisition failed (any policy).
            EnumerationCancelledError: The walk was cancelled or timed out.
        """
        deadline = time.monotonic() + self._timeout if self._timeout is not None else None
        inventory = Inventory()
        logger.info(
            "[enumerate] starting walk; drive_id:%s;policy:%s", drive_id, self._error_policy.value
        )

        outcome = self._fetch(deadline, "", lambda: self._listing.get_root_with_children(drive_id))
        if self._accept(outcome, "", inventory):
            self._walk(drive_id, "", outcome.children, inventory, deadline)

        logger.info(
            "[enumerate] walk complete; file_count:%d;failure_count:%d",
            len(inventory.items),
            len(inventory.failures),
        )
        return inventory

    def _walk(
        self,
        drive_id: str,
        parent_path: str,
        children: list[dict[str, Any]],
        inventory: Inventory,
        deadline: float | None,
    ) -> None:
        for raw in children:
            item = DriveItem.from_raw(raw, parent_path)
            self._visit(item)
            if not item.is_folder:
                inventory.items.append(item)
                continue

            outcome = self._fetch(
                deadline,
                item.path,
                lambda path=item.path: self._listing.get_children_at_path(drive_id, path),
            )
            if self._accept(outcome, item.path, inventory):
                self._walk(drive_id, item.path, outcome.children, inventory, deadline)

    def _fetch(
        self,
        deadline: float | None,
        path: str,
        call: Callable[[], list[dict[str, Any]]],
    ) -> ListingOutcome:
        """Run one listing call after checking for cancellation."""
        self._check_cancelled(deadline, path)
        try:
            return ListingOutcome(children=call())
        except _SKIPPABLE_ERRORS as exc:
            return ListingOutcome(error=exc)

    def _accept(self, outcome: ListingOutcome, path: str, inventory: Inventory) -> bool:
        """Apply the error policy; True when the children should be walked."""
        if outcome.error is None:
            return True
        if self._error_policy is ErrorPolicy.ABORT:
            raise outcome.error
        logger.warning("[_accept] skipping subtree; path:%s;error:%s", path or "/", outcome.error)
        inventory.failures.append(SubtreeFailure(path=path, error=outcome.error))
        return False

    def _check_cancelled(self, deadline: float | None, path: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise EnumerationCancelledError(f"Enumeration cancelled before listing '{path or '/'}'")
        if deadline is not None and time.monotonic() >= deadline:
            raise EnumerationCancelledError(
                f"Enumeration timed out after {self._timeout}s before listing '{path or '/'}'"
            )

    def _visit(self, item: DriveItem) -> None:
        logger.debug(
            "[_visit] item visited; path:%s;kind:%s;size:%d",
            item.path,
            item.kind.value,
            item.size_bytes,
        )
        if self._on_item_visited is not None:
            self._on_item_visited(item)
