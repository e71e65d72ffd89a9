"""Unit tests for inventory/enumerator.py — TreeEnumerator walk, policies and cancellation."""

import threading
from typing import Any

import pytest

from drive_inventory.graph.client import GraphApiError, GraphAuthError
from drive_inventory.graph.listing import ListingUnavailableError
from drive_inventory.graph.models import DriveItem, ItemKind, join_path
from drive_inventory.inventory.enumerator import (
    EnumerationCancelledError,
    EnumeratorNotInitializedError,
    ErrorPolicy,
    Inventory,
    SubtreeFailure,
    TreeEnumerator,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _file(name: str, size: int = 10, *facets: str) -> dict[str, Any]:
    raw: dict[str, Any] = {"id": f"id-{name}", "name": name, "size": size, "file": {}}
    for facet in facets:
        raw[facet] = {}
    return raw


def _folder(name: str, *children: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f"id-{name}",
        "name": name,
        "size": 999,
        "folder": {"childCount": len(children)},
        "_children": list(children),
    }


class FakeListing:
    """In-memory RemoteListingService over a fixed tree."""

    def __init__(
        self,
        *root: dict[str, Any],
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.calls: list[str] = []
        self._failures = failures or {}
        self._by_path: dict[str, list[dict[str, Any]]] = {}
        self._root = [self._index("", node) for node in root]

    def _index(self, parent: str, node: dict[str, Any]) -> dict[str, Any]:
        raw = {k: v for k, v in node.items() if k != "_children"}
        if "_children" in node:
            path = join_path(parent, node["name"])
            self._by_path[path] = [self._index(path, c) for c in node["_children"]]
        return raw

    def get_root_with_children(self, drive_id: str) -> list[dict[str, Any]]:
        self.calls.append("")
        if "" in self._failures:
            raise self._failures[""]
        return list(self._root)

    def get_children_at_path(self, drive_id: str, path: str) -> list[dict[str, Any]]:
        self.calls.append(path)
        if path in self._failures:
            raise self._failures[path]
        return list(self._by_path[path])


def _sample_tree(**kwargs: Any) -> FakeListing:
    return FakeListing(
        _file("a.txt"),
        _folder(
            "A",
            _file("b.txt", 20),
            _folder("B", _file("file.txt", 30)),
            _folder("Empty"),
        ),
        _folder("C", _file("c.jpg", 40, "image")),
        _file("z.txt", 50),
        **kwargs,
    )


def _paths(inventory: Inventory) -> list[str]:
    return [item.path for item in inventory]


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_missing_listing_service_is_rejected(self) -> None:
        with pytest.raises(EnumeratorNotInitializedError):
            TreeEnumerator(None)

    def test_error_policy_accepts_string_value(self) -> None:
        listing = _sample_tree(failures={"A": ListingUnavailableError("A")})
        enumerator = TreeEnumerator(listing, error_policy="skip_subtree")  # type: ignore[arg-type]
        inventory = enumerator.enumerate("d")
        assert not inventory.complete


# ---------------------------------------------------------------------------
# Walk behaviour
# ---------------------------------------------------------------------------


class TestEnumerate:
    def test_depth_first_pre_order(self) -> None:
        inventory = TreeEnumerator(_sample_tree()).enumerate("drive-1")
        assert _paths(inventory) == ["a.txt", "A/b.txt", "A/B/file.txt", "C/c.jpg", "z.txt"]

    def test_folders_listed_by_path_in_walk_order(self) -> None:
        listing = _sample_tree()
        TreeEnumerator(listing).enumerate("drive-1")
        assert listing.calls == ["", "A", "A/B", "A/Empty", "C"]

    def test_deterministic_under_fixed_tree(self) -> None:
        enumerator = TreeEnumerator(_sample_tree())
        assert list(enumerator.enumerate("d")) == list(enumerator.enumerate("d"))

    def test_output_contains_only_files(self) -> None:
        inventory = TreeEnumerator(_sample_tree()).enumerate("d")
        assert len(inventory) == 5
        assert all(not item.is_folder for item in inventory)
        assert all(item.kind is not ItemKind.FOLDER for item in inventory)

    def test_nested_path_reconstructed_exactly_once(self) -> None:
        inventory = TreeEnumerator(_sample_tree()).enumerate("d")
        assert _paths(inventory).count("A/B/file.txt") == 1

    def test_records_item_fields(self) -> None:
        inventory = TreeEnumerator(_sample_tree()).enumerate("d")
        photo = next(item for item in inventory if item.name == "c.jpg")
        assert photo == DriveItem(
            name="c.jpg",
            id="id-c.jpg",
            path="C/c.jpg",
            size_bytes=40,
            description="",
            kind=ItemKind.IMAGE,
            is_folder=False,
        )

    def test_classification_priority_audio_over_video(self) -> None:
        listing = FakeListing(_file("clip.mp4", 1, "video", "audio"))
        inventory = TreeEnumerator(listing).enumerate("d")
        assert inventory[0].kind is ItemKind.AUDIO

    def test_empty_subtree_contributes_nothing(self) -> None:
        listing = FakeListing(_folder("Empty"))
        inventory = TreeEnumerator(listing).enumerate("d")
        assert len(inventory) == 0
        assert inventory.complete

    def test_empty_root(self) -> None:
        assert list(TreeEnumerator(FakeListing()).enumerate("d")) == []

    def test_duplicate_names_in_different_folders_are_distinct(self) -> None:
        listing = FakeListing(
            _folder("X", _file("same.txt")),
            _folder("Y", _file("same.txt")),
        )
        assert _paths(TreeEnumerator(listing).enumerate("d")) == ["X/same.txt", "Y/same.txt"]


# ---------------------------------------------------------------------------
# Observer
# ---------------------------------------------------------------------------


class TestObserver:
    def test_reports_folders_and_files_in_visit_order(self) -> None:
        visited: list[DriveItem] = []
        TreeEnumerator(_sample_tree(), on_item_visited=visited.append).enumerate("d")

        assert [item.path for item in visited] == [
            "a.txt",
            "A",
            "A/b.txt",
            "A/B",
            "A/B/file.txt",
            "A/Empty",
            "C",
            "C/c.jpg",
            "z.txt",
        ]

    def test_folder_visit_records_have_folder_kind_and_zero_size(self) -> None:
        visited: list[DriveItem] = []
        TreeEnumerator(_sample_tree(), on_item_visited=visited.append).enumerate("d")

        folder = next(item for item in visited if item.path == "A")
        assert folder.is_folder is True
        assert folder.kind is ItemKind.FOLDER
        assert folder.size_bytes == 0

    def test_folder_reported_before_its_children_are_listed(self) -> None:
        listing = _sample_tree()
        calls_at_visit: dict[str, int] = {}

        def observe(item: DriveItem) -> None:
            calls_at_visit[item.path] = len(listing.calls)

        TreeEnumerator(listing, on_item_visited=observe).enumerate("d")
        assert listing.calls[calls_at_visit["A"]] == "A"


# ---------------------------------------------------------------------------
# Error policies
# ---------------------------------------------------------------------------


class TestAbortPolicy:
    def test_nested_listing_failure_propagates(self) -> None:
        listing = _sample_tree(failures={"A/B": ListingUnavailableError("A/B")})
        with pytest.raises(ListingUnavailableError) as exc_info:
            TreeEnumerator(listing).enumerate("d")
        assert exc_info.value.path == "A/B"

    def test_walk_stops_at_first_failure(self) -> None:
        listing = _sample_tree(failures={"A/B": ListingUnavailableError("A/B")})
        with pytest.raises(ListingUnavailableError):
            TreeEnumerator(listing).enumerate("d")
        assert listing.calls == ["", "A", "A/B"]

    def test_remote_api_error_propagates_unchanged(self) -> None:
        error = GraphApiError(503, "Service unavailable")
        listing = _sample_tree(failures={"C": error})
        with pytest.raises(GraphApiError) as exc_info:
            TreeEnumerator(listing).enumerate("d")
        assert exc_info.value is error

    def test_root_failure_propagates(self) -> None:
        listing = _sample_tree(failures={"": ListingUnavailableError("")})
        with pytest.raises(ListingUnavailableError):
            TreeEnumerator(listing).enumerate("d")


class TestSkipSubtreePolicy:
    def test_failed_subtree_recorded_and_siblings_continue(self) -> None:
        error = ListingUnavailableError("A/B")
        listing = _sample_tree(failures={"A/B": error})

        inventory = TreeEnumerator(listing, error_policy=ErrorPolicy.SKIP_SUBTREE).enumerate("d")

        assert _paths(inventory) == ["a.txt", "A/b.txt", "C/c.jpg", "z.txt"]
        assert inventory.failures == [SubtreeFailure(path="A/B", error=error)]
        assert inventory.complete is False

    def test_remote_api_errors_are_skippable(self) -> None:
        listing = _sample_tree(failures={"C": GraphApiError(404, "gone")})
        inventory = TreeEnumerator(listing, error_policy=ErrorPolicy.SKIP_SUBTREE).enumerate("d")
        assert [f.path for f in inventory.failures] == ["C"]
        assert "C/c.jpg" not in _paths(inventory)

    def test_root_failure_yields_empty_incomplete_inventory(self) -> None:
        listing = _sample_tree(failures={"": ListingUnavailableError("")})
        inventory = TreeEnumerator(listing, error_policy=ErrorPolicy.SKIP_SUBTREE).enumerate("d")
        assert len(inventory) == 0
        assert [f.path for f in inventory.failures] == [""]

    def test_auth_errors_are_always_fatal(self) -> None:
        listing = _sample_tree(failures={"A": GraphAuthError("expired")})
        with pytest.raises(GraphAuthError):
            TreeEnumerator(listing, error_policy=ErrorPolicy.SKIP_SUBTREE).enumerate("d")


# ---------------------------------------------------------------------------
# Cancellation and timeout
# ---------------------------------------------------------------------------


class TestCancellation:
    def test_preset_cancel_event_stops_before_any_listing(self) -> None:
        listing = _sample_tree()
        event = threading.Event()
        event.set()

        with pytest.raises(EnumerationCancelledError):
            TreeEnumerator(listing, cancel_event=event).enumerate("d")
        assert listing.calls == []

    def test_cancel_between_listing_calls(self) -> None:
        listing = _sample_tree()
        event = threading.Event()

        def observe(item: DriveItem) -> None:
            if item.path == "A":
                event.set()

        with pytest.raises(EnumerationCancelledError, match="'A'"):
            TreeEnumerator(listing, on_item_visited=observe, cancel_event=event).enumerate("d")
        assert listing.calls == [""]

    def test_cancellation_is_not_skipped(self) -> None:
        event = threading.Event()
        event.set()
        enumerator = TreeEnumerator(
            _sample_tree(), error_policy=ErrorPolicy.SKIP_SUBTREE, cancel_event=event
        )
        with pytest.raises(EnumerationCancelledError):
            enumerator.enumerate("d")

    def test_zero_timeout_expires_immediately(self) -> None:
        listing = _sample_tree()
        with pytest.raises(EnumerationCancelledError, match="timed out"):
            TreeEnumerator(listing, timeout=0).enumerate("d")
        assert listing.calls == []

    def test_generous_timeout_completes(self) -> None:
        inventory = TreeEnumerator(_sample_tree(), timeout=3600).enumerate("d")
        assert len(inventory) == 5


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class TestInventory:
    def test_behaves_as_a_sequence(self) -> None:
        a = DriveItem(name="a", id="1", path="a")
        b = DriveItem(name="b", id="2", path="X/b")
        inventory = Inventory(items=[a, b])

        assert len(inventory) == 2
        assert inventory[1] is b
        assert inventory[-1] is b
        assert inventory[:1] == [a]
        assert list(inventory) == [a, b]
        assert a in inventory
        assert inventory.index(b) == 1

    def test_complete_without_failures(self) -> None:
        assert Inventory().complete is True
