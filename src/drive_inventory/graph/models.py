"""Data models for Microsoft Graph drive items, drives and mail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Graph API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_SIZE = "size"
FIELD_DESCRIPTION = "description"
FIELD_FOLDER = "folder"
FIELD_CHILDREN = "children"
FIELD_DRIVE_TYPE = "driveType"
FIELD_FILE_SYSTEM_INFO = "fileSystemInfo"
FIELD_CREATED = "createdDateTime"
FIELD_LAST_MODIFIED = "lastModifiedDateTime"
FIELD_LAST_ACCESSED = "lastAccessedDateTime"

# Facets checked in this order when classifying a file
FIELD_AUDIO = "audio"
FIELD_BUNDLE = "bundle"
FIELD_IMAGE = "image"
FIELD_PHOTO = "photo"
FIELD_VIDEO = "video"

# OData response keys
ODATA_NEXT_LINK = "@odata.nextLink"
ODATA_VALUE = "value"
FIELD_CHILDREN_NEXT_LINK = f"{FIELD_CHILDREN}{ODATA_NEXT_LINK}"


class ItemKind(str, Enum):
    """Classification of a drive item by its media facet."""

    AUDIO = "audio"
    BUNDLE = "bundle"
    FILE = "file"
    FOLDER = "folder"
    IMAGE = "image"
    PHOTO = "photo"
    VIDEO = "video"


_FACET_PRIORITY: tuple[tuple[str, ItemKind], ...] = (
    (FIELD_AUDIO, ItemKind.AUDIO),
    (FIELD_BUNDLE, ItemKind.BUNDLE),
    (FIELD_IMAGE, ItemKind.IMAGE),
    (FIELD_PHOTO, ItemKind.PHOTO),
    (FIELD_VIDEO, ItemKind.VIDEO),
)


def classify(raw: dict[str, Any]) -> ItemKind:
    """Return the kind of a raw Graph file record.

    The first facet present wins: audio, bundle, image, photo, video.
    A record carrying none of them is a plain file. Facets set to null
    count as absent.
    """
    for facet, kind in _FACET_PRIORITY:
        if raw.get(facet) is not None:
            return kind
    return ItemKind.FILE


def is_folder(raw: dict[str, Any]) -> bool:
    return raw.get(FIELD_FOLDER) is not None


def join_path(parent_path: str, name: str) -> str:
    """Join a child name onto a root-relative path; the root's path is ''."""
    return f"{parent_path}/{name}" if parent_path else name


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a Graph ISO-8601 timestamp (``2024-01-31T10:00:00Z``)."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class DriveItem:
    """A file or folder discovered while walking a drive.

    Attributes:
        name: Display name; not unique within a level.
        id: Opaque identifier assigned by OneDrive.
        path: Root-relative path, segments joined by ``/``.
        size_bytes: Size in bytes; always 0 for folders.
        description: Item description, empty when unset.
        kind: Media classification (``FOLDER`` only for folder visit records).
        is_folder: True for containers.
    """

    name: str
    id: str
    path: str
    size_bytes: int = 0
    description: str = ""
    kind: ItemKind = ItemKind.FILE
    is_folder: bool = False

    @classmethod
    def from_raw(cls, raw: dict[str, Any], parent_path: str) -> DriveItem:
        """Build a DriveItem from a raw Graph child record."""
        name = raw.get(FIELD_NAME, "")
        folder = is_folder(raw)
        return cls(
            name=name,
            id=raw.get(FIELD_ID, ""),
            path=join_path(parent_path, name),
            size_bytes=0 if folder else int(raw.get(FIELD_SIZE) or 0),
            description=raw.get(FIELD_DESCRIPTION) or "",
            kind=ItemKind.FOLDER if folder else classify(raw),
            is_folder=folder,
        )


@dataclass
class Drive:
    """A OneDrive drive available to the signed-in user."""

    id: str
    name: str
    drive_type: str = ""

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> Drive:
        return cls(
            id=raw.get(FIELD_ID, ""),
            name=raw.get(FIELD_NAME, ""),
            drive_type=raw.get(FIELD_DRIVE_TYPE, ""),
        )


@dataclass
class FileInfo:
    """Metadata of a single remote file, as returned by a path lookup.

    Timestamps prefer the client-side ``fileSystemInfo`` values and fall back
    to the service-side ones; last access falls back to last modification.
    """

    file_name: str = ""
    alternate_file_name: str = ""
    file_size: int = 0
    creation_time: datetime | None = None
    last_access_time: datetime | None = None
    last_write_time: datetime | None = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> FileInfo:
        fs_info = raw.get(FIELD_FILE_SYSTEM_INFO) or {}
        name = raw.get(FIELD_NAME) or ""
        modified = parse_datetime(raw.get(FIELD_LAST_MODIFIED))
        return cls(
            file_name=name,
            alternate_file_name=name,
            file_size=int(raw.get(FIELD_SIZE) or 0),
            creation_time=parse_datetime(fs_info.get(FIELD_CREATED))
            or parse_datetime(raw.get(FIELD_CREATED)),
            last_access_time=parse_datetime(fs_info.get(FIELD_LAST_ACCESSED)) or modified,
            last_write_time=parse_datetime(fs_info.get(FIELD_LAST_MODIFIED)) or modified,
        )


@dataclass
class UserProfile:
    """The signed-in user."""

    display_name: str = ""
    mail: str = ""
    user_principal_name: str = ""

    @property
    def email(self) -> str:
        # Work/school accounts carry ``mail``; personal accounts only the UPN.
        return self.mail or self.user_principal_name


@dataclass
class MailMessage:
    """A message summary from the inbox listing."""

    subject: str
    sender_name: str
    is_read: bool
    received: datetime | None


@dataclass
class InboxPage:
    """One page of inbox messages."""

    messages: list[MailMessage] = field(default_factory=list)
    more_available: bool = False
