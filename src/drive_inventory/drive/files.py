"""Single-file OneDrive operations: drives, metadata, download and upload."""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from drive_inventory.graph.client import GraphApiError, GraphClient
from drive_inventory.graph.listing import GraphListingService, encode_drive_path
from drive_inventory.graph.models import (
    FIELD_CREATED,
    FIELD_FILE_SYSTEM_INFO,
    FIELD_ID,
    FIELD_LAST_ACCESSED,
    FIELD_LAST_MODIFIED,
    ODATA_VALUE,
    Drive,
    DriveItem,
    FileInfo,
    join_path,
)

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class DriveNotFoundError(Exception):
    """Raised when the signed-in user has no OneDrive drive."""


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class DriveFiles:
    """File operations against the user's first OneDrive drive."""

    def __init__(self, graph_client: GraphClient) -> None:
        self._graph = graph_client
        self._listing = GraphListingService(graph_client)

    def list_drives(self) -> list[Drive]:
        """Return all drives available to the signed-in user."""
        response = self._graph.get("/me/drives")
        return [Drive.from_raw(raw) for raw in response.get(ODATA_VALUE, [])]

    def default_drive_id(self) -> str:
        """Return the ID of the user's first drive.

        Raises:
            DriveNotFoundError: If the user has no drives.
        """
        drives = self.list_drives()
        if not drives:
            raise DriveNotFoundError("No drives found")
        return drives[0].id

    def list_root(self) -> list[DriveItem]:
        """Return the immediate children of the default drive's root."""
        drive_id = self.default_drive_id()
        children = self._listing.get_root_with_children(drive_id)
        return [DriveItem.from_raw(raw, "") for raw in children]

    def _item_path(self, drive_id: str, remote_path: str) -> str:
        return f"/drives/{drive_id}/root:/{encode_drive_path(remote_path)}:"

    def find_first_file(self, remote_path: str) -> FileInfo:
        """Look up a file by root-relative path and return its metadata.

        Raises:
            GraphApiError: If the item does not exist (404) or the call fails.
        """
        drive_id = self.default_drive_id()
        raw = self._graph.get(self._item_path(drive_id, remote_path))
        info = FileInfo.from_raw(raw)
        logger.info(
            "[find_first_file] found file; name:%s;id:%s;size:%d",
            info.file_name,
            raw.get(FIELD_ID, ""),
            info.file_size,
        )
        return info

    def file_exists(self, remote_path: str) -> bool:
        """Return True if an item exists at the root-relative path.

        Only a 404 means "absent"; any other failure is raised.
        """
        drive_id = self.default_drive_id()
        try:
            self._graph.get(self._item_path(drive_id, remote_path))
        except GraphApiError as exc:
            if exc.status_code == HTTP_NOT_FOUND:
                return False
            raise
        return True

    def get_file(self, remote_path: str, directory: str, overwrite: bool = False) -> str:
        """Download a remote file into a local directory.

        The local copy's access and modification times are set from the
        remote item's file system info. An existing local file is left
        untouched unless overwrite is True.

        Args:
            remote_path: Root-relative path of the file in OneDrive.
            directory: Local directory to write into (created if missing).
            overwrite: Replace an existing local file.

        Returns:
            Path of the local file.
        """
        drive_id = self.default_drive_id()
        item_path = self._item_path(drive_id, remote_path)
        info = FileInfo.from_raw(self._graph.get(item_path))

        local_path = Path(directory) / info.file_name
        if local_path.exists() and not overwrite:
            logger.info("[get_file] local file already exists; path:%s", local_path)
            return str(local_path)

        content = self._graph.get_content(f"{item_path}/content")
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(content)

        if info.last_write_time is not None:
            accessed = info.last_access_time or info.last_write_time
            os.utime(local_path, (accessed.timestamp(), info.last_write_time.timestamp()))

        logger.info("[get_file] downloaded file; path:%s;bytes:%d", local_path, len(content))
        return str(local_path)

    def save_file(self, local_file: str, directory: str) -> str:
        """Upload a local file into a remote folder, keeping its timestamps.

        Uses a simple upload (suitable for files up to 250 MB), then patches
        the item's fileSystemInfo with the local access and modification
        times, plus the creation time on platforms that record one.

        Args:
            local_file: Path of the local file to upload.
            directory: Root-relative remote folder.

        Returns:
            Root-relative remote path of the uploaded file.
        """
        source = Path(local_file)
        remote_path = join_path(directory.replace("\\", "/").strip("/"), source.name)
        drive_id = self.default_drive_id()

        uploaded = self._graph.put_content(
            f"{self._item_path(drive_id, remote_path)}/content", source.read_bytes()
        )
        item_id = uploaded.get(FIELD_ID, "")
        logger.info("[save_file] uploaded file; remote_path:%s;id:%s", remote_path, item_id)

        if item_id:
            stat = source.stat()
            times = {
                FIELD_LAST_ACCESSED: _iso(stat.st_atime),
                FIELD_LAST_MODIFIED: _iso(stat.st_mtime),
            }
            # st_ctime is the inode change time on Linux, so only a real birth time is sent
            birthtime = getattr(stat, "st_birthtime", None)
            if birthtime is not None:
                times[FIELD_CREATED] = _iso(birthtime)
            self._graph.patch_json(
                f"/drives/{drive_id}/items/{item_id}", {FIELD_FILE_SYSTEM_INFO: times}
            )
        return remote_path
