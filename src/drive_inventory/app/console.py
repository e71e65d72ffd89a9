"""Console menu — greets the user and runs mail and OneDrive actions on demand."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from drive_inventory.config import load_config
from drive_inventory.drive.files import DriveFiles
from drive_inventory.graph.client import GraphClient, graph_client_from_config
from drive_inventory.graph.listing import GraphListingService
from drive_inventory.graph.models import DriveItem, join_path
from drive_inventory.inventory.enumerator import TreeEnumerator
from drive_inventory.mail.service import MailService

if TYPE_CHECKING:
    from drive_inventory.config import AppConfig

logger = logging.getLogger(__name__)

MENU = (
    "Please choose one of the following options:",
    "0. Exit",
    "1. Display access token",
    "2. List my inbox",
    "3. Send mail",
    "4. List OneDrive drives",
    "5. List OneDrive contents",
    "6. Get OneDrive file metadata",
    "7. Download OneDrive file",
    "8. Upload a file to OneDrive",
)


def prompt_user(question: str, input_fn: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question; only 'yes' or 'y' (any case) count as yes."""
    try:
        response = input_fn(f"{question} (Yes/No) ")
    except EOFError:
        return False
    return response.strip().lower() in ("yes", "y")


def format_item(item: DriveItem) -> str:
    return (
        f"Item: {item.path} (ID: {item.id}): "
        f"{item.size_bytes}, {item.description}, {item.kind.value}"
    )


class ConsoleApp:
    """Interactive menu over the mail and drive services."""

    def __init__(
        self,
        config: AppConfig,
        graph_client: GraphClient,
        mail: MailService,
        files: DriveFiles,
        input_fn: Callable[[str], str] = input,
    ) -> None:
        self._config = config
        self._graph = graph_client
        self._mail = mail
        self._files = files
        self._input = input_fn
        self._actions: dict[int, Callable[[], None]] = {
            1: self.display_access_token,
            2: self.list_inbox,
            3: self.send_mail,
            4: self.list_drives,
            5: self.list_drive_contents,
            6: self.find_first_file,
            7: self.get_file,
            8: self.save_file,
        }

    def run(self) -> None:
        """Greet the user, then loop over the menu until 0 is chosen or input ends."""
        self.greet_user()
        choice = -1
        while choice != 0:
            print("\n".join(MENU))
            try:
                choice = int(self._input("").strip())
            except ValueError:
                choice = -1
            except EOFError:
                choice = 0

            if choice == 0:
                print("Goodbye...")
            elif choice in self._actions:
                self._actions[choice]()
            else:
                print("Invalid choice! Please try again.")

    def greet_user(self) -> None:
        try:
            user = self._mail.get_user()
            print(f"Hello, {user.display_name}!")
            print(f"Email: {user.email}")
        except Exception as exc:
            logger.debug("[greet_user] failed to get user", exc_info=True)
            print(f"Error getting user: {exc}")

    def display_access_token(self) -> None:
        try:
            print(f"User token: {self._graph.get_token()}")
        except Exception as exc:
            print(f"Error getting user access token: {exc}")

    def list_inbox(self) -> None:
        try:
            page = self._mail.get_inbox()
            if not page.messages:
                print("No results returned.")
                return
            for message in page.messages:
                received = message.received.astimezone() if message.received else ""
                print(f"Message: {message.subject or 'NO SUBJECT'}")
                print(f"  From: {message.sender_name}")
                print(f"  Status: {'Read' if message.is_read else 'Unread'}")
                print(f"  Received: {received}")
            print(f"\nMore messages available? {page.more_available}")
        except Exception as exc:
            logger.debug("[list_inbox] inbox listing failed", exc_info=True)
            print(f"Error getting user's inbox: {exc}")

    def send_mail(self) -> None:
        """Send a test message to the signed-in user."""
        try:
            email = self._mail.get_user().email
            if not email:
                print("Couldn't get your email address, canceling...")
                return
            self._mail.send_mail("Testing Microsoft Graph", "Hello world!", email)
            print("Mail sent.")
        except Exception as exc:
            logger.debug("[send_mail] sending mail failed", exc_info=True)
            print(f"Error sending mail: {exc}")

    def list_drives(self) -> None:
        try:
            drives = self._files.list_drives()
            if not drives:
                print("No drives found in your OneDrive.")
                return
            for drive in drives:
                print(f"Item: {drive.name} (ID: {drive.id})")
        except Exception as exc:
            print(f"Error listing OneDrive drives: {exc}")

    def list_drive_contents(self) -> None:
        """Print the root's children, then walk the whole drive."""
        try:
            root_items = self._files.list_root()
            if not root_items:
                print("No items found in your OneDrive.")
                return
            for item in root_items:
                print(f"Item: {item.name} (ID: {item.id})")

            enumerator = TreeEnumerator(
                GraphListingService(self._graph),
                on_item_visited=lambda item: print(format_item(item)),
                error_policy=self._config.on_error,
                timeout=self._config.listing_timeout,
            )
            inventory = enumerator.enumerate(self._files.default_drive_id())
            total = sum(item.size_bytes for item in inventory)
            print(f"Found {len(inventory)} file(s), {total} bytes.")
            if not inventory.complete:
                print(f"Skipped {len(inventory.failures)} folder(s) that could not be listed.")
        except Exception as exc:
            logger.debug("[list_drive_contents] drive walk failed", exc_info=True)
            print(f"Error listing OneDrive contents: {exc}")

    def find_first_file(self) -> None:
        try:
            info = self._files.find_first_file(self._config.test_file_name)
            print(
                f"Item: {info.file_name}: {info.file_size}, "
                f"{info.creation_time}, {info.last_write_time}"
            )
        except Exception as exc:
            print(f"Error getting OneDrive file metadata: {exc}")

    def get_file(self) -> None:
        try:
            local = self._files.get_file(self._config.test_file_name, self._config.download_dir)
            print(f"Downloaded to: {local}.")
        except Exception as exc:
            logger.debug("[get_file] download failed", exc_info=True)
            print(f"Error downloading OneDrive file: {exc}")

    def save_file(self) -> None:
        """Upload the test file from the download directory, asking before overwriting."""
        try:
            name = self._config.test_file_name
            remote = join_path(self._config.upload_dir.strip("/"), name)
            if self._files.file_exists(remote) and not prompt_user(
                "File already exists in OneDrive, overwrite?", self._input
            ):
                print("File already exists in OneDrive, skipping...")
                return
            local = Path(self._config.download_dir) / name
            saved = self._files.save_file(str(local), self._config.upload_dir)
            print(f"Uploaded/Saved to: {saved}.")
        except Exception as exc:
            logger.debug("[save_file] upload failed", exc_info=True)
            print(f"Error saving file: {exc}")


def console_app_from_config(config: AppConfig) -> ConsoleApp:
    """Wire a ConsoleApp and its services from application configuration.

    Device code sign-in instructions are printed to the console.
    """
    client = graph_client_from_config(config, device_code_prompt=print)
    return ConsoleApp(
        config=config,
        graph_client=client,
        mail=MailService(client),
        files=DriveFiles(client),
    )


def main() -> None:
    """Console entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    print("Python Graph Tutorial\n")
    console_app_from_config(config).run()
