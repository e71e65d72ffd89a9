"""Allow ``python -m drive_inventory``."""

from drive_inventory.app.console import main

main()
