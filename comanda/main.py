"""Entry point for the comanda printer console."""

from __future__ import annotations

from comanda.config import DB_PATH
from comanda.console_app import PrinterConsoleApp
from comanda.devices import DeviceResolver
from comanda.log import configure_logging
from comanda.persistence import ProfileStore
from comanda.printer import DeviceWriter, PrintDispatcher
from comanda.registry import PrinterRegistry


def build_dispatcher(db_path: str = DB_PATH) -> PrintDispatcher:
    """Wire the services once; the dispatcher is what the host process keeps."""
    registry = PrinterRegistry.from_store(ProfileStore(db_path))
    return PrintDispatcher(registry, DeviceResolver(), DeviceWriter())


def main() -> None:
    """Run the Textual application."""
    configure_logging(console=False)
    dispatcher = build_dispatcher()
    try:
        PrinterConsoleApp(dispatcher).run()
    finally:
        dispatcher.close()


if __name__ == "__main__":
    main()
