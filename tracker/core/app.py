import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import Config
from .db import Database


class TrackerApp:
    """Wires config, storage, the timing source and the feature services together.

    Every component receives its collaborators here; nothing is module-global.
    """

    def __init__(
        self,
        config: Config,
        database: Optional[Database] = None,
        provider: Optional[Any] = None,
        setup_logging: bool = True,
    ):
        from tracker.features.accounts.service import AccountService
        from tracker.features.groups.progress import ProgressAggregator
        from tracker.features.prayers.ledger import MarkLedger
        from tracker.features.prayers.service import PrayerService
        from tracker.features.prayers.timings import create_provider
        from tracker.features.prayers.window import WindowPolicy

        self.logger = logging.getLogger(self.__class__.__name__)
        self.config = config
        self.config.register_change_callback(self.handle_config_change)

        if setup_logging:
            self._setup_logging()

        self.db = database or Database(self.config.data)
        self.provider = provider or create_provider(self.config.section("timings"))
        self.window = WindowPolicy()
        self.ledger = MarkLedger(self.db)
        self.accounts = AccountService(
            self.db,
            auth_config=self.config.section("auth"),
            groups_config=self.config.section("groups"),
        )
        self.prayers = PrayerService(
            self.db,
            self.provider,
            self.ledger,
            window=self.window,
            timings_config=self.config.section("timings"),
        )
        self.progress = ProgressAggregator(self.db)

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        root_logger.setLevel(self._log_level(self.config.data))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = self.config.section("logging").get("file")
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Prayer tracker starting...")

    @staticmethod
    def _log_level(config_data: Dict[str, Any]) -> int:
        level_name = str((config_data.get("logging") or {}).get("level", "INFO")).upper()
        return getattr(logging, level_name, logging.INFO)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Apply settings that can change without a restart (log level only)."""
        level = self._log_level(new_config)
        logging.getLogger().setLevel(level)
        self.logger.info(f"Log level set to {logging.getLevelName(level)}")

    def run(self) -> None:
        from tracker.api import run_api_server

        try:
            run_api_server(self)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.config.cleanup()
        self.db.dispose()
        self.logger.info(f"Prayer tracker stopped (pid {os.getpid()})")
