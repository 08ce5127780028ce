"""Main Reader Sync application."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import Config, load_config, create_example_config
from .core.manager import ReaderManager
from .core.refresh import BatchResult
from .models import Article, Folder
from .services.state import StateManager
from .utils.paths import get_log_dir


class ReaderSyncApp:
    """Command-line host for the sync core."""

    def __init__(self, config_file: Optional[Path] = None, config: Optional[Config] = None,
                 manager: Optional[ReaderManager] = None):
        """
        Initialize the Reader Sync application.

        Args:
            config_file: Optional path to configuration file
            config: Already loaded configuration, takes precedence over config_file
            manager: Prebuilt manager whose store is a StateManager, mainly for tests
        """
        # Load configuration
        self.config = config or load_config(config_file)

        # Setup logging
        self._setup_logging()

        # Initialize components
        if manager is not None and not isinstance(manager.store, StateManager):
            raise TypeError("ReaderSyncApp needs a manager backed by a StateManager store")
        self.state_manager = manager.store if manager is not None else StateManager()
        self.manager = manager or ReaderManager(self.config, store=self.state_manager)

        logging.info("Reader Sync initialized")

    def _setup_logging(self) -> None:
        """Setup logging configuration."""
        log_dir = get_log_dir()
        log_file = log_dir / "reader-sync.log"

        # Convert string log level to logging constant
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        # Setup file handler
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)

        # Setup console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)

        # Configure root logger
        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.handlers = []  # Clear existing handlers
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

    def set_verbose(self, verbose: bool) -> None:
        if verbose:
            logging.getLogger().setLevel(logging.DEBUG)
            for handler in logging.getLogger().handlers:
                handler.setLevel(logging.DEBUG)

    def login(self) -> bool:
        """Acquire both tokens."""
        return self.manager.reset_authentication()

    def sync(self, feed_urls: Optional[List[str]] = None, ignore_limit: bool = False) -> BatchResult:
        """
        Run one sync cycle.

        Args:
            feed_urls: Feeds to refresh; all stored subscriptions when omitted
            ignore_limit: Fetch without the article cap

        Returns:
            Per-feed outcome of the cycle
        """
        self.manager.load_subscriptions("sync")
        folders = self.state_manager.folders()
        if feed_urls:
            wanted = set(feed_urls)
            folders = [folder for folder in folders if folder.feed_url in wanted]
            missing = wanted - {folder.feed_url for folder in folders}
            folders.extend(Folder(url) for url in sorted(missing))

        logging.info(f"Starting sync of {len(folders)} feeds (ignore_limit={ignore_limit})")
        batch = self.manager.refresh_all(folders, ignore_article_limit=ignore_limit)
        logging.info(f"Sync finished: {self.manager.count_of_new_articles} new articles")
        return batch

    def article(self, guid: str) -> Article:
        """Local article for ``guid``, or a bare one when unknown."""
        record = self.state_manager.get_article(guid) or {}
        return Article(
            guid,
            title=record.get("title", ""),
            read=bool(record.get("read")),
            starred=bool(record.get("starred")),
        )

    def get_info(self) -> Dict:
        """
        Get application information.

        Returns:
            Dictionary with application info
        """
        from . import __version__

        return {
            "version": __version__,
            "server": self.config.server.base_url,
            "username": self.config.server.username,
            "ready": self.manager.ready,
            "article_limit": self.config.article_limit,
            "log_level": self.config.log_level,
            "stats": self.state_manager.get_stats(),
        }

    def create_example_config(self) -> str:
        """Create example configuration."""
        return create_example_config()

    def close(self) -> None:
        self.manager.close()
