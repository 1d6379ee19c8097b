import logging
import sys
import time
from queue import Empty, Queue
from typing import Any, Callable, Dict, Optional

from awqat.core.config import Config, changed_sections
from awqat.core.db import dispose_db, init_db
from awqat.core.task_manager import ThreadingTimerService
from awqat.prayer.models import HORIZON_DAYS
from awqat.prayer.notifier import LoggingNotificationSink
from awqat.prayer.plugin import AwqatPlugin
from awqat.prayer.service import SettingsConfigStore
from awqat.prayer.task import Trigger

LOCATION_KEYS = ("latitude", "longitude", "method", "madhab", "timezone")


class ReminderApp:
    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = True,
        db_url: Optional[str] = None,
        poll_interval: float = 1.0,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.poll_interval = poll_interval
        self._running = False

        # Work posted from other threads (config watcher) to run on the main loop
        self.calls: Queue = Queue()

        self.config = Config(config_path=config_path, dispatcher=self.calls.put, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database before the store is used
        init_db(self.config.data, db_url=db_url)

        reminders = self.config.get_section("reminders")
        self.timer_service = ThreadingTimerService(exact_alarms=bool(reminders.get("exact_alarms", True)))
        self.sink = LoggingNotificationSink()
        self.plugin = AwqatPlugin(
            SettingsConfigStore(),
            self.timer_service,
            self.sink,
            horizon_days=int(reminders.get("horizon_days", HORIZON_DAYS)),
        )
        self.apply_location()

    def _setup_logging(self) -> None:
        """Configure logging to write to both file and stdout"""
        logging_config = self.config.get_section("logging")
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            if isinstance(handler, logging.FileHandler):
                handler.close()
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = logging_config.get("file")
        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info(f"Logging configured at {logging.getLevelName(root_logger.level)}")

    def _location_settings(self, data: Dict[str, Any]) -> Dict[str, Any]:
        location = dict(data.get("location") or {})
        return {key: location.get(key) for key in LOCATION_KEYS if location.get(key) is not None}

    def apply_location(self) -> None:
        """Load the stored config, then let a configured location in the YAML file override it."""
        try:
            self.plugin.load_saved_config()
        except Exception as e:
            self.logger.error(f"Stored configuration unreadable: {e}")
        settings = self._location_settings(self.config.data)
        try:
            if not float(settings.get("latitude") or 0.0) and not float(settings.get("longitude") or 0.0):
                self.logger.info("No location in config file, keeping stored location")
                return
            self.plugin.initialize(settings)
        except Exception as e:
            self.logger.error(f"Invalid location in config file: {e}")

    def handle_config_change(self, new_data: Dict[str, Any], old_data: Dict[str, Any]) -> None:
        """Handle configuration changes"""
        sections = changed_sections(old_data, new_data)
        self.logger.info(f"Handling config change in: {', '.join(sorted(sections)) or 'nothing'}")
        try:
            if "logging" in sections:
                self._setup_logging()
            if "reminders" in sections:
                reminders = new_data.get("reminders") or {}
                self.timer_service.set_exact_alarms(bool(reminders.get("exact_alarms", True)))
            if "location" in sections:
                self.apply_location()
            if sections & {"location", "reminders"}:
                self.plugin.cascade.reconcile(trigger=Trigger.CONFIG_CHANGED)
        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def _drain_result_queue(self) -> int:
        """Dispatch fired alarms and posted calls (called from main thread)."""
        handled = 0
        while True:
            try:
                alarm_id, payload = self.timer_service.result_queue.get_nowait()
            except Empty:
                break
            try:
                self.plugin.handle_alarm(alarm_id, payload)
            except Exception as e:
                self.logger.error(f"Error handling alarm {alarm_id}: {e}", exc_info=True)
            handled += 1

        while True:
            try:
                call: Callable[[], None] = self.calls.get_nowait()
            except Empty:
                break
            try:
                call()
            except Exception as e:
                self.logger.error(f"Error running posted call: {e}", exc_info=True)
            handled += 1
        return handled

    def start(self) -> None:
        """Boot trigger plus optional API server"""
        self.plugin.on_boot()
        try:
            from awqat.api.server import run_api_server
            run_api_server(self)
        except Exception as e:
            self.logger.warning(f"API server not started: {e}")

    def run(self) -> None:
        self.start()
        self._running = True
        try:
            while self._running:
                self._drain_result_queue()
                time.sleep(self.poll_interval)
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def stop(self) -> None:
        self._running = False
        self.timer_service.stop()
        self.config.cleanup()
        dispose_db()
