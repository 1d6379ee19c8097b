import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

ENV_LINE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|^\$([A-Za-z_][A-Za-z0-9_]*)$")

ChangeCallback = Callable[[Dict[str, Any], Dict[str, Any]], None]


def default_config(config_dir: Path) -> Dict[str, Any]:
    return {
        "location": {
            "latitude": 0.0,
            "longitude": 0.0,
            "method": "muslim_world_league",
            "madhab": "shafi",
            "timezone": None,
        },
        "reminders": {
            "horizon_days": 7,
            "exact_alarms": True,
        },
        "database": {
            "path": str(config_dir / "awqat.db"),
        },
        "logging": {
            "level": "INFO",
            "file": str(config_dir / "awqat.log"),
        },
        "api": {
            "enabled": False,
            "host": "127.0.0.1",
            "port": 8765,
        },
    }


def parse_env_lines(lines) -> Iterator[Tuple[str, str]]:
    """Yield KEY, VALUE pairs from .env style lines, skipping blanks and comments."""
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = ENV_LINE.match(line)
        if match:
            key, value = match.groups()
            yield key, value.strip().strip('"').strip("'")


def diff_config(old: Dict[str, Any], new: Dict[str, Any], path: str = "") -> List[Tuple[str, Any, Any]]:
    """Flattened (dotted key, old value, new value) for every key that differs."""
    changes = []
    for key in sorted(set(old) | set(new), key=str):
        dotted = f"{path}.{key}" if path else str(key)
        before, after = old.get(key), new.get(key)
        if isinstance(before, dict) and isinstance(after, dict):
            changes.extend(diff_config(before, after, dotted))
        elif key not in old or key not in new or before != after:
            changes.append((dotted, before, after))
    return changes


def changed_sections(old: Dict[str, Any], new: Dict[str, Any]) -> Set[str]:
    """Top-level section names touched by a change."""
    return {dotted.split(".", 1)[0] for dotted, _, _ in diff_config(old, new)}


class ConfigChangeHandler(FileSystemEventHandler):
    """Reloads the config when its file is written or replaced (editors often save via rename)."""

    def __init__(self, config, cooldown: float = 1.0):
        self.config = config
        self.cooldown = cooldown
        self.last_reload = 0.0

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in ("modified", "created", "moved"):
            return
        target = getattr(event, "dest_path", None) or event.src_path
        if Path(target).resolve() != self.config.config_file:
            return

        now = time.time()
        if now - self.last_reload < self.cooldown:
            return
        self.last_reload = now
        try:
            self.config.reload()
        except Exception as e:
            logging.error(f"Config reload after {event.event_type} failed: {e}")


class Config:
    """YAML settings file with defaults per section, .env variables and optional file watching.

    Change callbacks receive ``(new_data, old_data)``. When a dispatcher is given they are
    handed to it instead of being called on the watcher thread.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        dispatcher: Optional[Callable[[Callable[[], None]], None]] = None,
        watch: bool = True,
    ):
        self.config_file = Path(config_path or "config.yaml").expanduser().resolve()
        self.config_dir = self.config_file.parent
        self.dispatcher = dispatcher
        self.change_callbacks: List[ChangeCallback] = []
        self._reloading = False
        logging.debug(f"Config file: {self.config_file}")

        self._load_env_file()
        self._write_defaults_if_missing()
        self.data: Dict[str, Any] = self._read() or default_config(self.config_dir)

        self.observer = None
        if watch:
            self.observer = Observer()
            self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()
            logging.info(f"Watching {self.config_file} for changes")

    def register_change_callback(self, callback: ChangeCallback) -> None:
        self.change_callbacks.append(callback)

    def get_section(self, name: str) -> Dict[str, Any]:
        """Copy of one top-level section; {} when absent."""
        return dict(self.data.get(name) or {})

    def reload(self) -> None:
        if self._reloading:
            return
        self._reloading = True
        try:
            # Give the writer a moment to finish
            time.sleep(0.1)
            new_data = self._read()
            if new_data is None:
                logging.warning("Config unreadable, keeping previous settings")
                return

            old_data, self.data = self.data, new_data
            changes = diff_config(old_data, new_data)
            for dotted, before, after in changes:
                logging.info(f"Config {dotted}: {before!r} -> {after!r}")
            if not changes:
                logging.debug("Config reloaded, nothing changed")

            for callback in self.change_callbacks:
                if self.dispatcher:
                    self.dispatcher(lambda cb=callback: cb(new_data, old_data))
                    continue
                try:
                    callback(new_data, old_data)
                except Exception as e:
                    logging.exception(f"Config change callback failed: {e}")
        finally:
            self._reloading = False

    def cleanup(self) -> None:
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _write_defaults_if_missing(self) -> None:
        if self.config_file.exists():
            return
        self.config_dir.mkdir(parents=True, exist_ok=True)
        logging.info(f"Writing default config to {self.config_file}")
        with open(self.config_file, "w") as f:
            yaml.safe_dump(default_config(self.config_dir), f, sort_keys=False)

    def _load_env_file(self) -> None:
        """Export variables from the first .env found (config dir, then cwd) unless already set."""
        env_file = next((p for p in (self.config_dir / ".env", Path.cwd() / ".env") if p.is_file()), None)
        if env_file is None:
            return
        try:
            with open(env_file) as f:
                for key, value in parse_env_lines(f):
                    os.environ.setdefault(key, value)
            logging.info(f"Loaded environment from {env_file}")
        except OSError as e:
            logging.warning(f"Could not read {env_file}: {e}")

    def _expand(self, value: Any) -> Any:
        """Replace ${VAR} anywhere in a string, or a whole-string $VAR; unknown names stay as written."""
        if isinstance(value, dict):
            return {k: self._expand(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._expand(v) for v in value]
        if isinstance(value, str) and "$" in value:
            return ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), m.group(0)), value)
        return value

    def _read(self) -> Optional[Dict[str, Any]]:
        """Parse the file and fill each section from the defaults. None when the file is unusable."""
        try:
            with open(self.config_file) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Error loading config {self.config_file}: {e}")
            return None
        if not isinstance(raw, dict):
            logging.error(f"Config {self.config_file} must be a mapping, got {type(raw).__name__}")
            return None

        data = self._expand(raw)
        for section, defaults in default_config(self.config_dir).items():
            merged = dict(defaults)
            merged.update(data.get(section) or {})
            data[section] = merged
        if data["logging"].get("file"):
            data["logging"]["file"] = os.path.expanduser(data["logging"]["file"])
        return data
