"""JSON file backed settings store.

The whole store is one JSON object on disk. Each write rewrites the file
through a temp file and ``os.replace`` so readers never observe a partially
written document, and multi-key updates land together.

Writes are read-modify-write without a lock: when the CLI and the service
write at the same moment, the later replace wins and the other update is lost.
Each write uses its own temp file, so neither fails because of the other.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .constants import SETTINGS_FILE
from .errors import ConfigError

logger = logging.getLogger(__name__)


class SettingsStore:
    """Key/value settings persisted in a single JSON document.

    Values are not cached between calls: every ``get`` re-reads the file so a
    CLI write is visible to the running service on its next run.
    """

    def __init__(self, path: str = SETTINGS_FILE):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """Read the full settings document.

        Returns:
            Settings dictionary (empty if the file does not exist yet)

        Raises:
            ConfigError: If the file is unreadable, not JSON, or not an object
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Settings file {self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read settings file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {self.path} must contain a JSON object")
        return data

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return the stored value for ``key`` or ``default`` when absent."""
        value = self.load().get(key)
        return default if value is None else value

    def put(self, key: str, value: Any) -> None:
        """Store a single value."""
        self.put_many({key: value})

    def put_many(self, values: Mapping[str, Any]) -> None:
        """Store several values in one atomic file replace.

        A value of None removes the key.
        """
        data = self.load()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', dir=self.path.parent, prefix=self.path.name + '.', suffix='.tmp', delete=False,
            ) as f:
                tmp_path = f.name
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise ConfigError(f"Cannot write settings file {self.path}: {e}") from e

        logger.debug("Stored settings: %s", ", ".join(sorted(values)))
