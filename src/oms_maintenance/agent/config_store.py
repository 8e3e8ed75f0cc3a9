"""
Configuration Store - omsadmin.conf access

Reads and updates the agent's flat ``KEY=value`` configuration file.
Loading returns an immutable ``Configuration`` snapshot; updates rewrite the
file with a single line replaced and every other line left byte-identical.
"""

import re
from pathlib import Path
from typing import Union

from ..errors import ConfigFileMissingError, FileWriteError, MaintenanceError
from ..logging import get_logger
from ..schemas import CONFIG_KEYS, Configuration, Result

logger = get_logger(__name__)


class ConfigStore:
    """
    Owns the agent configuration file.
    """

    def __init__(self, config_path: Union[str, Path]):
        self.config_path = Path(config_path)

    def read(self) -> Configuration:
        """Parse the file into a Configuration; raises ConfigFileMissingError."""
        if not self.config_path.exists():
            raise ConfigFileMissingError(str(self.config_path))

        values = {}
        # Non-UTF-8 bytes are replaced rather than fatal
        with open(self.config_path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                for key, field in CONFIG_KEYS.items():
                    prefix = f"{key}="
                    if line.startswith(prefix):
                        # Last matching line wins
                        values[field] = line[len(prefix):].strip()
                        break

        return Configuration(**values)

    def load(self) -> Result:
        """Load a fresh Configuration snapshot. Unset fields are not an error here."""
        try:
            return Result.success(self.read())
        except MaintenanceError as e:
            logger.error(e.message, extra={"error": e.to_dict()})
            return Result.failure(e.code)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading configuration from {self.config_path}: {e}")
            return Result.failure(ConfigFileMissingError.code)

    def update(self, key: str, value: str) -> Result:
        """
        Replace the first ``key=...`` line with ``key=value``.

        Every other byte of the file, line endings included, is written back
        as read. The whole file is rewritten even when no line matches; in
        that case the content is unchanged and the value is not persisted.
        """
        if not self.config_path.exists():
            return Result.failure(ConfigFileMissingError.code)

        try:
            with open(self.config_path, "r", encoding="utf-8", errors="surrogateescape", newline="") as handle:
                old_text = handle.read()
            pattern = re.compile(rf"^{re.escape(key)}=[^\r\n]*", re.MULTILINE)
            new_text, count = pattern.subn(lambda _: f"{key}={value}", old_text, count=1)
            if count == 0:
                logger.warning(f"No {key} entry in {self.config_path}; value not persisted")
            if not new_text.endswith("\n"):
                new_text += "\n"
            with open(self.config_path, "w", encoding="utf-8", errors="surrogateescape", newline="") as handle:
                handle.write(new_text)
        except (OSError, ValueError) as e:
            logger.error(f"Error updating {key} in {self.config_path}: {e}")
            return Result.failure(FileWriteError.code)

        logger.debug(f"Updated {key} in {self.config_path}")
        return Result.success(value)
