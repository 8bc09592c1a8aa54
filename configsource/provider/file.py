"""YAML file document provider."""

import hashlib
from pathlib import Path
from typing import Any

import structlog
import yaml

from configsource.errors import DocumentFormatError
from configsource.provider.base import Retrieved, WatcherFunc


logger = structlog.get_logger()

FILE_SCHEME = "file"


def parse_yaml_document(location: str, content: str) -> dict[str, Any]:
    """Parse YAML text into a configuration mapping.

    Args:
        location: Where the text came from, for error messages.
        content: YAML text.

    Returns:
        The parsed mapping; an empty document yields an empty mapping.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        DocumentFormatError: If the top level is not a mapping.
    """
    parsed = yaml.safe_load(content)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        msg = f"top level must be a mapping, got {type(parsed).__name__}"
        raise DocumentFormatError(location, msg)
    return parsed


class FileProvider:
    """Loads configuration documents from local YAML files.

    Accepts ``file:<path>`` locations as well as bare paths.
    """

    def __init__(self) -> None:
        """Initialize the provider."""
        self._log = logger.bind(component="file_provider")

    def scheme(self) -> str:
        """Get the handled scheme."""
        return FILE_SCHEME

    def retrieve(self, location: str, watcher: WatcherFunc | None = None) -> Retrieved:
        """Load and parse a YAML file.

        Args:
            location: ``file:<path>`` or a plain path.
            watcher: Unused; files are not watched.

        Returns:
            The parsed document.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If YAML parsing fails.
            DocumentFormatError: If the top level is not a mapping.
        """
        prefix = f"{FILE_SCHEME}:"
        path = Path(location.removeprefix(prefix))

        content_bytes = path.read_bytes()
        checksum = hashlib.sha256(content_bytes).hexdigest()
        document = parse_yaml_document(location, content_bytes.decode("utf-8"))

        self._log.info(
            "config_file_loaded",
            file_path=str(path),
            file_sha256=checksum,
            top_level_keys=len(document),
        )
        return Retrieved(document)

    def shutdown(self) -> None:
        """Nothing to release."""
