"""Constants for config source registration."""

# Entry point group scanned for installed factories
DEFAULT_ENTRY_POINT_GROUP = "configsource.factories"

# Allowed characters in a source type name
TYPE_NAME_PATTERN = r"[A-Za-z0-9_-]+"

# Top-level document key holding per-type creation parameters
CONFIG_SOURCES_KEY = "config_sources"
