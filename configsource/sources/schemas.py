"""Schema for the config_sources document section."""

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import Field, RootModel, field_validator

from configsource.sources.constants import TYPE_NAME_PATTERN


SourceTypeName = Annotated[str, Field(pattern=rf"^{TYPE_NAME_PATTERN}$")]


class ConfigSourcesSection(RootModel[dict[SourceTypeName, dict[str, Any]]]):
    """Per-type creation parameters declared in a config document.

    Example:
        config_sources:
          vault:
            endpoint: https://vault.example.com
          env:
    """

    @field_validator("root", mode="before")
    @classmethod
    def normalize_empty(cls, v: Any) -> Any:
        """Treat a missing section or empty entries as no parameters."""
        if v is None:
            return {}
        if isinstance(v, Mapping):
            return {key: {} if value is None else value for key, value in v.items()}
        return v

    def params_for(self, type_name: str) -> dict[str, Any]:
        """Get creation parameters declared for a type.

        Args:
            type_name: Source type name.

        Returns:
            Declared parameters, empty if the type is not listed.
        """
        return dict(self.root.get(type_name, {}))


def merge_creation_params(
    defaults: Mapping[str, Mapping[str, Any]],
    section: ConfigSourcesSection,
) -> dict[str, dict[str, Any]]:
    """Layer document-declared parameters over construction-time defaults.

    Document values win per key; types present in only one side are kept.

    Args:
        defaults: Parameters given when the provider was constructed.
        section: Parameters declared in the document.

    Returns:
        Merged parameters keyed by type name.
    """
    merged: dict[str, dict[str, Any]] = {
        type_name: dict(params) for type_name, params in defaults.items()
    }
    for type_name, params in section.root.items():
        merged.setdefault(type_name, {}).update(params)
    return merged
