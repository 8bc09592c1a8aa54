"""Config source and factory interfaces."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class ConfigSource(Protocol):
    """Protocol for config sources.

    A config source is a long-lived object owned by the source manager.
    It is responsible for:
    1. Resolving a selector (plus optional parameters) to a literal value
    2. Releasing any resources it holds when closed
    """

    def retrieve(self, selector: str, params: Mapping[str, str]) -> Any:
        """Retrieve the value identified by a selector.

        Args:
            selector: Key or query understood by the source.
            params: Optional parameters from the reference expression.

        Returns:
            The literal value: a scalar, list or mapping.
        """
        ...

    def close(self) -> None:
        """Release resources held by the source."""
        ...


@runtime_checkable
class Factory(Protocol):
    """Protocol for config source factories.

    Each factory identifies one source type by a unique type name and
    builds instances of it from creation parameters.
    """

    @property
    def type_name(self) -> str:
        """Get the unique type name of the sources this factory creates."""
        ...

    def create_source(self, params: Mapping[str, Any]) -> ConfigSource:
        """Create a config source.

        Args:
            params: Creation parameters for the source.

        Returns:
            A new ConfigSource instance.
        """
        ...


class BaseFactory(ABC):
    """Abstract base class for factories.

    Subclasses set ``type_name`` and optionally ``settings_model``. When a
    settings model is declared, creation parameters are validated against
    it and the validated model is passed to ``_create``; otherwise the raw
    parameters are passed through as a dict.
    """

    type_name: ClassVar[str]
    settings_model: ClassVar[type[BaseModel] | None] = None

    def create_source(self, params: Mapping[str, Any]) -> ConfigSource:
        """Validate creation parameters and create a config source.

        Args:
            params: Creation parameters for the source.

        Returns:
            A new ConfigSource instance.

        Raises:
            pydantic.ValidationError: If the parameters fail validation.
        """
        if self.settings_model is None:
            return self._create(dict(params))
        return self._create(self.settings_model.model_validate(dict(params)))

    @abstractmethod
    def _create(self, settings: Any) -> ConfigSource:
        """Create a config source from validated settings.

        Args:
            settings: A ``settings_model`` instance, or a dict of raw
                parameters when no model is declared.

        Returns:
            A new ConfigSource instance.
        """
