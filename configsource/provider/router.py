"""Scheme-based routing across document providers."""

import re
from collections.abc import Iterable

from configsource.provider.base import Provider, Retrieved, WatcherFunc
from configsource.provider.constants import DEFAULT_SCHEME


# Single-letter prefixes are drive letters, not schemes
_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]+):")


class SchemeRouter:
    """Provider that dispatches each location by its scheme prefix.

    Locations without a prefix go to the default scheme's provider. The
    full location string is passed to the selected provider unchanged.
    """

    def __init__(
        self,
        providers: Iterable[Provider],
        default_scheme: str = DEFAULT_SCHEME,
    ) -> None:
        """Initialize the router.

        Args:
            providers: Providers keyed by their own scheme().
            default_scheme: Scheme used for locations without a prefix.

        Raises:
            ValueError: If two providers claim the same scheme.
        """
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            scheme = provider.scheme()
            if scheme in self._providers:
                msg = f"duplicate provider for scheme '{scheme}'"
                raise ValueError(msg)
            self._providers[scheme] = provider
        self._default_scheme = default_scheme

    def scheme(self) -> str:
        """Get the router's scheme; it answers for several, so none."""
        return ""

    def schemes(self) -> list[str]:
        """Get the routed schemes."""
        return list(self._providers)

    def provider_for(self, location: str) -> Provider:
        """Select the provider for a location.

        Raises:
            ValueError: If no provider handles the location's scheme.
        """
        match = _SCHEME_RE.match(location)
        scheme = match.group("scheme").lower() if match else self._default_scheme
        try:
            return self._providers[scheme]
        except KeyError:
            msg = f"no provider registered for scheme '{scheme}' in {location!r}"
            raise ValueError(msg) from None

    def retrieve(self, location: str, watcher: WatcherFunc | None = None) -> Retrieved:
        """Retrieve through the provider handling the location's scheme."""
        return self.provider_for(location).retrieve(location, watcher)

    def shutdown(self) -> None:
        """Shut down every routed provider, in registration order."""
        for provider in self._providers.values():
            provider.shutdown()
