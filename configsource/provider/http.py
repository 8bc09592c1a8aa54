"""HTTP(S) document provider."""

import time

import httpx
import structlog

from configsource.errors import DocumentFetchError
from configsource.provider.base import Retrieved, WatcherFunc
from configsource.provider.constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
)
from configsource.provider.file import parse_yaml_document


logger = structlog.get_logger()


class HttpProvider:
    """Fetches YAML configuration documents over HTTP(S).

    Provides:
    - A single GET per retrieval, following redirects
    - Classification of transport failures and non-2xx responses
    - Injectable transport for testing
    """

    def __init__(
        self,
        scheme: str = "https",
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            scheme: Scheme this instance answers for (``http`` or ``https``).
            timeout_seconds: Request timeout.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        """
        self._scheme = scheme
        self._client = httpx.Client(
            timeout=timeout_seconds,
            follow_redirects=True,
            transport=transport,
            headers={"User-Agent": DEFAULT_USER_AGENT, "Accept": "*/*"},
        )
        self._log = logger.bind(component="http_provider", scheme=scheme)

    def scheme(self) -> str:
        """Get the handled scheme."""
        return self._scheme

    def retrieve(self, location: str, watcher: WatcherFunc | None = None) -> Retrieved:
        """Fetch and parse a YAML document.

        Args:
            location: Absolute URL of the document.
            watcher: Unused; remote documents are not watched.

        Returns:
            The parsed document.

        Raises:
            DocumentFetchError: On transport errors or non-2xx status.
            yaml.YAMLError: If YAML parsing fails.
            DocumentFormatError: If the top level is not a mapping.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(url=location)

        try:
            response = self._client.get(location)
        except httpx.TimeoutException as e:
            log.warning("config_fetch_failed", error=str(e))
            raise DocumentFetchError(location, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            log.warning("config_fetch_failed", error=str(e))
            raise DocumentFetchError(location, f"request failed: {e}") from e

        if not HTTP_STATUS_OK_MIN <= response.status_code <= HTTP_STATUS_OK_MAX:
            log.warning("config_fetch_failed", status_code=response.status_code)
            raise DocumentFetchError(
                location,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )

        document = parse_yaml_document(location, response.text)
        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        log.info(
            "config_fetched",
            status_code=response.status_code,
            bytes=len(response.content),
            duration_ms=round(duration_ms, 2),
        )
        return Retrieved(document)

    def shutdown(self) -> None:
        """Close the HTTP client."""
        self._client.close()
