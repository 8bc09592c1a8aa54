"""Unit tests for ResolvingProvider."""

import threading
import time
from typing import Any

import pytest

from configsource.errors import (
    DocumentFormatError,
    DuplicateFactoryTypeError,
    ProviderShutdownError,
    ResolutionCancelledError,
    SourceCreationError,
    SourceRetrievalError,
    SourceShutdownError,
)
from configsource.provider.base import ChangeEvent, Provider, Retrieved
from configsource.provider.resolving import ResolvingProvider
from configsource.provider.state_machine import ProviderState
from configsource.resolver.metrics import ResolverMetrics
from tests.helpers.sources import (
    STUB_TYPE,
    RecordingHook,
    StubProvider,
    StubSourceFactory,
)


LOCATION = "mem:config"


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset metrics before each test."""
    ResolverMetrics.reset()


class TestResolvingProviderCases:
    """Table-driven retrieval scenarios."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("factories", "provider", "expected", "error_type", "error_message"),
        [
            pytest.param(
                lambda: [StubSourceFactory(values={"k": "v"})],
                lambda: StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}}),
                {"a": "v"},
                None,
                None,
                id="success",
            ),
            pytest.param(
                lambda: [StubSourceFactory(values={"k": "v"})],
                lambda: StubProvider(error=OSError("wrapped provider error")),
                None,
                OSError,
                "wrapped provider error",
                id="wrapped_provider_error",
            ),
            pytest.param(
                lambda: [StubSourceFactory(), StubSourceFactory()],
                lambda: StubProvider(),
                None,
                DuplicateFactoryTypeError,
                'duplicate config source factory "tstcfgsrc"',
                id="duplicate_factory",
            ),
            pytest.param(
                lambda: [StubSourceFactory(create_error=RuntimeError("boom"))],
                lambda: StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}}),
                None,
                SourceCreationError,
                "failed to create config source tstcfgsrc",
                id="new_config_source_error",
            ),
            pytest.param(
                lambda: [StubSourceFactory(values={})],
                lambda: StubProvider({LOCATION: {"a": "${tstcfgsrc:missing}"}}),
                None,
                SourceRetrievalError,
                'config source "tstcfgsrc" failed to retrieve value: '
                'no value for selector "missing"',
                id="manager_resolve_error",
            ),
        ],
    )
    def test_retrieve(
        self,
        factories: Any,
        provider: Any,
        expected: dict[str, Any] | None,
        error_type: type[BaseException] | None,
        error_message: str | None,
    ) -> None:
        """Each scenario either resolves or raises the expected error."""
        hook = RecordingHook()
        wrapped = provider()

        if error_type is DuplicateFactoryTypeError:
            with pytest.raises(error_type) as exc_info:
                ResolvingProvider(wrapped, [hook], factories())
            assert error_message in str(exc_info.value)
            assert hook.events == []
            return

        resolving = ResolvingProvider(wrapped, [hook], factories())
        try:
            if error_type is None:
                retrieved = resolving.retrieve(LOCATION)
                assert retrieved.as_map() == expected
                retrieved.close()
            else:
                with pytest.raises(error_type) as exc_info:
                    resolving.retrieve(LOCATION)
                assert error_message in str(exc_info.value)
                assert hook.count("retrieve") == 0
        finally:
            resolving.shutdown()

        assert hook.count("new") == 1
        assert hook.count("shutdown") == 1


class TestRetrieve:
    """Tests for retrieval behavior."""

    @pytest.fixture
    def factory(self) -> StubSourceFactory:
        """Create a stub factory with a few values."""
        return StubSourceFactory(values={"user": "admin", "port": 8080})

    @pytest.mark.unit
    def test_is_a_provider(self, factory: StubSourceFactory) -> None:
        """ResolvingProvider satisfies the Provider protocol."""
        with ResolvingProvider(StubProvider(scheme="mem"), [], [factory]) as resolving:
            assert isinstance(resolving, Provider)
            assert resolving.scheme() == "mem"
            assert resolving.source_types == [STUB_TYPE]

    @pytest.mark.unit
    def test_location_and_watcher_passed_through(
        self, factory: StubSourceFactory
    ) -> None:
        """The wrapped provider sees the caller's location and watcher."""
        wrapped = StubProvider()
        events: list[ChangeEvent] = []

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            resolving.retrieve("file:/etc/app.yaml", events.append)

        assert wrapped.retrieve_calls == ["file:/etc/app.yaml"]
        assert wrapped.watchers == [events.append]

    @pytest.mark.unit
    def test_result_closes_as_noop(self, factory: StubSourceFactory) -> None:
        """The returned result has no closer and may be closed repeatedly."""
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:user}"}})

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            retrieved = resolving.retrieve(LOCATION)
            retrieved.close()
            retrieved.close()

        assert isinstance(retrieved, Retrieved)
        assert retrieved.closed
        assert wrapped.handles[0].closed

    @pytest.mark.unit
    def test_fetched_document_closed_on_failure(self) -> None:
        """The wrapped provider's result is released when resolution fails."""
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:missing}"}})

        with ResolvingProvider(wrapped, [], [StubSourceFactory()]) as resolving:
            with pytest.raises(SourceRetrievalError):
                resolving.retrieve(LOCATION)

        assert wrapped.handles[0].closed

    @pytest.mark.unit
    def test_multiple_locations_resolve_independently(
        self, factory: StubSourceFactory
    ) -> None:
        """Each location is one cycle; sources are shared between them."""
        hook = RecordingHook()
        wrapped = StubProvider(
            {
                "mem:a": {"user": "${tstcfgsrc:user}"},
                "mem:b": {"listen": "0.0.0.0:${tstcfgsrc:port}"},
            }
        )

        with ResolvingProvider(wrapped, [hook], [factory]) as resolving:
            first = resolving.retrieve("mem:a").as_map()
            second = resolving.retrieve("mem:b").as_map()

        assert first == {"user": "admin"}
        assert second == {"listen": "0.0.0.0:8080"}
        assert factory.create_calls == 1
        assert hook.retrieved_types() == [STUB_TYPE, STUB_TYPE]

    @pytest.mark.unit
    def test_config_sources_section_removed_and_applied(self) -> None:
        """The config_sources section configures sources and is stripped."""
        factory = StubSourceFactory()
        wrapped = StubProvider(
            {
                LOCATION: {
                    "config_sources": {STUB_TYPE: {"values": {"token": "s3cr3t"}}},
                    "auth": {"token": "${tstcfgsrc:token}"},
                }
            }
        )

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            resolved = resolving.retrieve(LOCATION).as_map()

        assert resolved == {"auth": {"token": "s3cr3t"}}
        assert factory.create_params == [{"values": {"token": "s3cr3t"}}]

    @pytest.mark.unit
    def test_document_settings_override_defaults(self) -> None:
        """Document parameters win over constructor defaults per key."""
        factory = StubSourceFactory()
        wrapped = StubProvider(
            {
                LOCATION: {
                    "config_sources": {STUB_TYPE: {"region": "eu"}},
                    "a": "${tstcfgsrc:k}",
                }
            }
        )
        defaults = {STUB_TYPE: {"region": "us", "values": {"k": "v"}}}

        with ResolvingProvider(
            wrapped, [], [factory], source_settings=defaults
        ) as resolving:
            assert resolving.retrieve(LOCATION).as_map() == {"a": "v"}

        assert factory.create_params == [{"region": "eu", "values": {"k": "v"}}]

    @pytest.mark.unit
    def test_invalid_config_sources_section(self, factory: StubSourceFactory) -> None:
        """A malformed config_sources section is a document format error."""
        wrapped = StubProvider({LOCATION: {"config_sources": ["not", "a", "map"]}})

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            with pytest.raises(DocumentFormatError, match="config_sources"):
                resolving.retrieve(LOCATION)

    @pytest.mark.unit
    def test_wrapped_provider_error_propagates_unchanged(
        self, factory: StubSourceFactory
    ) -> None:
        """The wrapped provider's own exception object reaches the caller."""
        error = OSError("wrapped provider error")
        wrapped = StubProvider(error=error)

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            with pytest.raises(OSError) as exc_info:
                resolving.retrieve(LOCATION)

        assert exc_info.value is error
        assert factory.create_calls == 0

    @pytest.mark.unit
    def test_timeout_cancels_resolution(self, factory: StubSourceFactory) -> None:
        """A zero time budget cancels before any source is contacted."""
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:user}"}})

        with ResolvingProvider(wrapped, [], [factory]) as resolving:
            with pytest.raises(ResolutionCancelledError):
                resolving.retrieve(LOCATION, timeout=0)

        assert factory.create_calls == 0

    @pytest.mark.unit
    def test_parallel_workers(self) -> None:
        """Parallel retrieval produces the same document."""
        values = {f"k{i}": i for i in range(6)}
        factory = StubSourceFactory(values=values, retrieve_delay=0.01)
        document = {f"v{i}": f"${{tstcfgsrc:k{i}}}" for i in range(6)}
        wrapped = StubProvider({LOCATION: document})

        with ResolvingProvider(wrapped, [], [factory], max_workers=3) as resolving:
            assert resolving.retrieve(LOCATION).as_map() == {
                f"v{i}": i for i in range(6)
            }


class TestShutdown:
    """Tests for the provider lifecycle."""

    @pytest.mark.unit
    def test_shutdown_releases_everything(self) -> None:
        """Shutdown closes sources, shuts down the wrapped provider once."""
        hook = RecordingHook()
        factory = StubSourceFactory(values={"k": "v"})
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}})
        resolving = ResolvingProvider(wrapped, [hook], [factory])
        resolving.retrieve(LOCATION)

        resolving.shutdown()

        assert resolving.state == ProviderState.SHUT_DOWN
        assert factory.sources[0].close_calls == 1
        assert wrapped.shutdown_calls == 1
        assert hook.events == [("new",), ("retrieve", STUB_TYPE), ("shutdown",)]

    @pytest.mark.unit
    def test_repeated_shutdown(self) -> None:
        """Repeated shutdown re-notifies hooks but releases nothing twice."""
        hook = RecordingHook()
        factory = StubSourceFactory(values={"k": "v"})
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}})
        resolving = ResolvingProvider(wrapped, [hook], [factory])
        resolving.retrieve(LOCATION)

        resolving.shutdown()
        resolving.shutdown()

        assert hook.count("shutdown") == 2
        assert factory.sources[0].close_calls == 1
        assert wrapped.shutdown_calls == 1

    @pytest.mark.unit
    def test_retrieve_after_shutdown(self) -> None:
        """A shut down provider rejects retrievals."""
        wrapped = StubProvider()
        resolving = ResolvingProvider(wrapped, [], [StubSourceFactory()])
        resolving.shutdown()

        with pytest.raises(ProviderShutdownError):
            resolving.retrieve(LOCATION)

        assert wrapped.retrieve_calls == []

    @pytest.mark.unit
    def test_close_failures_reported_after_full_shutdown(self) -> None:
        """Source close failures are raised once everything else is done."""
        hook = RecordingHook()
        factory = StubSourceFactory(
            values={"k": "v"}, close_error=RuntimeError("close failed")
        )
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}})
        resolving = ResolvingProvider(wrapped, [hook], [factory])
        resolving.retrieve(LOCATION)

        with pytest.raises(SourceShutdownError, match="close failed"):
            resolving.shutdown()

        assert resolving.state == ProviderState.SHUT_DOWN
        assert wrapped.shutdown_calls == 1
        assert hook.count("shutdown") == 1

    @pytest.mark.unit
    def test_shutdown_waits_for_in_flight_retrieval(self) -> None:
        """Shutdown lets a running retrieval finish before closing sources."""
        factory = StubSourceFactory(values={"k": "v"}, retrieve_delay=0.2)
        wrapped = StubProvider({LOCATION: {"a": "${tstcfgsrc:k}"}})
        resolving = ResolvingProvider(wrapped, [], [factory])
        results: list[dict[str, Any]] = []

        worker = threading.Thread(
            target=lambda: results.append(resolving.retrieve(LOCATION).as_map())
        )
        worker.start()
        deadline = time.monotonic() + 5
        while not factory.sources and time.monotonic() < deadline:
            time.sleep(0.01)

        resolving.shutdown()
        worker.join(timeout=5)

        assert results == [{"a": "v"}]
        assert factory.sources[0].close_calls == 1
        assert resolving.state == ProviderState.SHUT_DOWN

    @pytest.mark.unit
    def test_shutdown_waits_for_abandoned_parallel_retrievals(self) -> None:
        """Sources are closed only after retrievals left by a cancelled cycle end."""
        factory = StubSourceFactory(values={"a": 1, "b": 2}, retrieve_delay=0.3)
        wrapped = StubProvider(
            {LOCATION: {"x": "${tstcfgsrc:a}", "y": "${tstcfgsrc:b}"}}
        )
        resolving = ResolvingProvider(wrapped, [], [factory], max_workers=3)

        with pytest.raises(ResolutionCancelledError):
            resolving.retrieve(LOCATION, timeout=0.05)
        resolving.shutdown()

        source = factory.sources[0]
        assert len(source.retrieved) == 2
        assert source.close_calls == 1
        assert not source.used_after_close
        assert resolving.state == ProviderState.SHUT_DOWN

    @pytest.mark.unit
    def test_source_close_error_kept_when_wrapped_shutdown_fails(self) -> None:
        """The aggregate close error wins; the wrapped failure becomes a note."""
        hook = RecordingHook()
        factory = StubSourceFactory(
            values={"k": "v"}, close_error=RuntimeError("close failed")
        )
        wrapped = StubProvider(
            {LOCATION: {"a": "${tstcfgsrc:k}"}},
            shutdown_error=OSError("wrapped shutdown failed"),
        )
        resolving = ResolvingProvider(wrapped, [hook], [factory])
        resolving.retrieve(LOCATION)

        with pytest.raises(SourceShutdownError, match="close failed") as exc_info:
            resolving.shutdown()

        notes = getattr(exc_info.value, "__notes__", [])
        assert any("wrapped shutdown failed" in note for note in notes)
        assert wrapped.shutdown_calls == 1
        assert factory.sources[0].close_calls == 1
        assert hook.count("shutdown") == 1
        assert resolving.state == ProviderState.SHUT_DOWN

    @pytest.mark.unit
    def test_wrapped_shutdown_error_raised_when_sources_close(self) -> None:
        """With every source closed cleanly, the wrapped failure propagates."""
        hook = RecordingHook()
        error = OSError("wrapped shutdown failed")
        wrapped = StubProvider(shutdown_error=error)
        resolving = ResolvingProvider(wrapped, [hook], [StubSourceFactory()])

        with pytest.raises(OSError) as exc_info:
            resolving.shutdown()

        assert exc_info.value is error
        assert hook.count("shutdown") == 1
        assert resolving.state == ProviderState.SHUT_DOWN
