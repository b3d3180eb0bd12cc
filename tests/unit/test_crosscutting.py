"""
Tests para excepciones, logging estructurado y modelos compartidos.
"""
from __future__ import annotations

import pytest
import structlog

from browserassist.crosscutting.exceptions import (
    BrowserAssistError,
    ConfigurationError,
    CredentialsMissingError,
    UnknownBrowserError,
    UnknownReleaseError,
)
from browserassist.crosscutting.logging_config import browser_context, configure_structured_logging, get_logger
from browserassist.crosscutting.metrics import fetches_total, get_metrics, get_metrics_content_type
from browserassist.domain.models.browser_models import CacheEntry, CapabilityBag
from browserassist.domain.ports.artifact_fetcher import (
    ExtractionError,
    FetchError,
    NetworkError,
    UnsupportedPlatformError,
)


class TestExceptions:
    def test_to_dict(self):
        err = UnknownBrowserError("Navegador desconocido", details={"protocol_id": "x"})
        assert err.to_dict() == {
            "error": {
                "code": "UNKNOWN_BROWSER",
                "message": "Navegador desconocido",
                "retryable": False,
                "details": {"protocol_id": "x"},
            }
        }

    @pytest.mark.parametrize("cls,retryable", [
        (ConfigurationError, False),
        (UnknownBrowserError, False),
        (UnknownReleaseError, False),
        (CredentialsMissingError, False),
        (NetworkError, True),
        (ExtractionError, False),
        (UnsupportedPlatformError, False),
    ])
    def test_retryable_flags(self, cls, retryable):
        assert cls.retryable is retryable
        assert issubclass(cls, BrowserAssistError)

    def test_fetch_error_details(self):
        cause = OSError("reset")
        err = NetworkError("descarga falló", family="chrome", release="beta", cause=cause)
        assert isinstance(err, FetchError)
        assert err.details == {"family": "chrome", "release": "beta"}
        assert err.cause is cause


class TestLogging:
    def test_configure_and_log(self):
        configure_structured_logging(level="DEBUG", json_format=True)
        get_logger("test").info("test_event", family="chrome")

    def test_browser_context_binds_and_restores(self):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(run_id="r1")
        with browser_context(family="chrome", release="beta"):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx["family"] == "chrome"
            assert ctx["release"] == "beta"
            assert ctx["run_id"] == "r1"
        assert structlog.contextvars.get_contextvars() == {"run_id": "r1"}
        structlog.contextvars.clear_contextvars()


class TestModels:
    def test_capability_bag_is_immutable(self):
        bag = CapabilityBag(browserName="chrome")
        with pytest.raises(TypeError):
            bag["browserName"] = "firefox"  # type: ignore[index]

    def test_merged_last_write_wins(self):
        bag = CapabilityBag(browserName="chrome", a=1)
        merged = bag.merged({"a": 2}, b=3)
        assert dict(merged) == {"browserName": "chrome", "a": 2, "b": 3}
        assert dict(bag) == {"browserName": "chrome", "a": 1}

    def test_nested_values_are_copied(self):
        nested = {"args": ["--x"]}
        bag = CapabilityBag({"goog:chromeOptions": nested})
        nested["args"].append("--y")
        assert bag["goog:chromeOptions"] == {"args": ["--x"]}

    def test_cache_entry_expiration(self):
        entry = CacheEntry(key="chrome:stable", last_fetched_at_ms=0)
        assert entry.is_expired(24 * 3_600_000, 24) is False
        assert entry.is_expired(24 * 3_600_000 + 1, 24) is True

    def test_cache_entry_key_shape(self):
        with pytest.raises(ValueError):
            CacheEntry(key="chrome-stable", last_fetched_at_ms=0)


class TestMetrics:
    def test_exposition_includes_counters(self):
        fetches_total.labels(family="chrome", release="stable", result="skipped").inc()
        body = get_metrics()
        assert b"browserassist_fetches_total" in body
        assert get_metrics_content_type().startswith("text/plain")
