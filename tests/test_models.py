"""Tests for models.py and errors.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mcfetcher.errors import AdapterError, ConfigError, McfetcherError
from mcfetcher.models import FetchSummary, PairFailure, RawKindPolicy


class TestRawKindPolicy:
    def test_accepts_dashed_keys(self) -> None:
        raw = RawKindPolicy.model_validate({"keep-labels": ["app"], "keep-deleted": True})
        assert raw.keep_labels == ["app"]
        assert raw.keep_deleted is True

    def test_defaults(self) -> None:
        raw = RawKindPolicy()
        assert raw.keep_paths == []
        assert raw.path_value_filters == []
        assert raw.keep_deleted is False

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RawKindPolicy.model_validate({"keep-label": ["app"]})


class TestFetchSummary:
    def test_clean_run(self) -> None:
        summary = FetchSummary(contexts=2, kinds=3, fetched=6)
        assert summary.failed == 0
        assert summary.exit_code == 0

    def test_any_failure_is_exit_one(self) -> None:
        summary = FetchSummary(contexts=2, kinds=3, fetched=5)
        summary.failures.append(PairFailure(context="kind-dev", kind="pod", error="failed to list"))
        assert summary.failed == 1
        assert summary.exit_code == 1


class TestErrors:
    def test_message_only(self) -> None:
        assert str(McfetcherError("failed to list")) == "failed to list"

    def test_context_and_cause(self) -> None:
        err = AdapterError("failed to list", cause=TimeoutError("read timed out"), context="kind-dev", gvk="pod")
        assert str(err) == "failed to list context=kind-dev gvk=pod: read timed out"
        assert err.context == {"context": "kind-dev", "gvk": "pod"}
        assert isinstance(err.cause, TimeoutError)

    def test_hierarchy(self) -> None:
        assert issubclass(ConfigError, McfetcherError)
        with pytest.raises(McfetcherError):
            raise ConfigError("invalid regex")
