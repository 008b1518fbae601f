"""Tests for metric helper functions and identifier helpers."""

import re
import time

import pytest

from telemetripy.core import ids, metrics
from telemetripy.core.models import MetricCategory, MetricSample

pytestmark = [pytest.mark.core, pytest.mark.tier(0)]


class TestSample:
    """Tests for sample() helper function."""

    def test_sample_returns_metric_sample_type(self) -> None:
        """Sample returns a MetricSample instance."""
        assert isinstance(metrics.sample("network", "/api", 12), MetricSample)

    def test_sample_accepts_category_string(self) -> None:
        """Category may be given by its wire name."""
        assert metrics.sample("core-vital", "CLS", 0.1).category is MetricCategory.CORE_VITAL

    def test_sample_rejects_unknown_category(self) -> None:
        with pytest.raises(ValueError):
            metrics.sample("disk", "io", 1.0)

    def test_sample_auto_captures_timestamp(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sample automatically captures current timestamp."""
        monkeypatch.setattr(time, "time", lambda: 1702300000.0)
        assert metrics.sample("interaction", "click", 5).timestamp == 1702300000.0

    def test_sample_coerces_value_to_float(self) -> None:
        assert metrics.sample("interaction", "click", 5).value == 5.0

    def test_explicit_timestamp_wins(self) -> None:
        """Callers with their own clock stamp samples themselves."""
        stamped = metrics.sample("network", "/api", 1, timestamp=1702300042.0)
        assert stamped.timestamp == 1702300042.0
        assert metrics.memory(1024, timestamp=1702300042.0).timestamp == 1702300042.0


class TestCategoryHelpers:
    """Tests for the category-specific helpers."""

    def test_memory(self) -> None:
        sample = metrics.memory(1024, limit=4096)
        assert sample.category is MetricCategory.MEMORY
        assert sample.name == "memory_used_bytes"
        assert sample.values == {"limit": 4096}

    def test_core_vital(self) -> None:
        sample = metrics.core_vital("LCP", 2500)
        assert sample.category is MetricCategory.CORE_VITAL
        assert sample.name == "LCP"

    def test_page_load(self) -> None:
        sample = metrics.page_load(1800, dom_content_loaded=900)
        assert sample.category is MetricCategory.PAGE_LOAD
        assert sample.values == {"dom_content_loaded": 900}

    def test_network(self) -> None:
        sample = metrics.network("https://cdn.example/app.js", 120, transfer_size=2048)
        assert sample.category is MetricCategory.NETWORK
        assert sample.name == "https://cdn.example/app.js"

    def test_interaction(self) -> None:
        sample = metrics.interaction("add_to_cart", 48)
        assert sample.category is MetricCategory.INTERACTION
        assert sample.value == 48.0


class TestIds:
    """Tests for identifier helpers."""

    def test_generate_id_format(self) -> None:
        assert re.fullmatch(r"event_1702300000000_[a-z0-9]{6}", ids.generate_id("event", now=1702300000.0))

    def test_session_and_user_ids(self) -> None:
        assert ids.session_id().startswith("sess_")
        assert ids.user_id().startswith("user_")

    def test_hash_sensitive_is_stable_and_opaque(self) -> None:
        token = ids.hash_sensitive("bc1qaddress")
        assert token == ids.hash_sensitive("bc1qaddress")
        assert token.startswith("hash_")
        assert "bc1qaddress" not in token
