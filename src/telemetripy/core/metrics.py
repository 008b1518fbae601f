"""Metric helper functions for creating MetricSample objects."""

import time

from telemetripy.core.models import MetricCategory, MetricSample


def sample(
    category: MetricCategory | str,
    name: str,
    value: float,
    values: dict[str, float] | None = None,
    timestamp: float | None = None,
) -> MetricSample:
    """Create a metric sample.

    Args:
        category: Metric family (e.g., MetricCategory.NETWORK or "network")
        name: Metric name within the family
        value: Primary value
        values: Optional additional named values
        timestamp: Unix seconds (default: current time)

    Returns:
        MetricSample stamped with timestamp
    """
    return MetricSample(
        category=MetricCategory(category),
        name=name,
        value=float(value),
        timestamp=time.time() if timestamp is None else timestamp,
        values=dict(values or {}),
    )


def memory(
    used_bytes: float, timestamp: float | None = None, **values: float
) -> MetricSample:
    """Create a memory usage sample.

    Args:
        used_bytes: Memory in use, in bytes
        timestamp: Unix seconds (default: current time)
        **values: Extra readings (e.g., total, limit)

    Returns:
        MetricSample in the memory category
    """
    return sample(MetricCategory.MEMORY, "memory_used_bytes", used_bytes, values, timestamp)


def core_vital(name: str, value: float, timestamp: float | None = None) -> MetricSample:
    """Create a core web vital sample (e.g., LCP, FID, CLS)."""
    return sample(MetricCategory.CORE_VITAL, name, value, timestamp=timestamp)


def page_load(
    duration_ms: float, timestamp: float | None = None, **phases: float
) -> MetricSample:
    """Create a page load timing sample.

    Args:
        duration_ms: Total load time in milliseconds
        timestamp: Unix seconds (default: current time)
        **phases: Named phase timings (e.g., dom_content_loaded)

    Returns:
        MetricSample in the page-load category
    """
    return sample(MetricCategory.PAGE_LOAD, "load_time", duration_ms, phases, timestamp)


def network(
    url: str, duration_ms: float, timestamp: float | None = None, **timings: float
) -> MetricSample:
    """Create a network timing sample for a single resource."""
    return sample(MetricCategory.NETWORK, url, duration_ms, timings, timestamp)


def interaction(name: str, duration_ms: float, timestamp: float | None = None) -> MetricSample:
    """Create an interaction latency sample."""
    return sample(MetricCategory.INTERACTION, name, duration_ms, timestamp=timestamp)
