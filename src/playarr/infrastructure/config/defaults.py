"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "playarr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
        "user_agent": "Playarr/0.1.0",
        "retry_max_attempts": 2,
        "retry_backoff_base": 0.5,
        "retry_max_backoff": 10.0,
        "rate_limit_rps": 5.0,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "resolution": {
        "cache_ttl_seconds": 3600,
        "cache_max_entries": 10_000,
        "sweep_interval": 1000,
        "resolve_timeout_seconds": None,
        "provider_order": [],
    },
    "matching": {
        "title_match_threshold": 0.7,
        "year_tolerance": 1,
        "sequel_penalty": 0.35,
    },
    "voe": {
        "max_redirects": 5,
        "markers": ["@#", "^^", "~@", "%?", "*~", "!!", "#&"],
        "extra_domains": [],
    },
    "filmpalast": {
        "domains": ["filmpalast.to"],
        "preferred_hosters": ["voe"],
    },
}
