"""Run configuration — YAML config files, environment, and CLI options.

Configuration keys use the same names as the command-line options::

    owner: my-org
    name: my-image
    tag-patterns: |
      v*
      !*-rc*
    matching-tags-retention-duration: P90D
    mismatching-tags-retention-duration: P14D
    untagged-retention-duration: P1D
    dry-run: true

Command-line options (and the environment variables they read) override
values from the file. Everything is validated here, before any API call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ghcr_prune.errors import ConfigurationError
from ghcr_prune.registry.client import DEFAULT_API_URL, DEFAULT_REGISTRY_URL
from ghcr_prune.retention.durations import Duration, parse_duration
from ghcr_prune.retention.patterns import TagPatterns
from ghcr_prune.retention.policy import RetentionPolicy

CONFIG_KEYS = (
    "owner",
    "name",
    "token",
    "tag-patterns",
    "matching-tags-retention-duration",
    "mismatching-tags-retention-duration",
    "untagged-retention-duration",
    "dry-run",
    "api-url",
    "registry-url",
)

_TRUE = ("true", "True", "TRUE")
_FALSE = ("false", "False", "FALSE")


@dataclass
class PruneConfig:
    """Validated settings for one prune run."""

    owner: str
    name: str
    token: str = field(default="", repr=False)
    tag_patterns: TagPatterns = field(default_factory=lambda: TagPatterns([]))
    matching_tags_retention: Duration | None = None
    mismatching_tags_retention: Duration | None = None
    untagged_retention: Duration | None = None
    dry_run: bool = False
    api_url: str = DEFAULT_API_URL
    registry_url: str = DEFAULT_REGISTRY_URL

    def build_policy(self, now: datetime | None = None) -> RetentionPolicy:
        return RetentionPolicy(
            self.tag_patterns,
            matching_tags_retention=self.matching_tags_retention,
            mismatching_tags_retention=self.mismatching_tags_retention,
            untagged_retention=self.untagged_retention,
            now=now,
        )


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file into a dict keyed by option name."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Can't read config file {str(path)!r}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Can't parse config file {str(path)!r}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {str(path)!r} must contain a mapping")

    unknown = sorted(set(data) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {str(path)!r}: {', '.join(unknown)}")

    return data


def merge_values(*sources: dict[str, Any]) -> dict[str, Any]:
    """Merge option dicts; later sources win, ``None`` means unset."""
    merged: dict[str, Any] = {}
    for source in sources:
        for key, value in source.items():
            if value is not None:
                merged[key] = value
    return merged


def parse_bool(value: Any) -> bool:
    """Parse a YAML 1.2 core boolean (``true``, ``True``, ``TRUE``, ...)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(
        f"Expected a boolean (true or false) but got {value!r}"
    )


def parse_tag_patterns(value: Any) -> TagPatterns:
    if value is None:
        return TagPatterns([])
    if isinstance(value, str):
        return TagPatterns.from_lines(value)
    if isinstance(value, (list, tuple)):
        return TagPatterns.from_lines([str(line) for line in value])
    raise ConfigurationError(f"tag-patterns must be a string or a list, got {value!r}")


def build_config(values: dict[str, Any]) -> PruneConfig:
    """Validate merged option values into a :class:`PruneConfig`."""
    for required in ("owner", "name", "token"):
        if not values.get(required):
            raise ConfigurationError(f"Missing required option: {required}")

    def duration(key: str) -> Duration | None:
        value = values.get(key)
        return parse_duration(str(value)) if value is not None else None

    return PruneConfig(
        owner=str(values["owner"]),
        name=str(values["name"]),
        token=str(values["token"]),
        tag_patterns=parse_tag_patterns(values.get("tag-patterns")),
        matching_tags_retention=duration("matching-tags-retention-duration"),
        mismatching_tags_retention=duration("mismatching-tags-retention-duration"),
        untagged_retention=duration("untagged-retention-duration"),
        dry_run=parse_bool(values.get("dry-run", False)),
        api_url=str(values.get("api-url") or DEFAULT_API_URL),
        registry_url=str(values.get("registry-url") or DEFAULT_REGISTRY_URL),
    )
