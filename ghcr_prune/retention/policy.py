"""Retention policy — per-version deletion deadlines.

Each version falls into one of three categories, untagged, all tags
matching, or all tags mismatching, and each category has its own optional
retention duration. Versions whose tags straddle both classes keep the
longer of the two durations, or are kept forever if either is unset.
"""

from __future__ import annotations

from datetime import datetime, timezone

from ghcr_prune.errors import MissingContainerMetadataError
from ghcr_prune.registry.models import PackageVersion
from ghcr_prune.retention.durations import Duration
from ghcr_prune.retention.patterns import TagPatterns


class RetentionPolicy:
    """Decides whether a version is outdated against a fixed ``now``."""

    def __init__(
        self,
        tag_patterns: TagPatterns,
        matching_tags_retention: Duration | None = None,
        mismatching_tags_retention: Duration | None = None,
        untagged_retention: Duration | None = None,
        now: datetime | None = None,
    ):
        self.tag_patterns = tag_patterns
        self.matching_tags_retention = matching_tags_retention
        self.mismatching_tags_retention = mismatching_tags_retention
        self.untagged_retention = untagged_retention
        self.now = now or datetime.now(timezone.utc)

        self.matching_tags_deadline = _deadline(self.now, matching_tags_retention)
        self.mismatching_tags_deadline = _deadline(self.now, mismatching_tags_retention)
        self.untagged_deadline = _deadline(self.now, untagged_retention)

    def is_matching_tag(self, tag: str) -> bool:
        return self.tag_patterns.matches(tag)

    def deadline(self, version: PackageVersion) -> datetime | None:
        """Return the instant before which ``version`` counts as outdated.

        ``None`` means the version is never deleted on policy grounds.
        """
        if not version.has_container_metadata:
            raise MissingContainerMetadataError(version.name)

        if not version.tags:
            return self.untagged_deadline

        matching, mismatching = self.tag_patterns.partition(version.tags)

        if not matching:
            return self.mismatching_tags_deadline

        if not mismatching:
            return self.matching_tags_deadline

        if self.matching_tags_deadline is None or self.mismatching_tags_deadline is None:
            return None

        return min(self.matching_tags_deadline, self.mismatching_tags_deadline)

    def is_outdated(self, version: PackageVersion) -> bool:
        deadline = self.deadline(version)
        if deadline is None:
            return False
        return version.updated_at < deadline


def _deadline(now: datetime, duration: Duration | None) -> datetime | None:
    return duration.subtract_from(now) if duration is not None else None
