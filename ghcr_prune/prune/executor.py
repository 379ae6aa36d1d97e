"""Prune executor — orchestrates one mark-and-sweep run.

The run moves through fixed states and never goes back:

    CATALOGING -> RESOLVING_MANIFESTS -> MARKING -> SWEEPING -> REPORTING

Any error aborts the run. Marking always finishes over the whole catalog
before the first deletion, so an index manifest can never lose a child to a
sweep that started too early. Deletions already issued are not rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ghcr_prune.prune.reachability import ReachabilityMarker
from ghcr_prune.registry.catalog import VersionCatalog
from ghcr_prune.registry.manifests import ManifestResolver
from ghcr_prune.registry.models import Manifest, PackageVersion
from ghcr_prune.registry.packages import PackageStore
from ghcr_prune.retention.policy import RetentionPolicy

logger = logging.getLogger(__name__)


class RunState(Enum):
    PENDING = "pending"
    CATALOGING = "cataloging"
    RESOLVING_MANIFESTS = "resolving-manifests"
    MARKING = "marking"
    SWEEPING = "sweeping"
    REPORTING = "reporting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PruneResult:
    """Versions deleted (or that would be deleted in a dry run)."""

    dry_run: bool = False
    deleted: list[PackageVersion] = field(default_factory=list)
    total_versions: int = 0
    retained_count: int = 0
    error: Exception | None = None

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class PruneRun:
    """State scoped to a single run; never shared between runs."""

    versions: dict[str, PackageVersion] = field(default_factory=dict)
    manifests: dict[str, Manifest] = field(default_factory=dict)
    marker: ReachabilityMarker | None = None


class PruneExecutor:
    """Deletes every version that is neither kept by policy nor reachable."""

    def __init__(
        self,
        store: PackageStore,
        resolver: ManifestResolver,
        policy: RetentionPolicy,
        dry_run: bool = False,
    ):
        self.store = store
        self.resolver = resolver
        self.policy = policy
        self.dry_run = dry_run
        self.state = RunState.PENDING

    async def run(self, report: Callable[[PruneResult], None] | None = None) -> PruneResult:
        """Execute the run.

        ``report`` is called with the result once the sweep has started,
        even if the sweep then fails, so partial deletions are never lost.
        """
        result = PruneResult(dry_run=self.dry_run)
        run = PruneRun()
        self.log_policy()

        try:
            self._enter(RunState.CATALOGING)
            run.versions = await VersionCatalog(self.store).build()
            result.total_versions = len(run.versions)

            self._enter(RunState.RESOLVING_MANIFESTS)
            for name in run.versions:
                if name not in run.manifests:
                    run.manifests[name] = await self.resolver.fetch(name)

            self._enter(RunState.MARKING)
            marker = ReachabilityMarker(run.manifests)
            marker.mark_roots(run.versions.values(), self.policy)
            run.marker = marker
            result.retained_count = len(marker)
            logger.info(
                "Retaining %d of %d versions", result.retained_count, result.total_versions
            )

            self._enter(RunState.SWEEPING)
            try:
                await self._sweep(run.versions, marker, result)
            except Exception as e:
                result.error = e
                raise
            finally:
                self._enter(RunState.REPORTING)
                if report is not None:
                    report(result)
        except Exception as e:
            self.state = RunState.FAILED
            result.error = e
            logger.error("Prune run failed: %s", e)
            raise

        self._enter(RunState.SUCCEEDED)
        return result

    async def _sweep(
        self,
        versions: dict[str, PackageVersion],
        marker: ReachabilityMarker,
        result: PruneResult,
    ) -> None:
        for name, version in versions.items():
            if name in marker:
                continue

            if self.dry_run:
                logger.info("Would delete %s (id %s, tags %s)", name, version.id, version.tags)
            else:
                await self.store.delete_version(version.id)
                logger.info("Deleted %s (id %s, tags %s)", name, version.id, version.tags)

            result.deleted.append(version)

    def log_policy(self) -> None:
        policy = self.policy
        logger.info(
            "Deleting images with matching tags not updated after %s",
            policy.matching_tags_deadline,
        )
        logger.info(
            "Deleting images with mismatching tags not updated after %s",
            policy.mismatching_tags_deadline,
        )
        logger.info(
            "Deleting untagged images not updated after %s",
            policy.untagged_deadline,
        )

    def _enter(self, state: RunState) -> None:
        logger.debug("Prune run: %s -> %s", self.state.value, state.value)
        self.state = state
