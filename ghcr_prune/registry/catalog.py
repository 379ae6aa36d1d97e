"""Version catalog — a consistent, digest-keyed snapshot of a package.

The package API has no snapshot reads, so the full listing is fetched twice
and accepted only when both passes agree on the sequence of version ids.
This detects most concurrent pushes or deletions between pages but is not
a guarantee.
"""

from __future__ import annotations

import logging

from ghcr_prune.errors import ConcurrentModificationError, DuplicateDigestError
from ghcr_prune.registry.models import PackageVersion
from ghcr_prune.registry.packages import PackageStore

logger = logging.getLogger(__name__)


class VersionCatalog:
    """Builds the ``digest -> version`` mapping for one run."""

    def __init__(self, store: PackageStore):
        self.store = store

    async def get_all_versions_stable(self) -> list[PackageVersion]:
        first = await self.store.get_all_versions()
        second = await self.store.get_all_versions()

        if len(first) != len(second) or any(
            a.id != b.id for a, b in zip(first, second)
        ):
            raise ConcurrentModificationError()

        return second

    async def build(self) -> dict[str, PackageVersion]:
        versions: dict[str, PackageVersion] = {}

        for version in await self.get_all_versions_stable():
            if version.name in versions:
                raise DuplicateDigestError(version.name)
            versions[version.name] = version

        logger.info("Found %d versions of %s", len(versions), self.store.name)
        return versions
