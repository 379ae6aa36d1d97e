"""Reachability marking over the manifest graph.

A multi-platform image is a tagged index manifest pointing at untagged
per-platform manifests. Those children look like stale untagged versions to
the retention policy, so every version the policy keeps is used as a root
and everything reachable from it through index manifests is kept as well.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ghcr_prune.errors import MissingDigestError, MissingManifestError
from ghcr_prune.registry.models import Manifest, PackageVersion
from ghcr_prune.retention.policy import RetentionPolicy


class ReachabilityMarker:
    """Mark phase of the prune run: grows the set of protected digests."""

    def __init__(self, manifests: Mapping[str, Manifest]):
        self.manifests = manifests
        self.retained: set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self.retained

    def __len__(self) -> int:
        return len(self.retained)

    def retain(self, name: str) -> None:
        """Protect ``name`` and everything reachable from it.

        Already-retained digests are skipped, which also guards against
        cycles in malformed registry data.
        """
        pending = [name]

        while pending:
            current = pending.pop()
            if current in self.retained:
                continue

            manifest = self.manifests.get(current)
            if manifest is None:
                raise MissingManifestError(current)

            self.retained.add(current)

            if manifest.is_index:
                children = []
                for descriptor in manifest.manifests:
                    if not descriptor.digest:
                        raise MissingDigestError(current)
                    children.append(descriptor.digest)
                # Visit children in declaration order
                pending.extend(reversed(children))

    def mark_roots(self, versions: Iterable[PackageVersion], policy: RetentionPolicy) -> None:
        """Retain every version the policy does not consider outdated."""
        for version in versions:
            if not policy.is_outdated(version):
                self.retain(version.name)
