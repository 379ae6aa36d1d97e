"""Tests for reachability marking over the manifest graph."""

from datetime import datetime, timedelta, timezone

import pytest

from ghcr_prune.errors import MissingDigestError, MissingManifestError
from ghcr_prune.prune.reachability import ReachabilityMarker
from ghcr_prune.registry.models import Manifest, ManifestDescriptor, PackageVersion
from ghcr_prune.retention.durations import parse_duration
from ghcr_prune.retention.patterns import TagPatterns
from ghcr_prune.retention.policy import RetentionPolicy

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"


def _leaf() -> Manifest:
    return Manifest(media_type=OCI_MANIFEST)


def _index(*children, media_type=OCI_INDEX) -> Manifest:
    return Manifest(
        media_type=media_type,
        manifests=[ManifestDescriptor(digest=c, media_type=OCI_MANIFEST) for c in children],
    )


def test_retain_leaf():
    marker = ReachabilityMarker({"a": _leaf(), "b": _leaf()})
    marker.retain("a")
    assert "a" in marker
    assert "b" not in marker


def test_retain_index_retains_children():
    marker = ReachabilityMarker({"idx": _index("c1", "c2"), "c1": _leaf(), "c2": _leaf(), "x": _leaf()})
    marker.retain("idx")
    assert marker.retained == {"idx", "c1", "c2"}


def test_docker_manifest_list_is_an_index():
    marker = ReachabilityMarker({"idx": _index("c1", media_type=DOCKER_LIST), "c1": _leaf()})
    marker.retain("idx")
    assert "c1" in marker


def test_nested_indexes_are_followed():
    manifests = {
        "top": _index("mid"),
        "mid": _index("leaf1", "leaf2"),
        "leaf1": _leaf(),
        "leaf2": _leaf(),
    }
    marker = ReachabilityMarker(manifests)
    marker.retain("top")
    assert marker.retained == set(manifests)


def test_retain_is_idempotent():
    marker = ReachabilityMarker({"idx": _index("c1"), "c1": _leaf()})
    marker.retain("idx")
    before = set(marker.retained)
    marker.retain("idx")
    marker.retain("c1")
    assert marker.retained == before


def test_retained_set_never_shrinks():
    marker = ReachabilityMarker({"a": _leaf(), "idx": _index("b"), "b": _leaf()})
    sizes = []
    for name in ["a", "idx", "a", "b"]:
        marker.retain(name)
        sizes.append(len(marker))
    assert sizes == sorted(sizes)
    assert sizes[-1] == 3


def test_cycles_terminate():
    marker = ReachabilityMarker({"a": _index("b"), "b": _index("a")})
    marker.retain("a")
    assert marker.retained == {"a", "b"}


def test_shared_child_between_indexes():
    marker = ReachabilityMarker({"i1": _index("c"), "i2": _index("c"), "c": _leaf()})
    marker.retain("i1")
    marker.retain("i2")
    assert marker.retained == {"i1", "i2", "c"}


def test_missing_manifest_is_fatal():
    marker = ReachabilityMarker({"idx": _index("gone")})
    with pytest.raises(MissingManifestError, match="gone"):
        marker.retain("idx")


def test_missing_digest_in_descriptor_is_fatal():
    broken = Manifest(media_type=OCI_INDEX, manifests=[ManifestDescriptor(media_type=OCI_MANIFEST)])
    marker = ReachabilityMarker({"idx": broken})
    with pytest.raises(MissingDigestError, match="idx"):
        marker.retain("idx")


def test_leaf_manifest_descriptors_are_not_followed():
    # Only index media types have child manifests worth following
    odd_leaf = Manifest(media_type=OCI_MANIFEST, manifests=[ManifestDescriptor(digest="other")])
    marker = ReachabilityMarker({"leaf": odd_leaf})
    marker.retain("leaf")
    assert marker.retained == {"leaf"}


def test_mark_roots_protects_old_untagged_children():
    policy = RetentionPolicy(
        TagPatterns.from_lines([]),
        mismatching_tags_retention=parse_duration("P30D"),
        untagged_retention=parse_duration("0dT1s"),
        now=NOW,
    )
    old = NOW - timedelta(days=365)
    versions = [
        PackageVersion(id=1, name="idx", updated_at=NOW - timedelta(days=1), tags=["latest"]),
        PackageVersion(id=2, name="c1", updated_at=old),
        PackageVersion(id=3, name="c2", updated_at=old),
        PackageVersion(id=4, name="orphan", updated_at=old),
    ]
    manifests = {"idx": _index("c1", "c2"), "c1": _leaf(), "c2": _leaf(), "orphan": _leaf()}

    marker = ReachabilityMarker(manifests)
    marker.mark_roots(versions, policy)

    assert marker.retained == {"idx", "c1", "c2"}
