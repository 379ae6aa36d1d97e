"""Tests for the prune executor (mark-and-sweep over a whole package)."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ghcr_prune.errors import (
    ConcurrentModificationError,
    ManifestNotFoundError,
    RegistryAPIError,
)
from ghcr_prune.prune.executor import PruneExecutor, PruneResult, RunState
from ghcr_prune.prune.reachability import ReachabilityMarker
from ghcr_prune.registry.models import Manifest, ManifestDescriptor, PackageVersion
from ghcr_prune.retention.durations import parse_duration
from ghcr_prune.retention.patterns import TagPatterns
from ghcr_prune.retention.policy import RetentionPolicy

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"


class _FakeStore:
    name = "image"

    def __init__(self, versions, second_listing=None, fail_on_delete=None):
        self.versions = versions
        self.second_listing = second_listing
        self.fail_on_delete = fail_on_delete
        self.listings = 0
        self.deleted_ids = []

    async def get_all_versions(self):
        self.listings += 1
        if self.listings == 2 and self.second_listing is not None:
            return list(self.second_listing)
        return list(self.versions)

    async def delete_version(self, version_id):
        if version_id == self.fail_on_delete:
            raise RegistryAPIError("DELETE", f"/versions/{version_id}", 500)
        self.deleted_ids.append(version_id)


class _FakeResolver:
    def __init__(self, manifests):
        self.manifests = manifests
        self.fetched = []

    async def fetch(self, reference):
        self.fetched.append(reference)
        if reference not in self.manifests:
            raise ManifestNotFoundError(reference)
        return self.manifests[reference]


def _version(id, name, tags=(), age=timedelta(hours=1)):
    return PackageVersion(id=id, name=name, updated_at=NOW - age, tags=list(tags))


def _leaf():
    return Manifest(media_type=OCI_MANIFEST)


def _index(*children):
    return Manifest(
        media_type=OCI_INDEX,
        manifests=[ManifestDescriptor(digest=c, media_type=OCI_MANIFEST) for c in children],
    )


def _policy(patterns=(), matching="", mismatching="", untagged=""):
    return RetentionPolicy(
        TagPatterns.from_lines(list(patterns)),
        matching_tags_retention=parse_duration(matching),
        mismatching_tags_retention=parse_duration(mismatching),
        untagged_retention=parse_duration(untagged),
        now=NOW,
    )


def _run(store, manifests, policy, dry_run=False, report=None):
    executor = PruneExecutor(store, _FakeResolver(manifests), policy, dry_run=dry_run)
    result = asyncio.run(executor.run(report=report))
    return executor, result


def test_no_durations_deletes_nothing():
    versions = [
        _version(1, "sha256:a", tags=["latest"], age=timedelta(days=999)),
        _version(2, "sha256:b", age=timedelta(days=999)),
    ]
    store = _FakeStore(versions)

    executor, result = _run(store, {"sha256:a": _leaf(), "sha256:b": _leaf()}, _policy())

    assert result.deleted == []
    assert result.retained_count == 2
    assert store.deleted_ids == []
    assert executor.state == RunState.SUCCEEDED


def test_single_tag_matching_via_catch_all_is_deleted():
    store = _FakeStore([_version(1, "sha256:a", tags=["latest"])])

    _, result = _run(store, {"sha256:a": _leaf()}, _policy(patterns=["!nomatch"], matching="0dT1s"))

    assert [v.name for v in result.deleted] == ["sha256:a"]
    assert store.deleted_ids == [1]


def test_all_tags_excluded_uses_mismatching_duration():
    store = _FakeStore([_version(1, "sha256:a", tags=["latest", "tag2"])])
    policy = _policy(patterns=["*", "!latest", "!tag2"], mismatching="0dT1s")

    _, result = _run(store, {"sha256:a": _leaf()}, policy)

    assert result.deleted_count == 1
    assert store.deleted_ids == [1]


def test_children_of_retained_index_are_kept():
    versions = [
        _version(1, "sha256:index", tags=["latest"]),
        _version(2, "sha256:amd64", age=timedelta(days=30)),
        _version(3, "sha256:arm64", age=timedelta(days=30)),
    ]
    manifests = {
        "sha256:index": _index("sha256:amd64", "sha256:arm64"),
        "sha256:amd64": _leaf(),
        "sha256:arm64": _leaf(),
    }
    store = _FakeStore(versions)

    _, result = _run(store, manifests, _policy(untagged="0dT1s"))

    assert result.deleted == []
    assert store.deleted_ids == []


def test_children_of_deleted_index_are_deleted():
    versions = [
        _version(1, "sha256:index", tags=["old"], age=timedelta(days=30)),
        _version(2, "sha256:amd64", age=timedelta(days=30)),
        _version(3, "sha256:keep", tags=["latest"]),
    ]
    manifests = {
        "sha256:index": _index("sha256:amd64"),
        "sha256:amd64": _leaf(),
        "sha256:keep": _leaf(),
    }
    policy = _policy(patterns=["old"], matching="P1D", untagged="P1D")
    store = _FakeStore(versions)

    _, result = _run(store, manifests, policy)

    assert [v.name for v in result.deleted] == ["sha256:index", "sha256:amd64"]
    assert store.deleted_ids == [1, 2]


def test_unstable_listing_aborts_before_deleting():
    first = [_version(1, "sha256:a"), _version(2, "sha256:b")]
    store = _FakeStore(first, second_listing=first[:1])
    executor = PruneExecutor(store, _FakeResolver({}), _policy(untagged="0dT1s"))
    reports = []

    with pytest.raises(ConcurrentModificationError):
        asyncio.run(executor.run(report=reports.append))

    assert store.deleted_ids == []
    assert reports == []
    assert executor.state == RunState.FAILED


def test_dry_run_deletes_nothing_but_reports():
    store = _FakeStore([_version(1, "sha256:a", age=timedelta(days=2))])

    _, result = _run(store, {"sha256:a": _leaf()}, _policy(untagged="P1D"), dry_run=True)

    assert result.dry_run
    assert [v.id for v in result.deleted] == [1]
    assert store.deleted_ids == []


def test_manifests_fetched_once_per_version():
    versions = [_version(1, "sha256:a"), _version(2, "sha256:b")]
    store = _FakeStore(versions)
    resolver = _FakeResolver({"sha256:a": _leaf(), "sha256:b": _leaf()})
    executor = PruneExecutor(store, resolver, _policy())

    asyncio.run(executor.run())

    assert resolver.fetched == ["sha256:a", "sha256:b"]


def test_missing_manifest_aborts_run():
    store = _FakeStore([_version(1, "sha256:a")])
    executor = PruneExecutor(store, _FakeResolver({}), _policy(untagged="0dT1s"))

    with pytest.raises(ManifestNotFoundError):
        asyncio.run(executor.run())

    assert store.deleted_ids == []


def test_failed_delete_still_reports_partial_result():
    versions = [
        _version(1, "sha256:a", age=timedelta(days=2)),
        _version(2, "sha256:b", age=timedelta(days=2)),
        _version(3, "sha256:c", age=timedelta(days=2)),
    ]
    manifests = {name: _leaf() for name in ("sha256:a", "sha256:b", "sha256:c")}
    store = _FakeStore(versions, fail_on_delete=2)
    executor = PruneExecutor(store, _FakeResolver(manifests), _policy(untagged="P1D"))
    reports = []

    with pytest.raises(RegistryAPIError):
        asyncio.run(executor.run(report=reports.append))

    assert len(reports) == 1
    assert [v.id for v in reports[0].deleted] == [1]
    assert reports[0].error is not None
    assert not reports[0].succeeded
    assert store.deleted_ids == [1]
    assert executor.state == RunState.FAILED


def test_report_called_on_success():
    store = _FakeStore([_version(1, "sha256:a")])
    reports = []

    _, result = _run(store, {"sha256:a": _leaf()}, _policy(), report=reports.append)

    assert reports == [result]
    assert result.succeeded


def test_sweep_deletes_only_unmarked_versions():
    versions = {
        "sha256:a": _version(1, "sha256:a"),
        "sha256:b": _version(2, "sha256:b"),
    }
    marker = ReachabilityMarker({"sha256:a": _leaf(), "sha256:b": _leaf()})
    marker.retain("sha256:a")
    store = _FakeStore(list(versions.values()))
    executor = PruneExecutor(store, _FakeResolver({}), _policy())
    result = PruneResult()

    asyncio.run(executor._sweep(versions, marker, result))

    assert [v.name for v in result.deleted] == ["sha256:b"]
    assert store.deleted_ids == [2]
