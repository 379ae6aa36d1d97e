"""Registry data models — package versions, manifests, and descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ghcr_prune.errors import MalformedResponseError

INDEX_MEDIA_TYPES = (
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
)

MANIFEST_MEDIA_TYPES = (
    *INDEX_MEDIA_TYPES,
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
)


@dataclass
class PackageVersion:
    """One stored version of a container package.

    ``name`` is the content digest and is unique within a listing; ``id`` is
    only meaningful to the package API's delete endpoint.
    """

    id: int
    name: str
    updated_at: datetime
    tags: list[str] = field(default_factory=list)
    has_container_metadata: bool = True

    # Display metadata, carried through to the report
    url: str = ""
    html_url: str = ""
    created_at: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PackageVersion:
        """Build a version from a package API ``versions`` item."""
        if not isinstance(data, dict):
            raise MalformedResponseError("package API", f"version item is not an object: {data!r}")

        try:
            version_id = data["id"]
            name = data["name"]
            updated_at = parse_timestamp(data["updated_at"])
        except KeyError as e:
            raise MalformedResponseError(
                "package API", f"version item is missing {e.args[0]!r}"
            ) from e
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedResponseError(
                "package API", f"version item has an invalid updated_at: {e}"
            ) from e

        container = (data.get("metadata") or {}).get("container")

        return cls(
            id=version_id,
            name=name,
            updated_at=updated_at,
            tags=list(container.get("tags") or []) if container else [],
            has_container_metadata=container is not None,
            url=data.get("url", ""),
            html_url=data.get("html_url", ""),
            created_at=data.get("created_at", ""),
            raw=data,
        )

    @property
    def is_tagged(self) -> bool:
        return bool(self.tags)

    def to_dict(self) -> dict[str, Any]:
        """Payload used when reporting this version."""
        if self.raw:
            return self.raw
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "html_url": self.html_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at.isoformat(),
            "metadata": {
                "package_type": "container",
                "container": {"tags": list(self.tags)},
            },
        }


@dataclass
class ManifestDescriptor:
    """Reference from an index manifest to one of its child manifests."""

    digest: str | None = None
    media_type: str | None = None
    platform: dict[str, Any] = field(default_factory=dict)


@dataclass
class Manifest:
    """A manifest document fetched from the registry."""

    media_type: str
    manifests: list[ManifestDescriptor] = field(default_factory=list)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Manifest:
        return cls(
            media_type=data.get("mediaType", ""),
            manifests=[
                ManifestDescriptor(
                    digest=d.get("digest"),
                    media_type=d.get("mediaType"),
                    platform=d.get("platform") or {},
                )
                for d in data.get("manifests") or []
            ],
        )

    @property
    def is_index(self) -> bool:
        return self.media_type in INDEX_MEDIA_TYPES


def parse_timestamp(value: str) -> datetime:
    """Parse an API timestamp (``2024-01-31T12:00:00Z``) as an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
