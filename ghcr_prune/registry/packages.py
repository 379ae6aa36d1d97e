"""Package store — listing and deleting container package versions.

User-owned and organization-owned packages live under different API
prefixes but are otherwise identical, so the owner kind is resolved once and
carried as an enum rather than as a class hierarchy.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from enum import Enum
from urllib.parse import quote

import httpx

from ghcr_prune.errors import ConfigurationError
from ghcr_prune.registry.client import decode_json, ensure_success
from ghcr_prune.registry.models import PackageVersion

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class OwnerKind(Enum):
    """Account type owning a package, as reported by the users API."""

    USER = "User"
    ORGANIZATION = "Organization"

    @property
    def path_segment(self) -> str:
        return "users" if self is OwnerKind.USER else "orgs"


async def resolve_owner_kind(client: httpx.AsyncClient, owner: str) -> OwnerKind:
    """Look up whether ``owner`` is a user or an organization."""
    response = ensure_success(await client.get(f"/users/{owner}"))
    owner_type = decode_json(response).get("type")

    try:
        return OwnerKind(owner_type)
    except ValueError:
        expected = " or ".join(kind.value for kind in OwnerKind)
        raise ConfigurationError(
            f"Owner type should be {expected}. Got {owner_type!r} instead"
        ) from None


class PackageStore:
    """Versions of one container package on the package API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        owner_kind: OwnerKind,
        owner: str,
        name: str,
    ):
        self.client = client
        self.owner_kind = owner_kind
        self.owner = owner
        self.name = name

    @property
    def versions_path(self) -> str:
        return (
            f"/{self.owner_kind.path_segment}/{self.owner}"
            f"/packages/container/{quote(self.name, safe='')}/versions"
        )

    async def list_versions(self) -> AsyncIterator[list[PackageVersion]]:
        """Yield versions page by page, following ``Link: rel="next"``."""
        url: str | None = self.versions_path
        params: dict[str, int] | None = {"per_page": PAGE_SIZE}
        page = 0

        while url:
            response = ensure_success(await self.client.get(url, params=params))
            page += 1
            items = decode_json(response, list)
            logger.debug("Fetched page %d of %s: %d versions", page, self.name, len(items))
            yield [PackageVersion.from_api(item) for item in items]

            # The next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None

    async def get_all_versions(self) -> list[PackageVersion]:
        versions: list[PackageVersion] = []
        async for page in self.list_versions():
            versions.extend(page)
        return versions

    async def delete_version(self, version_id: int) -> None:
        ensure_success(await self.client.delete(f"{self.versions_path}/{version_id}"))


async def open_package(client: httpx.AsyncClient, owner: str, name: str) -> PackageStore:
    """Resolve the owner kind and return the store for ``owner/name``."""
    owner_kind = await resolve_owner_kind(client, owner)
    logger.debug("Owner %s is a %s", owner, owner_kind.value)
    return PackageStore(client, owner_kind, owner, name)
