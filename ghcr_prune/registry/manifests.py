"""Manifest resolver — fetch and type-check manifests from the registry."""

from __future__ import annotations

import logging

import httpx

from ghcr_prune.errors import ManifestNotFoundError, UnsupportedMediaTypeError
from ghcr_prune.registry.client import decode_json, ensure_success
from ghcr_prune.registry.models import MANIFEST_MEDIA_TYPES, Manifest

logger = logging.getLogger(__name__)


class ManifestResolver:
    """Reads manifests of one repository through the registry v2 API.

    Every call goes to the registry; callers memoize by digest.
    """

    def __init__(self, client: httpx.AsyncClient, namespace: str, repository: str):
        self.client = client
        self.namespace = namespace
        self.repository = repository

    def manifest_path(self, reference: str) -> str:
        return f"/v2/{self.namespace}/{self.repository}/manifests/{reference}"

    async def fetch(self, reference: str) -> Manifest:
        """Fetch the manifest for a digest or tag."""
        path = self.manifest_path(reference)
        response = await self.client.get(
            path, headers={"Accept": ", ".join(MANIFEST_MEDIA_TYPES)}
        )

        if response.status_code == httpx.codes.NOT_FOUND or (
            response.is_success and not response.content
        ):
            raise ManifestNotFoundError(str(response.request.url))

        document = decode_json(ensure_success(response))

        media_type = document.get("mediaType")
        if media_type not in MANIFEST_MEDIA_TYPES:
            raise UnsupportedMediaTypeError(media_type)

        logger.debug("Fetched manifest %s (%s)", reference, media_type)
        return Manifest.from_document(document)
