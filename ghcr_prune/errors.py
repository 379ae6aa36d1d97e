"""Error taxonomy for a prune run.

Every error here is fatal for the run. Configuration errors surface before
any engine state exists; consistency and data errors abort before anything
is deleted; API errors raised during the sweep still let the caller report
what was deleted so far.
"""

from __future__ import annotations


class PruneError(Exception):
    """Base class for all errors raised by ghcr-prune."""


# ── Configuration ───────────────────────────────────────────────────


class ConfigurationError(PruneError):
    """Invalid user input: durations, tag patterns, owner, config file."""


# ── Consistency ─────────────────────────────────────────────────────


class ConsistencyError(PruneError):
    """The version listing cannot be trusted as a snapshot."""


class ConcurrentModificationError(ConsistencyError):
    def __init__(self) -> None:
        super().__init__(
            "Possible concurrent modification detected, pagination results may be incorrect"
        )


class DuplicateDigestError(ConsistencyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate name: {name!r}")
        self.name = name


# ── Data ────────────────────────────────────────────────────────────


class DataError(PruneError):
    """Registry data cannot be resolved into a complete manifest graph."""


class MissingContainerMetadataError(DataError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing container metadata: {name}")
        self.name = name


class ManifestNotFoundError(DataError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Manifest not found: {url!r}")
        self.url = url


class UnsupportedMediaTypeError(DataError):
    def __init__(self, media_type: str | None) -> None:
        super().__init__(f"Unknown mediaType: {media_type!r}")
        self.media_type = media_type


class MissingManifestError(DataError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing manifest: {name}")
        self.name = name


class MissingDigestError(DataError):
    def __init__(self, parent: str) -> None:
        super().__init__(f"Missing digest in descriptor of child manifest of {parent}")
        self.parent = parent


class MalformedResponseError(DataError):
    """An API response body is not the JSON document it should be."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"Malformed response from {source}: {detail}")
        self.source = source


# ── Remote API ──────────────────────────────────────────────────────


class RegistryAPIError(PruneError):
    """A package or registry API call returned a non-success status."""

    def __init__(self, method: str, url: str, status_code: int, detail: str = "") -> None:
        message = f"{method} {url} failed with HTTP {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
