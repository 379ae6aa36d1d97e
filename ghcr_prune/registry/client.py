"""HTTP clients for the GitHub package API and the ghcr.io registry."""

from __future__ import annotations

import base64

import httpx

from ghcr_prune import __version__
from ghcr_prune.errors import MalformedResponseError, RegistryAPIError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_REGISTRY_URL = "https://ghcr.io"

MAX_RETRIES = 5
TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def create_api_client(token: str, api_url: str = DEFAULT_API_URL) -> httpx.AsyncClient:
    """Client for the REST package API, authenticated with the token as-is."""
    return httpx.AsyncClient(
        base_url=api_url,
        headers={
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"ghcr-prune/{__version__}",
        },
        transport=httpx.AsyncHTTPTransport(retries=MAX_RETRIES),
        timeout=TIMEOUT,
    )


def create_registry_client(
    token: str, registry_url: str = DEFAULT_REGISTRY_URL
) -> httpx.AsyncClient:
    """Client for the registry content API.

    ghcr.io accepts the same token, base64-encoded, as a bearer token.
    """
    encoded = base64.b64encode(token.encode()).decode()
    return httpx.AsyncClient(
        base_url=registry_url,
        headers={
            "Authorization": f"Bearer {encoded}",
            "User-Agent": f"ghcr-prune/{__version__}",
        },
        transport=httpx.AsyncHTTPTransport(retries=MAX_RETRIES),
        timeout=TIMEOUT,
    )


def ensure_success(response: httpx.Response) -> httpx.Response:
    """Raise :class:`RegistryAPIError` for any non-2xx response."""
    if response.is_success:
        return response

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        detail = str(body.get("message", ""))
    else:
        detail = response.text[:200]

    raise RegistryAPIError(
        response.request.method,
        str(response.request.url),
        response.status_code,
        detail,
    )


def decode_json(response: httpx.Response, expected: type = dict):
    """Decode a successful response body, which must be an ``expected`` JSON value."""
    source = f"{response.request.method} {response.request.url}"
    try:
        body = response.json()
    except ValueError as e:
        raise MalformedResponseError(source, f"invalid JSON ({e})") from e

    if not isinstance(body, expected):
        raise MalformedResponseError(
            source, f"expected a JSON {'object' if expected is dict else 'array'}"
        )
    return body
