"""HTTP readiness probing for deployed services."""

import httpx


async def probe_http(url: str, client: httpx.AsyncClient) -> bool:
    """Return True when ``url`` answers with any non-5xx status."""
    try:
        response = await client.get(url)
    except httpx.HTTPError:
        return False
    return response.status_code < 500


def readiness_client(timeout: float = 5.0) -> httpx.AsyncClient:
    """Build the client used for readiness polling.

    Certificates are not verified and redirects (e.g. to a login page) are
    not followed: a 302 already proves the service is up.
    """
    return httpx.AsyncClient(timeout=timeout, follow_redirects=False, verify=False)
