"""Browser-facing authorization URL construction."""
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def build_authorization_url(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    scope: str,
    request_jwt: str,
) -> str:
    """
    Compose the authorization URL the PSU opens to approve a consent.

    Query parameters already present on the endpoint are kept unless they
    are overridden here.

    Raises:
        ValueError: If the endpoint has no scheme or host
    """
    parts = urlsplit(authorization_endpoint)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Invalid authorization endpoint: {authorization_endpoint!r}")

    params = {
        "client_id": client_id,
        "response_type": "code",
        "scope": scope,
        "request": request_jwt,
        "redirect_uri": redirect_uri,
    }
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())

    return urlunsplit(parts._replace(query=urlencode(query)))
