"""
URL helpers - target validation and forced-variation links.
"""

from urllib.parse import urlparse, urlencode, parse_qsl, urlunparse

from ..core.errors import InvalidTargetError


ALLOWED_SCHEMES = ("http", "https")


def validate_target_url(url: str) -> str:
    """
    Validate a page URL before rendering it.

    Args:
        url: Candidate URL

    Returns:
        The normalized URL

    Raises:
        InvalidTargetError: If the URL is empty, malformed or not http(s)
    """
    if not url or not url.strip():
        raise InvalidTargetError("URL is required")

    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError as e:
        raise InvalidTargetError("Invalid URL provided") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidTargetError(f"Invalid protocol: {parsed.scheme or 'none'}")
    if not parsed.netloc or not hostname:
        raise InvalidTargetError("Invalid URL provided")

    return urlunparse(parsed)


def build_force_variation_url(page_url: str, experiment_id: str, variation_id: str) -> str:
    """
    Build a URL that forces a visitor into a variation.

    Optimizely Web honours `optimizely_x<experimentId>=<variationId>` query parameters.
    Existing query parameters are preserved; a previous force for the same
    experiment is replaced.
    """
    parsed = urlparse(page_url)
    param = f"optimizely_x{experiment_id}"
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != param]
    query.append((param, str(variation_id)))
    return urlunparse(parsed._replace(query=urlencode(query)))
