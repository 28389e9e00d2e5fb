"""Domain name normalization for the domain scan command."""

from urllib.parse import urlsplit


def extract_domain(value: str) -> str:
    """Reduce a URL or bare domain to its hostname.

    Examples:
        >>> extract_domain("https://example.com:8443/login?next=/")
        'example.com'
        >>> extract_domain(" example.com/ ")
        'example.com'
    """
    value = value.strip()
    if not value:
        return value

    if not value.startswith(("http://", "https://")):
        return value.rstrip("/")

    try:
        parts = urlsplit(value)
        hostname = parts.hostname or ""
    except ValueError:
        # Malformed netloc (e.g. bad port); cut it out by hand
        hostname = value.split("://", 1)[1]
        for sep in ("/", "?", ":"):
            hostname = hostname.split(sep, 1)[0]
        return hostname.strip()

    if not hostname:
        hostname = parts.path.lstrip("/").split("/", 1)[0]

    return hostname.strip()
