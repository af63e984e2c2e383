"""Row keys for the CrawlDB.

Rows are keyed by the URL with its host reversed, so that all pages of a
site (and of its subdomains) sort next to each other:

    http://www.l3s.de/            -> de.l3s.www:http/
    https://bar.foo.com:8983/to?x -> com.foo.bar:https:8983/to?x
    http://a.com?x                -> com.a:http/?x

The path and query are kept as-is, including an empty query (a bare "?").
The fragment and any userinfo are dropped.
"""

from urllib.parse import urlsplit

from .errors import InvalidUrlError


def reverse_host(host: str) -> str:
    """Reverse the dot-separated labels of a host name."""
    return ".".join(reversed(host.split(".")))


def _split_host_port(netloc: str) -> tuple[str, str]:
    # Drop userinfo, keep the host exactly as written
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        end = hostport.find("]")
        if end == -1:
            return hostport, ""
        host, rest = hostport[:end + 1], hostport[end + 1:]
        return host, rest[1:] if rest.startswith(":") else rest
    host, _, port = hostport.partition(":")
    return host, port


def reverse_url(url: str) -> str:
    """Compute the row key for a URL.

    Args:
        url: Absolute URL

    Returns:
        Reversed-host row key

    Raises:
        InvalidUrlError: if the URL has no scheme or host, or a bad port
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(str(url), "empty URL")

    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e

    if not parts.scheme:
        raise InvalidUrlError(url, "missing scheme")

    host, port = _split_host_port(parts.netloc)
    if not host:
        raise InvalidUrlError(url, "missing host")
    if port:
        if not (port.isascii() and port.isdigit()) or int(port) > 65535:
            raise InvalidUrlError(url, f"bad port {port!r}")

    file = parts.path
    # urlsplit() drops an empty query, the key keeps it
    if "?" in url.strip().split("#", 1)[0]:
        file += "?" + parts.query

    key = reverse_host(host) + ":" + parts.scheme.lower()
    if port:
        key += ":" + str(int(port))
    if file and not file.startswith("/"):
        key += "/"
    return key + file


def unreverse_url(key: str) -> str:
    """Turn a row key back into a URL.

    Raises:
        InvalidUrlError: if the key was not produced by reverse_url()
    """
    slash = key.find("/")
    question = key.find("?")
    cuts = [i for i in (slash, question) if i != -1]
    head_end = min(cuts) if cuts else len(key)
    head, rest = key[:head_end], key[head_end:]

    if head.startswith("["):
        # IPv6 literal, kept unreversed
        end = head.find("]")
        if end == -1:
            raise InvalidUrlError(key, "not a row key")
        pieces = [head[:end + 1]] + head[end + 2:].split(":")
    else:
        pieces = head.split(":")
    if len(pieces) == 2:
        host, scheme = pieces
        port = ""
    elif len(pieces) == 3:
        host, scheme, port = pieces
    else:
        raise InvalidUrlError(key, "not a row key")
    if not host or not scheme:
        raise InvalidUrlError(key, "not a row key")

    netloc = reverse_host(host)
    if port:
        netloc += ":" + port
    return f"{scheme}://{netloc}{rest}"
