from __future__ import annotations

import ipaddress
import logging
import socket
import time
from typing import Callable, Mapping
from urllib.parse import urlsplit

import httpx

from .errors import FetchTimeoutError, ModerationError, TooManyRedirectsError, UnsafeUrlError
from .text import is_http_url, normalize_hostname

logger = logging.getLogger(__name__)

Resolver = Callable[[str], list[str]]

MAX_REDIRECTS = 4

_BLOCKED_HOSTNAMES = frozenset({
    "localhost",
    "metadata.google.internal",
    "metadata",
    "169.254.169.254",
    "0.0.0.0",
})

_BLOCKED_HOST_SUFFIXES = (".local", ".localhost", ".internal")

_PRIVATE_V4_NETWORKS = tuple(
    ipaddress.IPv4Network(n)
    for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "100.64.0.0/10",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "224.0.0.0/3",
    )
)

_PRIVATE_V6_NETWORKS = tuple(
    ipaddress.IPv6Network(n)
    for n in (
        "::/128",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)


def is_blocked_hostname(hostname: str) -> bool:
    host = normalize_hostname(hostname)
    return host in _BLOCKED_HOSTNAMES or host.endswith(_BLOCKED_HOST_SUFFIXES)


def _parse_ip(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return None


def is_private_address(address: str) -> bool:
    """True for private, loopback, link-local and multicast addresses.

    Anything that does not parse as an IP address counts as private.
    """
    ip = _parse_ip(str(address or "").strip().lower())
    if ip is None:
        return True
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        else:
            return any(ip in net for net in _PRIVATE_V6_NETWORKS)
    return any(ip in net for net in _PRIVATE_V4_NETWORKS)


def resolve_host(hostname: str) -> list[str]:
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    return list(dict.fromkeys(str(info[4][0]) for info in infos))


def assert_safe_remote_url(url: str, *, resolver: Resolver = resolve_host) -> None:
    """Raise UnsafeUrlError unless ``url`` points at a public http(s) host.

    Host names are resolved and every returned address must be public, so a
    name that resolves to a private address anywhere in its answer set is
    refused.
    """
    try:
        parsed = urlsplit(url)
    except ValueError as exc:
        raise UnsafeUrlError(f"Invalid URL: {exc}", context={"url": url}) from exc

    if parsed.scheme not in ("http", "https"):
        raise UnsafeUrlError("Only http/https URLs are allowed", context={"url": url})

    hostname = normalize_hostname(parsed.hostname)
    if not hostname or is_blocked_hostname(hostname):
        raise UnsafeUrlError("Blocked hostname", context={"url": url})

    if _parse_ip(hostname) is not None:
        if is_private_address(hostname):
            raise UnsafeUrlError("Blocked private or loopback IP", context={"url": url})
        return

    try:
        addresses = resolver(hostname)
    # getaddrinfo raises UnicodeError for labels the IDNA codec rejects.
    except (OSError, UnicodeError) as exc:
        raise UnsafeUrlError(f"Hostname resolution failed: {exc}", context={"url": url}) from exc
    if not addresses:
        raise UnsafeUrlError("Hostname resolution failed", context={"url": url})
    for address in addresses:
        if is_private_address(address):
            raise UnsafeUrlError(
                "Blocked private or loopback DNS resolution result",
                context={"url": url, "address": address},
            )


def build_client(
    user_agent: str,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    return httpx.Client(
        follow_redirects=False,
        headers={"user-agent": user_agent},
        transport=transport,
    )


def open_with_safe_redirects(
    client: httpx.Client,
    url: str,
    *,
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    timeout_s: float = 15.0,
    max_redirects: int = MAX_REDIRECTS,
    resolver: Resolver = resolve_host,
) -> httpx.Response:
    """Send ``method`` to ``url``, following redirects by hand.

    Every hop is re-checked with assert_safe_remote_url before it is
    requested. ``timeout_s`` bounds the whole chain. The returned response is
    streamed; callers must close it.
    """
    deadline = time.monotonic() + timeout_s
    current = url

    for _ in range(max_redirects + 1):
        assert_safe_remote_url(current, resolver=resolver)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchTimeoutError(f"Timed out after {timeout_s:g}s", context={"url": current})

        request = client.build_request(method, current, headers=headers, timeout=remaining)
        try:
            response = client.send(request, stream=True, follow_redirects=False)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"Timed out after {timeout_s:g}s", context={"url": current}) from exc

        location = response.headers.get("location")
        if 300 <= response.status_code < 400 and location:
            response.close()
            logger.debug("%s %s -> %s %s", method, current, response.status_code, location)
            current = str(httpx.URL(current).join(location))
            continue

        return response

    raise TooManyRedirectsError("Too many redirects", context={"url": url})


def check_url_reachable(
    url: str,
    *,
    client: httpx.Client,
    timeout_s: float = 9.0,
    max_requests: int = 4,
    resolver: Resolver = resolve_host,
) -> bool:
    """HEAD, then GET. Any final status below 500 counts as reachable."""
    if not is_http_url(url):
        return False

    for method in ("HEAD", "GET"):
        try:
            response = open_with_safe_redirects(
                client,
                url,
                method=method,
                timeout_s=timeout_s,
                max_redirects=max_requests - 1,
                resolver=resolver,
            )
        except (ModerationError, httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("%s %s failed: %s", method, url, exc)
            continue

        try:
            status = response.status_code
        finally:
            response.close()

        if 300 <= status < 400:
            # Redirect without a Location header.
            continue
        if status < 500:
            return True
        logger.info("%s %s returned %s", method, url, status)

    return False
