"""
Host header and routing key helpers.

Pure functions, no I/O: normalising a Host header, validating subdomain
labels and custom domains, and generating deterministic alternatives for a
taken subdomain.
"""

from __future__ import annotations

import ipaddress
import re

MAX_LABEL_LENGTH = 63
MAX_HOST_LENGTH = 253
MIN_SUBDOMAIN_LENGTH = 3

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def normalize_host(host: str | None) -> str | None:
    """
    Normalise a Host header value to a bare lowercase hostname.

    Strips the port and a trailing dot. Returns None for missing, malformed
    or IP-literal hosts.

    Examples:
        "Acme.Platform.TLD:8000" → "acme.platform.tld"
        "blog.example.com."      → "blog.example.com"
        "127.0.0.1:8000"         → None
        "[::1]:8000"             → None
    """
    if not host:
        return None
    host = host.strip().lower()
    if not host or host.startswith("["):
        return None
    if host.count(":") == 1:
        host, _, port = host.partition(":")
        if not port.isdigit():
            return None
    elif ":" in host:
        return None
    host = host.rstrip(".")
    if not host or len(host) > MAX_HOST_LENGTH:
        return None
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return None
    if not all(is_valid_label(label) for label in host.split(".")):
        return None
    return host


def is_valid_label(label: str) -> bool:
    return bool(_LABEL_RE.match(label))


def subdomain_error(subdomain: str | None, reserved_labels) -> str | None:
    """Return a reason code when ``subdomain`` cannot be a tenant routing key."""
    if not subdomain:
        return "subdomain_missing"
    if len(subdomain) < MIN_SUBDOMAIN_LENGTH or not is_valid_label(subdomain):
        return "subdomain_invalid"
    if "--" in subdomain:
        return "subdomain_invalid"
    if subdomain in {label.lower() for label in reserved_labels}:
        return "subdomain_reserved"
    return None


def custom_domain_error(domain: str | None, platform_domain: str) -> str | None:
    """Return a reason code when ``domain`` cannot be used as a custom domain."""
    normalized = normalize_host(domain)
    if normalized is None or normalized != (domain or "").strip().lower().rstrip("."):
        return "custom_domain_invalid"
    if "." not in normalized:
        return "custom_domain_invalid"
    platform_domain = platform_domain.lower()
    if normalized == platform_domain or normalized.endswith("." + platform_domain):
        return "custom_domain_reserved"
    return None


def suffixed_candidates(base: str, count: int, start: int = 2) -> list[str]:
    """
    Deterministic alternatives for a taken subdomain: base-2, base-3, ...

    The base is truncated so every candidate stays a valid DNS label.
    """
    candidates = []
    for n in range(start, start + count):
        suffix = f"-{n}"
        stem = base[: MAX_LABEL_LENGTH - len(suffix)].rstrip("-")
        candidates.append(f"{stem}{suffix}")
    return candidates
