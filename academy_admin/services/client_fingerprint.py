"""
Client fingerprinting for audit entries.

User agents match several browser tokens at once (Edge also says Chrome and
Safari), so the browser table is ordered and the first hit wins.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = 'Unknown Device'
UNKNOWN_OS = 'Unknown OS'
UNKNOWN_BROWSER = 'Unknown Browser'

_MOBILE_RE = re.compile(r'mobile|android|iphone|ipad|ipod|blackberry|iemobile|opera mini')

_WINDOWS_VERSIONS = (
    ('windows nt 10.0', 'Windows 10/11'),
    ('windows nt 6.3', 'Windows 8.1'),
    ('windows nt 6.2', 'Windows 8'),
    ('windows nt 6.1', 'Windows 7'),
)

# (required tokens, excluded tokens, browser name)
_BROWSER_RULES = (
    (('edg/', 'edge/'), (), 'Edge'),
    (('chrome/',), ('edg/',), 'Chrome'),
    (('safari/',), ('chrome/',), 'Safari'),
    (('firefox/',), (), 'Firefox'),
    (('opera/', 'opr/'), (), 'Opera'),
    (('msie', 'trident/'), (), 'Internet Explorer'),
)

# Header order for the forwarded client address
CLIENT_IP_HEADERS = ('X-Forwarded-For', 'CF-Connecting-IP', 'True-Client-IP', 'X-Real-IP')


@dataclass(frozen=True)
class ClientFingerprint:
    device_name: str = UNKNOWN_DEVICE
    os_name: str = UNKNOWN_OS
    browser_name: str = UNKNOWN_BROWSER
    is_mobile: bool = False


def _versioned(ua, pattern, prefix, fallback):
    match = re.search(pattern, ua)
    if not match:
        return fallback
    parts = [p for p in match.groups() if p]
    return f"{prefix} {'.'.join(parts)}"


def _device_and_os(ua):
    if 'iphone' in ua:
        return 'iPhone', _versioned(ua, r'iphone os (\d+)_(\d+)', 'iOS', 'iOS')
    if 'ipad' in ua:
        return 'iPad', _versioned(ua, r'cpu os (\d+)_(\d+)', 'iOS', 'iPadOS')
    if 'android' in ua:
        return 'Android Device', _versioned(ua, r'android (\d+)\.?(\d+)?', 'Android', 'Android')
    if 'windows phone' in ua:
        return 'Windows Phone', 'Windows Phone'
    if 'windows' in ua:
        for token, name in _WINDOWS_VERSIONS:
            if token in ua:
                return 'Windows PC', name
        return 'Windows PC', 'Windows'
    if 'mac os x' in ua:
        return 'Mac', _versioned(ua, r'mac os x (\d+)[_.](\d+)', 'macOS', 'macOS')
    if 'linux' in ua:
        return 'Linux PC', 'Linux'
    return UNKNOWN_DEVICE, UNKNOWN_OS


def _browser(ua):
    for required, excluded, name in _BROWSER_RULES:
        if any(t in ua for t in required) and not any(t in ua for t in excluded):
            return name
    return UNKNOWN_BROWSER


def parse_user_agent(user_agent: Optional[str]) -> ClientFingerprint:
    """Derive device, OS, browser and mobile flag from a user-agent string."""
    if not user_agent:
        return ClientFingerprint()
    ua = user_agent.lower()
    device_name, os_name = _device_and_os(ua)
    return ClientFingerprint(
        device_name=device_name,
        os_name=os_name,
        browser_name=_browser(ua),
        is_mobile=bool(_MOBILE_RE.search(ua)),
    )


def client_ip_from_headers(headers) -> Optional[str]:
    """First forwarded client address found in the request headers."""
    if headers is None:
        return None
    for name in CLIENT_IP_HEADERS:
        value = headers.get(name)
        if value:
            return value.split(',')[0].strip()
    return None


def lookup_public_ip(url: str, timeout: float = 3) -> Optional[str]:
    """
    Best-effort public address lookup (ipify-style JSON ``{"ip": ...}``).

    Returns None on any network or decoding failure.
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json().get('ip')
    except (requests.RequestException, ValueError) as e:
        logger.debug(f"Public IP lookup failed: {e}")
        return None


def mask_ip(ip_address: Optional[str]) -> Optional[str]:
    """Keep the first two IPv4 octets or IPv6 groups."""
    if not ip_address:
        return None
    if '.' in ip_address:
        parts = ip_address.split('.')
        return f"{parts[0]}.{parts[1]}.*.*"
    if ':' in ip_address:
        parts = ip_address.split(':')
        return f"{parts[0]}:{parts[1]}:*"
    return 'masked'
