"""
Unit tests for user-agent fingerprinting and client addresses.
"""

import pytest
import requests

from academy_admin.services.client_fingerprint import (
    client_ip_from_headers, lookup_public_ip, mask_ip, parse_user_agent,
)

EDGE = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) '
        'Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0')
CHROME_MAC = ('Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) '
              'Chrome/120.0.0.0 Safari/537.36')
SAFARI_IPHONE = ('Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 '
                 '(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1')
FIREFOX_WINDOWS = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0'
CHROME_ANDROID = ('Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) '
                  'Chrome/120.0.0.0 Mobile Safari/537.36')


class TestParseUserAgent:

    def test_edge_wins_over_chrome_and_safari(self):
        assert parse_user_agent(EDGE).browser_name == 'Edge'

    def test_chrome_on_mac(self):
        fingerprint = parse_user_agent(CHROME_MAC)

        assert fingerprint.browser_name == 'Chrome'
        assert fingerprint.device_name == 'Mac'
        assert fingerprint.os_name == 'macOS 10.15'
        assert fingerprint.is_mobile is False

    def test_safari_on_iphone(self):
        fingerprint = parse_user_agent(SAFARI_IPHONE)

        assert fingerprint.browser_name == 'Safari'
        assert fingerprint.device_name == 'iPhone'
        assert fingerprint.os_name == 'iOS 17.0'
        assert fingerprint.is_mobile is True

    def test_firefox_on_windows(self):
        fingerprint = parse_user_agent(FIREFOX_WINDOWS)

        assert fingerprint.browser_name == 'Firefox'
        assert fingerprint.device_name == 'Windows PC'
        assert fingerprint.os_name == 'Windows 10/11'

    def test_android_is_mobile(self):
        fingerprint = parse_user_agent(CHROME_ANDROID)

        assert fingerprint.device_name == 'Android Device'
        assert fingerprint.os_name == 'Android 14'
        assert fingerprint.is_mobile is True

    @pytest.mark.parametrize('user_agent', [None, ''])
    def test_missing_user_agent(self, user_agent):
        fingerprint = parse_user_agent(user_agent)

        assert fingerprint.device_name == 'Unknown Device'
        assert fingerprint.browser_name == 'Unknown Browser'


class TestAddresses:

    @pytest.mark.parametrize('ip,expected', [
        ('203.0.113.45', '203.0.*.*'),
        ('2001:db8::1', '2001:db8:*'),
        ('not-an-ip', 'masked'),
        (None, None),
    ])
    def test_mask_ip(self, ip, expected):
        assert mask_ip(ip) == expected

    def test_first_forwarded_address(self):
        headers = {'X-Forwarded-For': '198.51.100.7, 10.0.0.1', 'X-Real-IP': '10.0.0.2'}
        assert client_ip_from_headers(headers) == '198.51.100.7'

    def test_falls_through_header_order(self):
        assert client_ip_from_headers({'X-Real-IP': '10.0.0.2'}) == '10.0.0.2'
        assert client_ip_from_headers({}) is None

    def test_lookup_failure_returns_none(self, monkeypatch):
        def timeout(*args, **kwargs):
            raise requests.Timeout('slow')
        monkeypatch.setattr(requests, 'get', timeout)
        assert lookup_public_ip('https://ip.example.test') is None

    def test_lookup_success(self, monkeypatch):
        class Response:
            def raise_for_status(self):
                pass

            def json(self):
                return {'ip': '192.0.2.1'}
        monkeypatch.setattr(requests, 'get', lambda *args, **kwargs: Response())
        assert lookup_public_ip('https://ip.example.test') == '192.0.2.1'
