"""Security Rules - tests for the user-agent and suspicious-path predicates.

Tests cover:
    - Blocked user-agent tokens (case-insensitive substring)
    - Scanner paths: traversal, dotfiles, backups, foreign admin panels
    - Repeated URL decoding (double-encoded traversal)
    - Ordinary application paths pass
"""

import pytest

from plataforma.core.security_rules import (
    decode_path, find_suspicious_pattern, is_blocked_user_agent,
)


@pytest.mark.parametrize("ua", [
    "curl/8.4.0",
    "Wget/1.21",
    "Googlebot/2.1 (+http://www.google.com/bot.html)",
    "Mozilla/5.0 (compatible; YandexSpider/3.0)",
    "python-requests CURL wrapper",
])
def test_blocked_user_agents(ua):
    assert is_blocked_user_agent(ua)


@pytest.mark.parametrize("ua", [
    None,
    "",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0",
    "python-httpx/0.27.0",
])
def test_allowed_user_agents(ua):
    assert not is_blocked_user_agent(ua)


@pytest.mark.parametrize("path", [
    "/../.env",
    "/.env",
    "/.env.local",
    "/.git/config",
    "/static/..%2f..%2fetc/passwd",
    "/%252e%252e/secret",
    "/backup.sql",
    "/site.tar.gz",
    "/assets/backup-2024.sql",
    "/exports/dump_prod.tar.gz",
    "/uploads/index.php.bak",
    "/shell.php",
    "/default.aspx",
    "/wp-admin/install.php",
    "/xmlrpc.php",
    "/phpmyadmin/index",
    "/cgi-bin/test",
    "/config.json",
    "/home/.ssh/id_rsa",
])
def test_suspicious_paths_are_detected(path):
    assert find_suspicious_pattern(path) is not None


@pytest.mark.parametrize("path", [
    "/",
    "/health",
    "/auth/session",
    "/content/42/comments",
    "/models/popular",
    "/webhook",
    "/i18n/pt-BR",
    "/content/pack.zip",
    "/content/episode-3.tar.gz",
    "/content/demo.php",
    "/content/42/files/export.sql",
])
def test_application_paths_pass(path):
    assert find_suspicious_pattern(path) is None


def test_decode_path_unwraps_double_encoding():
    assert decode_path("/%252e%252e/x") == "/../x"


def test_decode_path_is_bounded():
    # Four levels of encoding; only three passes are applied
    assert decode_path("/%2525252e") == "/%2e"


def test_decode_path_leaves_plain_paths_untouched():
    assert decode_path("/content/abc") == "/content/abc"
