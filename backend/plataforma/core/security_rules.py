"""Security Rules - pure predicates behind the user-agent and suspicious-path filters.

Invariants:
    - User-agent match is a casefolded substring match against BLOCKED_USER_AGENT_TOKENS
    - Paths are URL-decoded (bounded repeat, catches double encoding) before matching
    - find_suspicious_pattern returns the first matching denylist pattern, or None
    - Pure functions: no IO, no logging (the middleware logs)

Design Decisions:
    - Denylist targets scanner probes (backups, VCS metadata, credentials, foreign admin panels);
      it is a load-shedding measure, not an authorization boundary
"""

import re
from urllib.parse import unquote

BLOCKED_USER_AGENT_TOKENS: tuple[str, ...] = ("curl", "wget", "bot", "spider")

MAX_DECODE_PASSES = 3

SUSPICIOUS_PATH_PATTERNS: tuple[re.Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE) for p in (
        r"\.\./",                                   # traversal
        r"\.\.\\",
        r"/\.env(\.|$|/)",                          # credential files
        r"/\.(git|svn|hg|bzr)(/|$)",                # version-control metadata
        r"/\.(htaccess|htpasswd|ds_store|aws|ssh|npmrc|dockercfg)",
        r"\.(bak|backup|old|orig|save|swp)$",       # editor and backup leftovers
        r"^/[^/]+\.(sql|tar|tgz|gz|zip|7z|rar)$",  # archives and dumps at the web root
        r"(^|/)(backup|dump)[^/]*\.(sql|tar|tgz|gz|zip|7z|rar)$",
        r"(^|/)(id_rsa|id_dsa|credentials|secrets?)(\.|/|$)",
        r"/wp-(admin|login|content|includes)",     # foreign admin panels
        r"/xmlrpc\.php",
        r"/(phpmyadmin|pma|myadmin|adminer)",
        r"^/[^/]+\.(php|asp|aspx|jsp|cgi)$",       # server scripts at the web root
        r"/(cgi-bin|server-status|actuator|solr|jenkins|manager/html)",
        r"/config\.(json|yml|yaml|php|inc)$",
        r"/(etc/passwd|proc/self)",
    )
)


def is_blocked_user_agent(user_agent: str | None) -> bool:
    """True when the user-agent contains any blocked token (case-insensitive)."""
    if not user_agent:
        return False
    folded = user_agent.casefold()
    return any(token in folded for token in BLOCKED_USER_AGENT_TOKENS)


def decode_path(raw_path: str) -> str:
    """URL-decode repeatedly until stable or MAX_DECODE_PASSES is reached."""
    decoded = raw_path
    for _ in range(MAX_DECODE_PASSES):
        step = unquote(decoded)
        if step == decoded:
            break
        decoded = step
    return decoded


def find_suspicious_pattern(path: str) -> str | None:
    """Return the denylist pattern matched by the decoded path, if any."""
    decoded = decode_path(path)
    for pattern in SUSPICIOUS_PATH_PATTERNS:
        if pattern.search(decoded):
            return pattern.pattern
    return None
