"""Social profile URL parsing.

Maps a profile URL to its platform and extracts the account handle.  Also
filters the optional article URLs handed to the evidence-based pipeline so
that social-profile links are never mistaken for press coverage.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .enums import SocialPlatform
from .exceptions import HandleExtractionError, UnsupportedPlatformError

PLATFORM_PATTERNS: dict[SocialPlatform, tuple[re.Pattern[str], ...]] = {
    SocialPlatform.INSTAGRAM: (
        re.compile(r"instagram\.com/([^/?]+)", re.I),
        re.compile(r"instagr\.am/([^/?]+)", re.I),
    ),
    SocialPlatform.TIKTOK: (re.compile(r"tiktok\.com/@?([^/?]+)", re.I),),
    SocialPlatform.TWITTER: (
        re.compile(r"twitter\.com/([^/?]+)", re.I),
        re.compile(r"(?<![a-z0-9])x\.com/([^/?]+)", re.I),
    ),
    SocialPlatform.YOUTUBE: (
        re.compile(r"youtube\.com/(channel/|c/|user/|@)?([^/?]+)", re.I),
        re.compile(r"youtu\.be/([^/?]+)", re.I),
    ),
    SocialPlatform.LINKEDIN: (re.compile(r"linkedin\.com/(in|company)/([^/?]+)", re.I),),
}

_SOCIAL_HOSTS = re.compile(
    r"instagram\.com|tiktok\.com|twitter\.com|(?<![a-z0-9])x\.com|youtube\.com|linkedin\.com",
    re.I,
)


def detect_platform(url: str) -> SocialPlatform | None:
    """Return the platform *url* belongs to, or ``None``."""
    for platform, patterns in PLATFORM_PATTERNS.items():
        if any(p.search(url) for p in patterns):
            return platform
    return None


def extract_handle(url: str, platform: SocialPlatform) -> str | None:
    """Return the handle in *url* (the last captured group), or ``None``."""
    for pattern in PLATFORM_PATTERNS[platform]:
        match = pattern.search(url)
        if match:
            return match.group(match.lastindex or 0) or None
    return None


def parse_profile_url(url: str) -> tuple[SocialPlatform, str]:
    """Return ``(platform, handle)`` for *url*.

    Raises
    ------
    UnsupportedPlatformError
        If the URL does not belong to a supported platform.
    HandleExtractionError
        If no handle could be extracted.
    """
    platform = detect_platform(url)
    if platform is None:
        supported = ", ".join(p.value for p in SocialPlatform)
        raise UnsupportedPlatformError(
            f"Unsupported platform. Supported: {supported}", {"url": url}
        )
    handle = extract_handle(url, platform)
    if not handle:
        raise HandleExtractionError("Could not extract handle from URL", {"url": url})
    return platform, handle


def is_social_url(url: str) -> bool:
    return bool(_SOCIAL_HOSTS.search(url))


def filter_article_urls(urls: Iterable[object] | None, limit: int = 3) -> list[str]:
    """Keep at most *limit* article URLs, dropping social-profile links.

    The limit applies to the first *limit* inputs, before filtering.
    """
    if not urls:
        return []
    kept: list[str] = []
    for url in list(urls)[:limit]:
        if isinstance(url, str) and not is_social_url(url):
            kept.append(url)
    return kept
