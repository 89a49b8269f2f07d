"""
User-Agent parsing for browser, OS and device class.

User-Agents are messy (Chrome claims to be Mozilla, Safari and Chrome at
once), so patterns are checked most-specific first: Edge and Opera before
Chrome, Chrome before Safari, Android before Linux.

Only the browser family, the OS family and a binary mobile/desktop class are
extracted. Versions and device models are not kept.
"""

import re
from dataclasses import dataclass
from enum import Enum

UNKNOWN = "Unknown"


class DeviceType(str, Enum):
    """Device class. Classification is binary."""
    DESKTOP = "desktop"
    MOBILE = "mobile"


@dataclass(frozen=True)
class UserAgentInfo:
    """
    Parsed user-agent information.

    Attributes:
        browser: Browser family name (Chrome, Firefox, Safari, etc.)
        os: Operating system family (Windows, macOS, iOS, Android, Linux)
        device: DeviceType.MOBILE or DeviceType.DESKTOP
    """
    browser: str = UNKNOWN
    os: str = UNKNOWN
    device: DeviceType = DeviceType.DESKTOP

    @property
    def is_mobile(self) -> bool:
        return self.device is DeviceType.MOBILE


# =============================================================================
# BROWSER DETECTION PATTERNS
# =============================================================================
# Order matters! Chromium derivatives carry "Chrome/" too.

BROWSER_PATTERNS = [
    (r"Edg(?:e|A|iOS)?/", "Edge"),
    (r"OPR/|Opera", "Opera"),
    (r"Vivaldi/", "Vivaldi"),
    (r"SamsungBrowser/", "Samsung Internet"),
    (r"YaBrowser/", "Yandex"),
    (r"DuckDuckGo/", "DuckDuckGo"),
    (r"Firefox/|FxiOS/", "Firefox"),
    (r"CriOS/|Chrome/", "Chrome"),
    (r"Chromium/", "Chromium"),
    (r"Version/\d+.*Safari|Safari/", "Safari"),
    (r"MSIE |Trident.*rv:", "Internet Explorer"),
    (r"Instagram", "Instagram"),
    (r"FBAN|FBAV", "Facebook"),
]

# =============================================================================
# OS DETECTION PATTERNS
# =============================================================================

OS_PATTERNS = [
    (r"iPhone|iPod|iPad", "iOS"),
    (r"Macintosh|Mac OS X", "macOS"),
    (r"Android", "Android"),
    (r"Windows Phone", "Windows Phone"),
    (r"Windows", "Windows"),
    (r"CrOS", "Chrome OS"),
    (r"Linux|X11", "Linux"),
]

# Tablets fold into mobile; there is no tablet class.
MOBILE_INDICATORS = re.compile(
    r"Mobile|iPhone|iPod|iPad|Android|BlackBerry|IEMobile|Opera Mini"
    r"|Windows Phone|Kindle|Silk|webOS",
    re.IGNORECASE,
)


def _match_first(patterns: list[tuple[str, str]], ua: str) -> str:
    for pattern, name in patterns:
        if re.search(pattern, ua, re.IGNORECASE):
            return name
    return UNKNOWN


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Parse a user-agent string into browser, OS and device class.

    Examples:
        >>> parse_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1")
        UserAgentInfo(browser='Safari', os='iOS', device=<DeviceType.MOBILE: 'mobile'>)
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    device = DeviceType.MOBILE if MOBILE_INDICATORS.search(user_agent) else DeviceType.DESKTOP

    return UserAgentInfo(
        browser=_match_first(BROWSER_PATTERNS, user_agent),
        os=_match_first(OS_PATTERNS, user_agent),
        device=device,
    )
