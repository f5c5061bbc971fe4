from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

# Chrome and Android user agents also say "Safari"; either word disqualifies
_SAFARI_RE = re.compile(r"^((?!chrome|android).)*safari", re.IGNORECASE)
_MOBILE_RE = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)


class HostFamily(str, Enum):
    SAFARI = "safari"
    OTHER = "other"


def is_safari(user_agent: str) -> bool:
    return bool(_SAFARI_RE.match(user_agent or ""))


def is_mobile(user_agent: str) -> bool:
    return bool(_MOBILE_RE.search(user_agent or ""))


def is_ios(user_agent: str) -> bool:
    ua = user_agent or ""
    return "iPhone" in ua or "iPad" in ua


@dataclass(frozen=True)
class HostCapabilities:
    """What the host can do for file delivery. Strategy selection reads only this."""

    has_blob_download: bool
    host_family: HostFamily = HostFamily.OTHER
    has_share: bool = False
    is_touch_host: bool = False
    has_clipboard: bool = True
    is_ios: bool = False

    @property
    def is_safari(self) -> bool:
        return self.host_family is HostFamily.SAFARI

    @classmethod
    def from_user_agent(
        cls,
        user_agent: str,
        has_blob_download: bool = True,
        has_share: bool = False,
        has_clipboard: bool = True,
    ) -> "HostCapabilities":
        """Derive family and touch flags from a user-agent string; feature flags are passed in."""
        return cls(
            has_blob_download=has_blob_download,
            host_family=HostFamily.SAFARI if is_safari(user_agent) else HostFamily.OTHER,
            has_share=has_share,
            is_touch_host=is_mobile(user_agent),
            has_clipboard=has_clipboard,
            is_ios=is_ios(user_agent),
        )


def classify_user_agent(user_agent: str, **features: bool) -> HostCapabilities:
    return HostCapabilities.from_user_agent(user_agent, **features)
