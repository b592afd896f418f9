"""
Data schemas for the file server.

규칙:
- configs.json 키는 기존 포맷과 동일하게 유지 ("recently-opened" 등)
- 리스팅 payload 필드명은 템플릿과 동일: ip, port, directory, subdirectories
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote

from src.domain.constants import (
    DEFAULT_PORT,
    KEY_ALERT_COUNT,
    KEY_CURRENT_VERSION,
    KEY_LAST_ALERTED_VERSION,
    KEY_PORT,
    KEY_RECENTLY_OPENED,
    KEY_THEME,
    KEY_UPDATE_STATUS,
)

# =============================================================================
# Theme
# =============================================================================

class Theme(str, Enum):
    """UI 테마 설정."""
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


# =============================================================================
# Listing Schemas
# =============================================================================

def display_text(value: str) -> str:
    """
    파일시스템 문자열 → 화면 표시용 문자열.

    POSIX에서 UTF-8이 아닌 이름은 surrogate escape로 들어오므로
    원래 바이트로 되돌린 뒤 U+FFFD로 치환해 디코딩.
    """
    return os.fsencode(value).decode("utf-8", errors="replace")


@dataclass(frozen=True)
class DirectoryEntry:
    """
    디렉터리 리스팅 항목.

    name: 파일시스템 엔트리 이름 그대로
    path: served root 기준 상대 경로 ("/" 구분)
    """
    name: str
    path: str

    @property
    def href(self) -> str:
        """링크 URL 경로. 원래 바이트를 percent-encoding."""
        return "/" + quote(os.fsencode(self.path))

    def to_dict(self) -> dict[str, str]:
        return {
            "name": display_text(self.name),
            "path": display_text(self.path),
            "href": self.href,
        }


@dataclass
class ListingPayload:
    """리스팅 템플릿에 넘기는 데이터."""
    ip: str | None
    port: int
    directory: str  # 절대 경로
    subdirectories: list[DirectoryEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """템플릿/JSON 직렬화용."""
        return {
            "ip": self.ip,
            "port": self.port,
            "directory": display_text(self.directory),
            "subdirectories": [e.to_dict() for e in self.subdirectories],
        }


@dataclass(frozen=True)
class ServingInfo:
    """serve 시작 결과 (UI 알림 payload)."""
    port: int
    path: str
    ip: str | None

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.port}/"

    @property
    def remote_url(self) -> str | None:
        """원격 접속 URL. IP를 못 찾으면 None (링크 생략)."""
        if self.ip is None:
            return None
        return f"http://{self.ip}:{self.port}/"

    def to_dict(self) -> dict[str, Any]:
        return {"port": self.port, "path": self.path, "ip": self.ip}


# =============================================================================
# Configuration Schemas (configs.json)
# =============================================================================

@dataclass
class UpdateStatus:
    """업데이트 알림 상태."""
    current_version: str = "1.0.0"
    last_alerted_version: str = "1.0.0"
    alert_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UpdateStatus":
        return cls(
            current_version=str(data.get(KEY_CURRENT_VERSION, "1.0.0")),
            last_alerted_version=str(data.get(KEY_LAST_ALERTED_VERSION, "1.0.0")),
            alert_count=int(data.get(KEY_ALERT_COUNT, 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            KEY_CURRENT_VERSION: self.current_version,
            KEY_LAST_ALERTED_VERSION: self.last_alerted_version,
            KEY_ALERT_COUNT: self.alert_count,
        }


@dataclass
class Configuration:
    """
    사용자 설정 (configs.json).

    메모리에 로드된 뒤 in-place로 변경되고, 변경마다 동기적으로 저장됨.
    """
    port: int = DEFAULT_PORT
    theme: Theme = Theme.SYSTEM
    recently_opened: list[str] = field(default_factory=list)
    update_status: UpdateStatus = field(default_factory=UpdateStatus)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Configuration":
        """
        configs.json dict → Configuration.

        Raises:
            ValueError: port/theme 값이 잘못된 경우
        """
        recent = data.get(KEY_RECENTLY_OPENED) or []
        return cls(
            port=int(data.get(KEY_PORT, DEFAULT_PORT)),
            theme=Theme(str(data.get(KEY_THEME, Theme.SYSTEM.value)).lower()),
            recently_opened=[str(p) for p in recent],
            update_status=UpdateStatus.from_dict(data.get(KEY_UPDATE_STATUS) or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용."""
        return {
            KEY_PORT: self.port,
            KEY_THEME: self.theme.value,
            KEY_RECENTLY_OPENED: list(self.recently_opened),
            KEY_UPDATE_STATUS: self.update_status.to_dict(),
        }
