"""
업데이트 확인 (서빙과 독립된 협력자).

원격 status.json의 updates.version과 configs.json의 current-version을 비교해
알림 여부를 결정한다. 같은 버전에 대해 최대 max_alerts번까지만 알린다.

네트워크/파싱 실패는 조용히 무시 (debug 로그만).
"""

import logging
from typing import Any

import httpx

from src.core.config_store import ConfigStore
from src.domain.constants import DEFAULT_STATUS_URL, MAX_UPDATE_ALERTS
from src.domain.errors import ServeError

logger = logging.getLogger(__name__)


class UpdateChecker:
    """원격 버전 조회 + 알림 횟수 관리."""

    def __init__(
        self,
        store: ConfigStore,
        url: str = DEFAULT_STATUS_URL,
        max_alerts: int = MAX_UPDATE_ALERTS,
        timeout: float = 5.0,
    ) -> None:
        self.store = store
        self.url = url
        self.max_alerts = max_alerts
        self.timeout = timeout

    @classmethod
    def from_settings(cls, store: ConfigStore, settings: dict | None = None) -> "UpdateChecker":
        updates = (settings or {}).get("updates", {})
        return cls(
            store,
            url=updates.get("status_url", DEFAULT_STATUS_URL),
            max_alerts=updates.get("max_alerts", MAX_UPDATE_ALERTS),
            timeout=float(updates.get("timeout", 5.0)),
        )

    def fetch_latest_version(self) -> str | None:
        """원격 최신 버전 조회. 실패 시 None."""
        try:
            response = httpx.get(self.url, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
            data: dict[str, Any] = response.json()
            return str(data["updates"]["version"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Update status unavailable from {self.url}: {e}")
            return None

    def evaluate(self, latest: str) -> bool:
        """
        알림 여부 결정 + 상태 저장.

        - 현재 버전과 같음: 알림 없음
        - 처음 보는 새 버전: last_alerted_version 갱신 + count 리셋
        - 버전당 max_alerts번까지만 알림

        Returns:
            True면 UI에 "업데이트 있음" 알림
        """
        status = self.store.config.update_status
        if latest == status.current_version:
            return False

        if status.last_alerted_version != latest:
            status.last_alerted_version = latest
            status.alert_count = 0

        if status.alert_count >= self.max_alerts:
            return False

        status.alert_count += 1
        self._save()
        return True

    def check(self) -> str | None:
        """
        조회 + 판단.

        Returns:
            알림해야 할 새 버전, 없으면 None
        """
        latest = self.fetch_latest_version()
        if latest is None:
            return None
        return latest if self.evaluate(latest) else None

    def _save(self) -> None:
        try:
            self.store.save()
        except ServeError as e:
            logger.warning(f"Failed to persist update status: {e}")
