"""
최근 연 디렉터리 목록 (MRU).

규칙:
- 최신 항목이 index 0
- 중복 없음: 이미 있으면 제거 후 맨 앞에 다시 삽입
- 용량 초과 시 가장 오래된(마지막) 항목 제거
"""

import os

from src.domain.constants import RECENTLY_OPENED_CAPACITY


def normalize_recent_path(path: str | os.PathLike[str]) -> str:
    """비교용 경로 정규화 (절대 경로 + 중복 구분자 제거)."""
    return os.path.abspath(os.fspath(path))


class RecencyList:
    """
    용량 제한이 있는 최근 사용 목록.

    내부 리스트는 Configuration.recently_opened와 같은 객체를 공유하므로
    변경이 곧바로 설정에 반영된다. 저장은 호출자(ConfigStore) 책임.
    """

    def __init__(
        self,
        items: list[str] | None = None,
        capacity: int = RECENTLY_OPENED_CAPACITY,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive: {capacity}")
        self.capacity = capacity
        self._items: list[str] = items if items is not None else []
        del self._items[capacity:]

    def record_access(self, path: str | os.PathLike[str]) -> str:
        """
        경로를 맨 앞으로 기록.

        Args:
            path: 서빙한 디렉터리 경로

        Returns:
            정규화된 경로
        """
        normalized = normalize_recent_path(path)
        self._items[:] = [
            p for p in self._items if normalize_recent_path(p) != normalized
        ]
        self._items.insert(0, normalized)
        del self._items[self.capacity:]
        return normalized

    def list(self) -> tuple[str, ...]:
        """읽기 전용 목록 (최신순)."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> str:
        return self._items[index]
