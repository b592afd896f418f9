"""
사용자 설정 저장소: configs.json

규칙:
- 최초 실행 시 번들 템플릿(assets/configs.json)으로 생성
- 메모리에 로드 후 in-place 변경, 변경마다 동기 저장
- 원자적 쓰기: temp → rename + fsync (중간 상태 없음)
- 로드 실패 → 번들 기본값으로 대체 (치명적이지 않음)
- 저장 실패 → CONFIG_IO_ERROR, 메모리 상태가 계속 기준
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from src.core.recency import RecencyList
from src.domain.constants import (
    CONFIG_FILENAME,
    CONFIG_LOCK_SUFFIX,
    CONFIG_TEMPLATE_PATH,
    DATA_DIR_ENV_VAR,
    DEFAULT_DATA_DIR,
    KEY_RECENTLY_OPENED,
    MAX_PORT,
    MIN_PORT,
    RECENTLY_OPENED_CAPACITY,
)
from src.domain.errors import ErrorCodes, ServeError
from src.domain.schemas import Configuration, Theme

logger = logging.getLogger(__name__)

PORT_PATTERN = re.compile(r"^\d+$")

# =============================================================================
# Atomic Write
# =============================================================================


def _fsync_dir(dir_path: Path) -> None:
    """
    디렉토리 fsync (가능한 환경에서).

    rename 후 디렉토리 엔트리까지 내구성을 강화하려면 필요.
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        # O_DIRECTORY 미지원 (Windows), 권한 문제 등
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_json(path: Path, data: dict) -> None:
    """
    원자적 JSON 쓰기.

    동작:
    - temp 파일에 쓰고 fsync 후 rename (기존 파일은 rename 전까지 그대로)
    - fsync 실패 시 경고 남기고 계속 진행
    - 실패 시 temp 파일 삭제 후 예외 재발생

    Args:
        path: 저장할 파일 경로
        data: JSON 직렬화할 데이터
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)

        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


# =============================================================================
# Validation
# =============================================================================


def parse_port(value: str | int) -> int:
    """
    포트 입력 검증.

    숫자만 허용 ("80a0", "", "-1" 거부), 범위 1-65535.

    Raises:
        ServeError: INVALID_PORT
    """
    text = str(value).strip()
    if not PORT_PATTERN.match(text):
        raise ServeError(
            ErrorCodes.INVALID_PORT,
            value=str(value),
            reason="port must contain digits only",
        )

    port = int(text)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ServeError(
            ErrorCodes.INVALID_PORT,
            value=str(value),
            reason=f"port must be between {MIN_PORT} and {MAX_PORT}",
        )
    return port


def parse_theme(mode: str) -> Theme:
    """
    테마 입력 검증 (대소문자 무시).

    Raises:
        ServeError: INVALID_THEME
    """
    try:
        return Theme(mode.strip().lower())
    except ValueError:
        raise ServeError(ErrorCodes.INVALID_THEME, mode=mode) from None


def resolve_data_dir(settings: dict | None = None) -> Path:
    """설정 디렉터리: 환경변수 → default.yaml config.data_dir → ~/.fileserver."""
    env_dir = os.environ.get(DATA_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser()
    configured = (settings or {}).get("config", {}).get("data_dir", DEFAULT_DATA_DIR)
    return Path(configured).expanduser()


# =============================================================================
# Config Store
# =============================================================================


class ConfigStore:
    """
    configs.json 로드/저장.

    Usage:
        store = ConfigStore(data_dir / "configs.json")
        store.record_access("/home/me/share")  # 메모리 갱신 + 동기 저장
    """

    LOCK_TIMEOUT = 10  # seconds

    def __init__(
        self,
        path: Path,
        template_path: Path = CONFIG_TEMPLATE_PATH,
        recency_capacity: int = RECENTLY_OPENED_CAPACITY,
    ) -> None:
        self.path = Path(path)
        self.template_path = Path(template_path)
        self.load_error: ServeError | None = None
        self.config = self.load()
        self.recency = RecencyList(self.config.recently_opened, recency_capacity)

    @classmethod
    def from_settings(cls, settings: dict | None = None) -> "ConfigStore":
        """default.yaml 설정 기반 생성."""
        settings = settings or {}
        capacity = settings.get("recency", {}).get(
            "capacity", RECENTLY_OPENED_CAPACITY
        )
        return cls(
            resolve_data_dir(settings) / CONFIG_FILENAME,
            recency_capacity=capacity,
        )

    # =========================================================================
    # Load / Save
    # =========================================================================

    def _read_template(self) -> dict[str, Any]:
        """번들 기본 설정 읽기 (실패 시 빈 dict → dataclass 기본값)."""
        try:
            data: dict[str, Any] = json.loads(
                self.template_path.read_text(encoding="utf-8")
            )
            return data
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Bundled config template unreadable {self.template_path}: {e}")
            return {}

    def load(self) -> Configuration:
        """
        configs.json 로드.

        - 파일 없음: 템플릿으로 생성 후 로드
        - 파싱/읽기 실패: 템플릿 기본값 사용, load_error 기록

        Returns:
            Configuration
        """
        self.load_error = None

        if not self.path.exists():
            template = self._read_template()
            try:
                with self._lock():
                    atomic_write_json(self.path, template)
                logger.info(f"Created {self.path} from bundled defaults")
            except (OSError, ServeError) as e:
                self.load_error = ServeError(
                    ErrorCodes.CONFIG_IO_ERROR,
                    path=str(self.path),
                    error=f"There was an error creating {CONFIG_FILENAME}: {e}",
                )
                logger.warning(str(self.load_error))
                return Configuration.from_dict(template)

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("configuration root must be an object")
            data.setdefault(KEY_RECENTLY_OPENED, [])
            return Configuration.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            # JSONDecodeError는 ValueError 하위
            self.load_error = ServeError(
                ErrorCodes.CONFIG_IO_ERROR,
                path=str(self.path),
                error=f"There was an error opening {CONFIG_FILENAME}: {e}",
            )
            logger.warning(f"{self.load_error}; falling back to bundled defaults")
            return Configuration.from_dict(self._read_template())

    def _lock(self) -> FileLock:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(
            str(self.path) + CONFIG_LOCK_SUFFIX, timeout=self.LOCK_TIMEOUT
        )

    def save(self) -> None:
        """
        현재 설정을 동기 저장.

        Raises:
            ServeError: CONFIG_IO_ERROR
        """
        try:
            with self._lock():
                atomic_write_json(self.path, self.config.to_dict())
        except Timeout as e:
            raise ServeError(
                ErrorCodes.CONFIG_IO_ERROR,
                path=str(self.path),
                error=f"Timed out waiting for config lock after {self.LOCK_TIMEOUT}s",
            ) from e
        except OSError as e:
            raise ServeError(
                ErrorCodes.CONFIG_IO_ERROR,
                path=str(self.path),
                error=f"There was an error saving configurations to {CONFIG_FILENAME}: {e}",
            ) from e

    # =========================================================================
    # Mutations (메모리 변경 + 저장)
    # =========================================================================

    def record_access(self, path: str | os.PathLike[str]) -> str:
        """최근 목록 맨 앞에 기록 후 저장. 저장 실패 시 메모리는 갱신된 상태로 유지."""
        normalized = self.recency.record_access(path)
        self.save()
        return normalized

    def set_port(self, value: str | int) -> int:
        """포트 검증 후 저장. 검증 실패 시 아무것도 변경하지 않음."""
        port = parse_port(value)
        self.config.port = port
        self.save()
        return port

    def set_theme(self, mode: str) -> Theme:
        """테마 검증 후 저장 (값이 바뀐 경우에만 저장)."""
        theme = parse_theme(mode)
        if self.config.theme == theme:
            return theme
        self.config.theme = theme
        self.save()
        return theme

    def recent(self) -> tuple[str, ...]:
        return self.recency.list()
