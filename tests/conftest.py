"""
Pytest fixtures for the file server tests.

테스트 구성:
- served tree: tmp_path 기반 디렉터리 (a.txt, b/)
- config store: tmp_path 안의 격리된 configs.json
- session: 127.0.0.1 + 빈 포트로 실제 바인드
"""

import socket
from collections.abc import Generator
from pathlib import Path

import pytest
import yaml

from src.core.config_store import ConfigStore
from src.core.session import ServingSession
from src.domain.schemas import ServingInfo

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


# =============================================================================
# Served Tree Fixtures
# =============================================================================

@pytest.fixture
def served_tree(tmp_path: Path) -> Path:
    """
    기본 시나리오 디렉터리.

    포함:
    - a.txt ("hello")
    - b/ (빈 디렉터리)
    """
    root = tmp_path / "served"
    root.mkdir()
    (root / "a.txt").write_bytes(b"hello")
    (root / "b").mkdir()
    return root


@pytest.fixture
def nested_tree(tmp_path: Path) -> Path:
    """
    중첩 디렉터리.

    docs/
    ├── guide/
    │   └── intro.md
    └── readme.txt
    """
    root = tmp_path / "nested"
    (root / "docs" / "guide").mkdir(parents=True)
    (root / "docs" / "readme.txt").write_text("readme", encoding="utf-8")
    (root / "docs" / "guide" / "intro.md").write_text("# intro", encoding="utf-8")
    return root


# =============================================================================
# Config Fixtures
# =============================================================================

@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """격리된 configs.json 경로 (아직 없음)."""
    return tmp_path / "data" / "configs.json"


@pytest.fixture
def config_store(config_path: Path) -> ConfigStore:
    """번들 템플릿으로 초기화된 ConfigStore."""
    return ConfigStore(config_path)


@pytest.fixture
def test_settings() -> dict:
    """테스트용 설정 (loopback 바인드, 짧은 timeout)."""
    return {
        "server": {
            "host": "127.0.0.1",
            "default_port": 3000,
            "startup_timeout": 5.0,
            "shutdown_timeout": 2.0,
        },
        "logging": {"level": "warning"},
    }


@pytest.fixture
def free_port() -> int:
    """사용 가능한 포트 번호."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# Observer / Session Fixtures
# =============================================================================

class RecordingObserver:
    """SessionObserver 기록용 구현."""

    def __init__(self, port_answer: str | None = None) -> None:
        self.started: list[ServingInfo] = []
        self.stopped = 0
        self.errors: list[tuple[str, str]] = []
        self.port_answer = port_answer
        self.prompted: list[int] = []

    def notify_serving_started(self, info: ServingInfo) -> None:
        self.started.append(info)

    def notify_serving_stopped(self) -> None:
        self.stopped += 1

    def notify_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))

    def prompt_for_port(self, current_port: int) -> str | None:
        self.prompted.append(current_port)
        return self.port_answer


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def session(
    config_store: ConfigStore,
    test_settings: dict,
    observer: RecordingObserver,
    free_port: int,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[ServingSession, None, None]:
    """
    실제 소켓에 바인드하는 ServingSession.

    PORT 환경변수 제거, configs.json port = 빈 포트.
    """
    monkeypatch.delenv("PORT", raising=False)
    config_store.config.port = free_port

    session = ServingSession(config_store, test_settings, observer)
    yield session
    session.stop()
