"""
test_serving_session.py - ServingSession 통합 테스트 (실제 소켓 바인드)

시나리오:
1. start → HTTP 요청 → stop
2. serving 중 root 교체 (같은 포트로 재바인드)
3. 포트 충돌 → BIND_FAILURE, 리스너 없음
4. 포트 변경 → 검증 실패 시 무변경, 성공 시 재시작
5. 최근 목록 기록/재오픈
"""

import json
import os
import socket
from pathlib import Path

import httpx
import pytest

from src.core.session import ServingSession, bind_socket, validate_root
from src.domain.errors import ErrorCodes, ServeError


def _get(port: int, path: str = "/") -> httpx.Response:
    return httpx.get(f"http://127.0.0.1:{port}{path}", timeout=5.0)


def _other_free_port(exclude: int) -> int:
    while True:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        if port != exclude:
            return port


# =============================================================================
# Start / Stop
# =============================================================================


class TestStartStop:
    """리스너 수명 테스트."""

    def test_start_serves_directory(self, session, served_tree, observer, free_port):
        info = session.start(served_tree)

        assert session.is_serving
        assert info.port == free_port
        assert info.path == str(served_tree)
        assert observer.started == [info]

        response = _get(free_port, "/a.txt")
        assert response.status_code == 200
        assert response.content == b"hello"

    def test_listing_over_socket(self, session, served_tree, free_port):
        session.start(served_tree)

        response = _get(free_port, "/")

        assert response.status_code == 200
        assert '<a href="/a.txt">a.txt</a>' in response.text
        assert '<a href="/b">b</a>' in response.text

    def test_traversal_forbidden_over_socket(self, session, served_tree, free_port):
        session.start(served_tree)

        response = _get(free_port, "/%2e%2e/%2e%2e/etc/passwd")

        assert response.status_code == 403
        assert session.is_serving

    def test_stop_releases_port(self, session, served_tree, free_port):
        """stop 후 같은 포트 즉시 재바인드 가능."""
        session.start(served_tree)
        session.stop()

        assert not session.is_serving
        assert session.root is None
        sock = bind_socket("127.0.0.1", free_port)
        sock.close()

    def test_stop_is_idempotent(self, session, served_tree, observer):
        """두 번째 stop은 알림 없음."""
        session.start(served_tree)

        session.stop()
        session.stop()

        assert observer.stopped == 1

    def test_stop_without_start_is_noop(self, session, observer):
        session.stop()

        assert not session.is_serving
        assert observer.stopped == 0

    def test_context_manager_stops(self, config_store, test_settings, observer, served_tree, free_port, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        config_store.config.port = free_port

        with ServingSession(config_store, test_settings, observer) as session:
            session.start(served_tree)
            assert session.is_serving

        assert not session.is_serving
        assert observer.stopped == 1

    def test_port_env_var_takes_precedence(self, session, served_tree, free_port, monkeypatch):
        session.store.config.port = 1
        monkeypatch.setenv("PORT", str(free_port))

        info = session.start(served_tree)

        assert info.port == free_port


# =============================================================================
# Restart (root 교체)
# =============================================================================


class TestRestart:
    """serving 중 새 root 시작."""

    def test_switch_root_on_same_port(self, session, served_tree, nested_tree, observer, free_port):
        """이전 root는 더 이상 노출되지 않음."""
        session.start(served_tree)
        info = session.start(nested_tree)

        assert info.port == free_port
        assert session.root == nested_tree
        assert len(observer.started) == 2
        # 내부 재시작은 stopped 알림 없음
        assert observer.stopped == 0

        response = _get(free_port, "/")
        assert '<a href="/docs">docs</a>' in response.text
        assert "a.txt" not in response.text
        assert _get(free_port, "/a.txt").status_code == 500

    def test_invalid_new_root_keeps_current(self, session, served_tree, tmp_path, free_port):
        """검증 실패 시 기존 리스너 유지."""
        session.start(served_tree)

        with pytest.raises(ServeError) as exc_info:
            session.start(tmp_path / "missing")

        assert exc_info.value.code == ErrorCodes.NOT_FOUND
        assert session.is_serving
        assert session.root == served_tree
        assert _get(free_port, "/a.txt").status_code == 200


# =============================================================================
# Validation / Bind Errors
# =============================================================================


class TestErrors:
    """세션 에러 테스트."""

    def test_missing_root(self, session, tmp_path, observer):
        with pytest.raises(ServeError) as exc_info:
            session.start(tmp_path / "missing")

        assert exc_info.value.code == ErrorCodes.NOT_FOUND
        assert not session.is_serving
        assert len(observer.errors) == 1

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="mkfifo not supported")
    def test_fifo_root_is_invalid_target(self, tmp_path):
        fifo = tmp_path / "pipe"
        os.mkfifo(fifo)

        with pytest.raises(ServeError) as exc_info:
            validate_root(fifo)

        assert exc_info.value.code == ErrorCodes.INVALID_TARGET

    def test_file_root_is_valid(self, served_tree):
        assert validate_root(served_tree / "a.txt") == served_tree / "a.txt"

    def test_port_in_use(self, session, served_tree, observer, free_port):
        """다른 리스너가 점유한 포트 → BIND_FAILURE."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", free_port))
        blocker.listen(1)
        try:
            with pytest.raises(ServeError) as exc_info:
                session.start(served_tree)
        finally:
            blocker.close()

        assert exc_info.value.code == ErrorCodes.BIND_FAILURE
        assert not session.is_serving
        assert observer.started == []
        assert observer.errors[0][1].startswith("There was an error starting the server")

    def test_bind_failure_after_teardown_reports_stopped(self, session, served_tree, observer, free_port):
        """재바인드 실패 → 세션 중지 상태 + stopped 알림."""
        session.start(served_tree)
        other = _other_free_port(free_port)
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", other))
        blocker.listen(1)
        try:
            with pytest.raises(ServeError):
                session.set_port(other)
        finally:
            blocker.close()

        assert not session.is_serving
        assert session.root is None
        assert observer.stopped == 1


# =============================================================================
# Port Change
# =============================================================================


class TestSetPort:
    """포트 변경 테스트."""

    @pytest.mark.parametrize("value", ["80a0", "", "-1", "70000"])
    def test_invalid_port_changes_nothing(self, session, config_path, free_port, value):
        on_disk = config_path.read_text(encoding="utf-8")

        with pytest.raises(ServeError) as exc_info:
            session.set_port(value)

        assert exc_info.value.code == ErrorCodes.INVALID_PORT
        assert session.store.config.port == free_port
        assert config_path.read_text(encoding="utf-8") == on_disk

    def test_set_port_when_idle_only_persists(self, session, config_path):
        result = session.set_port("8081")

        assert result is None
        assert not session.is_serving
        assert json.loads(config_path.read_text(encoding="utf-8"))["port"] == 8081

    def test_set_port_while_serving_restarts(self, session, served_tree, free_port):
        session.start(served_tree)
        new_port = _other_free_port(free_port)

        info = session.set_port(str(new_port))

        assert info is not None
        assert info.port == new_port
        assert session.root == served_tree
        assert _get(new_port, "/a.txt").content == b"hello"

    def test_prompt_cancel_is_noop(self, session, observer, free_port):
        observer.port_answer = None

        assert session.request_port_change() is None
        assert observer.prompted == [free_port]
        assert session.store.config.port == free_port

    def test_prompt_answer_applies(self, session, observer):
        observer.port_answer = "8082"

        session.request_port_change()

        assert session.store.config.port == 8082


# =============================================================================
# Recently Opened
# =============================================================================


class TestRecent:
    """최근 목록 연동 테스트."""

    def test_start_records_access(self, session, served_tree, config_path):
        session.start(served_tree)

        data = json.loads(config_path.read_text(encoding="utf-8"))
        assert data["recently-opened"][0] == str(served_tree)

    def test_open_recent_restarts_latest(self, session, served_tree, nested_tree):
        session.start(served_tree)
        session.start(nested_tree)
        session.stop()

        info = session.open_recent(1)

        assert info.path == str(served_tree)
        assert session.store.recent()[0] == str(served_tree)

    def test_open_recent_out_of_range(self, session, observer):
        with pytest.raises(ServeError) as exc_info:
            session.open_recent(0)

        assert exc_info.value.code == ErrorCodes.RECENT_NOT_FOUND
        assert len(observer.errors) == 1

    def test_repeated_start_does_not_duplicate(self, session, served_tree):
        session.start(served_tree)
        session.start(served_tree)

        assert session.store.recent().count(str(served_tree)) == 1
