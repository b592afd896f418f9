"""
Serving Session: 현재 리스너 + served root + serving 상태 관리.

규칙:
- 리스너는 최대 1개: 새 root/포트 바인드 전에 기존 리스너를 동기적으로 종료
- is_serving == (리스너가 바인드되어 있음)
- 바인드 성공 시: served root 갱신 → 최근 목록 기록 → 설정 저장 → UI 알림
- 세션 에러(BIND_FAILURE, INVALID_TARGET 등)는 UI 알림 후 호출자에게 전파, 재시도 없음
- 설정 저장 실패는 치명적이지 않음: 알림만 하고 메모리 상태 유지

리스너 구조:
- 소켓은 직접 바인드 (SO_REUSEADDR) → 바인드 실패를 start()에서 바로 감지
- uvicorn.Server가 별도 스레드의 asyncio 루프에서 해당 소켓으로 서빙
- 종료: should_exit → 스레드 join → 소켓 close (포트 즉시 재사용 가능)
"""

import asyncio
import logging
import os
import socket
import stat
import threading
import time
from pathlib import Path
from typing import Protocol

import uvicorn
from fastapi import FastAPI

from src.core.config_store import ConfigStore, parse_port
from src.core.network import primary_ipv4
from src.domain.constants import DEFAULT_HOST, DEFAULT_PORT, PORT_ENV_VAR
from src.domain.errors import ErrorCodes, ServeError
from src.domain.schemas import ServingInfo

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT = 5.0
DEFAULT_SHUTDOWN_TIMEOUT = 5.0
LISTEN_BACKLOG = 2048

# 에러 코드별 UI 알림 메시지 앞부분
_ERROR_MESSAGES = {
    ErrorCodes.NOT_FOUND: "The selected path does not exist",
    ErrorCodes.NOT_ACCESSIBLE: "Permission denied for the selected path",
    ErrorCodes.INVALID_TARGET: "The selected path is neither a file nor a directory",
    ErrorCodes.BIND_FAILURE: "There was an error starting the server",
    ErrorCodes.INVALID_PORT: "Port numbers may only contain digits",
    ErrorCodes.CONFIG_IO_ERROR: "There was an error saving configurations",
    ErrorCodes.RECENT_NOT_FOUND: "No such recently opened directory",
}


# =============================================================================
# Observer (UI 협력자)
# =============================================================================


class SessionObserver(Protocol):
    """세션 이벤트를 받는 UI 쉘 인터페이스."""

    def notify_serving_started(self, info: ServingInfo) -> None: ...

    def notify_serving_stopped(self) -> None: ...

    def notify_error(self, title: str, message: str) -> None: ...

    def prompt_for_port(self, current_port: int) -> str | None:
        """새 포트 입력. 취소 시 None."""
        ...


class LoggingObserver:
    """UI 없이 로그로만 알리는 기본 observer."""

    def notify_serving_started(self, info: ServingInfo) -> None:
        logger.info(f"Serving {info.path} on port {info.port} (ip={info.ip})")

    def notify_serving_stopped(self) -> None:
        logger.info("Server closed")

    def notify_error(self, title: str, message: str) -> None:
        logger.error(f"{title}: {message}")

    def prompt_for_port(self, current_port: int) -> str | None:
        return None


# =============================================================================
# Validation / Binding
# =============================================================================


def validate_root(root: str | os.PathLike[str]) -> Path:
    """
    serve 대상 검증.

    Returns:
        절대 경로

    Raises:
        ServeError: NOT_FOUND, NOT_ACCESSIBLE, INVALID_TARGET
    """
    path = Path(os.path.abspath(Path(root).expanduser()))

    try:
        st = os.stat(path)
    except FileNotFoundError as e:
        raise ServeError(ErrorCodes.NOT_FOUND, path=str(path)) from e
    except PermissionError as e:
        raise ServeError(ErrorCodes.NOT_ACCESSIBLE, path=str(path)) from e
    except OSError as e:
        raise ServeError(ErrorCodes.INVALID_TARGET, path=str(path), error=str(e)) from e

    if stat.S_ISDIR(st.st_mode):
        if not os.access(path, os.R_OK | os.X_OK):
            raise ServeError(ErrorCodes.NOT_ACCESSIBLE, path=str(path))
    elif stat.S_ISREG(st.st_mode):
        if not os.access(path, os.R_OK):
            raise ServeError(ErrorCodes.NOT_ACCESSIBLE, path=str(path))
    else:
        raise ServeError(ErrorCodes.INVALID_TARGET, path=str(path))

    return path


def bind_socket(host: str, port: int) -> socket.socket:
    """
    리스닝 소켓 생성.

    Raises:
        ServeError: BIND_FAILURE (포트 사용 중, 권한 없음 등)
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if os.name != "nt":
            # Windows의 SO_REUSEADDR는 중복 바인드를 허용하므로 POSIX에서만 설정
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError as e:
        sock.close()
        raise ServeError(
            ErrorCodes.BIND_FAILURE,
            host=host,
            port=port,
            error=str(e),
        ) from e
    return sock


class _Listener:
    """바인드된 소켓 하나를 서빙하는 uvicorn 서버 + 전용 스레드."""

    def __init__(
        self,
        app: FastAPI,
        sock: socket.socket,
        log_level: str,
        shutdown_timeout: float,
    ) -> None:
        self.sock = sock
        self.port: int = sock.getsockname()[1]
        config = uvicorn.Config(
            app,
            log_level=log_level,
            log_config=None,
            lifespan="off",
            timeout_graceful_shutdown=max(1, int(shutdown_timeout)),
        )
        self.server = uvicorn.Server(config)
        self.shutdown_timeout = shutdown_timeout
        self.error: BaseException | None = None
        self.thread = threading.Thread(
            target=self._run,
            name=f"fileserver-listener-{self.port}",
            daemon=True,
        )

    def _run(self) -> None:
        try:
            asyncio.run(self.server.serve(sockets=[self.sock]))
        except (Exception, SystemExit) as e:
            # uvicorn은 startup 실패 시 sys.exit(1) 호출
            self.error = e
            logger.error(f"Listener on port {self.port} terminated: {e!r}")

    def start(self, timeout: float) -> None:
        """
        서버 스레드 시작 후 started 될 때까지 대기.

        Raises:
            ServeError: BIND_FAILURE (startup 실패/timeout)
        """
        self.thread.start()
        deadline = time.monotonic() + timeout
        while not self.server.started:
            if not self.thread.is_alive():
                self.sock.close()
                raise ServeError(
                    ErrorCodes.BIND_FAILURE,
                    port=self.port,
                    error=f"listener exited during startup: {self.error!r}",
                )
            if time.monotonic() > deadline:
                self.stop()
                raise ServeError(
                    ErrorCodes.BIND_FAILURE,
                    port=self.port,
                    error=f"listener did not start within {timeout}s",
                )
            time.sleep(0.01)

    def stop(self) -> None:
        """서버 종료 + 스레드 join + 소켓 close (동기)."""
        self.server.should_exit = True
        if self.thread.is_alive():
            self.thread.join(self.shutdown_timeout)
        if self.thread.is_alive():
            self.server.force_exit = True
            self.thread.join(self.shutdown_timeout)
            if self.thread.is_alive():
                logger.warning(
                    f"Listener thread on port {self.port} did not exit "
                    f"within {2 * self.shutdown_timeout}s"
                )
        self.sock.close()


# =============================================================================
# Serving Session
# =============================================================================


class ServingSession:
    """
    디렉터리 서빙 세션.

    Usage:
        store = ConfigStore.from_settings(settings)
        with ServingSession(store, settings, observer) as session:
            info = session.start("/home/me/share")
            ...
            session.set_port("8080")  # serving 중이면 같은 root로 재시작
    """

    def __init__(
        self,
        store: ConfigStore,
        settings: dict | None = None,
        observer: SessionObserver | None = None,
    ) -> None:
        settings = settings or {}
        server_settings = settings.get("server", {})

        self.store = store
        self.observer: SessionObserver = observer or LoggingObserver()
        self.host: str = server_settings.get("host", DEFAULT_HOST)
        self.default_port: int = server_settings.get("default_port", DEFAULT_PORT)
        self.startup_timeout = float(
            server_settings.get("startup_timeout", DEFAULT_STARTUP_TIMEOUT)
        )
        self.shutdown_timeout = float(
            server_settings.get("shutdown_timeout", DEFAULT_SHUTDOWN_TIMEOUT)
        )
        self.log_level = str(settings.get("logging", {}).get("level", "info")).lower()

        self._lock = threading.RLock()
        self._listener: _Listener | None = None
        self._root: Path | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_serving(self) -> bool:
        return self._listener is not None

    @property
    def root(self) -> Path | None:
        """현재 served root (serving 중이 아니면 None)."""
        return self._root

    @property
    def port(self) -> int | None:
        """현재 바인드된 포트 (serving 중이 아니면 None)."""
        return self._listener.port if self._listener else None

    @property
    def info(self) -> ServingInfo | None:
        if self._listener is None or self._root is None:
            return None
        return ServingInfo(port=self._listener.port, path=str(self._root), ip=primary_ipv4())

    def resolve_port(self) -> int:
        """
        리스닝 포트: 환경변수 PORT → configs.json → default.yaml.

        Raises:
            ServeError: INVALID_PORT
        """
        env_port = os.environ.get(PORT_ENV_VAR)
        if env_port:
            return parse_port(env_port)
        if self.store.config.port:
            return parse_port(self.store.config.port)
        return parse_port(self.default_port)

    # =========================================================================
    # Start / Stop
    # =========================================================================

    def start(self, root: str | os.PathLike[str]) -> ServingInfo:
        """
        root 서빙 시작 (serving 중이면 기존 리스너를 닫고 재바인드).

        Returns:
            ServingInfo (port, path, ip)

        Raises:
            ServeError: NOT_FOUND, NOT_ACCESSIBLE, INVALID_TARGET,
                        INVALID_PORT, BIND_FAILURE
        """
        with self._lock:
            try:
                root_path = validate_root(root)
                port = self.resolve_port()
            except ServeError as e:
                self._report(e)
                raise

            was_serving = self._close_listener()

            try:
                listener = self._bind(root_path, port)
            except ServeError as e:
                if was_serving:
                    self._root = None
                    self.observer.notify_serving_stopped()
                self._report(e)
                raise

            self._listener = listener
            self._root = root_path
            logger.info(f"Serving {root_path} on {self.host}:{listener.port}")

            try:
                self.store.record_access(root_path)
            except ServeError as e:
                self._report(e)

            info = ServingInfo(port=listener.port, path=str(root_path), ip=primary_ipv4())
            self.observer.notify_serving_started(info)
            return info

    def stop(self) -> None:
        """서빙 중지. serving 중이 아니면 no-op."""
        with self._lock:
            if not self._close_listener():
                return
            self._root = None
            logger.info("Server closed")
            self.observer.notify_serving_stopped()

    def _bind(self, root: Path, port: int) -> _Listener:
        # app 계층 -> core 순환 import 방지
        from src.app.main import create_app

        sock = bind_socket(self.host, port)
        app = create_app(root, port, self.observer)
        listener = _Listener(app, sock, self.log_level, self.shutdown_timeout)
        listener.start(self.startup_timeout)
        return listener

    def _close_listener(self) -> bool:
        """기존 리스너 종료. 닫은 리스너가 있었으면 True."""
        if self._listener is None:
            return False
        listener, self._listener = self._listener, None
        listener.stop()
        return True

    # =========================================================================
    # Port / Recent
    # =========================================================================

    def set_port(self, value: str | int) -> ServingInfo | None:
        """
        선호 포트 변경.

        검증 실패 시 아무 상태도 바꾸지 않는다. serving 중이면 같은 root로 재시작.

        Returns:
            재시작한 경우 ServingInfo, 아니면 None

        Raises:
            ServeError: INVALID_PORT, (재시작 시) start()의 에러
        """
        with self._lock:
            try:
                port = parse_port(value)
            except ServeError as e:
                self._report(e)
                raise

            try:
                self.store.set_port(port)
            except ServeError as e:
                self._report(e)
            logger.info(f"Successfully changed port to {port}")

            if os.environ.get(PORT_ENV_VAR):
                logger.warning(
                    f"{PORT_ENV_VAR} environment variable overrides the configured port"
                )

            if self._root is None:
                return None
            return self.start(self._root)

    def request_port_change(self) -> ServingInfo | None:
        """UI에 새 포트를 물어보고 적용. 취소 시 None."""
        current = self.port or self.resolve_port()
        value = self.observer.prompt_for_port(current)
        if value is None:
            return None
        return self.set_port(value)

    def open_recent(self, index: int = 0) -> ServingInfo:
        """
        최근 목록의 index번째 디렉터리 서빙.

        Raises:
            ServeError: RECENT_NOT_FOUND, start()의 에러
        """
        recent = self.store.recent()
        if not 0 <= index < len(recent):
            error = ServeError(ErrorCodes.RECENT_NOT_FOUND, index=index, available=len(recent))
            self._report(error)
            raise error
        return self.start(recent[index])

    # =========================================================================
    # Helpers
    # =========================================================================

    def _report(self, error: ServeError) -> None:
        prefix = _ERROR_MESSAGES.get(error.code, "Error")
        detail = (
            error.context.get("error")
            or error.context.get("path")
            or error.context.get("value")
            or ""
        )
        message = f"{prefix}: {detail}" if detail else prefix
        logger.error(f"{error} ({message})")
        self.observer.notify_error("Error", message)

    def __enter__(self) -> "ServingSession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
