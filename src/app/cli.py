"""
fileserver CLI: 데스크톱 쉘 대신 콘솔에서 코어를 조작.

사용법:
    # 디렉터리 서빙 (PATH 생략 시 가장 최근 디렉터리)
    fileserver serve ~/share
    fileserver serve ~/share --port 8080

    # 최근 연 디렉터리 목록
    fileserver recent

    # 선호 설정 변경
    fileserver port 8080
    fileserver theme dark

    # 업데이트 확인
    fileserver check-updates

serve 실행 중 콘솔 명령:
    port      포트 변경 (서빙 중이면 재시작)
    recent    최근 목록 출력
    open N    최근 목록 N번 서빙
    stop      서빙 중지
    quit      종료
"""

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from dotenv import load_dotenv

from src.app.main import load_config
from src.core.config_store import ConfigStore
from src.core.session import ServingSession
from src.core.updates import UpdateChecker
from src.domain.errors import ServeError
from src.domain.schemas import ServingInfo

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(level: str) -> None:
    """콘솔 로깅 설정."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# =============================================================================
# Console Observer
# =============================================================================


class ConsoleObserver:
    """SessionObserver 콘솔 구현: 알림은 출력, 포트 입력은 stdin."""

    def __init__(
        self,
        out: TextIO | None = None,
        input_func: Callable[[str], str] = input,
    ) -> None:
        self.out = out or sys.stdout
        self.input_func = input_func

    def show(self, message: str) -> None:
        print(message, file=self.out, flush=True)

    def notify_serving_started(self, info: ServingInfo) -> None:
        self.show(f"Serving {info.path}")
        self.show(f"  Local:   {info.local_url}")
        if info.remote_url:
            self.show(f"  Network: {info.remote_url}")

    def notify_serving_stopped(self) -> None:
        self.show("Server closed")

    def notify_error(self, title: str, message: str) -> None:
        self.show(f"[{title}] {message}")

    def prompt_for_port(self, current_port: int) -> str | None:
        try:
            value = self.input_func(f"Port [{current_port}]: ").strip()
        except EOFError:
            return None
        return value or None


# =============================================================================
# Commands
# =============================================================================


def _print_recent(store: ConfigStore, out: TextIO) -> None:
    recent = store.recent()
    if not recent:
        print("No recently opened directories.", file=out)
        return
    for i, path in enumerate(recent):
        print(f"{i:2d}  {path}", file=out)


def _console_loop(
    session: ServingSession,
    observer: ConsoleObserver,
) -> None:
    """serve 중 콘솔 명령 처리 (메뉴 대체). quit/EOF/Ctrl+C로 종료."""
    while True:
        try:
            line = observer.input_func("> ").strip()
        except EOFError:
            return

        command, _, arg = line.partition(" ")
        try:
            if command in ("quit", "exit", "q"):
                return
            elif command == "stop":
                session.stop()
            elif command == "port":
                session.request_port_change()
            elif command == "recent":
                _print_recent(session.store, observer.out)
            elif command == "open":
                session.open_recent(int(arg or 0))
            elif command:
                observer.notify_error("Unknown command", command)
        except ServeError:
            # observer에 이미 알림됨
            continue
        except ValueError:
            observer.notify_error("Invalid index", arg)


def cmd_serve(
    args: argparse.Namespace,
    settings: dict,
    store: ConfigStore,
    observer: ConsoleObserver,
) -> int:
    with ServingSession(store, settings, observer) as session:
        if args.port is not None:
            session.set_port(args.port)

        if args.path:
            session.start(Path(args.path))
        else:
            session.open_recent(0)

        try:
            _console_loop(session, observer)
        except KeyboardInterrupt:
            observer.show("")
    return 0


def cmd_recent(args: argparse.Namespace, settings: dict, store: ConfigStore, observer: ConsoleObserver) -> int:
    _print_recent(store, observer.out)
    return 0


def cmd_port(args: argparse.Namespace, settings: dict, store: ConfigStore, observer: ConsoleObserver) -> int:
    port = store.set_port(args.value)
    observer.show(f"Successfully changed port to {port}")
    return 0


def cmd_theme(args: argparse.Namespace, settings: dict, store: ConfigStore, observer: ConsoleObserver) -> int:
    theme = store.set_theme(args.mode)
    observer.show(f"Theme set to {theme.value}")
    return 0


def cmd_check_updates(args: argparse.Namespace, settings: dict, store: ConfigStore, observer: ConsoleObserver) -> int:
    checker = UpdateChecker.from_settings(store, settings)
    version = checker.check()
    if version:
        observer.show(f"There is a new update available version {version}")
    else:
        observer.show("No update alert.")
    return 0


# =============================================================================
# Entry Point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileserver",
        description="로컬 디렉터리를 HTTP로 서빙",
    )
    parser.add_argument("--config", type=Path, default=None, help="default.yaml 경로")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="로그 레벨 (기본: default.yaml)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="디렉터리 서빙")
    p_serve.add_argument("path", nargs="?", default=None, help="서빙할 경로 (생략 시 최근 디렉터리)")
    p_serve.add_argument("--port", default=None, help="선호 포트 변경 후 서빙")
    p_serve.set_defaults(func=cmd_serve)

    p_recent = sub.add_parser("recent", help="최근 연 디렉터리 목록")
    p_recent.set_defaults(func=cmd_recent)

    p_port = sub.add_parser("port", help="선호 포트 변경")
    p_port.add_argument("value")
    p_port.set_defaults(func=cmd_port)

    p_theme = sub.add_parser("theme", help="테마 변경 (system, light, dark)")
    p_theme.add_argument("mode")
    p_theme.set_defaults(func=cmd_theme)

    p_updates = sub.add_parser("check-updates", help="업데이트 확인")
    p_updates.set_defaults(func=cmd_check_updates)

    return parser


def main(argv: list[str] | None = None, observer: ConsoleObserver | None = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_config(args.config)
    level = str(args.log_level or settings.get("logging", {}).get("level", "INFO"))
    if level.upper() not in LOG_LEVELS:
        parser.error(f"invalid logging.level in settings: {level!r}")
    setup_logging(level)

    observer = observer or ConsoleObserver()
    store = ConfigStore.from_settings(settings)
    if store.load_error is not None:
        observer.notify_error("Error", store.load_error.context.get("error", str(store.load_error)))

    try:
        result: int = args.func(args, settings, store, observer)
        return result
    except ServeError as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
