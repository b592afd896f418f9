"""
Core layer: 파일 서버 핵심 모듈.

역할:
- 경로 해석 (경로 순회 차단), 디렉터리 리스팅
- 서빙 세션 (리스너 수명 관리), 최근 목록, 설정 저장
"""

from .config_store import ConfigStore, atomic_write_json, parse_port, parse_theme
from .network import primary_ipv4
from .paths import (
    PathKind,
    build_entries,
    build_listing_payload,
    classify_path,
    list_directory,
    resolve_request_path,
)
from .recency import RecencyList
from .session import LoggingObserver, ServingSession, SessionObserver
from .updates import UpdateChecker

__all__ = [
    # config_store
    "ConfigStore",
    "atomic_write_json",
    "parse_port",
    "parse_theme",
    # network
    "primary_ipv4",
    # paths
    "PathKind",
    "build_entries",
    "build_listing_payload",
    "classify_path",
    "list_directory",
    "resolve_request_path",
    # recency
    "RecencyList",
    # session
    "LoggingObserver",
    "ServingSession",
    "SessionObserver",
    # updates
    "UpdateChecker",
]
