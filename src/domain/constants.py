"""
Domain Constants: 파일 서버 전역 상수.

포트 정책, 설정 파일명, 번들 에셋 경로 등.
"""

from pathlib import Path

# =============================================================================
# Port Policy (포트 정책)
# =============================================================================
# 우선순위: 환경변수 PORT → configs.json "port" → default.yaml server.default_port

PORT_ENV_VAR = "PORT"
DEFAULT_PORT = 3000
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_HOST = "0.0.0.0"

# =============================================================================
# User Configuration (사용자 설정 파일)
# =============================================================================
# <data_dir>/
# ├── configs.json
# └── configs.json.lock

CONFIG_FILENAME = "configs.json"
CONFIG_LOCK_SUFFIX = ".lock"
DATA_DIR_ENV_VAR = "FILESERVER_DATA_DIR"
DEFAULT_DATA_DIR = "~/.fileserver"

# configs.json 키 (기존 파일 포맷 유지)
KEY_PORT = "port"
KEY_THEME = "theme"
KEY_RECENTLY_OPENED = "recently-opened"
KEY_UPDATE_STATUS = "update-status"
KEY_CURRENT_VERSION = "current-version"
KEY_LAST_ALERTED_VERSION = "last-alerted-version"
KEY_ALERT_COUNT = "alert-count"

# =============================================================================
# Recency (최근 연 디렉터리)
# =============================================================================

RECENTLY_OPENED_CAPACITY = 10

# =============================================================================
# Bundled Assets (번들 에셋)
# =============================================================================

ASSETS_DIR = Path(__file__).parent.parent / "app" / "assets"
FAVICON_FILENAME = "favicon.ico"
FAVICON_PATH = ASSETS_DIR / FAVICON_FILENAME
CONFIG_TEMPLATE_PATH = ASSETS_DIR / CONFIG_FILENAME

# =============================================================================
# Updates
# =============================================================================

DEFAULT_STATUS_URL = "https://0m0g1.github.io/fileserver0/status.json"
MAX_UPDATE_ALERTS = 3
