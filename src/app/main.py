"""
FastAPI 애플리케이션 팩토리.

리스너(uvicorn 서버)마다 새 앱을 만든다. served root와 포트는 앱 생성 시
고정되므로 요청 처리 중에 root가 바뀌지 않는다 (root 교체 = 리스너 재바인드).
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from fastapi import FastAPI

from src.app.routes import listing

if TYPE_CHECKING:
    from src.core.session import SessionObserver

# =============================================================================
# Configuration
# =============================================================================

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "default.yaml"


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    served_root: Path,
    port: int,
    observer: "SessionObserver | None" = None,
) -> FastAPI:
    """
    served root 하나를 노출하는 앱 생성.

    Args:
        served_root: 노출할 디렉터리 (또는 파일) 절대 경로
        port: 리스닝 포트 (리스팅 payload용)
        observer: 요청 에러를 받을 UI 협력자 (없으면 로그만)
    """
    app = FastAPI(
        title="File Server",
        description="로컬 디렉터리를 HTTP로 노출",
        version="0.1.0",
        # /docs 등이 served root 하위 경로와 충돌하지 않도록 비활성화
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.served_root = Path(served_root)
    app.state.port = port
    app.state.observer = observer

    app.include_router(listing.router, tags=["Listing"])

    return app
