"""
Listing Routes: served root 디렉터리 리스팅 + 파일 전송.

- GET / → root의 직계 자식 리스팅
- GET /<subpath> → 파일이면 바이트 그대로, 디렉터리면 리스팅
- GET */favicon.ico → 번들 아이콘 (root와 무관)

에러:
- root 밖으로 벗어나는 경로 → 403
- stat/읽기 실패 → 500 + 진단 텍스트 (리스너는 계속 동작)

핸들러는 동기 함수로 정의 → FastAPI가 threadpool에서 실행 (블로킹 I/O 분리).
"""

import logging
import os
from pathlib import Path
from urllib.parse import unquote_to_bytes

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from src.core.paths import (
    PathKind,
    build_listing_payload,
    classify_path,
    resolve_request_path,
)
from src.domain.constants import FAVICON_PATH
from src.domain.errors import HTTP_STATUS_BY_CODE, ErrorCodes, ServeError
from src.domain.schemas import display_text

logger = logging.getLogger(__name__)

# Jinja2 템플릿 설정
_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

router = APIRouter()


def get_served_root(request: Request) -> Path:
    """Request에서 served root 가져오기 (리스너 생성 시 고정된 스냅샷)."""
    return request.app.state.served_root


# =============================================================================
# Helpers
# =============================================================================


def _render_listing(request: Request, directory: Path, subpath: str) -> Response:
    """디렉터리 리스팅 렌더링."""
    payload = build_listing_payload(directory, subpath, request.app.state.port)
    return jinja_templates.TemplateResponse(
        request,
        "listing.html",
        {"directory": payload.to_dict()},
    )


def _error_response(request: Request, error: ServeError) -> Response:
    """요청 단위 에러 → HTTP 응답 (+ UI 알림)."""
    status_code = HTTP_STATUS_BY_CODE.get(error.code, 500)

    if error.code == ErrorCodes.FORBIDDEN:
        logger.warning(f"Rejected path escape: {error.context.get('requested')!r}")
        return PlainTextResponse("Forbidden", status_code=status_code)

    message = display_text(error.context.get("error", str(error)))
    logger.error(f"Request failed for {request.url.path}: {message}")

    observer = getattr(request.app.state, "observer", None)
    if observer is not None:
        observer.notify_error("Error", message)

    return PlainTextResponse(
        f"Internal Server Error\n{message}",
        status_code=status_code,
    )


def _request_subpath(request: Request, subpath: str) -> str:
    """
    raw_path 기준 요청 경로.

    라우터가 넘기는 subpath는 UTF-8로 디코딩된 값이라 UTF-8이 아닌 파일명의
    바이트가 U+FFFD로 바뀐다. raw_path를 바이트로 unquote 후 os.fsdecode.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return subpath
    raw = unquote_to_bytes(raw_path.split(b"?", 1)[0])
    return os.fsdecode(raw.lstrip(b"/"))


def _serve_path(request: Request, subpath: str) -> Response:
    root = get_served_root(request)
    try:
        candidate = resolve_request_path(root, subpath)
        kind = classify_path(candidate)
        if kind == PathKind.FILE:
            return FileResponse(candidate)
        return _render_listing(request, candidate, subpath)
    except ServeError as e:
        return _error_response(request, e)
    except Exception as e:
        logger.exception(f"Unexpected error serving {subpath!r}")
        return _error_response(
            request,
            ServeError(
                ErrorCodes.IO_ERROR,
                path=subpath,
                error=f"Error serving {display_text(subpath) or '/'}: {e}",
            ),
        )


# =============================================================================
# Routes
# =============================================================================


@router.get("/favicon.ico")
@router.get("/{prefix:path}/favicon.ico")
def favicon(prefix: str = "") -> FileResponse:
    """번들 favicon (경로 깊이 무관)."""
    return FileResponse(FAVICON_PATH, media_type="image/x-icon")


@router.get("/")
def index(request: Request) -> Response:
    """served root 리스팅 (root가 파일이면 파일 전송)."""
    return _serve_path(request, "")


@router.get("/{subpath:path}")
def serve_subpath(request: Request, subpath: str) -> Response:
    """root 하위 경로: 파일 전송 또는 디렉터리 리스팅."""
    return _serve_path(request, _request_subpath(request, subpath))
