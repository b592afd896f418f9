"""
Error definitions for the file server.

규칙:
- 조용한 실패 금지 → ServeError로 명시적 실패
- 요청 단위 에러(FORBIDDEN, IO_ERROR)는 라우트 경계에서 HTTP 응답으로 변환
- 세션 단위 에러(BIND_FAILURE, INVALID_TARGET 등)는 호출자에게 전파
"""

from typing import Any


class ServeError(Exception):
    """
    파일 서버 동작 실패 시 발생하는 에러.

    Usage:
        raise ServeError("BIND_FAILURE", port=3000, cause=str(e))
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **self.context,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Session ===
    NOT_FOUND = "NOT_FOUND"
    NOT_ACCESSIBLE = "NOT_ACCESSIBLE"
    INVALID_TARGET = "INVALID_TARGET"  # 파일도 디렉터리도 아님
    BIND_FAILURE = "BIND_FAILURE"

    # === Request ===
    FORBIDDEN = "FORBIDDEN"  # served root 밖으로 벗어나는 경로
    IO_ERROR = "IO_ERROR"

    # === Configuration ===
    CONFIG_IO_ERROR = "CONFIG_IO_ERROR"
    INVALID_PORT = "INVALID_PORT"
    INVALID_THEME = "INVALID_THEME"
    RECENT_NOT_FOUND = "RECENT_NOT_FOUND"


# HTTP 상태 코드 매핑 (라우트 경계용)
HTTP_STATUS_BY_CODE = {
    ErrorCodes.FORBIDDEN: 403,
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.IO_ERROR: 500,
}
