"""
FastAPI Routes.

served root 리스팅 + 파일 전송 (단일 라우터)
"""

from . import listing

__all__ = ["listing"]
