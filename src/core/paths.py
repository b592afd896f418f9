"""
경로 해석 + 디렉터리 리스팅.

규칙:
- 요청 경로는 served root에 "/" 세그먼트 단위로 결합 후 정규화
- 결과가 served root 또는 그 하위가 아니면 FORBIDDEN (경로 순회 차단)
- stat 실패, 파일/디렉터리가 아닌 대상(장치, 깨진 symlink) → IO_ERROR
"""

import os
import posixpath
import stat
from enum import Enum
from pathlib import Path

from src.core.network import primary_ipv4
from src.domain.errors import ErrorCodes, ServeError
from src.domain.schemas import DirectoryEntry, ListingPayload


class PathKind(str, Enum):
    """요청 대상 분류."""
    FILE = "file"
    DIRECTORY = "directory"

    """요청 경로를 "/" 기준으로만 분리 (빈 세그먼트 제거)."""
def split_segments(subpath: str) -> list[str]:
    """요청 경로를 "/" 기준으로 분리 (빈 세그먼트 제거). "\\"는 POSIX 파일명에 쓸 수 있는 문자."""
    return [s for s in subpath.split("/") if s]


def resolve_request_path(root: Path, subpath: str) -> Path:
    """
    요청 경로 → 절대 경로.

    Args:
        root: served root (절대 경로)
        subpath: URL에서 받은 상대 경로 (예: "docs/a.txt")

    Returns:
        정규화된 절대 경로

    Raises:
        ServeError: FORBIDDEN (root 밖으로 벗어나는 경우)
    """
    root_abs = os.path.abspath(root)
    candidate = os.path.normpath(os.path.join(root_abs, *split_segments(subpath)))

    # 경로 순회 방지: 어휘적으로 root 하위인지 확인
    try:
        Path(candidate).relative_to(root_abs)
    except ValueError:
        raise ServeError(
            ErrorCodes.FORBIDDEN,
            root=root_abs,
            requested=subpath,
        ) from None

    return Path(candidate)


def classify_path(path: Path) -> PathKind:
    """
    경로를 파일/디렉터리로 분류.

    Raises:
        ServeError: IO_ERROR (stat 실패 또는 파일/디렉터리가 아님)
    """
    try:
        st = os.stat(path)
    except OSError as e:
        raise ServeError(
            ErrorCodes.IO_ERROR,
            path=str(path),
            error=f"Error checking the stats of {path}: {e}",
        ) from e

    if stat.S_ISDIR(st.st_mode):
        return PathKind.DIRECTORY
    if stat.S_ISREG(st.st_mode):
        return PathKind.FILE

    raise ServeError(
        ErrorCodes.IO_ERROR,
        path=str(path),
        error=f"{path} is neither a file nor a directory",
    )


def list_directory(path: Path) -> list[str]:
    """
    디렉터리의 직계 자식 이름 목록 (이름순).

    Raises:
        ServeError: IO_ERROR (읽기 실패)
    """
    try:
        return sorted(os.listdir(path))
    except OSError as e:
        raise ServeError(
            ErrorCodes.IO_ERROR,
            path=str(path),
            error=f"Error reading the directory {path}: {e}",
        ) from e


def build_entries(names: list[str], subpath: str = "") -> list[DirectoryEntry]:
    """
    리스팅 항목 생성.

    subpath가 비어 있으면 (index) path == name,
    아니면 path = subpath/name ("/" 결합).
    """
    prefix = "/".join(split_segments(subpath))
    return [
        DirectoryEntry(
            name=name,
            path=posixpath.join(prefix, name) if prefix else name,
        )
        for name in names
    ]


def build_listing_payload(directory: Path, subpath: str, port: int) -> ListingPayload:
    """
    리스팅 템플릿 payload 생성.

    Raises:
        ServeError: IO_ERROR (디렉터리 읽기 실패)
    """
    return ListingPayload(
        ip=primary_ipv4(),
        port=port,
        directory=str(directory),
        subdirectories=build_entries(list_directory(directory), subpath),
    )
