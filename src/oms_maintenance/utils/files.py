import os
import pwd
import shutil
from pathlib import Path
from typing import Iterable, Optional, Union

from ..logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def file_exists_nonempty(path: Optional[PathLike]) -> bool:
    """True if ``path`` names an existing regular file with content."""
    if not path:
        return False
    target = Path(path)
    return target.is_file() and target.stat().st_size > 0


def is_current_user_root() -> bool:
    return os.geteuid() == 0


def current_user_name() -> Optional[str]:
    try:
        return pwd.getpwuid(os.geteuid()).pw_name
    except KeyError:
        return None


def chown_to_agent(paths: Iterable[PathLike], user: str, group: str) -> None:
    """
    Hand ownership of generated files to the agent service account.

    Only root can change ownership, so this is a no-op for other users.
    """
    if not is_current_user_root():
        return
    for path in paths:
        shutil.chown(path, user=user, group=group)


def restrict_permissions(paths: Iterable[PathLike], mode: int) -> None:
    """
    Create (if needed) and chmod each path before any content is written.

    Existing content is truncated, so a half-written file is never left with
    permissive bits.
    """
    for path in paths:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        os.close(fd)
        os.chmod(path, mode)


def write_bytes(path: PathLike, data: bytes) -> None:
    """Overwrite ``path`` in place, keeping its ownership and permissions."""
    with open(path, "wb") as handle:
        handle.write(data)
