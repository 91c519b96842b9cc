import contextlib
import os
import pathlib
import stat
import tempfile

from const import SUPPORTED_ENTRY_TYPES
from errors import BankError, ErrorKind
from log import logger


def to_posix(path: str):
    return pathlib.PurePath(path).as_posix()


def get_file_size(path: str) -> int:
    """
    @exception
    - BankError (IO_FAILURE)
    """
    try:
        return os.path.getsize(path)
    except OSError as e:
        raise BankError(
            ErrorKind.IO_FAILURE, f"Cannot access {path}", path=to_posix(path)
        ) from e


def list_entry_files(folder: str) -> list[str]:
    """
    Non-recursive, sorted by file name so results are stable
    """
    if not os.path.isdir(folder):
        raise BankError(
            ErrorKind.IO_FAILURE, f"'{folder}' is not a folder",
            path=to_posix(folder)
        )
    files: list[str] = []
    for entry in sorted(os.scandir(folder), key=lambda e: e.name):
        if not entry.is_file():
            continue
        _, ext = os.path.splitext(entry.name)
        if ext.lower() in SUPPORTED_ENTRY_TYPES:
            files.append(to_posix(entry.path))
    return files


def _get_output_mode(destination: str) -> int:
    """
    Mode of the file being replaced, or what open() would give a new file
    """
    try:
        return stat.S_IMODE(os.stat(destination).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


@contextlib.contextmanager
def atomic_output(destination: str):
    """
    Yield a temporary path next to `destination`. The temporary file replaces
    `destination` only when the with-block exits cleanly; otherwise it is
    removed and `destination` stays as it was.

    @exception
    - BankError (IO_FAILURE)
    """
    folder = os.path.dirname(os.path.abspath(destination))
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(destination)}.", suffix=".tmp",
            dir=folder
        )
    except OSError as e:
        raise BankError(
            ErrorKind.IO_FAILURE, f"Cannot create a temporary file in {folder}",
            path=to_posix(destination)
        ) from e
    os.close(fd)

    try:
        os.chmod(tmp_path, _get_output_mode(destination))
    except OSError as e:
        logger.warning(f"Failed to set permissions on {tmp_path}: {e}")

    try:
        yield tmp_path
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {tmp_path}: {e}")
        raise

    try:
        os.replace(tmp_path, destination)
    except OSError as e:
        try:
            os.remove(tmp_path)
        except OSError:
            logger.warning(f"Failed to remove temporary file {tmp_path}")
        raise BankError(
            ErrorKind.IO_FAILURE, f"Failed to move output into {destination}",
            path=to_posix(destination)
        ) from e
