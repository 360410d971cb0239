"""
Directory archiver.

A directory travels as a single gzip-compressed tar stream. Entry names
are POSIX paths rooted at the directory's basename; the top-level
directory itself has no entry and symbolic links are never packed.
"""

import gzip
import logging
import os
import shutil
import stat
import tarfile
from pathlib import Path

from ftr.config import ARCHIVE_SUFFIX, CHUNK_SIZE
from ftr.errors import ArchiveError, UnsafeArchiveEntry, UnsupportedEntryType

logger = logging.getLogger(__name__)

DIR_MODE_FLOOR = 0o755


def archive_path_for(dir_path: str | os.PathLike) -> Path:
    """Where `pack` puts the archive of `dir_path`."""
    src = Path(os.path.abspath(dir_path))
    return src.with_name(src.name + ARCHIVE_SUFFIX)


def _walk_raise(err: OSError) -> None:
    raise err


def _iter_tree(src: Path):
    """Yield (path, arcname) pairs in a stable order, parents first."""
    base = src.parent
    for root, dirnames, filenames in os.walk(src, onerror=_walk_raise):
        dirnames.sort()
        root_path = Path(root)
        if root_path != src:
            yield root_path, root_path.relative_to(base).as_posix()
        for name in sorted(filenames):
            path = root_path / name
            yield path, path.relative_to(base).as_posix()


def pack(dir_path: str | os.PathLike) -> Path:
    """
    Archive a directory into `<dir_path>.tar.gz` next to it.

    The caller owns the returned file and must remove it once the
    transfer is over.

    Raises:
        ArchiveError: the walk, a read, or the write failed, or the
            archive path is already taken.
    """
    src = Path(os.path.abspath(dir_path))
    if not src.is_dir():
        raise ArchiveError(f"{src} is not a directory")
    if not src.name:
        raise ArchiveError(f"cannot archive {src}: it has no base name")
    tarball = archive_path_for(src)

    try:
        raw = open(tarball, "xb")
    except FileExistsError as e:
        raise ArchiveError(f"{tarball} already exists") from e
    except OSError as e:
        raise ArchiveError(f"cannot create {tarball}: {e}") from e

    try:
        with raw, gzip.GzipFile(fileobj=raw, mode="wb", mtime=0) as gz, \
                tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for path, arcname in _iter_tree(src):
                _add_entry(tar, path, arcname)
    except OSError as e:
        tarball.unlink(missing_ok=True)
        raise ArchiveError(f"failed to archive {src}: {e}") from e
    except BaseException:
        tarball.unlink(missing_ok=True)
        raise

    logger.debug(f"Packed {src} into {tarball} ({tarball.stat().st_size} bytes)")
    return tarball


def _add_entry(tar: tarfile.TarFile, path: Path, arcname: str) -> None:
    st = os.lstat(path)
    if stat.S_ISLNK(st.st_mode):
        logger.debug(f"Skipping symlink {path}")
        return

    info = tar.gettarinfo(str(path), arcname=arcname)
    if info.isdir():
        info.mode |= DIR_MODE_FLOOR
        tar.addfile(info)
    elif info.isreg():
        with open(path, "rb") as f:
            tar.addfile(info, f)
    else:
        logger.debug(f"Skipping special file {path}")


def _safe_target(root: str, name: str) -> str:
    """Resolve an entry name under `root`, refusing anything that escapes."""
    if not name or name.startswith(("/", "\\")) or os.path.isabs(name):
        raise UnsafeArchiveEntry(name)
    parts = name.replace("\\", "/").split("/")
    if ".." in parts:
        raise UnsafeArchiveEntry(name)
    target = os.path.realpath(os.path.join(root, *parts))
    if os.path.commonpath([root, target]) != root:
        raise UnsafeArchiveEntry(name)
    return target


def unpack(archive_path: str | os.PathLike, dest_root: str | os.PathLike) -> None:
    """
    Extract a gzip-compressed tar into `dest_root`.

    Only directories and regular files are accepted, and existing files
    are never overwritten. Extraction stops at the first bad entry; what
    was written before it stays on disk.

    Raises:
        UnsafeArchiveEntry: an entry points outside `dest_root`.
        UnsupportedEntryType: an entry is a link, device or FIFO.
        ArchiveError: the stream is corrupt or a write failed.
    """
    root = os.path.realpath(dest_root)
    try:
        with tarfile.open(archive_path, mode="r:gz") as tar:
            for member in tar:
                target = _safe_target(root, member.name)
                if member.isdir():
                    os.makedirs(target, mode=0o755, exist_ok=True)
                elif member.isreg():
                    os.makedirs(os.path.dirname(target), mode=0o755, exist_ok=True)
                    source = tar.extractfile(member)
                    with source, open(target, "xb") as out:
                        shutil.copyfileobj(source, out, CHUNK_SIZE)
                else:
                    raise UnsupportedEntryType(member.name, member.type)
    except ArchiveError:
        raise
    except FileExistsError as e:
        raise ArchiveError(f"refusing to overwrite {e.filename}") from e
    except (OSError, tarfile.TarError, EOFError) as e:
        raise ArchiveError(f"failed to unpack {archive_path}: {e}") from e
    logger.debug(f"Unpacked {archive_path} into {root}")
