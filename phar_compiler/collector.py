"""File collection with a deterministic order."""

import fnmatch
import os
import pathlib


class CollectionError(RuntimeError):
    """Raised when an input directory or named file is missing."""


VCS_DIRS: frozenset[str] = frozenset(
    {".git", ".svn", "_svn", "CVS", "_darcs", ".arch-params", ".monotone", ".bzr", ".hg"}
)


def sort_key(path: pathlib.Path) -> bytes:
    """Return the ordering key of a collected file.

    The real path with ``\\`` replaced by ``/``, compared byte-wise.

    :param path: File path.
    :returns: Sort key.
    """

    real: str = os.path.realpath(path).replace("\\", "/")
    return real.encode("utf-8", "surrogateescape")


def find_files(
    *,
    roots: list[pathlib.Path],
    names: tuple[str, ...],
    not_names: tuple[str, ...] = (),
    exclude_dirs: tuple[str, ...] = (),
    ignore_vcs: bool = True,
    ignore_dot_files: bool = True,
    follow_links: bool = False,
) -> list[pathlib.Path]:
    """Collect files under ``roots`` whose basename matches one of ``names``.

    :param roots: Directories to search.
    :param names: Basename glob patterns to accept (e.g. ``*.php``).
    :param not_names: Basename glob patterns to reject.
    :param exclude_dirs: Directory names pruned at any depth.
    :param ignore_vcs: Also prune version-control metadata directories.
    :param ignore_dot_files: Skip files and directories whose name starts with a dot.
    :param follow_links: Descend into symlinked directories.
    :returns: Files sorted by :func:`sort_key`.
    :raises CollectionError: If a root is not a directory.
    """

    pruned: set[str] = set(exclude_dirs)
    if ignore_vcs is True:
        pruned |= VCS_DIRS

    found: dict[bytes, pathlib.Path] = {}
    for root in roots:
        if root.is_dir() is False:
            raise CollectionError(f'The "{root}" directory does not exist.')

        for root_str, dirs, files in os.walk(root, topdown=True, followlinks=follow_links):
            dirs[:] = [d for d in dirs if d not in pruned and _hidden(d, ignore_dot_files) is False]
            for name in files:
                if _hidden(name, ignore_dot_files) is True:
                    continue
                if _matches(name, names) is False:
                    continue
                if _matches(name, not_names) is True:
                    continue
                p: pathlib.Path = pathlib.Path(root_str) / name
                if p.is_file() is False:
                    continue
                found.setdefault(sort_key(p), p)

    return [found[k] for k in sorted(found)]


def require_file(path: pathlib.Path) -> pathlib.Path:
    """Check that an individually named file exists.

    :param path: File path.
    :returns: The same path.
    :raises CollectionError: If it is not a file.
    """

    if path.is_file() is False:
        raise CollectionError(f"Required file does not exist: {path}")
    return path


def _hidden(name: str, ignore_dot_files: bool) -> bool:
    return ignore_dot_files is True and name.startswith(".")


def _matches(name: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatchcase(name, pattern) is True:
            return True
    return False
