"""Version resolution from git metadata."""

from dataclasses import dataclass
import datetime
import json
import logging
import pathlib
import re
import subprocess


class VersionResolutionError(RuntimeError):
    """Raised when the build cannot determine its version identity."""


_GIT_HELP: str = (
    "You must ensure to run compile from a git repository clone and that the git binary is available."
)

_DEV_VERSION_RE: re.Pattern[str] = re.compile(r"^[a-f0-9]+$")


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Resolved version identity of a build.

    :ivar version: Commit hash, or the exact tag pointing at HEAD.
    :ivar branch_alias_version: ``extra.branch-alias.dev-master`` from composer.json, or ``""``.
    :ivar version_date: Commit date of HEAD (timezone aware, UTC).
    """

    version: str
    branch_alias_version: str
    version_date: datetime.datetime

    @property
    def release_date(self) -> str:
        return self.version_date.strftime("%Y-%m-%d %H:%M:%S")

    @property
    def timestamp(self) -> int:
        return int(self.version_date.timestamp())

    @property
    def is_dev_build(self) -> bool:
        """``True`` when the version is a commit hash rather than a tag."""

        return _DEV_VERSION_RE.match(self.version) is not None


def resolve_build_context(
    *,
    project_root: pathlib.Path,
    composer_json: pathlib.Path,
    logger: logging.Logger | None = None,
) -> BuildContext:
    """Resolve the version, branch alias and commit date of HEAD.

    :param project_root: Directory git is run from.
    :param composer_json: Composer manifest consulted for the branch alias.
    :param logger: Optional logger for progress output.
    :returns: Resolved build context.
    :raises VersionResolutionError: If git cannot be queried.
    """

    if logger is None:
        logger = logging.getLogger("phar_compiler")

    version: str = _git_required(["log", "--pretty=%H", "-n1", "HEAD"], cwd=project_root)
    raw_date: str = _git_required(["log", "-n1", "--pretty=%ci", "HEAD"], cwd=project_root)
    version_date: datetime.datetime = parse_commit_date(raw_date)

    branch_alias_version: str = ""
    tag: str | None = _git_optional(["describe", "--tags", "--exact-match", "HEAD"], cwd=project_root)
    if tag is not None:
        logger.info(f"phar-compiler: HEAD is tagged {tag}")
        version = tag
    else:
        branch_alias_version = read_branch_alias(composer_json, logger=logger)

    logger.info(
        f"phar-compiler: version={version} branch_alias={branch_alias_version or '-'} "
        f"date={version_date.strftime('%Y-%m-%d %H:%M:%S')}"
    )
    return BuildContext(
        version=version,
        branch_alias_version=branch_alias_version,
        version_date=version_date,
    )


def parse_commit_date(raw: str) -> datetime.datetime:
    """Parse git's ``%ci`` date format and convert it to UTC.

    :param raw: Date such as ``2016-01-02 03:04:05 +0100``.
    :returns: Timezone aware UTC datetime.
    :raises VersionResolutionError: If the date cannot be parsed.
    """

    try:
        parsed: datetime.datetime = datetime.datetime.strptime(raw.strip(), "%Y-%m-%d %H:%M:%S %z")
    except ValueError as e:
        raise VersionResolutionError(f"Unexpected commit date from git log: {raw.strip()!r}") from e
    return parsed.astimezone(datetime.timezone.utc)


def read_branch_alias(composer_json: pathlib.Path, *, logger: logging.Logger) -> str:
    """Read ``extra.branch-alias.dev-master`` from a composer.json file.

    :param composer_json: Path to composer.json.
    :param logger: Logger for diagnostics.
    :returns: Branch alias, or ``""`` when absent.
    :raises VersionResolutionError: If the file is not valid JSON.
    """

    if composer_json.is_file() is False:
        logger.warning(f"phar-compiler: {composer_json} not found; no branch alias")
        return ""

    try:
        data: object = json.loads(composer_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise VersionResolutionError(f"{composer_json} does not contain valid JSON: {e}") from e

    node: object = data
    for key in ("extra", "branch-alias", "dev-master"):
        if isinstance(node, dict) is False or key not in node:
            return ""
        node = node[key]

    if isinstance(node, str) is False:
        return ""
    return node


def _git(args: list[str], *, cwd: pathlib.Path) -> subprocess.CompletedProcess[str]:
    """Run git once.

    :param args: Arguments after ``git``.
    :param cwd: Working directory.
    :returns: Completed process with captured text output.
    :raises VersionResolutionError: If the git binary cannot be executed.
    """

    cmd: list[str] = ["git", *args]
    try:
        return subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise VersionResolutionError(f"Can't run {' '.join(cmd)}. {_GIT_HELP}") from e


def _git_required(args: list[str], *, cwd: pathlib.Path) -> str:
    """Run a git query whose failure aborts the build.

    :param args: Arguments after ``git``.
    :param cwd: Working directory.
    :returns: Stripped standard output.
    :raises VersionResolutionError: If git exits non-zero.
    """

    proc: subprocess.CompletedProcess[str] = _git(args, cwd=cwd)
    if proc.returncode != 0:
        raise VersionResolutionError(f"Can't run git {args[0]} (exit={proc.returncode}). {_GIT_HELP}")
    return proc.stdout.strip()


def _git_optional(args: list[str], *, cwd: pathlib.Path) -> str | None:
    """Run a git query that is allowed to fail.

    :param args: Arguments after ``git``.
    :param cwd: Working directory.
    :returns: Stripped standard output, or ``None`` on a non-zero exit or empty output.
    """

    proc: subprocess.CompletedProcess[str] = _git(args, cwd=cwd)
    if proc.returncode != 0:
        return None
    out: str = proc.stdout.strip()
    if out == "":
        return None
    return out
