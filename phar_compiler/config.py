"""Project layout configuration.

The defaults describe the layout of the Victor application: first-party code
under ``src/``, an executable under ``bin/``, and a Composer ``vendor/`` tree.
Every path is relative to the project root and uses forward slashes.
"""

from dataclasses import dataclass, field
import pathlib
import re


class ConfigError(ValueError):
    """Raised when a layout configuration is invalid."""


SIGNATURE_NAMES: tuple[str, ...] = ("md5", "sha1", "sha256", "sha512")

DEFAULT_STUB_BANNER: str = """/**
 * This file is part of the Nella Project (https://victor.nella.io).
 *
 * Copyright (c) Patrik Votoček (https://patrik.votocek.cz)
 *
 * For the full copyright and license information,
 * please view the file LICENSE.md that was distributed with this source code.
 */"""


@dataclass(frozen=True, slots=True)
class CompilerConfig:
    """Where things live in the project being compiled.

    :ivar project_root: Project root directory (absolute).
    :ivar alias: Internal phar alias used by ``Phar::mapPhar``.
    :ivar source_dir: First-party source directory.
    :ivar source_excludes: Basenames skipped inside ``source_dir``.
    :ivar version_file: Source file receiving version placeholders.
    :ivar entry_script: Executable entry-point script.
    :ivar composer_json: Composer manifest read for the branch alias.
    :ivar resource_dirs: Directories whose ``*.json`` files are embedded verbatim.
    :ivar vendor_dirs: Library roots whose ``*.php`` and ``LICENSE`` files are embedded.
    :ivar helper_files: Individually named files added after the resources.
    :ivar autoloader: Composer autoloader entry point.
    :ivar ca_bundle: CA certificate bundle.
    :ivar license_file: Top-level license, added last.
    :ivar signature: Signature algorithm name.
    :ivar strip: Strip comments and whitespace from PHP sources.
    :ivar stub_banner: Copyright comment placed in the stub.
    :ivar warning_constant: Constant defined by dev builds with the stale-build time.
    :ivar warning_days: Days after the commit date before a dev build is stale.
    """

    project_root: pathlib.Path
    alias: str = "victor.phar"
    source_dir: str = "src"
    source_excludes: tuple[str, ...] = ("Compiler.php",)
    version_file: str = "src/Victor.php"
    entry_script: str = "bin/victor"
    composer_json: str = "composer.json"
    resource_dirs: tuple[str, ...] = (
        "vendor/composer/composer/res",
        "vendor/composer/spdx-licenses/res",
    )
    vendor_dirs: tuple[str, ...] = (
        "vendor/symfony",
        "vendor/seld/jsonlint",
        "vendor/seld/cli-prompt",
        "vendor/justinrainbow/json-schema",
        "vendor/composer",
    )
    helper_files: tuple[str, ...] = ("vendor/seld/cli-prompt/res/hiddeninput.exe",)
    autoloader: str = "vendor/autoload.php"
    ca_bundle: str = "vendor/composer/composer/res/cacert.pem"
    license_file: str = "LICENSE.md"
    signature: str = "sha1"
    strip: bool = True
    stub_banner: str = field(default=DEFAULT_STUB_BANNER, repr=False)
    warning_constant: str = "COMPOSER_DEV_WARNING_TIME"
    warning_days: int = 60

    def path(self, relpath: str) -> pathlib.Path:
        """Resolve a configured relative path against the project root.

        :param relpath: Forward-slash path relative to the project root.
        :returns: Absolute path.
        """

        return self.project_root.joinpath(*relpath.split("/"))


_ALIAS_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9_.-]+\.phar$")
_CONSTANT_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def resolve_compiler_config(
    *,
    project_root: pathlib.Path,
    alias: str | None = None,
    entry_script: str | None = None,
    version_file: str | None = None,
    signature: str | None = None,
    strip: bool = True,
) -> CompilerConfig:
    """Resolve user-supplied overrides into a validated :class:`~CompilerConfig`.

    :param project_root: Project root directory.
    :param alias: Optional phar alias override.
    :param entry_script: Optional entry-point script override.
    :param version_file: Optional version file override.
    :param signature: Optional signature algorithm name override.
    :param strip: Whether PHP sources are stripped.
    :returns: Resolved config.
    :raises ConfigError: If the config is invalid.
    """

    if project_root.is_dir() is False:
        raise ConfigError(f"Project root is not a directory: {project_root}")

    overrides: dict[str, object] = {"strip": strip}
    if alias is not None:
        overrides["alias"] = alias
    if entry_script is not None:
        overrides["entry_script"] = _normalize_relpath(entry_script)
    if version_file is not None:
        overrides["version_file"] = _normalize_relpath(version_file)
    if signature is not None:
        overrides["signature"] = signature.lower()

    cfg: CompilerConfig = CompilerConfig(project_root=project_root.resolve(), **overrides)
    validate_compiler_config(cfg)
    return cfg


def validate_compiler_config(cfg: CompilerConfig) -> None:
    """Validate a config.

    :param cfg: Config to check.
    :raises ConfigError: If any field is invalid.
    """

    if _ALIAS_RE.match(cfg.alias) is None:
        raise ConfigError(f"Invalid alias {cfg.alias!r}; expected a file name ending in '.phar'.")
    if cfg.signature not in SIGNATURE_NAMES:
        raise ConfigError(
            f"Unknown signature {cfg.signature!r}; expected one of {', '.join(SIGNATURE_NAMES)}."
        )
    if cfg.warning_days <= 0:
        raise ConfigError(f"warning_days must be positive, got {cfg.warning_days}.")
    if _CONSTANT_RE.match(cfg.warning_constant) is None:
        raise ConfigError(f"Invalid PHP constant name {cfg.warning_constant!r}.")

    relpaths: list[str] = [
        cfg.source_dir,
        cfg.version_file,
        cfg.entry_script,
        cfg.composer_json,
        cfg.autoloader,
        cfg.ca_bundle,
        cfg.license_file,
        *cfg.resource_dirs,
        *cfg.vendor_dirs,
        *cfg.helper_files,
    ]
    for relpath in relpaths:
        if relpath != _normalize_relpath(relpath):
            raise ConfigError(f"Configured path must be a normalized relative path: {relpath!r}")


def _normalize_relpath(relpath: str) -> str:
    """Normalize a user-supplied relative path.

    :param relpath: Path relative to the project root.
    :returns: Forward-slash path without ``.`` segments.
    :raises ConfigError: If the path is absolute or escapes the project root.
    """

    posix: pathlib.PurePosixPath = pathlib.PurePosixPath(relpath.replace("\\", "/"))
    if posix.is_absolute() is True or re.match(r"^[A-Za-z]:", relpath) is not None:
        raise ConfigError(f"Expected a path relative to the project root, got {relpath!r}")
    if ".." in posix.parts:
        raise ConfigError(f"Path escapes the project root: {relpath!r}")
    normalized: str = posix.as_posix()
    if normalized in {"", "."}:
        raise ConfigError(f"Empty path: {relpath!r}")
    return normalized
