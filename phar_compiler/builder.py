"""Phar builder.

This module assembles a PHP application into a single phar:

- It resolves the version from git and threads it through as a
  :class:`~phar_compiler.version.BuildContext`.
- It adds first-party sources (stripped), resources and vendor libraries in a
  deterministic order, then the entry-point script and a bootstrap stub.
- It flushes the archive, appends the license, and re-signs the file with the
  commit date as every entry's timestamp so builds are reproducible.
"""

import logging
import os
import pathlib
import time

from phar_compiler.collector import find_files, require_file
from phar_compiler.config import CompilerConfig
from phar_compiler.lexer import Lexer, PhpLexer
from phar_compiler.phar import PharArchive, SignatureAlgorithm
from phar_compiler.stub import render_stub
from phar_compiler.timestamps import PharTimestamps
from phar_compiler.transform import (
    replace_version_placeholders,
    strip_shebang,
    strip_whitespace,
    wrap_license,
)
from phar_compiler.version import BuildContext, resolve_build_context


class BuildError(RuntimeError):
    """Raised when compiling fails."""


_DEFAULT_LEXER: PhpLexer = PhpLexer()


def compile_phar(
    *,
    output_path: pathlib.Path,
    config: CompilerConfig,
    context: BuildContext | None = None,
    lexer: Lexer | None = _DEFAULT_LEXER,
    logger: logging.Logger | None = None,
) -> BuildContext:
    """Compile the project described by ``config`` into a phar.

    :param output_path: The phar file to create; an existing file is replaced.
    :param config: Project layout.
    :param context: Pre-resolved build context; resolved from git when omitted.
    :param lexer: PHP tokenizer used for stripping, or ``None`` to embed sources as-is.
    :param logger: Optional logger for progress output.
    :returns: The build context the archive was stamped with.
    :raises BuildError: If the archive cannot be built.
    :raises VersionResolutionError: If git cannot be queried.
    :raises CollectionError: If an input directory or file is missing.
    """

    if logger is None:
        logger = logging.getLogger("phar_compiler")

    t_total0: float = time.perf_counter()
    logger.info(f"phar-compiler: project={config.project_root}")
    logger.info(f"phar-compiler: output={output_path}")

    _remove_existing(output_path)

    if context is None:
        context = resolve_build_context(
            project_root=config.project_root,
            composer_json=config.path(config.composer_json),
            logger=logger,
        )

    if config.strip is True and lexer is None:
        logger.warning("phar-compiler: no PHP tokenizer available; embedding sources unstripped")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    signature: SignatureAlgorithm = SignatureAlgorithm.from_name(config.signature)
    phar: PharArchive = PharArchive(output_path, alias=config.alias, signature=signature, logger=logger)
    phar.start_buffering()

    adder: _EntryAdder = _EntryAdder(config=config, context=context, lexer=lexer, phar=phar)

    t_src0: float = time.perf_counter()
    sources: list[pathlib.Path] = find_files(
        roots=[config.path(config.source_dir)],
        names=("*.php",),
        not_names=config.source_excludes,
    )
    for p in sources:
        adder.add(p)
    logger.info(
        f"phar-compiler: added {len(sources)} source files in {time.perf_counter() - t_src0:.2f}s"
    )

    t_vendor0: float = time.perf_counter()
    resources: list[pathlib.Path] = find_files(
        roots=[config.path(d) for d in config.resource_dirs],
        names=("*.json",),
    )
    for p in resources:
        adder.add(p, strip=False)
    for relpath in config.helper_files:
        adder.add(require_file(config.path(relpath)), strip=False)

    libraries: list[pathlib.Path] = find_files(
        roots=[config.path(d) for d in config.vendor_dirs],
        names=("*.php", "LICENSE"),
        exclude_dirs=("Tests", "tests", "docs"),
    )
    for p in libraries:
        adder.add(p)
    adder.add(require_file(config.path(config.autoloader)), strip=False)
    adder.add(require_file(config.path(config.ca_bundle)), strip=False)
    logger.info(
        f"phar-compiler: added {len(resources)} resources and {len(libraries)} library files "
        f"in {time.perf_counter() - t_vendor0:.2f}s"
    )

    _add_entry_script(phar=phar, config=config)

    phar.set_stub(
        render_stub(
            context=context,
            alias=config.alias,
            entry_script=config.entry_script,
            banner=config.stub_banner,
            warning_constant=config.warning_constant,
            warning_days=config.warning_days,
        )
    )

    t_flush0: float = time.perf_counter()
    phar.stop_buffering()
    logger.info(f"phar-compiler: flushed {len(phar.entries)} entries in {time.perf_counter() - t_flush0:.2f}s")

    adder.add(require_file(config.path(config.license_file)), strip=False)
    phar.close()

    t_sign0: float = time.perf_counter()
    util: PharTimestamps = PharTimestamps.from_path(output_path)
    util.update_timestamps(context.version_date)
    size: int = util.save(output_path, signature)
    logger.info(
        f"phar-compiler: re-signed with {signature.name} at {context.release_date} UTC "
        f"in {time.perf_counter() - t_sign0:.2f}s"
    )

    logger.info(f"phar-compiler: wrote {output_path} ({size / 1024:.1f} KiB)")
    logger.info(f"phar-compiler: done in {time.perf_counter() - t_total0:.2f}s")
    return context


class _EntryAdder:
    """Reads, transforms and stores project files."""

    def __init__(
        self,
        *,
        config: CompilerConfig,
        context: BuildContext,
        lexer: Lexer | None,
        phar: PharArchive,
    ) -> None:
        self._config: CompilerConfig = config
        self._context: BuildContext = context
        self._lexer: Lexer | None = lexer
        self._strip: bool = config.strip
        self._phar: PharArchive = phar
        self._root: str = os.path.realpath(config.project_root)

    def add(self, file: pathlib.Path, *, strip: bool = True) -> None:
        """Add a project file.

        :param file: File on disk.
        :param strip: Strip comments and whitespace (when enabled in the config).
        :raises BuildError: If the file lies outside the project root.
        """

        path: str = archive_path(file, root=self._root)
        content: bytes = file.read_bytes()
        if strip is True and self._strip is True:
            content = strip_whitespace(content, self._lexer)
        elif file.name == "LICENSE":
            content = wrap_license(content)

        if path == self._config.version_file:
            content = replace_version_placeholders(content, self._context)

        self._phar.add_from_string(path, content)


def archive_path(file: pathlib.Path, *, root: str) -> str:
    """Map a file to its forward-slash path relative to the project root.

    :param file: File on disk.
    :param root: Real path of the project root.
    :returns: Archive path.
    :raises BuildError: If the file's real path is not under ``root``.
    """

    real: str = os.path.realpath(file)
    prefix: str = root.rstrip(os.sep) + os.sep
    if real.startswith(prefix) is False:
        raise BuildError(f"{file} resolves to {real}, outside the project root {root}")
    return real[len(prefix) :].replace("\\", "/")


def _add_entry_script(*, phar: PharArchive, config: CompilerConfig) -> None:
    """Add the executable entry-point script without its shebang line.

    :param phar: Archive being built.
    :param config: Project layout.
    """

    content: bytes = require_file(config.path(config.entry_script)).read_bytes()
    phar.add_from_string(config.entry_script, strip_shebang(content))


def _remove_existing(output_path: pathlib.Path) -> None:
    """Remove a previous build.

    :param output_path: Output phar path.
    :raises BuildError: If the path exists and cannot be removed.
    """

    if output_path.exists() is False and output_path.is_symlink() is False:
        return
    if output_path.is_dir() is True:
        raise BuildError(f"Output path is a directory: {output_path}")
    try:
        output_path.unlink()
    except OSError as e:
        raise BuildError(f"Cannot remove existing output {output_path}: {e}") from e
