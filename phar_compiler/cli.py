"""Command line interface for phar-compiler."""

import argparse
import logging
import pathlib
import sys

from phar_compiler.builder import BuildError, compile_phar
from phar_compiler.collector import CollectionError
from phar_compiler.config import SIGNATURE_NAMES, CompilerConfig, ConfigError, resolve_compiler_config
from phar_compiler.phar import PharError
from phar_compiler.version import VersionResolutionError


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the phar-compiler logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("phar_compiler")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def main(argv: list[str] | None = None) -> int:
    """Run the phar-compiler CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="phar-compiler",
        description="Bundle a PHP application and its vendor libraries into one reproducible phar.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_compile = subparsers.add_parser(
        "compile",
        help="Compile the project into a phar.",
    )
    p_compile.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=None,
        help="Output phar path (defaults to <alias> in the current directory).",
    )
    p_compile.add_argument(
        "--project-root",
        type=pathlib.Path,
        default=pathlib.Path("."),
        help="Root of the git checkout to compile.",
    )
    p_compile.add_argument(
        "--alias",
        type=str,
        default=None,
        help="Internal phar alias (default: victor.phar).",
    )
    p_compile.add_argument(
        "--entry-script",
        type=str,
        default=None,
        help="Executable script required by the stub, relative to the project root.",
    )
    p_compile.add_argument(
        "--version-file",
        type=str,
        default=None,
        help="Source file whose version placeholders are replaced.",
    )
    p_compile.add_argument(
        "--signature",
        type=str,
        choices=SIGNATURE_NAMES,
        default=None,
        help="Signature algorithm (default: sha1).",
    )
    p_compile.add_argument(
        "--no-strip",
        action="store_true",
        help="Embed PHP sources without removing comments and whitespace.",
    )
    p_compile.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p_compile.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "compile":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        try:
            cfg: CompilerConfig = resolve_compiler_config(
                project_root=ns.project_root,
                alias=ns.alias,
                entry_script=ns.entry_script,
                version_file=ns.version_file,
                signature=ns.signature,
                strip=not ns.no_strip,
            )
            output: pathlib.Path = ns.output if ns.output is not None else pathlib.Path(cfg.alias)
            compile_phar(output_path=output, config=cfg, logger=logger)
        except (BuildError, CollectionError, ConfigError, PharError, VersionResolutionError) as e:
            logger.error(f"phar-compiler: error: {e}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
