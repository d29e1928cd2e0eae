"""Shared fixtures: a miniature PHP project laid out like the Victor repository."""

import datetime
import json
import logging
import pathlib
from typing import Iterator

import pytest

from phar_compiler.config import CompilerConfig
from phar_compiler.version import BuildContext


VICTOR_PHP: str = """<?php
/**
 * Victor application.
 */

namespace Nella\\Victor;

class Victor
{

\tconst VERSION = '@package_version@';
\tconst BRANCH_ALIAS_VERSION = '@package_branch_alias_version@';
\tconst RELEASE_DATE = '@release_date@';

}
"""

PROJECT_FILES: dict[str, bytes] = {
    "composer.json": json.dumps(
        {"name": "nella/victor", "extra": {"branch-alias": {"dev-master": "1.0-dev"}}}
    ).encode("utf-8"),
    "LICENSE.md": b"# License\n\nNew BSD License\n",
    "bin/victor": b"#!/usr/bin/env php\n<?php\n\nrequire __DIR__ . '/../vendor/autoload.php';\n",
    "src/Victor.php": VICTOR_PHP.encode("utf-8"),
    "src/Compiler.php": b"<?php\n// never shipped\n",
    "src/Console/Application.php": (
        b"<?php\n"
        b"namespace Nella\\Victor\\Console;\n"
        b"\n"
        b"// Entry point\n"
        b"class Application\n"
        b"{\n"
        b"    /** @var string */\n"
        b"    private $name  =  'victor';\n"
        b"}\n"
    ),
    "src/.hidden/Ignored.php": b"<?php\n",
    "vendor/autoload.php": b"<?php\n\n// autoload.php @generated by Composer\nreturn 1;\n",
    "vendor/composer/ClassLoader.php": b"<?php\n/* loader */\nclass ClassLoader {}\n",
    "vendor/composer/LICENSE": b"Copyright (c) Nils Adermann, Jordi Boggiano\n",
    "vendor/composer/composer/res/cacert.pem": b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n",
    "vendor/composer/composer/res/composer-schema.json": b'{"type": "object"}\n',
    "vendor/composer/spdx-licenses/res/spdx-licenses.json": b'{"MIT": ["MIT License", true]}\n',
    "vendor/seld/cli-prompt/res/hiddeninput.exe": b"MZ\x90\x00\x03\x00\x00\x00",
    "vendor/seld/cli-prompt/src/CliPrompt.php": b"<?php\nclass CliPrompt {}\n",
    "vendor/seld/jsonlint/src/Seld/JsonLint/JsonParser.php": b"<?php\nclass JsonParser {}\n",
    "vendor/seld/jsonlint/tests/JsonParserTest.php": b"<?php\n",
    "vendor/justinrainbow/json-schema/src/JsonSchema/Validator.php": b"<?php\nclass Validator {}\n",
    "vendor/symfony/console/Application.php": b"<?php\nclass Application {}\n",
    "vendor/symfony/console/LICENSE": b"Copyright (c) Fabien Potencier\n",
    "vendor/symfony/console/Tests/ApplicationTest.php": b"<?php\n",
    "vendor/symfony/console/docs/index.php": b"<?php\n",
}


@pytest.fixture
def php_project(tmp_path: pathlib.Path) -> pathlib.Path:
    root: pathlib.Path = tmp_path / "project"
    for relpath, content in PROJECT_FILES.items():
        p: pathlib.Path = root / relpath
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
    return root


@pytest.fixture
def config(php_project: pathlib.Path) -> CompilerConfig:
    return CompilerConfig(project_root=php_project.resolve())


@pytest.fixture
def dev_context() -> BuildContext:
    return BuildContext(
        version="abcdef0",
        branch_alias_version="1.0-dev",
        version_date=datetime.datetime(2016, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc),
    )


@pytest.fixture
def tagged_context() -> BuildContext:
    return BuildContext(
        version="v1.2.3",
        branch_alias_version="",
        version_date=datetime.datetime(2016, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc),
    )


@pytest.fixture(autouse=True)
def reset_logger() -> Iterator[None]:
    yield
    logger: logging.Logger = logging.getLogger("phar_compiler")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
