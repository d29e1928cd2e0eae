"""Content transformations applied before files are embedded."""

import re

from phar_compiler.lexer import Lexer, Token, TokenKind
from phar_compiler.version import BuildContext


VERSION_PLACEHOLDER: bytes = b"@package_version@"
BRANCH_ALIAS_PLACEHOLDER: bytes = b"@package_branch_alias_version@"
RELEASE_DATE_PLACEHOLDER: bytes = b"@release_date@"

_SHEBANG_RE: re.Pattern[bytes] = re.compile(rb"^#!/usr/bin/env php\s*")
_WIDE_SPACE_RE: re.Pattern[bytes] = re.compile(rb"[ \t]+")
_NEWLINE_RE: re.Pattern[bytes] = re.compile(rb"\r\n|\r|\n")
_LEADING_SPACE_RE: re.Pattern[bytes] = re.compile(rb"\n +")


def strip_whitespace(content: bytes, lexer: Lexer | None) -> bytes:
    """Remove comments and redundant whitespace from PHP source.

    Line numbers are preserved: every comment is replaced by the newlines it
    contained. Without a lexer the content is returned unmodified.

    :param content: Raw PHP source.
    :param lexer: Tokenizer, or ``None`` when unavailable.
    :returns: Stripped source.
    """

    if lexer is None:
        return content

    out: list[bytes] = []
    for token in lexer.tokenize(content):
        out.append(_strip_token(token))
    return b"".join(out)


def _strip_token(token: Token) -> bytes:
    if token.kind is TokenKind.COMMENT or token.kind is TokenKind.DOC_COMMENT:
        return b"\n" * len(_NEWLINE_RE.findall(token.text))
    if token.kind is TokenKind.WHITESPACE:
        ws: bytes = _WIDE_SPACE_RE.sub(b" ", token.text)
        ws = _NEWLINE_RE.sub(b"\n", ws)
        return _LEADING_SPACE_RE.sub(b"\n", ws)
    return token.text


def wrap_license(content: bytes) -> bytes:
    """Surround a verbatim license with blank lines."""

    return b"\n" + content + b"\n"


def replace_version_placeholders(content: bytes, context: BuildContext) -> bytes:
    """Substitute the version placeholders of the designated version file.

    :param content: File content.
    :param context: Resolved build context.
    :returns: Content with ``@package_version@``, ``@package_branch_alias_version@``
        and ``@release_date@`` replaced.
    """

    content = content.replace(VERSION_PLACEHOLDER, context.version.encode("utf-8"))
    content = content.replace(BRANCH_ALIAS_PLACEHOLDER, context.branch_alias_version.encode("utf-8"))
    return content.replace(RELEASE_DATE_PLACEHOLDER, context.release_date.encode("ascii"))


def strip_shebang(content: bytes) -> bytes:
    """Drop a leading ``#!/usr/bin/env php`` line; the stub is the entry point."""

    return _SHEBANG_RE.sub(b"", content, count=1)
