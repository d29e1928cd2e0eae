"""PHP tokenizer backed by the tree-sitter PHP grammar.

Only the distinctions needed for comment and whitespace stripping are made:
inline HTML, open/close tags, whitespace, comments, string literals and
"everything else". Concatenating the text of all tokens always yields the
input unchanged.
"""

from dataclasses import dataclass
import enum
import re
from typing import Iterator, Protocol

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language


class TokenKind(enum.Enum):
    INLINE_HTML = "inline_html"
    OPEN_TAG = "open_tag"
    CLOSE_TAG = "close_tag"
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    DOC_COMMENT = "doc_comment"
    STRING = "string"
    CODE = "code"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token.

    :ivar kind: Token classification.
    :ivar text: Exact source bytes of the token.
    """

    kind: TokenKind
    text: bytes


class Lexer(Protocol):
    """Anything that can split PHP source into :class:`~Token` objects."""

    def tokenize(self, source: bytes) -> Iterator[Token]: ...


# Nodes emitted whole; the parser is not descended into.
_ATOMIC_NODES: dict[str, TokenKind] = {
    "text": TokenKind.INLINE_HTML,
    "php_tag": TokenKind.OPEN_TAG,
    "?>": TokenKind.CLOSE_TAG,
    "comment": TokenKind.COMMENT,
    "string": TokenKind.STRING,
    "encapsed_string": TokenKind.STRING,
    "heredoc": TokenKind.STRING,
    "nowdoc": TokenKind.STRING,
    "shell_command": TokenKind.STRING,
}

_WHITESPACE_RE: re.Pattern[bytes] = re.compile(rb"[ \t\r\n]+\Z")
_OPEN_TAG_TAIL_RE: re.Pattern[bytes] = re.compile(rb"\r\n|[ \t\r\n]")
_CLOSE_TAG_TAIL_RE: re.Pattern[bytes] = re.compile(rb"\r\n|\n")

# Everything after ``__halt_compiler();`` is raw data, not PHP.
_HALT_COMPILER_RE: re.Pattern[bytes] = re.compile(
    rb"(?P<name>__halt_compiler)(?P<ws1>[ \t\r\n]*)(?P<lp>\()(?P<ws2>[ \t\r\n]*)(?P<rp>\))(?P<ws3>[ \t\r\n]*)"
    rb"(?:(?P<semi>;)|(?P<close>\?>(?:\r\n|\n)?))",
    re.IGNORECASE,
)


class PhpLexer:
    """PHP lexer over a tree-sitter syntax tree.

    Leaves of the tree become tokens; the bytes between leaves that the
    grammar skips are whitespace inside PHP code and inline HTML outside it.
    """

    def __init__(self) -> None:
        self._parser: Parser | None = None

    def tokenize(self, source: bytes) -> Iterator[Token]:
        for kind, start, end in self._spans(source):
            if kind is TokenKind.CODE:
                m = _HALT_COMPILER_RE.match(source, start)
                if m is not None:
                    yield from _halt_compiler_tokens(source, m)
                    return
            yield Token(kind, source[start:end])

    def _spans(self, source: bytes) -> Iterator[tuple[TokenKind, int, int]]:
        if self._parser is None:
            self._parser = Parser(get_language("php"))
        tree = self._parser.parse(source)

        pos: int = 0
        in_script: bool = False
        stack: list[Node] = [tree.root_node]
        while len(stack) > 0:
            node: Node = stack.pop()
            kind: TokenKind | None = _ATOMIC_NODES.get(node.type)
            if kind is None and node.child_count > 0:
                stack.extend(reversed(node.children))
                continue

            end: int = node.end_byte
            if end <= pos:
                # Zero-width recovery nodes, or bytes already claimed by a tag.
                continue
            if node.start_byte > pos:
                yield _gap_kind(source[pos : node.start_byte], in_script), pos, node.start_byte
                pos = node.start_byte

            if kind is None:
                kind = TokenKind.CODE
            elif kind is TokenKind.OPEN_TAG:
                in_script = True
                if source[pos:end].lower() == b"<?php":
                    end = _absorb(_OPEN_TAG_TAIL_RE, source, end)
            elif kind is TokenKind.CLOSE_TAG:
                in_script = False
                end = _absorb(_CLOSE_TAG_TAIL_RE, source, end)
            elif kind is TokenKind.COMMENT:
                text: bytes = source[pos:end]
                if text.startswith(b"/*") is False:
                    end = _absorb(_CLOSE_TAG_TAIL_RE, source, end)
                elif len(text) > 3 and text.startswith(b"/**") is True and text[3:4] in (b" ", b"\t", b"\r", b"\n"):
                    kind = TokenKind.DOC_COMMENT

            yield kind, pos, end
            pos = end

        if pos < len(source):
            yield _gap_kind(source[pos:], in_script), pos, len(source)


def _gap_kind(gap: bytes, in_script: bool) -> TokenKind:
    if in_script is False:
        return TokenKind.INLINE_HTML
    if _WHITESPACE_RE.match(gap) is not None:
        return TokenKind.WHITESPACE
    return TokenKind.CODE


def _absorb(tail: re.Pattern[bytes], source: bytes, end: int) -> int:
    """Extend a tag or line comment over the line ending PHP attaches to it."""

    m = tail.match(source, end)
    if m is None:
        return end
    return m.end()


def _halt_compiler_tokens(source: bytes, m: re.Match[bytes]) -> Iterator[Token]:
    """Tokens for ``__halt_compiler();`` and the raw data after it.

    :param source: Full source.
    :param m: Match of the halt call, starting at the identifier.
    """

    for group in ("name", "ws1", "lp", "ws2", "rp", "ws3", "semi", "close"):
        text: bytes | None = m.group(group)
        if text is None or text == b"":
            continue
        if group.startswith("ws") is True:
            yield Token(TokenKind.WHITESPACE, text)
        elif group == "close":
            yield Token(TokenKind.CLOSE_TAG, text)
        else:
            yield Token(TokenKind.CODE, text)

    if m.end() < len(source):
        yield Token(TokenKind.INLINE_HTML, source[m.end() :])
