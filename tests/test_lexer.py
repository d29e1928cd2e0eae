from phar_compiler.lexer import PhpLexer, Token, TokenKind


LEXER: PhpLexer = PhpLexer()


def _tokens(source: bytes) -> list[Token]:
    return list(LEXER.tokenize(source))


def _kinds(source: bytes) -> list[tuple[TokenKind, bytes]]:
    return [(t.kind, t.text) for t in _tokens(source)]


def test_tokens_concatenate_to_source() -> None:
    source: bytes = (
        b"<html>\n<?php\n"
        b"/** doc */\n"
        b"$a = \"x {$b['k']} y\"; // trailing\n"
        b"# hash comment\n"
        b"#[Attribute]\n"
        b"$h = <<<EOT\n  body // not a comment\n  EOT;\n"
        b"?>\n<p>done</p>\n"
    )
    assert b"".join(t.text for t in _tokens(source)) == source


def test_empty_source() -> None:
    assert _tokens(b"") == []


def test_inline_html_and_tags() -> None:
    kinds = _kinds(b"<b>hi</b><?php echo 1; ?>\ntail")
    assert kinds[0] == (TokenKind.INLINE_HTML, b"<b>hi</b>")
    assert kinds[1] == (TokenKind.OPEN_TAG, b"<?php ")
    assert (TokenKind.CLOSE_TAG, b"?>\n") in kinds
    assert kinds[-1] == (TokenKind.INLINE_HTML, b"tail")


def test_file_without_open_tag_is_inline_html() -> None:
    source: bytes = b"Copyright (c)   someone\n\n    indented\n"
    tokens: list[Token] = _tokens(source)
    assert {t.kind for t in tokens} == {TokenKind.INLINE_HTML}
    assert b"".join(t.text for t in tokens) == source


def test_comment_kinds() -> None:
    kinds = _kinds(b"<?php\n/** doc */ /* block */ // line\n# hash\n")
    assert (TokenKind.DOC_COMMENT, b"/** doc */") in kinds
    assert (TokenKind.COMMENT, b"/* block */") in kinds
    assert (TokenKind.COMMENT, b"// line\n") in kinds
    assert (TokenKind.COMMENT, b"# hash\n") in kinds


def test_line_comment_takes_its_newline() -> None:
    kinds = _kinds(b"<?php\nfoo(); // c\r\n    bar();\n")
    assert (TokenKind.COMMENT, b"// c\r\n") in kinds
    assert (TokenKind.WHITESPACE, b"    ") in kinds


def test_line_comment_ends_at_close_tag() -> None:
    kinds = _kinds(b"<?php // note ?>after")
    comments: list[bytes] = [text for kind, text in kinds if kind is TokenKind.COMMENT]
    assert len(comments) == 1
    assert comments[0].startswith(b"// note") is True
    assert b"?>" not in comments[0]
    assert (TokenKind.CLOSE_TAG, b"?>") in kinds
    assert kinds[-1] == (TokenKind.INLINE_HTML, b"after")


def test_attribute_is_not_a_comment() -> None:
    kinds = _kinds(b"<?php\n#[Pure]\nfunction f() {}\n")
    assert all(k is not TokenKind.COMMENT for k, _ in kinds)


def test_comment_markers_inside_strings() -> None:
    kinds = _kinds(b"<?php $u = 'http://example.com'; $v = \"/* not */\";")
    assert (TokenKind.STRING, b"'http://example.com'") in kinds
    assert (TokenKind.STRING, b'"/* not */"') in kinds
    assert all(k is not TokenKind.COMMENT for k, _ in kinds)


def test_interpolation_with_nested_quotes() -> None:
    kinds = _kinds(b'<?php $s = "a {$m["x  y"]} b";')
    assert (TokenKind.STRING, b'"a {$m["x  y"]} b"') in kinds


def test_escaped_quotes() -> None:
    kinds = _kinds(b"<?php $s = 'it\\'s'; $t = \"say \\\"hi\\\"\";")
    assert (TokenKind.STRING, b"'it\\'s'") in kinds
    assert (TokenKind.STRING, b'"say \\"hi\\""') in kinds


def test_heredoc_and_nowdoc() -> None:
    source: bytes = b"<?php\n$a = <<<EOT\nx   // y\nEOT;\n$b = <<<'RAW'\n  # z\n  RAW;\n"
    kinds = _kinds(source)
    assert (TokenKind.STRING, b"<<<EOT\nx   // y\nEOT") in kinds
    assert (TokenKind.STRING, b"<<<'RAW'\n  # z\n  RAW") in kinds


def test_data_after_halt_compiler_is_one_token() -> None:
    kinds = _kinds(b"<?php\necho 1;\n__halt_compiler();\nDATA  // payload\n    keep\n")
    assert kinds[-5:] == [
        (TokenKind.CODE, b"__halt_compiler"),
        (TokenKind.CODE, b"("),
        (TokenKind.CODE, b")"),
        (TokenKind.CODE, b";"),
        (TokenKind.INLINE_HTML, b"\nDATA  // payload\n    keep\n"),
    ]


def test_halt_compiler_is_case_insensitive_and_may_end_with_close_tag() -> None:
    kinds = _kinds(b"<?php __HALT_COMPILER ( ) ?>\nraw  # data /*")
    assert (TokenKind.CODE, b"__HALT_COMPILER") in kinds
    assert kinds[-2] == (TokenKind.CLOSE_TAG, b"?>\n")
    assert kinds[-1] == (TokenKind.INLINE_HTML, b"raw  # data /*")
    assert all(k is not TokenKind.COMMENT for k, _ in kinds)
