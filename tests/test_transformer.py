"""
Transformer Tests
=================
Tokenizing PHP, stripping comments/whitespace, framing encrypted output.
"""

import textwrap

import pytest

from obfuscator.config import DECRYPT_HEADER, PAYLOAD_SEPARATOR
from obfuscator.encryption import AesGcmPrimitive, IdentityPrimitive
from obfuscator.lexer import COMMENT, OTHER, WHITESPACE, PhpLexer, render
from obfuscator.transformer import TransformError, TransformOptions, Transformer, split_payload

SOURCE = textwrap.dedent("""\
    <?php
    /**
     * User model.
     */
    class User   // trailing comment
    {
        # hash comment
        public $name = "not // a comment";
        #[Attribute]
        public function greet() { return 'hi /* still a string */'; }
    }
""")


class FailingPrimitive:
    name = "failing"

    def is_available(self):
        return True

    def encrypt(self, content, key):
        raise RuntimeError("boom")


@pytest.fixture
def lexer():
    return PhpLexer()


class TestLexer:
    def test_tokens_reproduce_input(self, lexer):
        assert render(lexer.tokenize(SOURCE)) == SOURCE

    def test_finds_all_comment_kinds(self, lexer):
        comments = [t.text for t in lexer.tokenize(SOURCE) if t.kind == COMMENT]
        assert comments == ["/**\n * User model.\n */", "// trailing comment", "# hash comment"]

    def test_strings_are_not_comments(self, lexer):
        tokens = lexer.tokenize(SOURCE)
        assert any(t.text == '"not // a comment"' and t.kind == OTHER for t in tokens)

    def test_inline_html_is_opaque(self, lexer):
        tokens = lexer.tokenize("<p>  // not php  </p><?php echo 1; ?>\n<b> </b>")
        assert tokens[0].kind == OTHER
        assert tokens[0].text == "<p>  // not php  </p>"
        assert tokens[-1].text == "<b> </b>"
        assert all(t.kind != COMMENT for t in tokens)

    def test_heredoc_body_is_one_token(self, lexer):
        source = "<?php\n$x = <<<EOT\n  # not a comment\nEOT;\n"
        tokens = lexer.tokenize(source)
        assert render(tokens) == source
        assert all(t.kind != COMMENT for t in tokens)

    def test_line_comment_stops_at_close_tag(self, lexer):
        tokens = lexer.tokenize("<?php // note ?>html")
        assert [t.text for t in tokens if t.kind == COMMENT] == ["// note "]
        assert tokens[-1].text == "html"

    def test_whitespace_tokens(self, lexer):
        tokens = lexer.tokenize("<?php $a  =\n\t1;")
        assert [t.text for t in tokens if t.kind == WHITESPACE] == ["  ", "\n\t"]


class TestStripping:
    def test_strip_comments_keeps_spacing(self):
        transformer = Transformer(IdentityPrimitive())
        stripped = transformer.strip_comments(SOURCE)
        assert "User model" not in stripped
        assert "trailing comment" not in stripped
        assert "hash comment" not in stripped
        assert '"not // a comment"' in stripped
        assert "'hi /* still a string */'" in stripped
        assert "#[Attribute]" in stripped
        assert "class User   \n" in stripped

    def test_strip_whitespace_collapses_runs(self):
        transformer = Transformer(IdentityPrimitive())
        assert transformer.strip_whitespace("<?php\n$a   =\n\n  1;") == "<?php\n$a = 1;"

    def test_prepare_removes_open_tag(self):
        transformer = Transformer(IdentityPrimitive())
        prepared = transformer.prepare(SOURCE)
        assert not prepared.startswith("<?php")
        assert prepared.startswith("class User")
        assert "\n" not in prepared

    def test_options_can_disable_passes(self):
        transformer = Transformer(IdentityPrimitive(), TransformOptions(strip_comments=False, strip_whitespace=False))
        prepared = transformer.prepare(SOURCE)
        assert "// trailing comment" in prepared
        assert prepared == SOURCE[len("<?php\n"):]


class TestTransform:
    def test_output_is_framed(self):
        transformer = Transformer(IdentityPrimitive())
        output = transformer.transform("<?php echo 1;", "key123")
        assert output == (DECRYPT_HEADER + PAYLOAD_SEPARATOR + "echo 1;").encode("utf-8")

    def test_aes_output_decrypts_with_session_key(self):
        primitive = AesGcmPrimitive()
        transformer = Transformer(primitive)
        output = transformer.transform(SOURCE, "s3cret")
        plain = primitive.decrypt(split_payload(output), "s3cret")
        assert plain == transformer.prepare(SOURCE)

    def test_primitive_failure_raises_transform_error(self):
        with pytest.raises(TransformError, match="boom"):
            Transformer(FailingPrimitive()).transform("<?php echo 1;", "key")

    def test_transform_file_creates_parent_dirs(self, tmp_path):
        src = tmp_path / "in.php"
        src.write_text("<?php echo 1;", encoding="utf-8")
        dst = tmp_path / "out" / "nested" / "in.php"

        Transformer(IdentityPrimitive()).transform_file(src, dst, "key")

        assert dst.read_bytes().endswith(b"echo 1;")

    def test_unreadable_source_raises_transform_error(self, tmp_path):
        with pytest.raises(TransformError, match="Failed to read"):
            Transformer(IdentityPrimitive()).transform_file(tmp_path / "missing.php", tmp_path / "o.php", "key")

    def test_comment_only_source_gives_empty_payload(self):
        output = Transformer(IdentityPrimitive()).transform("<?php // routes\n", "key")
        assert split_payload(output) == b""

    def test_crlf_inside_strings_survives_file_read(self, tmp_path):
        src = tmp_path / "crlf.php"
        src.write_bytes(b'<?php $s = "x\r\ny";')
        dst = tmp_path / "out.php"
        options = TransformOptions(strip_comments=False, strip_whitespace=False)

        Transformer(IdentityPrimitive(), options).transform_file(src, dst, "key")

        assert split_payload(dst.read_bytes()) == b'$s = "x\r\ny";'
