import io

import markdown
import pytest

from bookforge.highlighting import (
    CodeBlockContext,
    HighlightConfig,
    Highlighter,
    HighlightingExtension,
    parse_attributes,
    parse_highlight_lines,
)


def test_parse_attributes_values():
    attrs = parse_attributes('go {linenos=table hl_lines=[1,"3-4"] hl_style="monokai"}')
    assert attrs == {"linenos": "table", "hl_lines": [1.0, "3-4"], "hl_style": "monokai"}


def test_parse_attributes_id_class_and_flag():
    attrs = parse_attributes("py {#main .a .b nohl linenostart=5}")
    assert attrs == {"id": "main", "class": "a b", "nohl": True, "linenostart": 5.0}


@pytest.mark.parametrize("info", ["", "python", "{linenos=true}", "go {linenos=", None])
def test_parse_attributes_absent(info):
    assert parse_attributes(info) is None


def test_parse_highlight_lines_base_one():
    assert parse_highlight_lines([2.0, "4-6", "x", "7"], 1) == [(2, 2), (4, 6), (7, 7)]


def test_parse_highlight_lines_offset():
    ranges = parse_highlight_lines([1.0, "2-3"], 10)
    assert ranges == [(10, 10), (11, 12)]


def test_fallback_for_unknown_language():
    out = Highlighter().render_fenced_code_block("nosuchlang", 'a < "b"\n')
    assert out == '<pre><code class="language-nosuchlang">a &lt; &quot;b&quot;\n</code></pre>\n'


def test_fallback_without_language():
    out = Highlighter().render_fenced_code_block("", "x & y\n")
    assert out == "<pre><code>x &amp; y\n</code></pre>\n"


def test_nohl_disables_highlighting():
    out = Highlighter().render_fenced_code_block("python {nohl}", "x = 1\n")
    assert out.startswith('<pre><code class="language-python">')
    assert "x = 1\n" in out


def test_known_language_is_highlighted():
    out = Highlighter().render_fenced_code_block("python", "def f():\n    return 1\n")
    assert 'class="highlight"' in out
    assert "language-python" not in out
    assert "return" in out


def test_guess_language_highlights_without_language():
    config = HighlightConfig(guess_language=True)
    out = Highlighter(config).render_fenced_code_block("", "plain words\n")
    assert 'class="highlight"' in out


def test_line_numbers_option_adds_numbers():
    config = HighlightConfig(format_options={"linenos": "inline"})
    plain = Highlighter().render_fenced_code_block("python", "a = 1\nb = 2\n")
    numbered = Highlighter(config).render_fenced_code_block("python", "a = 1\nb = 2\n")
    assert "linenos" in numbered
    assert "linenos" not in plain


def test_linenos_attribute_table():
    out = Highlighter().render_fenced_code_block("python {linenos=table}", "a = 1\n")
    assert "<table" in out


def test_css_writer_receives_css():
    sink = io.StringIO()
    Highlighter(HighlightConfig(css_writer=sink)).render_fenced_code_block("python", "a = 1\n")
    assert ".highlight" in sink.getvalue() or "pre" in sink.getvalue()
    assert sink.getvalue().strip()


def test_wrapper_renderer_receives_context():
    seen = []

    def wrapper(context, entering):
        seen.append((context, entering))
        return "<div>" if entering else "</div>"

    config = HighlightConfig(wrapper_renderer=wrapper)
    highlighted = Highlighter(config).render_fenced_code_block("python", "a = 1\n")
    fallback = Highlighter(config).render_fenced_code_block("nosuchlang", "<x>\n")
    assert highlighted.startswith("<div>") and highlighted.endswith("</div>")
    assert fallback == "<div>&lt;x&gt;\n</div>"
    assert [entering for _, entering in seen] == [True, False, True, False]
    assert seen[0][0] == CodeBlockContext("python", True, None)
    assert seen[2][0].highlighted is False


def test_code_block_options_applied():
    def per_block(context):
        return {"linenos": "table"} if context.language == "python" else {}

    config = HighlightConfig(code_block_options=per_block)
    out = Highlighter(config).render_fenced_code_block("python", "a = 1\n")
    assert "<table" in out


def test_extension_in_markdown():
    md = markdown.Markdown(extensions=[HighlightingExtension()])
    out = md.convert("Intro\n\n```nosuchlang\n<b>\n```\n\nAfter")
    assert '<pre><code class="language-nosuchlang">&lt;b&gt;\n</code></pre>' in out
    assert "<p>Intro</p>" in out
    assert "<p>After</p>" in out


def test_extension_highlights_known_language():
    md = markdown.Markdown(extensions=[HighlightingExtension()])
    out = md.convert("~~~python\nx = 1\n~~~\n")
    assert 'class="highlight"' in out
    assert "~~~" not in out