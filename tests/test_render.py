import os

import pytest
from jinja2 import Environment

from bookforge.config import Book, Chapter, Collection, Content
from bookforge.render import (
    RenderError,
    copy_static_files_to_dir,
    minify_html,
    render_book_chapters,
    render_collection_to_website,
)


def _write(path, text):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)


def _read(path):
    with open(path, encoding="utf-8") as handle:
        return handle.read()


@pytest.fixture
def project(tmp_path):
    layouts = tmp_path / "layouts"
    _write(
        str(layouts / "index.html"),
        "<h1>{{ collection.title }}</h1>\n\n"
        "{% for book in collection.books %}<a>{{ book.title }}</a>{% endfor %}\n"
        "{% include '_nav_t.html' %}\n",
    )
    _write(str(layouts / "_nav_t.html"), "<nav>menu</nav>")
    _write(str(layouts / "_book.html"), "<h2>{{ book.title }}</h2>{{ book.content.html }}")
    _write(
        str(layouts / "_chapter.html"),
        "<h3>{{ chapter.title }}</h3>{{ chapter.content.html }}",
    )
    _write(str(layouts / "style.css"), "body{}")
    return tmp_path


def _collection():
    collection = Collection(title="Shelf & Co")
    book = Book(
        parent=collection,
        page_name="alpha",
        title="Alpha",
        content=Content(html="<p>intro</p>"),
    )
    chapter = Chapter(
        parent=book, page_name="one", title="One", content=Content(html="<p>first</p>")
    )
    book.chapters = [chapter]
    collection.books = [book]
    return collection


def test_render_writes_index_book_and_chapter(project):
    out = project / "out"
    render_collection_to_website(_collection(), project, out, False)

    index = _read(str(out / "index.html"))
    assert "<h1>Shelf &amp; Co</h1>" in index
    assert "<a>Alpha</a>" in index
    assert "<nav>menu</nav>" in index

    book_page = _read(str(out / "alpha" / "index.html"))
    assert "<p>intro</p>" in book_page

    chapter_page = _read(str(out / "alpha" / "one.html"))
    assert "<h3>One</h3>" in chapter_page
    assert "<p>first</p>" in chapter_page


def test_render_copies_static_files_but_not_templates(project):
    out = project / "out"
    render_collection_to_website(_collection(), project, out, False)
    assert os.path.samefile(out / "style.css", project / "layouts" / "style.css")
    assert not (out / "_nav_t.html").exists()
    assert not (out / "_book.html").exists()
    assert not (out / "_chapter.html").exists()


def test_render_links_cover_image(project):
    cover = project / "books" / "alpha" / "cover.png"
    _write(str(cover), "image")
    collection = _collection()
    collection.books[0].cover_image_name = "cover.png"
    out = project / "out"
    render_collection_to_website(collection, project, out, False)
    render_collection_to_website(collection, project, out, False)
    linked = out / "alpha" / "cover.png"
    assert _read(str(linked)) == "image"
    assert os.path.samefile(linked, cover)
    assert "<h2>Alpha</h2>" in _read(str(out / "alpha" / "index.html"))


def test_render_missing_template_raises(project):
    os.remove(project / "layouts" / "_chapter.html")
    with pytest.raises(RenderError, match="chapter template"):
        render_collection_to_website(_collection(), project, project / "out", False)


def test_render_missing_layouts_raises(tmp_path):
    with pytest.raises(RenderError, match="failed to copy files to output"):
        render_collection_to_website(_collection(), tmp_path, tmp_path / "out", False)


def test_render_with_minify_removes_line_breaks(project):
    out = project / "out"
    render_collection_to_website(_collection(), project, out, True)
    index = _read(str(out / "index.html"))
    assert "\n" not in index
    assert "<nav>menu</nav>" in index


def test_render_book_chapters_writes_each_chapter(tmp_path):
    template = Environment(autoescape=True).from_string("{{ chapter.content.html }}")
    chapters = [
        Chapter(page_name="a", content=Content(html="<em>x</em>")),
        Chapter(page_name="b", content=Content(html="<em>y</em>")),
    ]
    render_book_chapters(chapters, template, tmp_path, False)
    assert _read(str(tmp_path / "a.html")) == "<em>x</em>"
    assert _read(str(tmp_path / "b.html")) == "<em>y</em>"


def test_copy_static_files_handles_nested_directories_and_excludes(tmp_path):
    root = tmp_path / "layouts"
    _write(str(root / "a" / "one.css"), "1")
    _write(str(root / "b" / "two.css"), "2")
    _write(str(root / "index.html"), "skip")
    _write(str(root / "_part_t.html"), "skip")
    _write(str(root / "sub" / "_part_t.html"), "keep")
    out = tmp_path / "out"
    out.mkdir()

    copy_static_files_to_dir(root, out, root, ["index.html"], ["_*_t.html"])
    copy_static_files_to_dir(root, out, root, ["index.html"], ["_*_t.html"])

    assert os.path.samefile(out / "a" / "one.css", root / "a" / "one.css")
    assert os.path.samefile(out / "b" / "two.css", root / "b" / "two.css")
    assert os.path.samefile(out / "sub" / "_part_t.html", root / "sub" / "_part_t.html")
    assert not (out / "index.html").exists()
    assert not (out / "_part_t.html").exists()


def test_copy_static_files_missing_dir_raises(tmp_path):
    with pytest.raises(OSError):
        copy_static_files_to_dir(tmp_path / "nope", tmp_path, tmp_path / "nope", [], [])


def test_minify_collapses_whitespace_between_blocks():
    assert minify_html("<div>\n  <p>a   b</p>\n</div>") == "<div><p>a b</p></div>"


def test_minify_drops_comments_but_keeps_conditional_ones():
    text = "<p>x</p><!-- note --><!--[if IE]><p>old</p><![endif]-->"
    result = minify_html(text)
    assert "note" not in result
    assert "<!--[if IE]><p>old</p><![endif]-->" in result


def test_minify_keeps_preformatted_content():
    block = "<pre>  line one\n\n    line two</pre>"
    assert block in minify_html("<div>\n" + block + "\n</div>")


def test_minify_is_idempotent():
    text = "<html>\n<body>\n  <p>Hello   <b>world</b></p>\n</body>\n</html>\n"
    once = minify_html(text)
    assert minify_html(once) == once
    assert len(once) < len(text)