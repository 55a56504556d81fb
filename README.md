# bookforge

bookforge turns a directory of Markdown files and YAML configuration into a
static website: one index page for the whole collection, one page per book and
one page per chapter. Pages are rendered through your own Jinja2 templates, and
fenced code blocks are syntax-highlighted with Pygments.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Project layout

```
my-writing/
├── bookgen.yml              # collection settings (title is required)
├── layouts/
│   ├── index.html           # collection index template
│   ├── _book.html           # book page template
│   ├── _chapter.html        # chapter page template
│   ├── _*_t.html            # partial templates, not copied to the output
│   └── ...                  # every other file is linked into the output
└── books/
    └── my-novel/
        ├── bookgen-book.yml # book settings (title is required)
        ├── index.md         # optional book description page
        └── chapters/
            ├── 01-start.md
            └── 02-middle.md
```

Every subdirectory of `books/` must hold a `bookgen-book.yml`. A missing
`books/` directory simply gives a collection with no books; a missing
`index.md` or `chapters/` directory is allowed too.

## Configuration

`bookgen.yml` and `bookgen-book.yml` are YAML mappings. Keys are matched
against the fields of `bookforge.config.Collection` and `bookforge.config.Book`
without regard to letter case or underscores, so `coverImageName`,
`CoverImageName` and `coverimagename` all set `cover_image_name`. Unknown keys
are kept in the object's `params` dictionary, which is also available to
templates. A value of the wrong type is an error.

Defaults and rules:

- The collection title defaults to `My Writing`; a book needs a non-empty
  `title`.
- A book's `status` defaults to `completed` and must be one of `completed`,
  `hiatus` or `ongoing` (any letter case).
- A book's page name is its directory name; a chapter's is its file name
  without `.md`.
- Books inherit the collection's language code; chapters inherit the book's
  language code and copyright.

A chapter may begin with a YAML front-matter block between `---` lines:

```
---
title: The Beginning
order: 1
published: 2024-03-01
---

It was a dark and stormy night...
```

Chapters are sorted by `order` (default 1), then by `title`, and each chapter
gets `previous` and `next` links to its neighbours. If the front matter is not
valid YAML, the block is shown in the page followed by the error as an HTML
comment, and the chapter keeps its defaults.

Books and chapters read the `published` and `modified` keys as dates. Accepted
forms are `2024`, `2024-03`, `2024-03-01`, `2024-03-01 14:30`,
`2024-03-01T14:30`, the same with seconds, and any of the time forms followed
by `Z` or an offset such as `+02:00`. Times without an offset are taken as UTC.

## Markdown

Markdown is rendered with tables, footnotes, smart punctuation, attribute lists
and heading ids. Fenced code blocks whose language Pygments knows are
highlighted with inline styles and line numbers. Options can follow the
language in braces:

````
```python {linenostart=10 hl_lines=[1, "3-4"] hl_style=monokai linenos=table}
...
```
````

- `linenostart` – number of the first line
- `hl_lines` – lines to emphasise, as numbers or `"a-b"` ranges
- `hl_style` – Pygments style for this block
- `linenos` – `table`, `inline`, `true` or `false`
- `nohl` – render the block as plain `<pre><code>` without highlighting

Unknown languages are also rendered as plain `<pre><code>`. When no style name
is found, Pygments' `default` style is used.

## Templates

Templates are Jinja2 with autoescaping. The collection index gets `collection`,
the book page gets `book`, and the chapter page gets `chapter`; rendered
Markdown in `content.html` is marked safe, so `{{ chapter.content.html }}`
inserts the HTML as is. Any file in `layouts/` can be used with
`{% include %}` or `{% extends %}`.

The output holds `index.html`, a directory per book with its `index.html`,
one `<page name>.html` per chapter, and the book's cover image when
`coverImageName` is set. Static files and cover images are hard-linked, so the
output directory must be on the same file system as the input.

## Usage

```
bookforge [FLAGS...] [/path/to/input-directory]
```

Flags:

- `-i, --input-directory <string>` – directory containing `bookgen.yml` (default `./`)
- `-o, --output-directory <string>` – where the site is written (default `<input>/out`)
- `--plain` – no terminal styling in output
- `-q, --no-non-essential-output` – print only errors
- `--minify` – minify the generated HTML
- `-h, -?, --help` – show help
- `-v, -V, --version` – show the version

The output directory may not be the same as the input directory. Arguments
after `--` are ignored. The command exits with status 1 and a message on
standard error when decoding or rendering fails.

## Library use

```python
from bookforge.decode import decode_collection
from bookforge.render import render_collection_to_website

collection = decode_collection("my-writing")
render_collection_to_website(collection, "my-writing", "my-writing/out", False)
```

`decode_collection`, `decode_book` and `decode_chapter` raise
`bookforge.decode.DecodeError` when a configuration file is missing or invalid;
rendering problems raise `bookforge.render.RenderError`.
`bookforge.decode.convert_markdown_to_html` renders a single Markdown text and
returns it with its front matter, and `bookforge.render.minify_html` minifies
an HTML string.

## What it does not do

- No EPUB or other e-book files are produced. `internal.generate_epub` is
  only a setting that templates can read.
- There is no development server or watch mode; run the command again and
  serve the output directory with any static file server.