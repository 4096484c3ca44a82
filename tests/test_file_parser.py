from app.services.file_parser import (
    EMPTY_PREVIEW,
    extract_html,
    files_from_response,
    generate_preview_html,
    parse_files_from_response,
)

MULTI_FILE_RESPONSE = """Here is your project.

```filepath:index.html
<html><head></head><body><h1>Shop</h1></body></html>
```

```filepath:style.css
body { background: #000; color: #fff; }
```

```filepath:app.js
console.log("ready to sell things");
```
"""


def test_parse_filepath_blocks():
    files = parse_files_from_response(MULTI_FILE_RESPONSE)
    assert [f["name"] for f in files] == ["index.html", "style.css", "app.js"]


def test_parse_keeps_longest_duplicate():
    response = (
        "```filepath:a.js\nconsole.log(1234567);\n```\n"
        "```filepath:a.js\nconsole.log('a longer version');\n```"
    )
    files = parse_files_from_response(response)
    assert len(files) == 1
    assert "longer" in files[0]["content"]


def test_parse_nothing():
    assert parse_files_from_response(None) == []
    assert parse_files_from_response("Sorry, I cannot help with that.") == []


def test_extract_html_from_fenced_block():
    response = "Sure!\n```html\n<!DOCTYPE html>\n<html><body>Hi</body></html>\n```\nEnjoy."
    assert extract_html(response) == "<!DOCTYPE html>\n<html><body>Hi</body></html>"


def test_extract_html_from_raw_document():
    response = "Intro text <!DOCTYPE html><html><body>Raw</body></html>\n```"
    assert extract_html(response) == "<!DOCTYPE html><html><body>Raw</body></html>"


def test_preview_inlines_css_and_js():
    files = parse_files_from_response(MULTI_FILE_RESPONSE)
    preview = generate_preview_html(files)
    assert "<style>body { background: #000" in preview
    assert "<script>console.log" in preview


def test_preview_without_html_file():
    assert generate_preview_html([]) == EMPTY_PREVIEW


def test_files_from_response_prefers_single_page():
    files = files_from_response(MULTI_FILE_RESPONSE)
    assert len(files) == 1
    assert files[0]["name"] == "index.html"
    assert "<style>" in files[0]["content"]


def test_files_from_empty_response():
    assert files_from_response(None) == []
    assert files_from_response("") == []
