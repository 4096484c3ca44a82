"""
Best-effort extraction of files from LLM responses. Zero files is a valid
outcome and callers treat it as a failed generation.
"""
import re
from typing import List, Optional

# Patterns are tried in order; the first one that yields anything wins
FILE_PATTERNS = [
    re.compile(r"```filepath:([^\n]+)\n([\s\S]*?)```"),
    re.compile(r"```(?:javascript|jsx|tsx|typescript|json|html|css|js|ts|bash|sh|text|markdown|md)?\s+([^\n`]+\.[a-z]{1,6})\n([\s\S]*?)```"),
    re.compile(r"(?:\*\*|###?\s*)(?:File:?\s*)?`?([^\n`*]+\.[a-z]{1,6})`?\*{0,2}\s*\n+```[^\n]*\n([\s\S]*?)```"),
    re.compile(r"===\s*(?:FILE:\s*)?([^\n=]+?)\s*===\n([\s\S]*?)(?=\n===|$)"),
]

MIN_FILE_LENGTH = 10

EMPTY_PREVIEW = "<html><body><h1>No preview available</h1></body></html>"


def _dedup(files: List[dict]) -> List[dict]:
    """Keep one entry per name, preferring the longest content."""
    seen = {}
    for f in files:
        current = seen.get(f["name"])
        if current is None or len(f["content"]) > len(current["content"]):
            seen[f["name"]] = f
    return list(seen.values())


def parse_files_from_response(response: Optional[str]) -> List[dict]:
    if not response:
        return []
    for pattern in FILE_PATTERNS:
        files = []
        for match in pattern.finditer(response):
            name = match.group(1).strip()
            content = match.group(2).strip()
            if name and len(content) > MIN_FILE_LENGTH:
                files.append({"name": name, "content": content})
        if files:
            return _dedup(files)
    return []


def _find(files: List[dict], predicate) -> Optional[dict]:
    return next((f for f in files if predicate(f["name"])), None)


def _inline_assets(files: List[dict]) -> Optional[str]:
    html = _find(files, lambda name: name.endswith(".html"))
    if not html:
        return None
    css = _find(files, lambda name: name.endswith(".css"))
    js = _find(files, lambda name: name.endswith(".js") and "service-worker" not in name)

    content = html["content"]
    if css and css["content"][:50] not in content:
        content = content.replace("</head>", f"<style>{css['content']}</style></head>", 1)
    if js and js["content"][:50] not in content:
        content = content.replace("</body>", f"<script>{js['content']}</script></body>", 1)
    return content


def generate_preview_html(files: List[dict]) -> str:
    return _inline_assets(files or []) or EMPTY_PREVIEW


def _strip_trailing_fence(html: str) -> str:
    return re.sub(r"```\s*$", "", html).strip()


def extract_html(response: Optional[str]) -> Optional[str]:
    """Pull a single self-contained HTML document out of a model response."""
    if not response:
        return None

    block = re.search(r"```(?:html)?\s*\n([\s\S]*?)```", response)
    if block:
        code = block.group(1).strip()
        if "<!DOCTYPE" in code or "<html" in code or "<head" in code:
            return code

    # Multi-file answers are merged before the raw markers would swallow them whole
    files = parse_files_from_response(response)
    if len(files) > 1:
        inlined = _inline_assets(files)
        if inlined:
            return inlined

    for marker in ("<!DOCTYPE", "<html"):
        index = response.find(marker)
        if index != -1:
            return _strip_trailing_fence(response[index:])

    if files:
        inlined = _inline_assets(files)
        if inlined:
            return inlined

    first_tag = response.find("<")
    if first_tag != -1:
        snippet = response[first_tag:first_tag + 30].lower()
        if any(tag in snippet for tag in ("<head", "<body", "<div", "<style", "<meta")):
            html = _strip_trailing_fence(response[first_tag:])
            if "<html" not in html:
                html = f'<!DOCTYPE html>\n<html lang="en">\n{html}\n</html>'
            return html

    return None


def files_from_response(response: Optional[str]) -> List[dict]:
    """Single index.html when the response is one page, otherwise the parsed file list."""
    html = extract_html(response)
    if html:
        return [{"name": "index.html", "content": html}]
    return parse_files_from_response(response)
