"""Wikilink and tag extraction plus note name/folder helpers.

Everything here is regex based and tolerant: malformed frontmatter or
unbalanced brackets simply contribute nothing.
"""

from __future__ import annotations

import re
from typing import List, Optional, Set, Tuple

# [[Target]], [[Target|Display]], [[Target#Section]]; only Target is captured.
WIKILINK_PATTERN = re.compile(r"\[\[([^\]|#]+)(?:[|#][^\]]+)?\]\]")
FRONTMATTER_PATTERN = re.compile(r"---\r?\n(.*?)\r?\n---", re.DOTALL)
INLINE_TAG_LIST_PATTERN = re.compile(r"^tags:\s*\[([^\]]*)\]", re.MULTILINE)
BLOCK_TAG_LIST_PATTERN = re.compile(r"^tags:\s*\n((?:\s+-\s+.+\n?)*)", re.MULTILINE)
BLOCK_TAG_ITEM_PATTERN = re.compile(r"-\s+(.+)")
INLINE_TAG_PATTERN = re.compile(r"(?:^|\s)#([a-zA-Z][a-zA-Z0-9_/-]*)")
QUOTE_PATTERN = re.compile(r"^[\"']|[\"']$")

MARKDOWN_SUFFIX = ".md"


def name_from_path(path: str) -> str:
    """Return the note name: ``Infrastructure/Foo.md`` -> ``Foo``."""
    basename = path.split("/")[-1] or path
    if basename.endswith(MARKDOWN_SUFFIX):
        return basename[: -len(MARKDOWN_SUFFIX)]
    return basename


def group_from_path(path: str) -> str:
    """Return the containing folder: ``Infrastructure/Foo.md`` -> ``Infrastructure``."""
    parts = path.split("/")
    return "/".join(parts[:-1]) if len(parts) > 1 else ""


def split_frontmatter(text: str) -> Tuple[Optional[str], str]:
    """Split a leading ``---`` block from the body.

    Returns ``(frontmatter, body)``; frontmatter is ``None`` when the text
    does not open with a closed ``---`` block.
    """
    match = FRONTMATTER_PATTERN.match(text or "")
    if match is None:
        return None, text or ""
    return match.group(1), text[match.end():]


def parse_references(text: str) -> List[str]:
    """Extract wikilink targets in document order."""
    targets: List[str] = []
    for match in WIKILINK_PATTERN.finditer(text or ""):
        target = match.group(1).strip()
        if target:
            targets.append(target)
    return targets


def _clean_tag(raw: str) -> str:
    cleaned = QUOTE_PATTERN.sub("", raw.strip())
    if cleaned.startswith("#"):
        cleaned = cleaned[1:]
    return cleaned


def _frontmatter_tags(frontmatter: str) -> Set[str]:
    tags: Set[str] = set()

    inline = INLINE_TAG_LIST_PATTERN.search(frontmatter)
    if inline:
        for item in inline.group(1).split(","):
            cleaned = _clean_tag(item)
            if cleaned:
                tags.add(cleaned)

    block = BLOCK_TAG_LIST_PATTERN.search(frontmatter)
    if block:
        for item in BLOCK_TAG_ITEM_PATTERN.findall(block.group(1)):
            cleaned = _clean_tag(item)
            if cleaned:
                tags.add(cleaned)

    return tags


def parse_tags(text: str) -> Set[str]:
    """Collect frontmatter tags and inline ``#tags`` from the body."""
    frontmatter, body = split_frontmatter(text)
    tags = _frontmatter_tags(frontmatter) if frontmatter is not None else set()
    for match in INLINE_TAG_PATTERN.finditer(body):
        tags.add(match.group(1))
    return tags


__all__ = [
    "name_from_path",
    "group_from_path",
    "split_frontmatter",
    "parse_references",
    "parse_tags",
]
