"""Table-of-contents generation for merged reports."""

from __future__ import annotations

import re
from typing import List, Tuple


class TableOfContentsBuilder:
    """Builds a ToC block from level two and three headings."""

    PLACEHOLDER = "<!-- treelens:toc -->"
    BEGIN = "<!-- treelens:begin:toc -->"
    END = "<!-- treelens:end:toc -->"

    def build(self, markdown: str) -> str:
        toc_block = self._build_block(markdown)
        if not toc_block:
            return markdown.replace(self.PLACEHOLDER, "", 1)
        if self.BEGIN in markdown and self.END in markdown:
            pre, rest = markdown.split(self.BEGIN, 1)
            _, post = rest.split(self.END, 1)
            return f"{pre}{toc_block}{post}"
        if self.PLACEHOLDER in markdown:
            return markdown.replace(self.PLACEHOLDER, toc_block, 1)
        return toc_block + "\n" + markdown

    def headings(self, markdown: str) -> List[Tuple[int, str, str]]:
        found: List[Tuple[int, str, str]] = []
        seen: dict[str, int] = {}
        in_code = False
        in_toc = False
        for line in markdown.splitlines():
            stripped = line.strip()
            if stripped in (self.BEGIN, self.END):
                in_toc = stripped == self.BEGIN
                continue
            if in_toc:
                continue
            if stripped.startswith("```"):
                in_code = not in_code
                continue
            if in_code:
                continue
            match = re.match(r"^(#{2,3})\s+(.*)$", stripped)
            if not match:
                continue
            title = match.group(2).strip()
            anchor = self._slugify(title)
            # Repeated titles get numbered anchors, as Markdown renderers do.
            count = seen.get(anchor, 0)
            seen[anchor] = count + 1
            if count:
                anchor = f"{anchor}-{count}"
            found.append((len(match.group(1)), title, anchor))
        return found

    def _build_block(self, markdown: str) -> str:
        headings = self.headings(markdown)
        if not headings:
            return ""

        output: List[str] = [self.BEGIN, "## Table of Contents", ""]
        for level, title, anchor in headings:
            indent = "  " * (level - 2)
            output.append(f"{indent}- [{title}](#{anchor})")
        output.append(self.END)
        return "\n".join(output)

    @staticmethod
    def _slugify(title: str) -> str:
        slug = title.lower()
        slug = re.sub(r"[^a-z0-9\s-]", "", slug)
        slug = re.sub(r"\s+", "-", slug)
        slug = re.sub(r"-+", "-", slug)
        return slug.strip("-")
