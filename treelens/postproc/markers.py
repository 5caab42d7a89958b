"""Comment markers delimiting each analyser's section of a merged report."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict

_BLOCK = re.compile(
    r"<!-- treelens:begin:(?P<key>[a-z0-9-]+) -->\n?(?P<body>.*?)\n?<!-- treelens:end:(?P=key) -->",
    re.DOTALL,
)


@dataclass
class SectionContent:
    """Rendered body of one report section."""

    name: str
    body: str


class MarkerManager:
    """Wraps artifact bodies in begin/end comments and reads them back."""

    BEGIN_FMT = "<!-- treelens:begin:{key} -->"
    END_FMT = "<!-- treelens:end:{key} -->"
    RESERVED = frozenset({"toc"})

    @staticmethod
    def key_for(name: str) -> str:
        """Slug used inside the markers, e.g. ``File Count`` -> ``file-count``."""
        key = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
        return key or "section"

    def wrap(self, section: SectionContent) -> str:
        key = self.key_for(section.name)
        return "\n".join(
            [self.BEGIN_FMT.format(key=key), section.body.strip(), self.END_FMT.format(key=key)]
        )

    def extract(self, markdown: str) -> Dict[str, str]:
        """Map each section key to its body, in document order; the ToC block is skipped."""
        return {
            match.group("key"): match.group("body").strip()
            for match in _BLOCK.finditer(markdown)
            if match.group("key") not in self.RESERVED
        }
