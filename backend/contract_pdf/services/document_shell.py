"""
Document shell for rendering.

The producer sends only the contract body. Before rendering, the body is
wrapped in a fixed HTML document that inlines the print stylesheet shipped
with the package (assets/contract-print-styles.css). The stylesheet is a
build-time constant identified by STYLESHEET_VERSION.
"""
from __future__ import annotations

import html
from functools import lru_cache
from importlib import resources

STYLESHEET_VERSION = "2025.2"
STYLESHEET_RESOURCE = "contract-print-styles.css"
DEFAULT_TITLE = "Vertragsdokument"

_SHELL_TEMPLATE = """<!DOCTYPE html>
<html lang="de">
<head>
<meta charset="utf-8">
<meta name="stylesheet-version" content="{version}">
<title>{title}</title>
<style>
{stylesheet}
</style>
</head>
<body>
<div class="contract-preview">
{content}
</div>
</body>
</html>
"""


@lru_cache(maxsize=1)
def load_stylesheet() -> str:
    return (
        resources.files("contract_pdf")
        .joinpath("assets", STYLESHEET_RESOURCE)
        .read_text(encoding="utf-8")
    )


def build_document_html(content: str, *, title: str = DEFAULT_TITLE) -> str:
    """Embed producer HTML in the versioned document shell. Content is not escaped."""
    return _SHELL_TEMPLATE.format(
        version=STYLESHEET_VERSION,
        title=html.escape(title),
        stylesheet=load_stylesheet(),
        content=content,
    )
