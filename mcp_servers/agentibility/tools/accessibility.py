"""Accessibility-oriented page views (overview, query, section, element rotor)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .extraction import run_extraction

if TYPE_CHECKING:
    from ..page import Page

ELEMENT_TYPES = ("headings", "links", "buttons", "forms", "tables", "images")
EXTRACT_MODES = ("structure", "text")


def get_overview(page: Page) -> dict[str, Any]:
    """Title, URL, landmarks and counts of key elements."""
    return run_extraction(page, "overview")


def query_elements(
    page: Page,
    selector: str,
    extract: str = "structure",
    depth: int = 10,
    limit: int = 0,
) -> dict[str, Any]:
    return run_extraction(page, "query", selector=selector, extract=extract, depth=int(depth), limit=int(limit))


def get_section(
    page: Page,
    name: str,
    extract: str = "text",
    depth: int = 10,
    limit: int = 0,
) -> dict[str, Any]:
    """Content under the first heading containing `name`, up to the next same-or-higher heading."""
    return run_extraction(page, "section", name=name, extract=extract, depth=int(depth), limit=int(limit))


def get_elements(page: Page, type: str, limit: int = 0) -> dict[str, Any]:  # noqa: A002
    return run_extraction(page, "elements", type=type, limit=int(limit))
