"""
Module Utilities - Helpers for writing extraction modules.

Extraction modules receive raw HTML and return plain records. This module
provides the parsing and cleaning helpers most modules need so a module
script can stay a handful of selectors.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"(\{[^{}]*\})")


class HTMLParser:
    """CSS-selector access to an HTML page."""

    def __init__(self, html_content: str, base_url: str = ""):
        """
        Initialize HTML parser.

        Args:
            html_content: HTML content to parse
            base_url: Base URL for resolving relative links
        """
        self.soup = BeautifulSoup(html_content or "", "html.parser")
        self.base_url = base_url

    def _absolute(self, attr: str, value: str) -> str:
        if attr in ("href", "src", "data-src") and self.base_url:
            return urljoin(self.base_url, value)
        return value

    def find_text(self, selector: str, default: str = "") -> str:
        """
        Find text content using CSS selector.

        Args:
            selector: CSS selector string
            default: Default value if element not found

        Returns:
            Text content or default value
        """
        element = self.soup.select_one(selector)
        if element:
            return element.get_text(" ", strip=True)
        return default

    def find_attr(self, selector: str, attr: str, default: str = "") -> str:
        """Attribute of the first match, resolving link attributes."""
        element = self.soup.select_one(selector)
        if element is None or not element.has_attr(attr):
            return default
        value = element[attr]
        if isinstance(value, list):
            value = value[0] if value else ""
        return self._absolute(attr, value)

    def find_all_text(self, selector: str) -> List[str]:
        return [element.get_text(" ", strip=True) for element in self.soup.select(selector)]

    def find_all_attrs(self, selector: str, attr: str) -> List[str]:
        values = []
        for element in self.soup.select(selector):
            if element.has_attr(attr):
                value = element[attr]
                if isinstance(value, list):
                    value = value[0] if value else ""
                values.append(self._absolute(attr, value))
        return values

    def records(self, selector: str, fields: Dict[str, str]) -> List[Dict[str, str]]:
        """
        Build one record per element matching ``selector``.

        Each field spec is a sub-selector, optionally followed by ``@attr``
        (``"a@href"``, ``"img@src"``); a bare ``@attr`` reads the element
        itself. Without an attribute the text content is used.

        Args:
            selector: Selector of the repeated container element
            fields: Output key to field spec

        Returns:
            List of records with string values (missing values are "")
        """
        results = []
        for element in self.soup.select(selector):
            record = {}
            for key, spec in fields.items():
                sub_selector, _, attr = spec.partition("@")
                target = element.select_one(sub_selector) if sub_selector else element
                if target is None:
                    record[key] = ""
                elif attr:
                    value = target.get(attr, "")
                    if isinstance(value, list):
                        value = value[0] if value else ""
                    record[key] = self._absolute(attr, value) if value else ""
                else:
                    record[key] = target.get_text(" ", strip=True)
            results.append(record)
        return results

    def extract_json_data(self, script_selector: str = "script") -> Dict[str, Any]:
        """
        Extract flat JSON objects embedded in script tags.

        Args:
            script_selector: CSS selector for script tags

        Returns:
            Merged dictionary of every decodable object
        """
        json_data: Dict[str, Any] = {}
        for script in self.soup.select(script_selector):
            if not script.string:
                continue
            for match in _JSON_BLOCK.findall(script.string):
                try:
                    data = json.loads(match)
                except json.JSONDecodeError:
                    continue
                if isinstance(data, dict):
                    json_data.update(data)
        return json_data


class TextCleaner:
    """Utility class for cleaning and normalizing text content."""

    @staticmethod
    def clean_title(title: str) -> str:
        """Collapse whitespace and strip trailing episode indicators."""
        if not title:
            return ""
        title = re.sub(r"\s+", " ", title.strip())
        title = re.sub(r"\s*-?\s*episode\s*\d+.*$", "", title, flags=re.IGNORECASE)
        title = re.sub(r"\s*-?\s*ep\.?\s*\d+.*$", "", title, flags=re.IGNORECASE)
        return title.strip()

    @staticmethod
    def extract_episode_number(text: str) -> Optional[int]:
        """
        Extract an episode number from free text.

        Args:
            text: Text containing episode information

        Returns:
            Episode number or None if not found
        """
        patterns = [
            r"episode\s*(\d+)",
            r"ep\.?\s*(\d+)",
            r"#(\d+)",
            r"\b(\d+)\b",
        ]
        lowered = (text or "").lower()
        for pattern in patterns:
            match = re.search(pattern, lowered)
            if match:
                return int(match.group(1))
        return None

    @staticmethod
    def clean_description(description: str, max_length: int = 500) -> str:
        """
        Strip tags, collapse whitespace and truncate on a word boundary.

        Args:
            description: Raw description text
            max_length: Maximum length for description

        Returns:
            Cleaned description
        """
        if not description:
            return ""
        description = re.sub(r"<[^>]+>", "", description)
        description = re.sub(r"\s+", " ", description.strip())
        if len(description) > max_length:
            description = description[:max_length].rsplit(" ", 1)[0] + "..."
        return description


def same_site(url: str, base_url: str) -> bool:
    """Whether ``url`` points at the host of ``base_url``."""
    return urlparse(url).netloc == urlparse(base_url).netloc


# Export utility classes and functions
__all__ = [
    "HTMLParser",
    "TextCleaner",
    "same_site",
]
