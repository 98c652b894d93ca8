"""Turn selected server log lines into relay messages"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from .host import LogEntry

logger = logging.getLogger(__name__)

# $1, ${2}, ${name}
_GROUP_REFERENCE = re.compile(r"\$(?:(\d+)|\{(\w+)\})")


def format_log_entry(entry: LogEntry) -> str:
    """Render a host log entry from its positional format string"""
    if not entry.args:
        return entry.message_format
    try:
        return entry.message_format.format(*entry.args)
    except (IndexError, KeyError, ValueError, AttributeError, TypeError):
        logger.debug(f"Unformattable log entry: {entry.message_format!r}")
        return entry.message_format


def _expand(template: str, match: re.Match[str]) -> str:
    def _group(ref: re.Match[str]) -> str:
        key = ref.group(1) or ref.group(2)
        try:
            value = match.group(int(key) if key.isdigit() else key)
        except IndexError:
            return ""
        return value or ""

    return _GROUP_REFERENCE.sub(_group, template)


class LogScrapeFilter:
    """Ordered pattern -> template rules; the first matching rule wins"""

    def __init__(self, rules: Mapping[str, str]):
        self.rules: list[tuple[re.Pattern[str], str]] = []
        for pattern, template in rules.items():
            try:
                self.rules.append((re.compile(pattern), template))
            except re.error as e:
                logger.error(f"Ignoring invalid log scrape pattern {pattern!r}: {e}")

    def match(self, line: str) -> str | None:
        """Message for ``line``, or None when nothing should be relayed"""
        for pattern, template in self.rules:
            found = pattern.search(line)
            if found is None:
                continue
            result = _expand(template, found)
            return result or None
        return None
