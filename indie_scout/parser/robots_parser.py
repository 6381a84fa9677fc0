"""indie_scout.parser.robots_parser: robots.txt parsing and rule evaluation.

Text goes in, per-user-agent rule sets come out; nothing here touches the
network (see :mod:`indie_scout.crawler.robots` for fetching and caching).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

__all__ = ("RobotsRules", "RobotsTxt", "parse_robots")

_WILDCARD_RE = re.compile(r"(\*|\$)")


@dataclass
class RobotsRules:
    """Rules collected for one user-agent token."""

    user_agent: str
    allowed: List[str] = field(default_factory=list)
    disallowed: List[str] = field(default_factory=list)
    crawl_delay: Optional[float] = None

    def is_allowed(self, path: str) -> bool:
        """Longest match wins: a disallow holds unless a longer allow matches."""
        longest_disallow = _longest_match(self.disallowed, path)
        if longest_disallow < 0:
            return True
        return _longest_match(self.allowed, path) > longest_disallow


@dataclass
class RobotsTxt:
    """Parsed robots.txt: rule sets keyed by lower-cased user-agent token."""

    groups: Dict[str, RobotsRules] = field(default_factory=dict)

    def rules_for(self, user_agent: str) -> Optional[RobotsRules]:
        """Exact user agent (or its product token) first, then ``*``."""
        ua = user_agent.strip().lower()
        token = ua.split("/", 1)[0].strip()
        for key in (ua, token):
            if key and key in self.groups:
                return self.groups[key]
        return self.groups.get("*")


def parse_robots(text: str) -> RobotsTxt:
    """Parse robots.txt *text* into a :class:`RobotsTxt`.

    Consecutive ``User-agent`` lines share one group; the first rule line
    closes the run, so the next ``User-agent`` starts a new group.
    Directives that appear before any ``User-agent`` line are ignored.
    """
    robots = RobotsTxt()
    current: List[RobotsRules] = []
    collecting_agents = False

    for directive, value in _prepare_lines(text):
        if directive == "user-agent":
            if not collecting_agents:
                current = []
                collecting_agents = True
            agent = value.lower()
            if agent not in robots.groups:
                robots.groups[agent] = RobotsRules(user_agent=agent)
            current.append(robots.groups[agent])
            continue

        collecting_agents = False
        for rules in current:
            _apply_directive(rules, directive, value)

    return robots


def _apply_directive(rules: RobotsRules, directive: str, value: str) -> None:
    if directive == "allow":
        if value:
            rules.allowed.append(value)
    elif directive == "disallow":
        # пустой Disallow разрешает все, пропускаем
        if value:
            rules.disallowed.append(value)
    elif directive == "crawl-delay":
        try:
            delay = float(value)
        except ValueError:
            return
        if delay >= 0:
            rules.crawl_delay = delay


def _prepare_lines(text: str) -> List[Tuple[str, str]]:
    """Strip comments and split lines into (directive, value) pairs."""
    lines: List[Tuple[str, str]] = []
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, val = (part.strip() for part in line.split(":", 1))
        lines.append((key.lower(), val))
    return lines


_regex_cache: Dict[str, re.Pattern[str]] = {}


def _compile(pattern: str) -> re.Pattern[str]:
    regex = _regex_cache.get(pattern)
    if regex is None:
        anchored = pattern.endswith("$")
        body = pattern[:-1] if anchored else pattern
        esc = re.escape(body).replace(r"\*", ".*")
        regex = re.compile(f"^{esc}$" if anchored else f"^{esc}")
        _regex_cache[pattern] = regex
    return regex


def _rule_len(pattern: str) -> int:
    return len(_WILDCARD_RE.sub("", pattern))


def _longest_match(patterns: List[str], path: str) -> int:
    """Length of the longest pattern matching *path*, ``-1`` when none does."""
    best = -1
    for pattern in patterns:
        if _compile(pattern).match(path):
            best = max(best, _rule_len(pattern))
    return best
