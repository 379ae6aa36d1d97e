"""Tag classification — ordered, negatable glob rules.

Rules are written one per line, like an ignore file. A leading ``!`` turns a
rule into an exclude rule. When several rules match a tag, the one declared
last wins, so later lines override earlier ones.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field

from ghcr_prune.errors import ConfigurationError

CATCH_ALL = "**"


@dataclass(frozen=True)
class TagRule:
    """A single glob rule."""

    pattern: str
    exclude: bool = False
    _regexes: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.pattern:
            raise ConfigurationError("Empty tag pattern")
        regexes = tuple(
            re.compile(fnmatch.translate(alternative))
            for alternative in _expand_braces(_normalize_glob(self.pattern))
        )
        object.__setattr__(self, "_regexes", regexes)

    @classmethod
    def parse(cls, line: str) -> TagRule:
        """Parse one rule line (``pattern`` or ``!pattern``)."""
        text = line.strip()
        exclude = False
        while text.startswith("!"):
            exclude = not exclude
            text = text[1:]

        if not text:
            raise ConfigurationError(f"Empty tag pattern: {line!r}")
        return cls(pattern=text, exclude=exclude)

    def matches(self, tag: str) -> bool:
        return any(regex.match(tag) for regex in self._regexes)

    def __str__(self) -> str:
        return f"!{self.pattern}" if self.exclude else self.pattern


class TagPatterns:
    """Ordered rule set deciding whether a tag is "matching"."""

    def __init__(self, rules: list[TagRule]):
        self.rules = list(rules)

        # Exclude-only rule sets mean "exclude these, keep the rest".
        if self.rules and all(rule.exclude for rule in self.rules):
            self.rules.insert(0, TagRule(CATCH_ALL))

    @classmethod
    def from_lines(cls, lines: list[str] | str) -> TagPatterns:
        """Build a rule set from raw lines, dropping blanks and ``#`` comments."""
        if isinstance(lines, str):
            lines = lines.splitlines()

        rules = []
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            rules.append(TagRule.parse(stripped))
        return cls(rules)

    def __len__(self) -> int:
        return len(self.rules)

    def decisive_rule(self, tag: str) -> TagRule | None:
        """Return the last declared rule matching ``tag``, if any."""
        for rule in reversed(self.rules):
            if rule.matches(tag):
                return rule
        return None

    def matches(self, tag: str) -> bool:
        rule = self.decisive_rule(tag)
        return rule is not None and not rule.exclude

    def partition(self, tags: list[str]) -> tuple[list[str], list[str]]:
        """Split ``tags`` into (matching, mismatching), preserving order."""
        matching: list[str] = []
        mismatching: list[str] = []
        for tag in tags:
            (matching if self.matches(tag) else mismatching).append(tag)
        return matching, mismatching


def _expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives into separate glob patterns."""
    depth = 0
    start = -1
    for i, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                options = _split_top_level(pattern[start + 1 : i])
                if len(options) < 2:
                    continue
                prefix, suffix = pattern[:start], pattern[i + 1 :]
                expanded = []
                for option in options:
                    expanded.extend(_expand_braces(prefix + option + suffix))
                return expanded
    return [pattern]


def _split_top_level(body: str) -> list[str]:
    parts = []
    depth = 0
    current = ""
    for char in body:
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current += char
    parts.append(current)
    return parts


def _normalize_glob(pattern: str) -> str:
    """Reject unbalanced ``[]``/``{}`` and rewrite ``[^...]`` as ``[!...]``.

    fnmatch reads an unterminated ``[`` as a literal and ``[^`` as a class
    containing ``^``; glob rules treat the first as an error and the second
    as a negated class.
    """
    out = []
    depth = 0
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "[":
            j = i + 1
            negate = j < len(pattern) and pattern[j] in "!^"
            if negate:
                j += 1
            # A "]" right after the opening bracket is part of the class
            if j < len(pattern) and pattern[j] == "]":
                j += 1
            end = pattern.find("]", j)
            if end == -1:
                raise ConfigurationError(
                    f"Invalid tag pattern {pattern!r}: unterminated character class"
                )
            body_start = i + 2 if negate else i + 1
            out.append(("[!" if negate else "[") + pattern[body_start : end + 1])
            i = end + 1
            continue

        if char == "]":
            raise ConfigurationError(f"Invalid tag pattern {pattern!r}: unmatched ']'")
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise ConfigurationError(f"Invalid tag pattern {pattern!r}: unmatched '}}'")
        out.append(char)
        i += 1

    if depth:
        raise ConfigurationError(f"Invalid tag pattern {pattern!r}: unmatched '{{'")
    return "".join(out)
