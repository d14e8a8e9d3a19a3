"""
Compiles cookie path replacement rules and applies them to cookie paths.

Patterns are anchored on both ends: a rule only fires when the whole cookie
name (if a name pattern is given) and the whole cookie path match. Rules run
as a pipeline, each matching rule rewriting the path seen by the next one.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from cookie_path_filter.config import ReplacementConfig

PLACEHOLDER_OPEN = "{{"
PLACEHOLDER_CLOSE = "}}"


class InvalidPatternError(ValueError):
    """Raised when a replacement rule holds a pattern that does not compile."""

    def __init__(self, pattern: str, field: str, index: int, error: re.error):
        self.pattern = pattern
        self.field = field
        self.index = index
        self.error = error
        super().__init__(
            f"replacement #{index}: invalid {field} pattern {pattern!r}: {error}"
        )


def _compile_pattern(pattern: str, field: str, index: int) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern, field, index, e) from e


@dataclass(frozen=True)
class CompiledReplacement:
    name: Optional[re.Pattern]
    original: re.Pattern
    replacement: str

    def matches_name(self, cookie_name: str) -> bool:
        return self.name is None or self.name.fullmatch(cookie_name) is not None

    def apply(self, path: str) -> Optional[str]:
        """
        Return the rewritten path, or None when the path does not match.

        ``{{group}}`` placeholders are filled from the named groups of the
        original pattern. Groups that did not take part in the match are
        substituted with an empty string.
        """
        match = self.original.fullmatch(path)
        if match is None:
            return None

        result = self.replacement
        # Nothing to substitute without a placeholder
        if PLACEHOLDER_OPEN in result:
            for group_name in self.original.groupindex:
                result = result.replace(
                    f"{PLACEHOLDER_OPEN}{group_name}{PLACEHOLDER_CLOSE}",
                    match.group(group_name) or "",
                )
        return result


def compile_replacement(rule: ReplacementConfig, index: int = 0) -> CompiledReplacement:
    name = None
    if rule.name_regex:
        name = _compile_pattern(rule.name_regex, "name_regex", index)
    original = _compile_pattern(rule.original, "original", index)
    return CompiledReplacement(name=name, original=original, replacement=rule.replacement)


def compile_replacements(
    rules: Iterable[ReplacementConfig],
) -> Tuple[CompiledReplacement, ...]:
    """
    Compile all rules in declaration order.

    Raises InvalidPatternError on the first pattern that fails; nothing is
    returned in that case.
    """
    return tuple(compile_replacement(rule, i) for i, rule in enumerate(rules))


def rewrite_path(
    replacements: Iterable[CompiledReplacement], cookie_name: str, path: str
) -> str:
    """Run every replacement over the path and return the final result."""
    for replacement in replacements:
        if not replacement.matches_name(cookie_name):
            continue
        rewritten = replacement.apply(path)
        if rewritten is not None:
            path = rewritten
    return path
