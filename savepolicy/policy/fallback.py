"""Fallback-directory policy: ordered (pattern -> root template) rules.

Patterns are regular expressions searched in the absolute path of the
file being relocated; the first matching rule wins. A policy must hold
a catch-all rule so that every path has somewhere to go.
"""

import logging
import os
import platform
import re
from dataclasses import dataclass, field
from typing import Iterable

from savepolicy.config.settings import CATCH_ALL_PATTERNS, HOST_PLACEHOLDER

logger = logging.getLogger(__name__)


def host_identity() -> str:
    """Name of this machine, used to namespace fallback roots."""
    return platform.node() or "localhost"


def expand_template(template: str, host: str) -> str:
    """Interpolate the host into ``template`` and return an absolute path."""
    expanded = template.replace(HOST_PLACEHOLDER, host)
    return os.path.abspath(os.path.expanduser(expanded))


@dataclass(frozen=True)
class FallbackRule:
    pattern: str
    template: str
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            compiled = re.compile(self.pattern)
        except re.error as exc:
            raise ValueError(f"Invalid fallback pattern {self.pattern!r}: {exc}") from exc
        object.__setattr__(self, "_regex", compiled)

    @property
    def is_catch_all(self) -> bool:
        return self.pattern in CATCH_ALL_PATTERNS

    def matches(self, path: str) -> bool:
        return self.is_catch_all or self._regex.search(path) is not None


class FallbackPolicy:
    """Immutable ordered set of fallback rules.

    Usage::

        policy = FallbackPolicy([(".", "~/.emacs.d/file-backups/{host}")])
        policy.fallback_directory("/etc/foo.conf.~1~", host="box")
    """

    def __init__(self, rules: Iterable[tuple[str, str] | FallbackRule]):
        built = []
        for rule in rules:
            if not isinstance(rule, FallbackRule):
                pattern, template = rule
                rule = FallbackRule(pattern, template)
            built.append(rule)
        if not any(r.is_catch_all for r in built):
            raise ValueError("Fallback policy needs a catch-all rule")
        self._rules: tuple[FallbackRule, ...] = tuple(built)

    @classmethod
    def catch_all(cls, template: str) -> "FallbackPolicy":
        return cls([(".", template)])

    @property
    def rules(self) -> tuple[FallbackRule, ...]:
        return self._rules

    def match(self, path: str) -> FallbackRule:
        for rule in self._rules:
            if rule.matches(path):
                return rule
        # unreachable: construction guarantees a catch-all
        raise LookupError(path)

    def fallback_directory(self, path: str, host: str) -> str:
        rule = self.match(path)
        directory = expand_template(rule.template, host)
        logger.debug("Fallback rule %r matched %s -> %s", rule.pattern, path, directory)
        return directory

    def to_list(self) -> list[list[str]]:
        return [[r.pattern, r.template] for r in self._rules]

    def __eq__(self, other):
        if not isinstance(other, FallbackPolicy):
            return NotImplemented
        return self._rules == other._rules

    def __hash__(self):
        return hash(self._rules)

    def __repr__(self):
        return f"FallbackPolicy({self.to_list()!r})"
