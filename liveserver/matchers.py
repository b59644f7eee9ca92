"""Ignore matchers for the change watcher.

An ignore entry is one of three kinds and all of them answer the same
question through ``matches(path)``:

* ``ExactPath``: a literal path (files below it are covered by the
  ancestor walk in ``is_ignored``).
* ``Pattern``: a regular expression searched in the path.
* ``Predicate``: any ``path -> bool`` callable.
"""
import os
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Union

# Hidden files and editor leftovers such as #autosave# or backup~.
_TEMP_FILE = re.compile(r"(^[.#]|(?:__|~)$)")


@dataclass(frozen=True)
class ExactPath:
    path: str

    def matches(self, path: str) -> bool:
        return os.path.normpath(path) == os.path.normpath(os.path.abspath(self.path))


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern

    def matches(self, path: str) -> bool:
        return self.regex.search(path) is not None


@dataclass(frozen=True)
class Predicate:
    func: Callable[[str], bool]

    def matches(self, path: str) -> bool:
        return bool(self.func(path))


Matcher = Union[ExactPath, Pattern, Predicate]


def _is_temp_file(path: str) -> bool:
    return path != "." and _TEMP_FILE.search(os.path.basename(path)) is not None


DEFAULT_IGNORE = Predicate(_is_temp_file)


def as_matcher(value) -> Matcher:
    if isinstance(value, (ExactPath, Pattern, Predicate)):
        return value
    if isinstance(value, str):
        return ExactPath(value)
    if isinstance(value, re.Pattern):
        return Pattern(value)
    if callable(value):
        return Predicate(value)
    raise TypeError(f"Cannot use {value!r} as an ignore matcher")


def is_ignored(path: str, root: str, matchers: Iterable[Matcher]) -> bool:
    """Check ``path`` and every ancestor below ``root`` against the chain.

    The root itself is never tested, so serving from inside a dot
    directory still works.
    """
    matchers = list(matchers)
    path = os.path.normpath(path)
    root = os.path.normpath(root)
    while path != root:
        if any(m.matches(path) for m in matchers):
            return True
        parent = os.path.dirname(path)
        if parent == path:
            break
        path = parent
    return False
