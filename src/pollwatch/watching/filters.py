"""Entry filters built from watch options."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from pollwatch.watching.errors import WatchConfigError

if TYPE_CHECKING:
    from pollwatch.config.schema import Pattern, WatchOptions
    from pollwatch.watching.scanner import Entry

EntryFilter = Callable[["Entry"], bool]


def compile_pattern(pattern: Pattern | None, option: str) -> re.Pattern[str] | None:
    """Compile a pattern option, accepting strings or compiled expressions.

    Raises:
        WatchConfigError: If the pattern is not a valid regular expression.
    """
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str):
        raise WatchConfigError(f"{option} must be a string or compiled pattern, got {pattern!r}")
    try:
        return re.compile(pattern)
    except re.error as e:
        raise WatchConfigError(f"Invalid {option} pattern {pattern!r}: {e}") from e


def make_filter(options: WatchOptions) -> EntryFilter:
    """Build the predicate deciding whether an entry takes part in tracking.

    Rules, in order:
    1. With ``ignore_dotfiles``, any entry whose name starts with "." is
       rejected. This includes directories, so they are never traversed.
    2. Files must match ``test`` somewhere in their full path.
    3. Files must not match ``ignore`` anywhere in their full path.

    Directories only go through rule 1 so that matching files nested in
    non-matching directories are still discovered. Symlinks are likewise
    only dot-filtered here; the entry they resolve to is filtered again.
    Roots named by the caller skip rule 1.
    """
    test = compile_pattern(options.test, "test")
    ignore = compile_pattern(options.ignore, "ignore")
    ignore_dotfiles = options.ignore_dotfiles

    def accept(entry: Entry) -> bool:
        if ignore_dotfiles and not entry.is_root and entry.name.startswith("."):
            return False
        if not entry.is_file:
            return True
        if test is not None and not test.search(entry.path):
            return False
        if ignore is not None and ignore.search(entry.path):
            return False
        return True

    return accept
