"""Ordered pattern dispatch for loosely formatted kernel text lines.

A pattern list is tried top to bottom and the first pattern whose shape matches the
start of the (stripped) line wins. Order is the tie-break: a line such as
"Flushes: 0 sent 0 failed" also satisfies the shorter "Flushes: <n>" shape, so the
more specific pattern has to sit earlier in the list.

Patterns are module-level constants. Matching never raises: a line that fits no
pattern yields NO_MATCH. Decoding the captured text is a separate step so the caller
decides how far a DecodeError propagates.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Sequence, Tuple, Union

from .values import parse_uint


@dataclass(frozen=True)
class Pattern:
    name: str
    regex: re.Pattern
    # captures stored verbatim instead of going through the numeric decoder
    text_fields: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def captures(self) -> Tuple[str, ...]:
        return tuple(sorted(self.regex.groupindex, key=self.regex.groupindex.get))


def pattern(name: str, expr: str, text_fields: Sequence[str] = ()) -> Pattern:
    return Pattern(name, re.compile(expr), frozenset(text_fields))


class _NoMatch:
    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NO_MATCH'


NO_MATCH = _NoMatch()


@dataclass(frozen=True)
class Matched:
    index: int
    pattern: Pattern
    raw: Dict[str, str]

    def __bool__(self) -> bool:
        return True


MatchResult = Union[_NoMatch, Matched]


def match_first(line: str, patterns: Sequence[Pattern]) -> MatchResult:
    text = line.strip()
    for index, pat in enumerate(patterns):
        m = pat.regex.match(text)
        if m is None:
            continue
        # optional groups that did not participate are left out
        raw = {k: v for k, v in m.groupdict().items() if v is not None}
        return Matched(index, pat, raw)
    return NO_MATCH


def decode_match(matched: Matched, decoder: Callable[[str], int] = parse_uint) -> Dict[str, Union[int, str]]:
    """Turn captured text into values; raises DecodeError on the first bad token."""
    out: Dict[str, Union[int, str]] = {}
    for name in matched.pattern.captures:
        raw = matched.raw.get(name)
        if raw is None:
            continue
        if name in matched.pattern.text_fields:
            if raw != '':
                out[name] = raw
            continue
        out[name] = decoder(raw)
    return out
