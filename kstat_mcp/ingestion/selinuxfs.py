"""SELinux access vector cache statistics (/sys/fs/selinux/avc/)."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from ..errors import StructuralError
from ..parsing.dispatch import decode_match, match_first, pattern
from ..parsing.segment import iter_text_lines
from ..parsing.values import parse_uint
from .fs import FS

AVC_COLUMNS = ('lookups', 'hits', 'misses', 'allocations', 'reclaims', 'frees')

HASH_PATTERNS = (
    pattern('entries', r"entries: (?P<entries>\d+)"),
    pattern('buckets', r"buckets used: (?P<buckets_used>\d+)/(?P<buckets_available>\d+)"),
    pattern('longest_chain', r"longest chain: (?P<longest_chain>\d+)"),
)


@dataclass(frozen=True)
class AVCStats:
    lookups: int
    hits: int
    misses: int
    allocations: int
    reclaims: int
    frees: int


@dataclass(frozen=True)
class AVCHashStats:
    entries: int
    buckets_used: int
    buckets_available: int
    longest_chain: int


def parse_avc_stats(stream: Iterable[Union[bytes, str]]) -> AVCStats:
    """Sum the per-CPU rows of avc/cache_stats.

    The first line names the columns; rows are mapped by that header so a reordered or
    widened header still lands values on the right counters.
    """
    lines = (l for l in iter_text_lines(stream) if l.strip())
    header_line = next(lines, None)
    if header_line is None:
        raise StructuralError('avc cache_stats: header is empty')
    columns = header_line.split()
    missing = [c for c in AVC_COLUMNS if c not in columns]
    if missing:
        raise StructuralError(f'avc cache_stats: header lacks {missing}', header_line)
    totals: Dict[str, int] = {c: 0 for c in AVC_COLUMNS}
    for line in lines:
        fields = line.split()
        if len(fields) != len(columns):
            raise StructuralError('invalid avc stat line', line)
        for name, raw in zip(columns, fields):
            if name in totals:
                totals[name] += parse_uint(raw)
    return AVCStats(**totals)


def parse_avc_hash_stats(stream: Iterable[Union[bytes, str]]) -> AVCHashStats:
    found: Dict[str, int] = {}
    for line in iter_text_lines(stream):
        m = match_first(line, HASH_PATTERNS)
        if m:
            found.update(decode_match(m, parse_uint))  # type: ignore[arg-type]
    if not found:
        raise StructuralError('avc hash_stats: no statistics found')
    missing = [name for name in ('entries', 'buckets_used', 'buckets_available', 'longest_chain') if name not in found]
    if missing:
        raise StructuralError(f'avc hash_stats: missing {missing}')
    return AVCHashStats(**found)


def read_avc_stats(fs: Optional[FS] = None) -> AVCStats:
    fs = fs or FS.sys()
    with fs.open('fs', 'selinux', 'avc', 'cache_stats') as fh:
        return parse_avc_stats(fh)


def read_avc_hash_stats(fs: Optional[FS] = None) -> AVCHashStats:
    fs = fs or FS.sys()
    with fs.open('fs', 'selinux', 'avc', 'hash_stats') as fh:
        return parse_avc_hash_stats(fh)
