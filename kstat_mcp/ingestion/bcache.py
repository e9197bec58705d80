"""bcache runtime statistics from /sys/fs/bcache/<uuid>/.

Names and meanings follow Documentation/admin-guide/bcache.rst and
drivers/md/bcache in the kernel tree. Most files hold one value printed by
bch_hprint(), so every value goes through dehumanize(). Any unreadable or
undecodable file aborts the whole bcache set: the directory is one record.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from ..debug_util import dbg
from ..errors import DecodeError, StreamError
from ..parsing.segment import iter_text_lines
from ..parsing.values import dehumanize, parse_percent
from .fs import FS, read_trimmed


@dataclass(frozen=True)
class PeriodStats:
    bypassed: int
    cache_bypass_hits: int
    cache_bypass_misses: int
    cache_hits: int
    cache_miss_collisions: int
    cache_misses: int
    cache_readaheads: int


@dataclass(frozen=True)
class InternalStats:
    active_journal_entries: int
    btree_nodes: int
    btree_read_average_duration_us: int
    cache_read_races: int


@dataclass(frozen=True)
class BcacheStats:
    average_key_size: int
    btree_cache_size: int
    cache_available_percent: int
    congested: int
    root_usage_percent: int
    tree_depth: int
    internal: InternalStats
    five_min: PeriodStats
    total: PeriodStats


@dataclass(frozen=True)
class BdevStats:
    name: str
    dirty_data: int
    five_min: PeriodStats
    total: PeriodStats


@dataclass(frozen=True)
class PriorityStats:
    unused_percent: int
    metadata_percent: int


@dataclass(frozen=True)
class CacheStats:
    name: str
    io_errors: int
    metadata_written: int
    written: int
    priority: Optional[PriorityStats]


@dataclass(frozen=True)
class Stats:
    name: str
    bcache: BcacheStats
    bdevs: Tuple[BdevStats, ...]
    caches: Tuple[CacheStats, ...]


PERIOD_FILES = ('bypassed', 'cache_bypass_hits', 'cache_bypass_misses', 'cache_hits',
                'cache_miss_collisions', 'cache_misses', 'cache_readaheads')
INTERNAL_FILES = ('active_journal_entries', 'btree_nodes', 'btree_read_average_duration_us', 'cache_read_races')


def read_value(*parts: str) -> int:
    path = os.path.join(*parts)
    raw = read_trimmed(path)
    try:
        return dehumanize(raw)
    except DecodeError as e:
        raise DecodeError(f'{e.message} in {path}', raw) from e


def _period(base: str, sub: str) -> PeriodStats:
    d = os.path.join(base, sub)
    return PeriodStats(**{f: read_value(d, f) for f in PERIOD_FILES})


def parse_priority_stats(stream: Iterable[Union[bytes, str]]) -> PriorityStats:
    """Pick the Unused/Metadata percentages out of a cacheN/priority_stats file."""
    unused = metadata = 0
    for line in iter_text_lines(stream):
        fields = line.split()
        if not fields:
            continue
        if fields[0] == 'Unused:':
            unused = parse_percent(fields[-1])
        elif fields[0] == 'Metadata:':
            metadata = parse_percent(fields[-1])
    return PriorityStats(unused_percent=unused, metadata_percent=metadata)


def _subdirs(uuid_path: str, prefix: str) -> List[str]:
    out = []
    for name in sorted(os.listdir(uuid_path)):
        if name.startswith(prefix) and name[len(prefix):].isdigit():
            full = os.path.join(uuid_path, name)
            if os.path.isdir(full):
                out.append(name)
    return out


def get_stats(uuid_path: str, priority_stats: bool = True) -> Stats:
    """Collect the statistics tied to one bcache set UUID directory."""
    bcache = BcacheStats(
        average_key_size=read_value(uuid_path, 'average_key_size'),
        btree_cache_size=read_value(uuid_path, 'btree_cache_size'),
        cache_available_percent=read_value(uuid_path, 'cache_available_percent'),
        congested=read_value(uuid_path, 'congested'),
        root_usage_percent=read_value(uuid_path, 'root_usage_percent'),
        tree_depth=read_value(uuid_path, 'tree_depth'),
        internal=InternalStats(**{f: read_value(uuid_path, 'internal', f) for f in INTERNAL_FILES}),
        five_min=_period(uuid_path, 'stats_five_minute'),
        total=_period(uuid_path, 'stats_total'),
    )

    bdevs = []
    for name in _subdirs(uuid_path, 'bdev'):
        d = os.path.join(uuid_path, name)
        bdevs.append(BdevStats(
            name=name,
            dirty_data=read_value(d, 'dirty_data'),
            five_min=_period(d, 'stats_five_minute'),
            total=_period(d, 'stats_total'),
        ))

    caches = []
    for name in _subdirs(uuid_path, 'cache'):
        d = os.path.join(uuid_path, name)
        priority = None
        if priority_stats:
            p = os.path.join(d, 'priority_stats')
            try:
                with open(p, 'rb') as fh:
                    priority = parse_priority_stats(fh)
            except OSError as e:
                raise StreamError(f'failed to read: {e.__class__.__name__}', p) from e
        caches.append(CacheStats(
            name=name,
            io_errors=read_value(d, 'io_errors'),
            metadata_written=read_value(d, 'metadata_written'),
            written=read_value(d, 'written'),
            priority=priority,
        ))

    dbg('bcache', 'parsed uuid=%s bdevs=%d caches=%d', os.path.basename(uuid_path), len(bdevs), len(caches))
    return Stats(name=os.path.basename(uuid_path.rstrip('/')), bcache=bcache, bdevs=tuple(bdevs), caches=tuple(caches))


def all_stats(fs: Optional[FS] = None, priority_stats: bool = True) -> List[Stats]:
    fs = fs or FS.sys()
    # "*-*" selects the set UUID directories, skipping register/register_quiet
    return [get_stats(p, priority_stats) for p in fs.glob('fs', 'bcache', '*-*')]
