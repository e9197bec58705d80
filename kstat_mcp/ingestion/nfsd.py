"""/proc/net/rpc/nfsd parser.

Line meanings: https://www.svennd.be/nfsd-stats-explained-procnetrpcnfsd/

Every line is "<keyword> <values...>". The per-version operation lines (proc2, proc3,
proc4, proc4ops) are self-describing: their first value is the count of counters that
follow. The number of NFSv4 operations grows with each minor version (v4.0: 39,
v4.1: 59, v4.2: 72), so proc4ops accepts any count >= 39 and names the first 40.

Any malformed line aborts the parse. Unknown keywords are skipped.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

from ..debug_util import dbg
from ..errors import StructuralError
from ..parsing.arrays import ArraySchema, CountedRecord, decode_array
from ..parsing.segment import iter_text_lines
from ..parsing.values import parse_uint
from .fs import FS

REPLY_CACHE = ArraySchema('rc', ('hits', 'misses', 'no_cache'), counted=False)
FILE_HANDLES = ArraySchema('fh', ('stale', 'total_lookups', 'anon_lookups', 'dir_no_cache', 'no_dir_no_cache'), counted=False)
INPUT_OUTPUT = ArraySchema('io', ('read', 'write'), counted=False)
# older kernels append ten float usage-histogram buckets after these two
THREADS = ArraySchema('th', ('threads', 'full_cnt'), counted=False, width=2)
READ_AHEAD_CACHE = ArraySchema(
    'ra',
    ('cache_size',) + tuple(f'cache_histogram_{i}' for i in range(10)) + ('not_found',),
    counted=False,
)
NETWORK = ArraySchema('net', ('net_count', 'udp_count', 'tcp_count', 'tcp_connect'), counted=False)
SERVER_RPC = ArraySchema('rpc', ('rpc_count', 'bad_cnt', 'bad_fmt', 'bad_auth', 'badc_int'), counted=False)

V2_STATS = ArraySchema('proc2', (
    'null', 'getattr', 'setattr', 'root', 'lookup', 'readlink', 'read', 'wrcache', 'write',
    'create', 'remove', 'rename', 'link', 'symlink', 'mkdir', 'rmdir', 'readdir', 'fsstat',
))
V3_STATS = ArraySchema('proc3', (
    'null', 'getattr', 'setattr', 'lookup', 'access', 'readlink', 'read', 'write', 'create',
    'mkdir', 'symlink', 'mknod', 'remove', 'rmdir', 'rename', 'link', 'readdir',
    'readdirplus', 'fsstat', 'fsinfo', 'pathconf', 'commit',
))
SERVER_V4_STATS = ArraySchema('proc4', ('null', 'compound'), exact=True)
V4_OPS = ArraySchema('proc4ops', (
    'op0_unused', 'op1_unused', 'op2_future', 'access', 'close', 'commit', 'create',
    'deleg_purge', 'deleg_return', 'getattr', 'getfh', 'link', 'lock', 'lockt', 'locku',
    'lookup', 'lookup_root', 'nverify', 'open', 'open_attr', 'open_confirm', 'open_dgrd',
    'putfh', 'putpubfh', 'putrootfh', 'read', 'readdir', 'readlink', 'remove', 'rename',
    'renew', 'restorefh', 'savefh', 'secinfo', 'setattr', 'setclientid',
    'setclientid_confirm', 'verify', 'write', 'rel_lock_owner',
), min_values=39)

SCHEMAS: Dict[str, ArraySchema] = {s.keyword: s for s in (
    REPLY_CACHE, FILE_HANDLES, INPUT_OUTPUT, THREADS, READ_AHEAD_CACHE, NETWORK,
    SERVER_RPC, V2_STATS, V3_STATS, SERVER_V4_STATS, V4_OPS,
)}

# keyword -> ServerRPCStats attribute
ATTRS = {
    'rc': 'reply_cache',
    'fh': 'file_handles',
    'io': 'input_output',
    'th': 'threads',
    'ra': 'read_ahead_cache',
    'net': 'network',
    'rpc': 'server_rpc',
    'proc2': 'v2_stats',
    'proc3': 'v3_stats',
    'proc4': 'server_v4_stats',
    'proc4ops': 'v4_ops',
}


@dataclass(frozen=True)
class ServerRPCStats:
    reply_cache: Optional[CountedRecord] = None
    file_handles: Optional[CountedRecord] = None
    input_output: Optional[CountedRecord] = None
    threads: Optional[CountedRecord] = None
    read_ahead_cache: Optional[CountedRecord] = None
    network: Optional[CountedRecord] = None
    server_rpc: Optional[CountedRecord] = None
    v2_stats: Optional[CountedRecord] = None
    v3_stats: Optional[CountedRecord] = None
    server_v4_stats: Optional[CountedRecord] = None
    v4_ops: Optional[CountedRecord] = None
    wdeleg_getattr: Optional[int] = None


def parse_server_rpc_stats(stream: Iterable[Union[bytes, str]]) -> ServerRPCStats:
    found: Dict[str, object] = {}
    for line in iter_text_lines(stream):
        if not line.strip():
            continue
        parts = line.split()
        # require at least <key> <value>
        if len(parts) < 2:
            raise StructuralError('invalid NFSd metric line', line)
        keyword, tokens = parts[0], parts[1:]
        if keyword == 'wdeleg_getattr':
            found['wdeleg_getattr'] = parse_uint(tokens[0])
            continue
        schema = SCHEMAS.get(keyword)
        if schema is None:
            dbg('nfsd', 'skip_unknown keyword=%s', keyword)
            continue
        found[ATTRS[keyword]] = decode_array(tokens, schema)
    if not found:
        raise StructuralError('no NFSd metric lines found')
    return ServerRPCStats(**found)  # type: ignore[arg-type]


def read_server_rpc_stats(fs: Optional[FS] = None) -> ServerRPCStats:
    fs = fs or FS.proc()
    with fs.open('net', 'rpc', 'nfsd') as fh:
        return parse_server_rpc_stats(fh)
