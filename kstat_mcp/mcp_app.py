import os, dataclasses
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from .debug_util import dbg
from .errors import KstatError
from .ingestion import bcache, cifs, iscsi, nfsd, selinuxfs
from .ingestion.fs import FS
from .parsing.values import dehumanize, parse_pseudo_float, parse_uint
from fastmcp import FastMCP

# ----------------- System Prompt Guidance -----------------
SYSTEM_PROMPT = (
    "Kernel statistics tools:\n"
    "1. cifs_stats / nfsd_stats / selinux_avc_stats / bcache_stats / iscsi_targets read the live host "
    "(or the roots named by KSTAT_PROC_ROOT, KSTAT_SYS_ROOT, KSTAT_CONFIGFS_ROOT).\n"
    "2. parse_text(kind, text) parses pasted pseudo-file content; kind is one of cifs, nfsd, avc, avc_hash, priority_stats.\n"
    "3. decode_value(token, mode) decodes a single value; mode is uint, humanized or pseudo_float.\n"
    "4. CIFS sessions with undecodable values are listed under 'failures', not 'sessions'.\n"
    "5. iSCSI LUNs whose backstore link cannot be resolved are listed under the TPGT 'failures'.\n"
    "Failures come back as {'error': <ExceptionClass>, 'detail': <message>}.\n"
)

mcp = FastMCP("kstat-mcp")


def to_jsonable(obj: Any) -> Any:
    """Turn parser records (frozen dataclasses, read-only mappings, tuples, enums) into JSON types."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseException):
        return _error(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj


def _error(e: BaseException) -> dict:
    return {'error': e.__class__.__name__, 'detail': str(e).split('\n')[0]}


def _run(label: str, fn: Callable[[], Any]) -> Any:
    try:
        return to_jsonable(fn())
    except (KstatError, OSError) as e:
        dbg('mcp', '%s_error %s:%s', label, e.__class__.__name__, e)
        return _error(e)


TEXT_PARSERS: Dict[str, Callable] = {
    'cifs': cifs.parse_client_stats,
    'nfsd': nfsd.parse_server_rpc_stats,
    'avc': selinuxfs.parse_avc_stats,
    'avc_hash': selinuxfs.parse_avc_hash_stats,
    'priority_stats': bcache.parse_priority_stats,
}

VALUE_DECODERS: Dict[str, Callable[[str], Any]] = {
    'uint': parse_uint,
    'humanized': dehumanize,
    'pseudo_float': parse_pseudo_float,
}


@mcp.tool()
def cifs_stats() -> dict:
    """Parse /proc/fs/cifs/Stats.

    Returns {header{...}, sessions[{session_id, server, share, stats{...}, disconnected}], failures[]}
    or {'error':...}."""
    return _run('cifs_stats', cifs.read_client_stats)


@mcp.tool()
def nfsd_stats() -> dict:
    """Parse /proc/net/rpc/nfsd.

    Each known line becomes {keyword, declared, values[], fields{...}, unmapped[]}; absent lines are null."""
    return _run('nfsd_stats', nfsd.read_server_rpc_stats)


@mcp.tool()
def selinux_avc_stats() -> dict:
    """SELinux AVC cache counters summed across CPUs plus hash table occupancy.

    Returns {cache_stats{lookups,hits,misses,allocations,reclaims,frees}, hash_stats{...}}."""
    def collect():
        fs = FS.sys()
        return {'cache_stats': selinuxfs.read_avc_stats(fs), 'hash_stats': selinuxfs.read_avc_hash_stats(fs)}
    return _run('selinux_avc_stats', collect)


@mcp.tool()
def bcache_stats(priority_stats: bool = True) -> dict:
    """Statistics for every bcache set under /sys/fs/bcache.

    priority_stats=False skips cacheN/priority_stats, which the kernel computes on read and can be slow."""
    return _run('bcache_stats', lambda: {'sets': bcache.all_stats(priority_stats=priority_stats)})


@mcp.tool()
def iscsi_targets() -> dict:
    """LIO iSCSI targets with their TPGTs and LUN backstores (configfs target/iscsi/iqn*)."""
    return _run('iscsi_targets', lambda: {'targets': iscsi.all_targets()})


@mcp.tool()
def parse_text(kind: str, text: str) -> dict:
    """Parse pasted pseudo-file content.

    kind: cifs | nfsd | avc | avc_hash | priority_stats. Returns the parsed record or {'error':...}."""
    parser = TEXT_PARSERS.get(kind.strip().lower())
    if parser is None:
        return {'error': 'unknown_kind', 'kind': kind, 'kinds': sorted(TEXT_PARSERS)}
    return _run(f'parse_text[{kind}]', lambda: parser(text.splitlines()))


@mcp.tool()
def decode_value(token: str, mode: str = 'humanized') -> dict:
    """Decode one value token: uint ("18628", "0x1f"), humanized ("1.10k" -> 2024) or pseudo_float ("1.1")."""
    decoder = VALUE_DECODERS.get(mode.strip().lower())
    if decoder is None:
        return {'error': 'unknown_mode', 'mode': mode, 'modes': sorted(VALUE_DECODERS)}
    return _run('decode_value', lambda: {'token': token, 'mode': mode, 'value': decoder(token)})


@mcp.tool()
def usage_guide(topic: Optional[str] = None) -> dict:
    """Return the tool workflow guidance."""
    return {'topic': topic, 'text': SYSTEM_PROMPT}


# --------------- HTTP Runner via mcp.run ---------------

if __name__ == '__main__':
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', '8000'))
    print(f'Starting FastMCP on {host}:{port}')
    mcp.run(transport="http", host=host, port=port, stateless_http=True)
