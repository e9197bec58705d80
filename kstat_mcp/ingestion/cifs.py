"""/proc/fs/cifs/Stats parser.

Fields follow Documentation/admin-guide/cifs in the kernel tree. The file has a
"Resources in use" header and one block per mounted share:

    1) \\\\server\\share
    SMBs: 9 Oplocks breaks: 0          (SMB1 layout)
    Creates: 0 sent 2 failed           (SMB2/3 layout)

Header/block values are unsigned counters; server and share are kept verbatim.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Tuple, Union

from ..debug_util import dbg
from ..errors import DecodeError
from ..parsing.dispatch import pattern
from ..parsing.segment import BlockSegmenter, iter_text_lines
from .fs import FS

HEADER_PATTERNS = (
    pattern('sessions', r"CIFS Session: (?P<sessions>\d+)"),
    pattern('shares', r"Share \(unique mount targets\): (?P<shares>\d+)"),
    pattern('smb_buffer', r"SMB Request/Response Buffer: (?P<smb_buffer>\d+) Pool size: (?P<smb_pool_size>\d+)"),
    pattern('smb_small_buffer', r"SMB Small Req/Resp Buffer: (?P<smb_small_buffer>\d+) Pool size: (?P<smb_small_pool_size>\d+)"),
    pattern('operations', r"Operations \(MIDs\): (?P<operations>\d+)"),
    pattern('reconnects', r"(?P<session_count>\d+) session (?P<share_reconnects>\d+) share reconnects"),
    pattern('vfs_operations', r"Total vfs operations: (?P<total_operations>\d+) maximum at one time: (?P<total_max_operations>\d+)"),
)

# "<id>) \\server\share" optionally followed by a tab and DISCONNECTED
SESSION_START = pattern(
    'session',
    r"(?P<session_id>\d+)\) \\\\(?P<server>[^\\\s]+)(?P<share>\\[^\t]*)?(?:\t(?P<status>DISCONNECTED))?",
    text_fields=('server', 'share', 'status'),
)


def _sent_failed(label: str, key: str):
    return pattern(key, rf"{label}: (?P<{key}_sent>\d+) sent (?P<{key}_failed>\d+) failed")


SMB_PATTERNS = (
    # SMB2 "Flushes: n sent n failed" must win over the SMB1 "Flushes: n" below
    _sent_failed('Flushes', 'flushes'),
    pattern('smbs_breaks', r"SMBs: (?P<smbs>\d+) Oplocks breaks: (?P<breaks>\d+)"),
    pattern('reads_bytes', r"Reads:  (?P<reads>\d+) Bytes: (?P<reads_bytes>\d+)"),
    pattern('writes_bytes', r"Writes: (?P<writes>\d+) Bytes: (?P<writes_bytes>\d+)"),
    pattern('flushes', r"Flushes: (?P<flushes>\d+)"),
    pattern('locks_links', r"Locks: (?P<locks>\d+) HardLinks: (?P<hardlinks>\d+) Symlinks: (?P<symlinks>\d+)"),
    pattern('opens', r"Opens: (?P<opens>\d+) Closes: (?P<closes>\d+) Deletes: (?P<deletes>\d+)"),
    pattern('posix', r"Posix Opens: (?P<posix_opens>\d+) Posix Mkdirs: (?P<posix_mkdirs>\d+)"),
    pattern('dirs', r"Mkdirs: (?P<mkdirs>\d+) Rmdirs: (?P<rmdirs>\d+)"),
    pattern('renames', r"Renames: (?P<renames>\d+) T2 Renames (?P<t2_renames>\d+)"),
    pattern('find', r"FindFirst: (?P<find_first>\d+) FNext (?P<f_next>\d+) FClose (?P<f_close>\d+)"),
    pattern('smbs', r"SMBs: (?P<smbs>\d+)"),
    _sent_failed('Negotiates', 'negotiates'),
    _sent_failed('SessionSetups', 'session_setups'),
    _sent_failed('Logoffs', 'logoffs'),
    _sent_failed('TreeConnects', 'tree_connects'),
    _sent_failed('TreeDisconnects', 'tree_disconnects'),
    _sent_failed('Creates', 'creates'),
    _sent_failed('Closes', 'closes'),
    _sent_failed('Reads', 'reads'),
    _sent_failed('Writes', 'writes'),
    _sent_failed('Locks', 'locks'),
    _sent_failed('IOCTLs', 'ioctls'),
    _sent_failed('Cancels', 'cancels'),
    _sent_failed('Echos', 'echos'),
    _sent_failed('QueryDirectories', 'query_directories'),
    _sent_failed('ChangeNotifies', 'change_notifies'),
    _sent_failed('QueryInfos', 'query_infos'),
    _sent_failed('SetInfos', 'set_infos'),
    _sent_failed('OplockBreaks', 'oplock_breaks'),
)

SEGMENTER = BlockSegmenter(HEADER_PATTERNS, SMB_PATTERNS, SESSION_START, what='SMB file')


@dataclass(frozen=True)
class SessionBlock:
    session_id: int
    server: str
    share: str
    stats: Mapping[str, int]
    disconnected: bool = False


@dataclass(frozen=True)
class SessionFailure:
    line: str
    error: DecodeError


@dataclass(frozen=True)
class ClientStats:
    header: Mapping[str, int]
    sessions: Tuple[SessionBlock, ...]
    failures: Tuple[SessionFailure, ...] = ()


def parse_client_stats(stream: Iterable[Union[bytes, str]]) -> ClientStats:
    """Parse /proc/fs/cifs/Stats content.

    Raises StructuralError if no header field is found. A session block carrying an
    undecodable value is left out of ``sessions`` and listed in ``failures``.
    """
    seg = SEGMENTER.run(iter_text_lines(stream))
    sessions = tuple(
        SessionBlock(
            session_id=b.ident['session_id'],
            server=b.ident.get('server', ''),
            share=b.ident.get('share', ''),
            stats=b.fields,
            disconnected='status' in b.ident,
        )
        for b in seg.blocks
    )
    failures = tuple(SessionFailure(f.start_line, f.error) for f in seg.failures)
    dbg('cifs', 'parsed header_fields=%d sessions=%d failures=%d', len(seg.header), len(sessions), len(failures))
    return ClientStats(header=seg.header, sessions=sessions, failures=failures)


def read_client_stats(fs: Optional[FS] = None) -> ClientStats:
    fs = fs or FS.proc()
    with fs.open('fs', 'cifs', 'Stats') as fh:
        return parse_client_stats(fh)
