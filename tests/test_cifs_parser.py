"""/proc/fs/cifs/Stats parsing (SMB1 and SMB2/3 layouts)."""

import os

import pytest
from kstat_mcp.errors import StructuralError
from kstat_mcp.ingestion import cifs
from kstat_mcp.ingestion.fs import FS

DATA = os.path.join(os.path.dirname(__file__), 'data')


def _parse(name):
    with open(os.path.join(DATA, name), 'rb') as fh:
        return cifs.parse_client_stats(fh)


SMB1 = _parse('cifs_smb1.txt')
SMB2 = _parse('cifs_smb2.txt')


def test_smb1_header():
    assert dict(SMB1.header) == {
        'sessions': 1, 'shares': 2, 'smb_buffer': 1, 'smb_pool_size': 5,
        'smb_small_buffer': 1, 'smb_small_pool_size': 30, 'operations': 0,
        'session_count': 0, 'share_reconnects': 0, 'total_operations': 16,
        'total_max_operations': 2,
    }


def test_smb1_session_block():
    assert len(SMB1.sessions) == 1
    s = SMB1.sessions[0]
    assert (s.session_id, s.server, s.share, s.disconnected) == (1, 'server', '\\share', False)
    assert dict(s.stats) == {
        'smbs': 9, 'breaks': 0, 'reads': 0, 'reads_bytes': 0, 'writes': 0, 'writes_bytes': 0,
        'flushes': 0, 'locks': 0, 'hardlinks': 0, 'symlinks': 0, 'opens': 0, 'closes': 0,
        'deletes': 0, 'posix_opens': 0, 'posix_mkdirs': 0, 'mkdirs': 0, 'rmdirs': 0,
        'renames': 0, 't2_renames': 0, 'find_first': 1, 'f_next': 0, 'f_close': 0,
    }


def test_smb2_sessions_in_order():
    assert SMB2.header['sessions'] == 2
    assert [(s.session_id, s.server, s.share) for s in SMB2.sessions] == [
        (1, 'server', '\\share1'), (2, 'server2', '\\share2'),
    ]
    first, second = SMB2.sessions
    assert first.stats['smbs'] == 20
    assert first.stats['creates_failed'] == 2
    assert second.stats['negotiates_sent'] == 30
    assert second.stats['session_setups_failed'] == 4
    assert SMB2.failures == ()


def test_smb2_flushes_use_sent_failed_shape():
    stats = SMB2.sessions[0].stats
    assert stats['flushes_sent'] == 0 and stats['flushes_failed'] == 0
    assert 'flushes' not in stats
    assert len([k for k in stats if k.endswith('_sent')]) == 19


def test_invalid_file():
    with pytest.raises(StructuralError):
        cifs.parse_client_stats(['invalid'])


def test_overflowing_value_drops_that_session_only():
    with open(os.path.join(DATA, 'cifs_smb2.txt')) as fh:
        text = fh.read().replace('SMBs: 20', 'SMBs: 99999999999999999999999')
    stats = cifs.parse_client_stats(text.splitlines())
    assert [s.session_id for s in stats.sessions] == [2]
    assert len(stats.failures) == 1
    assert stats.failures[0].line == '1) \\\\server\\share1'


def test_disconnected_session_flag():
    text = 'CIFS Session: 1\n1) \\\\srv\\data\tDISCONNECTED\nSMBs: 4\n'
    stats = cifs.parse_client_stats(text.splitlines())
    s = stats.sessions[0]
    assert (s.server, s.share, s.disconnected) == ('srv', '\\data', True)
    assert s.stats['smbs'] == 4


def test_parse_is_idempotent():
    assert _parse('cifs_smb1.txt') == SMB1


def test_read_client_stats_from_proc_root(tmp_path, monkeypatch):
    (tmp_path / 'fs' / 'cifs').mkdir(parents=True)
    with open(os.path.join(DATA, 'cifs_smb1.txt'), 'rb') as src:
        (tmp_path / 'fs' / 'cifs' / 'Stats').write_bytes(src.read())
    monkeypatch.setenv('KSTAT_PROC_ROOT', str(tmp_path))
    assert cifs.read_client_stats() == SMB1
    assert cifs.read_client_stats(FS(str(tmp_path))) == SMB1
