import os
import pytest
from kstat_mcp.mcp_app import (
    bcache_stats, cifs_stats, decode_value, iscsi_targets, nfsd_stats, parse_text,
    selinux_avc_stats, to_jsonable, usage_guide,
)
from kstat_mcp.parsing.configtree import BackstoreEntry, BackstoreKind

DATA = os.path.join(os.path.dirname(__file__), 'data')


def _tool(t):
    return getattr(t, 'fn', t)


def _read(name):
    with open(os.path.join(DATA, name)) as fh:
        return fh.read()


@pytest.fixture
def empty_roots(tmp_path, monkeypatch):
    for var, sub in (('KSTAT_PROC_ROOT', 'proc'), ('KSTAT_SYS_ROOT', 'sys'), ('KSTAT_CONFIGFS_ROOT', 'config')):
        (tmp_path / sub).mkdir()
        monkeypatch.setenv(var, str(tmp_path / sub))
    return tmp_path


def test_parse_text_cifs():
    out = _tool(parse_text)(kind='cifs', text=_read('cifs_smb2.txt'))
    assert out['header']['shares'] == 4
    assert [s['server'] for s in out['sessions']] == ['server', 'server2']
    assert out['sessions'][0]['stats']['creates_failed'] == 2
    assert out['failures'] == []


def test_parse_text_nfsd_is_json_shaped():
    out = _tool(parse_text)(kind='nfsd', text=_read('nfsd_proc4ops_72.txt'))
    assert out['v4_ops']['declared'] == 72
    assert out['v4_ops']['fields']['access'] == 1098
    assert isinstance(out['v4_ops']['values'], list)
    assert out['wdeleg_getattr'] == 16


def test_parse_text_errors_become_dicts():
    out = _tool(parse_text)(kind='cifs', text='invalid')
    assert out['error'] == 'StructuralError'
    assert 'header is empty' in out['detail']
    out = _tool(parse_text)(kind='meminfo', text='')
    assert out['error'] == 'unknown_kind'
    assert 'avc_hash' in out['kinds']


def test_parse_text_avc_and_priority_stats():
    assert _tool(parse_text)(kind='avc', text=_read('avc_cache_stats.txt'))['lookups'] == 91590784
    assert _tool(parse_text)(kind='avc_hash', text=_read('avc_hash_stats.txt'))['longest_chain'] == 8
    assert _tool(parse_text)(kind='priority_stats', text='Unused: 99%\nMetadata: 5%') == {
        'unused_percent': 99, 'metadata_percent': 5,
    }


@pytest.mark.parametrize('token,mode,value', [
    ('1.10k', 'humanized', 2024),
    ('322M', 'humanized', 337641472),
    ('0x1f', 'uint', 31),
])
def test_decode_value(token, mode, value):
    assert _tool(decode_value)(token=token, mode=mode)['value'] == value


def test_decode_value_errors():
    assert _tool(decode_value)(token='1.2.3k', mode='humanized')['error'] == 'DecodeError'
    assert _tool(decode_value)(token='1', mode='float')['error'] == 'unknown_mode'
    assert abs(_tool(decode_value)(token='1.1', mode='pseudo_float')['value'] - 1.097656) < 0.0001


def test_host_tools_report_missing_files(empty_roots):
    assert _tool(cifs_stats)()['error'] == 'StreamError'
    assert _tool(nfsd_stats)()['error'] == 'StreamError'
    assert _tool(selinux_avc_stats)()['error'] == 'StreamError'
    assert _tool(bcache_stats)() == {'sets': []}
    assert _tool(iscsi_targets)() == {'targets': []}


def test_host_tools_read_configured_roots(empty_roots):
    (empty_roots / 'proc' / 'net' / 'rpc').mkdir(parents=True)
    (empty_roots / 'proc' / 'net' / 'rpc' / 'nfsd').write_text(_read('nfsd_proc4ops_39.txt'))
    out = _tool(nfsd_stats)()
    assert out['v4_ops']['fields']['write'] == 39
    assert out['reply_cache']['fields']['misses'] == 25020854


def test_to_jsonable_handles_enums_and_errors():
    entry = BackstoreEntry(BackstoreKind.RD_MCP, '1', 'ram', '../rd_mcp_1/ram')
    assert to_jsonable(entry) == {'kind': 'rd_mcp', 'instance': '1', 'object_name': 'ram', 'target': '../rd_mcp_1/ram'}
    assert to_jsonable(ValueError('bad\nsecond line')) == {'error': 'ValueError', 'detail': 'bad'}


def test_usage_guide_mentions_tools():
    text = _tool(usage_guide)()['text']
    assert 'parse_text' in text and 'decode_value' in text
