"""DEBUG_VERBOSE gated diagnostics on per-component loggers."""

import logging

from kstat_mcp import debug_util
from kstat_mcp.ingestion import nfsd

LINES = [b'rc 0 6 18622\n', b'futurekw 1 2 3\n']


def test_component_loggers_are_children_of_package_logger():
    log = debug_util.get_logger('nfsd')
    assert log.name == 'kstat_mcp.nfsd'
    assert log.parent is debug_util.logger
    assert debug_util.get_logger('nfsd') is log


def test_skipped_keyword_is_reported_on_nfsd_logger(monkeypatch, caplog):
    monkeypatch.setenv('DEBUG_VERBOSE', '1')
    with caplog.at_level(logging.INFO, logger='kstat_mcp'):
        nfsd.parse_server_rpc_stats(LINES)
    records = [r for r in caplog.records if r.name == 'kstat_mcp.nfsd']
    assert len(records) == 1
    assert records[0].getMessage() == 'skip_unknown keyword=futurekw'
    # arguments stay unformatted until a handler emits the record
    assert records[0].args == ('futurekw',)


def test_quiet_without_debug_verbose(monkeypatch, caplog):
    monkeypatch.delenv('DEBUG_VERBOSE', raising=False)
    with caplog.at_level(logging.INFO, logger='kstat_mcp'):
        nfsd.parse_server_rpc_stats(LINES)
    assert not [r for r in caplog.records if r.name.startswith('kstat_mcp')]
