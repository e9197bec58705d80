"""Header/block segmentation over a small synthetic format."""

import io

import pytest
from kstat_mcp.errors import StreamError, StructuralError
from kstat_mcp.parsing.dispatch import pattern
from kstat_mcp.parsing.segment import BlockSegmenter, iter_text_lines

SEG = BlockSegmenter(
    header_patterns=(pattern('total', r"Total: (?P<total>\d+)"),),
    block_patterns=(pattern('hits', r"Hits: (?P<hits>\d+)"), pattern('misses', r"Misses: (?P<misses>\d+)")),
    block_start=pattern('start', r"\[(?P<id>\d+)\] (?P<name>\w+)", text_fields=('name',)),
    what='test file',
)


def test_blocks_in_encounter_order_with_header_anywhere():
    lines = [
        'Total: 2',
        '',
        '[1] alpha',
        'Hits: 5',
        'noise that matches nothing',
        '[2] beta',
        'Misses: 3',
        'Total: 4',  # header lines are honoured inside blocks too; last value wins
    ]
    seg = SEG.run(lines)
    assert dict(seg.header) == {'total': 4}
    assert [dict(b.ident) for b in seg.blocks] == [{'id': 1, 'name': 'alpha'}, {'id': 2, 'name': 'beta'}]
    assert dict(seg.blocks[0].fields) == {'hits': 5}
    assert dict(seg.blocks[1].fields) == {'misses': 3}
    assert seg.failures == ()


def test_block_lines_before_any_block_are_ignored():
    seg = SEG.run(['Hits: 9', 'Total: 1'])
    assert seg.blocks == ()
    assert dict(seg.header) == {'total': 1}


def test_empty_header_is_structural_error():
    with pytest.raises(StructuralError) as ei:
        SEG.run(['[1] alpha', 'Hits: 5'])
    assert 'test file' in str(ei.value)


def test_bad_value_drops_only_that_block():
    seg = SEG.run([
        'Total: 1',
        '[1] alpha',
        'Hits: 99999999999999999999999',
        'Misses: 1',
        '[2] beta',
        'Hits: 2',
    ])
    assert [b.ident['name'] for b in seg.blocks] == ['beta']
    assert len(seg.failures) == 1
    assert seg.failures[0].start_line == '[1] alpha'


def test_bad_header_value_drops_only_that_field():
    seg = SEG.run(['Total: 99999999999999999999999', '[1] alpha', 'Total: 3'])
    assert dict(seg.header) == {'total': 3}


def test_run_is_repeatable():
    lines = ['Total: 1', '[1] alpha', 'Hits: 5']
    assert SEG.run(lines) == SEG.run(lines)


def test_iter_text_lines_accepts_bytes_and_strips_newlines():
    assert list(iter_text_lines(io.BytesIO(b'a\r\nb\n\nc'))) == ['a', 'b', '', 'c']
    assert list(iter_text_lines(['x\n', 'y'])) == ['x', 'y']


def test_iter_text_lines_wraps_read_failures():
    def broken():
        yield b'Total: 1\n'
        raise OSError('device went away')

    with pytest.raises(StreamError) as ei:
        list(iter_text_lines(broken()))
    assert isinstance(ei.value.__cause__, OSError)
    with pytest.raises(StreamError):
        list(iter_text_lines([b'\xff\xfe']))
