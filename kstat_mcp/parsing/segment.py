"""Stateful block segmentation of line-oriented kernel statistics.

Files like /proc/fs/cifs/Stats carry a file-level header followed by repeated blocks
(one per share session):

    CIFS Session: 1                  <- header lines, any position
    ...
    1) \\\\server\\share             <- block start
    SMBs: 9 Oplocks breaks: 0        <- merged into the current block
    2) \\\\server\\other             <- next block start

The segmenter runs two states, UNATTACHED and IN_BLOCK. Header patterns are tried on
every line regardless of state. A block-start line opens a new block; block patterns
only apply while a block is open and unmatched lines are ignored so newer kernels can
add descriptive lines freely.

Header/block asymmetry:
  - no header field at all -> StructuralError for the whole file
  - a DecodeError inside a block drops that block only (reported in ``failures``)
  - a DecodeError on a header field drops that field only
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..debug_util import dbg
from ..errors import DecodeError, StreamError, StructuralError
from .dispatch import Matched, Pattern, decode_match, match_first
from .values import parse_uint

Value = Union[int, str]


def iter_text_lines(stream: Iterable[Union[bytes, str]], encoding: str = 'utf-8') -> Iterator[str]:
    """Yield lines from a binary or text stream without trailing newlines.

    Read failures surface as StreamError chained to the original exception.
    """
    it = iter(stream)
    while True:
        try:
            raw = next(it)
        except StopIteration:
            return
        except (OSError, UnicodeDecodeError) as e:
            raise StreamError(f'failed reading input: {e.__class__.__name__}', str(e)) from e
        if isinstance(raw, bytes):
            try:
                raw = raw.decode(encoding)
            except UnicodeDecodeError as e:
                raise StreamError('undecodable input line', repr(raw[:80])) from e
        yield raw.rstrip('\r\n')


class State(Enum):
    UNATTACHED = 'unattached'
    IN_BLOCK = 'in_block'


@dataclass(frozen=True)
class Block:
    ident: Mapping[str, Value]
    fields: Mapping[str, int]


@dataclass(frozen=True)
class BlockFailure:
    start_line: str
    error: DecodeError


@dataclass(frozen=True)
class Segmentation:
    header: Mapping[str, int]
    blocks: Tuple[Block, ...]
    failures: Tuple[BlockFailure, ...] = ()


@dataclass
class _OpenBlock:
    start_line: str
    ident: Dict[str, Value] = field(default_factory=dict)
    fields: Dict[str, int] = field(default_factory=dict)
    error: Optional[DecodeError] = None


class BlockSegmenter:
    def __init__(self, header_patterns: Sequence[Pattern], block_patterns: Sequence[Pattern],
                 block_start: Pattern, decoder: Callable[[str], int] = parse_uint, what: str = 'stats'):
        self.header_patterns = tuple(header_patterns)
        self.block_patterns = tuple(block_patterns)
        self.block_start = block_start
        self.decoder = decoder
        self.what = what

    def run(self, lines: Iterable[str]) -> Segmentation:
        header: Dict[str, int] = {}
        opened: List[_OpenBlock] = []
        current: Optional[_OpenBlock] = None
        state = State.UNATTACHED

        for line in lines:
            if not line.strip():
                continue
            m = match_first(line, self.header_patterns)
            if m:
                self._merge_header(m, header)

            start = match_first(line, (self.block_start,))
            if start:
                current = _OpenBlock(start_line=line.strip())
                opened.append(current)
                state = State.IN_BLOCK
                self._merge_block(current, start, into_ident=True)
                continue

            if state is State.IN_BLOCK:
                m = match_first(line, self.block_patterns)
                if m:
                    self._merge_block(current, m, into_ident=False)

        if not header:
            raise StructuralError(f'error scanning {self.what}: header is empty')

        blocks: List[Block] = []
        failures: List[BlockFailure] = []
        for ob in opened:
            if ob.error is not None:
                dbg('segment', 'drop_block what=%s start=%r err=%s', self.what, ob.start_line, ob.error)
                failures.append(BlockFailure(ob.start_line, ob.error))
                continue
            blocks.append(Block(MappingProxyType(dict(ob.ident)), MappingProxyType(dict(ob.fields))))
        return Segmentation(MappingProxyType(header), tuple(blocks), tuple(failures))

    def _merge_header(self, m: Matched, header: Dict[str, int]) -> None:
        for name in m.pattern.captures:
            raw = m.raw.get(name)
            if raw is None:
                continue
            try:
                header[name] = self.decoder(raw)
            except DecodeError as e:
                dbg('segment', 'header_field_skipped what=%s field=%s err=%s', self.what, name, e)

    def _merge_block(self, block: _OpenBlock, m: Matched, into_ident: bool) -> None:
        if block.error is not None:
            return
        try:
            values = decode_match(m, self.decoder)
        except DecodeError as e:
            block.error = e
            return
        if into_ident:
            block.ident.update(values)
        else:
            block.fields.update(values)  # type: ignore[arg-type]
