"""Decoding of self-describing counter vectors.

Lines in /proc/net/rpc/nfsd look like

    proc3 22 2 112 0 2719 ...        <- keyword, declared count N, then N counters
    rc 0 6 18622                     <- keyword, fixed number of counters
    th 8 0 0.000 0.000 ...           <- keyword, only the first 2 tokens are counters

Each kind has an ArraySchema: the known counter names bound to positions. The schema
is a table kept apart from the positional vector, so a counter added by a newer kernel
is one more name in the table. Values past the schema are kept as ``unmapped``; names
past the values present default to 0.
"""
from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

from ..errors import StructuralError
from .values import parse_uints


@dataclass(frozen=True)
class ArraySchema:
    keyword: str
    fields: Tuple[str, ...]
    # first value is the element count N
    counted: bool = True
    # smallest N accepted; defaults to the number of named fields
    min_values: Optional[int] = None
    # N must equal min_values
    exact: bool = False
    # authoritative token width; longer lines are cut before decoding
    width: Optional[int] = None

    @property
    def minimum(self) -> int:
        return len(self.fields) if self.min_values is None else self.min_values


@dataclass(frozen=True)
class CountedRecord:
    keyword: str
    declared: Optional[int]
    values: Tuple[int, ...]
    fields: Mapping[str, int]
    unmapped: Tuple[int, ...] = ()

    def __getitem__(self, name: str) -> int:
        return self.fields[name]


def decode_array(tokens: Sequence[str], schema: ArraySchema) -> CountedRecord:
    """Decode the value tokens of one line (keyword already removed)."""
    line = f"{schema.keyword} {' '.join(tokens)}"
    if schema.width is not None:
        if len(tokens) < schema.width:
            raise StructuralError(f'invalid {schema.keyword} line: expected {schema.width} values', line)
        tokens = tokens[:schema.width]
    raw = parse_uints(tokens)

    declared: Optional[int] = None
    if schema.counted:
        if not raw:
            raise StructuralError(f'invalid {schema.keyword} line: missing count', line)
        declared, values = raw[0], raw[1:]
        if len(values) != declared:
            raise StructuralError(
                f'invalid {schema.keyword} line: declared {declared} values, found {len(values)}', line)
        if declared < schema.minimum or (schema.exact and declared != schema.minimum):
            raise StructuralError(
                f'invalid {schema.keyword} line: {declared} values, need {schema.minimum}', line)
    else:
        values = raw
        if len(values) != schema.minimum:
            raise StructuralError(
                f'invalid {schema.keyword} line: expected {schema.minimum} values, found {len(values)}', line)

    fields = {name: (values[i] if i < len(values) else 0) for i, name in enumerate(schema.fields)}
    return CountedRecord(
        keyword=schema.keyword,
        declared=declared,
        values=tuple(values),
        fields=MappingProxyType(fields),
        unmapped=tuple(values[len(schema.fields):]),
    )
