"""Numeric token decoding for kernel pseudo-file values.

Three flavours show up in /proc and /sys text:

* plain unsigned counters ("18628", occasionally "0x1f")
* bcache "humanized" sizes printed by bch_hprint(): "542k", "1.10k", "322M"
* bcache pseudo-floats: the digits after the dot are hundredths of 1024, not of 100,
  so "1.1" is 1 + 100/1024 and "1.10" is 1 + 1000/1024 (the two are NOT equal).
"""
from __future__ import annotations
import re
from typing import Iterable, List, Tuple

from ..errors import DecodeError

UINT64_MAX = (1 << 64) - 1

# Source for the scale letters: linux/drivers/md/bcache/util.c:bch_hprint()
SIZE_SUFFIXES = {
    'k': 1 << 10,
    'M': 1 << 20,
    'G': 1 << 30,
    'T': 1 << 40,
    'P': 1 << 50,
    'E': 1 << 60,
    'Z': 1 << 70,
    'Y': 1 << 80,
}

PSEUDO_FLOAT_RE = re.compile(r"^(\d+)(?:\.(\d+))?$")
DECIMAL_RE = re.compile(r"^(\d+)\.(\d+)$")
# bch_hprint() keeps the remainder in 1/1024ths and prints it *100, so at most two digits
PSEUDO_FRACTION_UNIT = 100
PSEUDO_FRACTION_BASE = 1024
PSEUDO_FRACTION_MAX_DIGITS = 2
PSEUDO_FRACTION_SCALE = PSEUDO_FRACTION_UNIT / PSEUDO_FRACTION_BASE


def parse_uint(token: str) -> int:
    """Parse an unsigned 64-bit counter; a 0x prefix selects base 16."""
    text = token.strip()
    base = 10
    if text.startswith('0x'):
        base = 16
        text = text[2:]
    if not text or not all(c in '0123456789abcdefABCDEF' for c in text):
        raise DecodeError('invalid unsigned integer', token)
    if base == 10 and not text.isdigit():
        raise DecodeError('invalid unsigned integer', token)
    value = int(text, base)
    if value > UINT64_MAX:
        raise DecodeError('value out of uint64 range', token)
    return value


def parse_uints(tokens: Iterable[str]) -> List[int]:
    return [parse_uint(t) for t in tokens]


def _split_pseudo_float(token: str) -> Tuple[int, int]:
    """'1.10' -> (1, 10); the fraction counts PSEUDO_FRACTION_UNIT/1024 steps."""
    m = PSEUDO_FLOAT_RE.match(token)
    if not m:
        raise DecodeError('invalid pseudo-float', token)
    int_part, frac_part = m.groups()
    if frac_part is None:
        return int(int_part), 0
    if len(frac_part) > PSEUDO_FRACTION_MAX_DIGITS:
        raise DecodeError('pseudo-float malformed: too many fraction digits', token)
    return int(int_part), int(frac_part)


def parse_pseudo_float(token: str) -> float:
    int_part, frac = _split_pseudo_float(token)
    return int_part + frac * PSEUDO_FRACTION_SCALE


def dehumanize(token: str) -> int:
    """Decode a bch_hprint() value into a plain count.

    A trailing scale letter marks a byte quantity whose mantissa is a pseudo-float;
    without one the token is already a count and parses as an ordinary decimal.
    Arithmetic stays in integers so 64-bit counters survive exactly.
    """
    text = token.strip()
    if not text:
        raise DecodeError('empty value', token)
    last = text[-1]
    if last.isdigit():
        if text.isdigit():
            return parse_uint(text)
        m = DECIMAL_RE.match(text)
        if not m:
            raise DecodeError('invalid number', token)
        int_text, frac_text = m.groups()
        # round half up on the decimal fraction
        value = int(int_text) + (1 if int(frac_text) * 2 >= 10 ** len(frac_text) else 0)
    else:
        scale = SIZE_SUFFIXES.get(last)
        if scale is None:
            raise DecodeError('unknown size suffix', token)
        mantissa_text = text[:-1]
        if not mantissa_text:
            raise DecodeError('missing mantissa', token)
        try:
            int_part, frac = _split_pseudo_float(mantissa_text)
        except DecodeError as e:
            raise DecodeError('invalid mantissa', token) from e
        scaled = (int_part * PSEUDO_FRACTION_BASE + frac * PSEUDO_FRACTION_UNIT) * scale
        value = (scaled + PSEUDO_FRACTION_BASE // 2) // PSEUDO_FRACTION_BASE
    if value > UINT64_MAX:
        raise DecodeError('value out of uint64 range', token)
    return value


def parse_percent(token: str) -> int:
    """'99%' -> 99"""
    if not token.endswith('%'):
        raise DecodeError('missing percent sign', token)
    try:
        return parse_uint(token[:-1])
    except DecodeError as e:
        raise DecodeError('invalid percentage', token) from e
