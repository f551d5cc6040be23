"""Bit encoder: turn request payloads into a canonical bit stream.

Numbers are written most-significant-bit first, in input order. The width of
each value is chosen by, in order of precedence:

1. an explicit ``bit_width`` (8, 16 or 32),
2. a declared ``[range_min, range_max]``, remapped to ``value - range_min``
   and written on ``ceil(log2(range_max - range_min + 1))`` bits so that a
   die roll (1..6) costs three bits instead of eight,
3. the smallest standard width that holds the largest value.

Base64 payloads are decoded to bytes and unpacked eight bits per byte.
"""

import base64
import binascii
import logging
import re
from typing import List, Optional, Sequence

import numpy as np

from .errors import EmptyInput, InvalidFormat, InvalidParameter, RangeViolation
from .models import BitStream, InputFormat, NumericInput

logger = logging.getLogger(__name__)

STANDARD_WIDTHS = (8, 16, 32)
MAX_VALUE = (1 << 32) - 1

_DELIMITERS = re.compile(r"[,\s]+")
_INTEGER = re.compile(r"[+-]?\d+")
_WHITESPACE = re.compile(r"\s+")


def encode(payload: NumericInput) -> BitStream:
    """Produce the bit stream for ``payload`` or raise a classified EncodingError."""
    if payload.input_format is InputFormat.BASE64:
        if payload.has_range or payload.bit_width is not None:
            raise InvalidParameter(
                "range_min, range_max and bit_width do not apply to base64 input"
            )
        return decode_base64(payload.numbers)
    values = parse_numbers(payload.numbers)
    return encode_numbers(
        values,
        bit_width=payload.bit_width,
        range_min=payload.range_min,
        range_max=payload.range_max,
    )


def parse_numbers(text: str) -> List[int]:
    """Split ``text`` on comma/whitespace runs and parse each token as base-10."""
    tokens = [t for t in _DELIMITERS.split(text or "") if t]
    if not tokens:
        raise EmptyInput("No numbers provided")
    values = []
    for position, token in enumerate(tokens, start=1):
        if not _INTEGER.fullmatch(token):
            raise InvalidFormat(
                f"Token {position} ('{_preview(token)}') is not a base-10 integer; "
                "only signed or unsigned integers separated by commas, spaces or newlines are allowed"
            )
        values.append(int(token))
    return values


def encode_numbers(
    values: Sequence[int],
    *,
    bit_width: Optional[int] = None,
    range_min: Optional[int] = None,
    range_max: Optional[int] = None,
) -> BitStream:
    """Encode integer ``values`` into a BitStream (see module docstring)."""
    if not values:
        raise EmptyInput("No numbers provided")
    if bit_width is not None and bit_width not in STANDARD_WIDTHS:
        raise InvalidParameter(f"Invalid bit_width: {bit_width}. Must be 8, 16, or 32.")

    has_range = range_min is not None or range_max is not None
    offset = 0
    if has_range:
        width = range_width(range_min, range_max)
        lo, hi = min(values), max(values)
        if lo < range_min or hi > range_max:
            bad = lo if lo < range_min else hi
            raise RangeViolation(
                f"Value {bad} is outside the declared range {range_min}-{range_max}"
            )
        offset = range_min
        if bit_width is not None:
            # explicit width wins; the range only validates
            width = bit_width
            offset = 0
            logger.info("Using enforced bit-width %d with declared range %d-%d", width, range_min, range_max)
        else:
            logger.info("Using custom range %d-%d encoded on %d bits per value", range_min, range_max, width)
    elif bit_width is not None:
        width = bit_width
        logger.info("Using enforced bit-width: %d bits", width)
    else:
        width = standard_width(max(values))
        logger.info("Using inferred fixed width: %d bits (max value %d)", width, max(values))

    shifted = [v - offset for v in values]
    limit = (1 << width) - 1
    for v, raw in zip(shifted, values):
        if v < 0 or v > limit:
            raise RangeViolation(
                f"Number {raw} does not fit in {width}-bit unsigned encoding (0-{limit}). "
                "Select a larger bit_width or declare range_min/range_max."
            )

    arr = np.asarray(shifted, dtype=np.uint64)
    shifts = np.arange(width - 1, -1, -1, dtype=np.uint64)
    bits = ((arr[:, None] >> shifts) & np.uint64(1)).astype(np.uint8).ravel()
    logger.debug("Converted %d numbers to %d bits (%d bits per number)", len(values), bits.size, width)
    return BitStream.from_array(bits, width)


def decode_base64(text: str) -> BitStream:
    """Decode base64 ``text`` (whitespace tolerant, padding optional)."""
    clean = _WHITESPACE.sub("", text or "")
    if not clean:
        raise EmptyInput("No base64 data provided")
    padding = (-len(clean)) % 4
    if padding:
        clean += "=" * padding
        logger.debug("Added %d padding character(s) to base64 input", padding)
    try:
        data = base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidFormat(f"Invalid base64 input: {e}") from e
    if not data:
        raise EmptyInput("Base64 decoded to empty data")
    logger.info("Decoded %d bytes from base64 into %d bits", len(data), len(data) * 8)
    return BitStream.from_bytes(data)


def decode_values(stream: BitStream, *, range_min: int = 0) -> List[int]:
    """Inverse of :func:`encode_numbers` for a stream built with a fixed width."""
    width = stream.bits_per_value
    if not len(stream):
        return []
    chunks = stream.as_array().reshape(-1, width).astype(np.uint64)
    weights = np.uint64(1) << np.arange(width - 1, -1, -1, dtype=np.uint64)
    return [int(v) + range_min for v in (chunks * weights).sum(axis=1)]


def range_width(range_min: Optional[int], range_max: Optional[int]) -> int:
    """Bits needed to encode every value of ``[range_min, range_max]``."""
    if range_min is None or range_max is None:
        raise InvalidParameter("range_min and range_max must be provided together")
    if range_min > range_max:
        raise InvalidParameter(f"Invalid range: min ({range_min}) > max ({range_max})")
    span = range_max - range_min + 1
    if span < 2:
        raise InvalidParameter(
            f"Invalid range: {range_min}-{range_max} contains a single value and carries no randomness"
        )
    width = (span - 1).bit_length()
    if width > 32:
        raise InvalidParameter(f"Range {range_min}-{range_max} needs {width} bits; at most 32 are supported")
    return width


def standard_width(max_value: int) -> int:
    """Smallest of 8/16/32 bits holding ``max_value``."""
    if max_value > MAX_VALUE:
        raise RangeViolation(f"Number {max_value} exceeds the 32-bit maximum value of {MAX_VALUE}")
    for width in STANDARD_WIDTHS:
        if max_value < (1 << width):
            return width
    return STANDARD_WIDTHS[-1]


def _preview(token: str, limit: int = 20) -> str:
    return token if len(token) <= limit else token[:limit] + "..."
