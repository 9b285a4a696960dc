"""
Decoders for the compacted integer and float streams inside shape LOD data.

Integer streams are stored as a codec-encoded residual array followed by the
predictor that turns residuals back into values.  Float streams are either
stored lossless (optionally zlib-deflated) or quantized per component.
"""

from __future__ import annotations

from typing import List

import numpy as np

from .cursor import ByteCursor
from .errors import FormatError, UnsupportedCodecError
from .inflate_io import inflate_zlib

CODEC_NULL = 0
CODEC_BITLENGTH = 1
CODEC_HUFFMAN = 2
CODEC_ARITHMETIC = 3

PREDICTOR_LAG1 = 0
PREDICTOR_LAG2 = 1
PREDICTOR_STRIDE1 = 2
PREDICTOR_STRIDE2 = 3
PREDICTOR_STRIP_INDEX = 4
PREDICTOR_RAMP = 5
PREDICTOR_XOR1 = 6
PREDICTOR_XOR2 = 7
PREDICTOR_NULL = 8

CODEC_NAMES = {
    CODEC_NULL: "Null",
    CODEC_BITLENGTH: "Bitlength",
    CODEC_HUFFMAN: "Huffman",
    CODEC_ARITHMETIC: "Arithmetic",
}

# the first values of every stream are stored verbatim
PREDICTOR_PRIMING = 4


def unpack_bits(words: List[int], count: int, width: int) -> List[int]:
    """Split 32-bit words MSB-first into ``count`` signed ``width``-bit values."""

    if width == 0:
        return [0] * count
    if not 1 <= width <= 32:
        raise FormatError(f"Invalid bit field width {width}")
    if count * width > len(words) * 32:
        raise FormatError(f"{len(words)} words cannot hold {count} values of {width} bits")
    sign_bit = 1 << (width - 1)
    mask = (1 << width) - 1
    values: List[int] = []
    accumulator = 0
    available = 0
    word_iter = iter(words)
    for _ in range(count):
        while available < width:
            accumulator = (accumulator << 32) | next(word_iter)
            available += 32
        available -= width
        raw = (accumulator >> available) & mask
        accumulator &= (1 << available) - 1
        values.append(raw - (1 << width) if raw & sign_bit else raw)
    return values


def unpack_residuals(residuals: List[int], predictor: int) -> List[int]:
    if predictor == PREDICTOR_NULL:
        return list(residuals)
    if predictor not in range(PREDICTOR_NULL):
        raise FormatError(f"Unknown predictor type {predictor}")
    values: List[int] = []
    for index, residual in enumerate(residuals):
        if index < PREDICTOR_PRIMING:
            values.append(residual)
            continue
        v1, v2, v4 = values[index - 1], values[index - 2], values[index - 4]
        if predictor in (PREDICTOR_LAG1, PREDICTOR_XOR1):
            predicted = v1
        elif predictor in (PREDICTOR_LAG2, PREDICTOR_XOR2):
            predicted = v2
        elif predictor == PREDICTOR_STRIDE1:
            predicted = v1 + (v1 - v2)
        elif predictor == PREDICTOR_STRIDE2:
            predicted = v2 + (v2 - v4)
        elif predictor == PREDICTOR_STRIP_INDEX:
            if -8 < v2 - v4 < 8:
                predicted = v2 + (v2 - v4)
            else:
                predicted = v2 + 2
        else:
            predicted = index
        if predictor in (PREDICTOR_XOR1, PREDICTOR_XOR2):
            values.append(residual ^ predicted)
        else:
            values.append(residual + predicted)
    return values


def read_int32_cdp(cursor: ByteCursor) -> List[int]:
    codec = cursor.read_u8()
    if codec == CODEC_NULL:
        residuals = list(cursor.read_array("i", cursor.read_i32()))
    elif codec == CODEC_BITLENGTH:
        count = cursor.read_i32()
        width = cursor.read_u8()
        words = list(cursor.read_array("I", cursor.read_i32()))
        residuals = unpack_bits(words, count, width)
    elif codec in CODEC_NAMES:
        raise UnsupportedCodecError(f"Unsupported codec: {CODEC_NAMES[codec]}")
    else:
        raise FormatError(f"Unknown codec type {codec}")
    predictor = cursor.read_u8()
    return unpack_residuals(residuals, predictor)


def dequantize(codes: List[int], minimum: float, maximum: float, bits: int) -> np.ndarray:
    steps = (1 << bits) - 1
    array = np.asarray(codes, dtype=np.float64)
    if maximum == minimum:
        return np.full(array.shape, minimum, dtype=np.float64)
    return minimum + array * ((maximum - minimum) / steps)


def read_float_array(cursor: ByteCursor, components: int, bits: int) -> np.ndarray:
    """Flat float64 array of ``components``-tuples, lossless when ``bits`` is 0."""

    if bits == 0:
        raw_size = cursor.read_i32()
        compressed_size = cursor.read_i32()
        if raw_size < 0 or compressed_size < 0:
            raise FormatError(f"Invalid lossless block sizes {raw_size}/{compressed_size}")
        if compressed_size > 0:
            raw = inflate_zlib(cursor.read_bytes(compressed_size), expected_size=raw_size)
        else:
            raw = cursor.read_bytes(raw_size)
        if raw_size % (4 * components):
            raise FormatError(f"Lossless block of {raw_size} bytes is not a multiple of {components} floats")
        dtype = np.dtype(np.float32).newbyteorder(cursor.byteorder)
        return np.frombuffer(raw, dtype=dtype).astype(np.float64)

    if bits > 32:
        raise FormatError(f"Invalid quantization bit count {bits}")
    columns = []
    for _ in range(components):
        minimum = cursor.read_f32()
        maximum = cursor.read_f32()
        columns.append(dequantize(read_int32_cdp(cursor), minimum, maximum, bits))
    lengths = {len(column) for column in columns}
    if len(lengths) > 1:
        raise FormatError(f"Quantized components disagree on length: {sorted(lengths)}")
    return np.column_stack(columns).reshape(-1) if columns else np.zeros(0)
