from __future__ import annotations

import lzma
import zlib
from typing import Optional

from .errors import CodecError

ALGORITHM_ZLIB = 2
ALGORITHM_LZMA = 3


def inflate_zlib(blob: bytes, *, expected_size: Optional[int] = None) -> bytes:
    obj = zlib.decompressobj()
    try:
        payload = obj.decompress(blob) + obj.flush()
    except zlib.error as exc:
        raise CodecError(f"ZLIB inflate failed: {exc}") from exc
    if not obj.eof:
        raise CodecError("ZLIB stream is truncated")
    _check_size(payload, expected_size)
    return payload


def inflate_lzma(blob: bytes, *, expected_size: Optional[int] = None) -> bytes:
    """
    Inflate an LZMA block.  JT writers use the classic ``.lzma`` container
    (5 property bytes + 64-bit size + raw stream), which is what
    ``FORMAT_ALONE`` understands.
    """

    decompressor = lzma.LZMADecompressor(format=lzma.FORMAT_ALONE)
    try:
        payload = decompressor.decompress(blob)
    except lzma.LZMAError as exc:
        raise CodecError(f"LZMA inflate failed: {exc}") from exc
    if not decompressor.eof:
        raise CodecError("LZMA stream is truncated")
    _check_size(payload, expected_size)
    return payload


def inflate(blob: bytes, algorithm: int, *, expected_size: Optional[int] = None) -> bytes:
    if algorithm == ALGORITHM_ZLIB:
        return inflate_zlib(blob, expected_size=expected_size)
    if algorithm == ALGORITHM_LZMA:
        return inflate_lzma(blob, expected_size=expected_size)
    raise CodecError(f"Unknown compression algorithm: {algorithm}")


def _check_size(payload: bytes, expected_size: Optional[int]) -> None:
    if expected_size is not None and len(payload) != expected_size:
        raise CodecError(f"Inflated {len(payload)} bytes, expected {expected_size}")
