"""Content hashing with XXH64 for content-addressed file names."""

from __future__ import annotations

import struct
from typing import BinaryIO

_MASK = 0xFFFFFFFFFFFFFFFF
_P1 = 0x9E3779B185EBCA87
_P2 = 0xC2B2AE3D27D4EB4F
_P3 = 0x165667B19E3779F9
_P4 = 0x85EBCA77C2B2AE63
_P5 = 0x27D4EB2F165667C5

_STRIPE = 32
_CHUNK = 64 * 1024


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK
    return (_rotl(acc, 31) * _P1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK


class XXH64:
    """Streaming XXH64 hasher."""

    def __init__(self, data: bytes = b"", seed: int = 0) -> None:
        self._seed = seed & _MASK
        self._acc = (
            (self._seed + _P1 + _P2) & _MASK,
            (self._seed + _P2) & _MASK,
            self._seed,
            (self._seed - _P1) & _MASK,
        )
        self._buffer = b""
        self._total = 0
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        """Feed more bytes into the hash."""
        data = bytes(data)
        self._total += len(data)
        buf = self._buffer + data
        whole = len(buf) - len(buf) % _STRIPE
        v1, v2, v3, v4 = self._acc
        for l1, l2, l3, l4 in struct.iter_unpack("<4Q", buf[:whole]):
            v1 = _round(v1, l1)
            v2 = _round(v2, l2)
            v3 = _round(v3, l3)
            v4 = _round(v4, l4)
        self._acc = (v1, v2, v3, v4)
        self._buffer = buf[whole:]

    def intdigest(self) -> int:
        """Return the hash of all data so far as an unsigned 64-bit integer."""
        if self._total >= _STRIPE:
            v1, v2, v3, v4 = self._acc
            h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
            for v in self._acc:
                h = _merge(h, v)
        else:
            h = (self._seed + _P5) & _MASK

        h = (h + self._total) & _MASK

        tail = self._buffer
        eights = len(tail) - len(tail) % 8
        for (lane,) in struct.iter_unpack("<Q", tail[:eights]):
            h ^= _round(0, lane)
            h = (_rotl(h, 27) * _P1 + _P4) & _MASK
        tail = tail[eights:]

        if len(tail) >= 4:
            (word,) = struct.unpack_from("<I", tail)
            h ^= (word * _P1) & _MASK
            h = (_rotl(h, 23) * _P2 + _P3) & _MASK
            tail = tail[4:]

        for byte in tail:
            h ^= (byte * _P5) & _MASK
            h = (_rotl(h, 11) * _P1) & _MASK

        h ^= h >> 33
        h = (h * _P2) & _MASK
        h ^= h >> 29
        h = (h * _P3) & _MASK
        h ^= h >> 32
        return h

    def hexdigest(self) -> str:
        """Return the big-endian hexadecimal form of the digest (16 chars)."""
        return format(self.intdigest(), "016x")


def xxh64(data: bytes, seed: int = 0) -> int:
    """Return the XXH64 hash of *data*."""
    return XXH64(data, seed).intdigest()


def _truncate(full: str, hex_len: int) -> str:
    if 0 < hex_len < len(full):
        return full[:hex_len]
    return full


def content_hash(data: bytes, hex_len: int = 16) -> str:
    """Hex XXH64 of *data*, truncated to *hex_len* characters when 0 < hex_len < 16."""
    return _truncate(XXH64(data).hexdigest(), hex_len)


def content_hash_reader(reader: BinaryIO, hex_len: int = 16) -> str:
    """Like content_hash, but streams the data from a binary file object."""
    hasher = XXH64()
    while chunk := reader.read(_CHUNK):
        hasher.update(chunk)
    return _truncate(hasher.hexdigest(), hex_len)