"""Flat files of proofs and undo blocks with an offset index.

The offset file holds one big-endian 8-byte offset per block height; height
0 has no block and its offset is zero.  Each record in the data file is
4 magic bytes, a 4-byte big-endian size and the serialized payload.  The
time-to-live of every output created by a proof block is stored as a 4-byte
value from byte 16 of that block's record on.
"""

from __future__ import annotations

import io
import logging
import os
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Protocol

log = logging.getLogger(__name__)

MAGIC = bytes([0xAA, 0xFF, 0xAA, 0xFF])
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")
_TTL_START = 16


class _Record(Protocol):
    height: int

    def serialize_size(self) -> int: ...

    def serialize(self, stream: BinaryIO) -> None: ...


@dataclass(frozen=True)
class TxoStart:
    """Where a spent output was created: block height and index in it."""

    create_height: int = 0
    index_within_block: int = 0


@dataclass
class TtlResultBlock:
    """Creation data of every output a block spends."""

    height: int
    created: list[TxoStart] = field(default_factory=list)


def _open_rw(path: str | os.PathLike[str]) -> BinaryIO:
    fd = os.open(path, os.O_CREAT | os.O_RDWR, 0o600)
    return os.fdopen(fd, "r+b")


def _write_at(f: BinaryIO, data: bytes, offset: int) -> None:
    f.seek(offset)
    f.write(data)


class FlatFileState:
    """An open pair of offset and data files, resumed from their contents."""

    def __init__(self, offset_file: BinaryIO, data_file: BinaryIO) -> None:
        self.offset_file = offset_file
        self.data_file = data_file
        self.offsets: list[int] = []
        self.current_height = 0
        self.current_offset = 0
        self._init()

    @classmethod
    def open(
        cls, offset_path: str | os.PathLike[str], data_path: str | os.PathLike[str]
    ) -> FlatFileState:
        """Open (creating if needed) the offset and data files."""
        offset_file = _open_rw(offset_path)
        try:
            data_file = _open_rw(data_path)
        except OSError:
            offset_file.close()
            raise
        try:
            return cls(offset_file, data_file)
        except Exception:
            offset_file.close()
            data_file.close()
            raise

    def _init(self) -> None:
        size = self.offset_file.seek(0, io.SEEK_END)
        if size % 8:
            raise ValueError("offset file not multiple of 8 bytes")
        if size:
            self.offset_file.seek(0)
            raw = self.offset_file.read(size)
            self.offsets = [v for (v,) in _U64.iter_unpack(raw)]
            self.current_height = len(self.offsets)
            self.current_offset = self.data_file.seek(0, io.SEEK_END)
        else:
            log.debug("setting h=1")
            _write_at(self.offset_file, bytes(8), 0)
            self.offsets = [0]
            self.current_height = 1
            self.current_offset = 0

    def _write_record(self, record: _Record) -> None:
        size = record.serialize_size()
        payload = io.BytesIO()
        record.serialize(payload)

        self.offsets.append(self.current_offset)
        _write_at(self.offset_file, _U64.pack(self.current_offset), 8 * record.height)
        _write_at(
            self.data_file,
            MAGIC + _U32.pack(size) + payload.getvalue(),
            self.current_offset,
        )
        self.current_offset += size + 8
        self.current_height += 1

    def write_undo_block(self, undo: _Record) -> None:
        """Append an undo block and index it by its height."""
        self._write_record(undo)

    def write_proof_block(self, udata: _Record) -> None:
        """Append a block proof and index it by its height."""
        self._write_record(udata)

    def write_ttls(self, ttl_result: TtlResultBlock) -> None:
        """Write the lifetimes of outputs spent at ``ttl_result.height`` into
        the proof blocks that created them."""
        for start in ttl_result.created:
            ttl = (ttl_result.height - start.create_height) & 0xFFFFFFFF
            _write_at(
                self.data_file,
                _U32.pack(ttl),
                self.offsets[start.create_height]
                + _TTL_START
                + start.index_within_block * 4,
            )

    def close(self) -> None:
        """Flush and close both files."""
        for f in (self.offset_file, self.data_file):
            if not f.closed:
                f.flush()
                f.close()

    def __enter__(self) -> FlatFileState:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()