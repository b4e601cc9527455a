"""Undo data for a block: how to revert one batch of additions and deletions."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass, field
from typing import BinaryIO

from .hashes import HASH_SIZE

_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError(
            f"UndoBlock deserialize supposed to read {size} bytes of {what} "
            f"but read {len(data)} bytes"
        )
    return data


@dataclass
class UndoBlock:
    """Number of leaves a block added and the positions and hashes of the
    leaves it deleted.  ``height`` is not part of the serialized form."""

    height: int = 0
    num_adds: int = 0
    positions: list[int] = field(default_factory=list)
    hashes: list[bytes] = field(default_factory=list)

    def __str__(self) -> str:
        text = f"- uuuu undo block {self.num_adds} adds\t{len(self.positions)} dels:\t"
        if len(self.positions) != len(self.hashes):
            return text + "error"
        text += "".join(
            f"{pos} {h[:4].hex()},\t" for pos, h in zip(self.positions, self.hashes)
        )
        return text + "\n"

    def serialize_size(self) -> int:
        """Return the number of bytes the serialized block takes."""
        return 4 + 8 + len(self.positions) * 8 + 8 + len(self.hashes) * HASH_SIZE

    def serialize(self, stream: BinaryIO) -> None:
        """Write the block to ``stream`` in big-endian form."""
        stream.write(_U32.pack(self.num_adds))
        stream.write(_U64.pack(len(self.positions)))
        for pos in self.positions:
            stream.write(_U64.pack(pos))
        stream.write(_U64.pack(len(self.hashes)))
        for h in self.hashes:
            if len(h) != HASH_SIZE:
                raise ValueError(
                    f"UndoBlock serialize supposed to write {HASH_SIZE} bytes "
                    f"but hash has {len(h)} bytes"
                )
            stream.write(bytes(h))

    def to_bytes(self) -> bytes:
        """Return the serialized block."""
        buf = io.BytesIO()
        self.serialize(buf)
        return buf.getvalue()

    @classmethod
    def deserialize(cls, stream: BinaryIO) -> UndoBlock:
        """Read a block from ``stream``."""
        (num_adds,) = _U32.unpack(_read_exact(stream, 4, "add count"))
        (pos_count,) = _U64.unpack(_read_exact(stream, 8, "position count"))
        positions = [
            _U64.unpack(_read_exact(stream, 8, "position"))[0] for _ in range(pos_count)
        ]
        (hash_count,) = _U64.unpack(_read_exact(stream, 8, "hash count"))
        hashes = [_read_exact(stream, HASH_SIZE, "hash") for _ in range(hash_count)]
        return cls(num_adds=num_adds, positions=positions, hashes=hashes)

    @classmethod
    def from_bytes(cls, data: bytes) -> UndoBlock:
        """Parse a block from ``data``."""
        return cls.deserialize(io.BytesIO(data))