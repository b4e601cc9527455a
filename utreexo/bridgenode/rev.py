"""Readers for the undo (rev*.dat) data and block index records that a
full node keeps next to its block files."""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO, Iterable, Mapping

from .compress import decompress_script, decompress_tx_out_amount, deserialize_vlq

log = logging.getLogger(__name__)

# Largest payload a single network message may carry.
MAX_MESSAGE_PAYLOAD = 1024 * 1024 * 32

# Key prefix of block index records in the node's index database ('b').
BLOCK_INDEX_PREFIX = b"\x62"

_OFFSET_RECORD = struct.Struct(">II")
_BLOCK_LEN = struct.Struct("<I")


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes but read {len(data)}")
    return data


def _int32(value: int) -> int:
    return ((value + (1 << 31)) % (1 << 32)) - (1 << 31)


def _uint32(value: int) -> int:
    return value & 0xFFFFFFFF


class BlockStatus(IntEnum):
    """Validation and storage status values of a block index record."""

    VALID_UNKNOWN = 0
    VALID_RESERVED = 1
    VALID_TREE = 2
    VALID_TRANSACTIONS = 3
    VALID_CHAIN = 4
    VALID_SCRIPTS = 5
    VALID_MASK = 1 | 2 | 3 | 4 | 5
    HAVE_DATA = 8
    HAVE_UNDO = 16
    HAVE_MASK = 8 | 16
    FAILED_VALID = 32
    FAILED_CHILD = 64
    FAILED_MASK = 32 | 64
    OPT_WITNESS = 128


@dataclass
class RawHeaderData:
    """A block header's place in the blk*.dat files, used to put blocks in
    chain order."""

    current_header_hash: bytes = bytes(32)
    prevhash: bytes = bytes(32)
    file_num: int = 0
    offset: int = 0
    undo_pos: int = 0


@dataclass
class TxInUndo:
    """The spent output that one transaction input consumed."""

    height: int = 0
    varint: int = 0
    pk_script: bytes = b""
    amount: int = 0
    coinbase: bool = False


@dataclass
class TxUndo:
    """Undo records for every input of one transaction."""

    tx_in: list[TxInUndo] = field(default_factory=list)

    @classmethod
    def deserialize(cls, stream: BinaryIO) -> TxUndo:
        """Read a count followed by that many input undo records."""
        count = read_var_int(stream)
        return cls([read_tx_in_undo(stream) for _ in range(count)])


@dataclass
class RevBlock:
    """Undo data of one block as stored in a rev*.dat file."""

    magic: bytes = bytes(4)
    size: bytes = bytes(4)
    txs: list[TxUndo] = field(default_factory=list)
    hash: bytes = bytes(32)

    @classmethod
    def deserialize(cls, stream: BinaryIO) -> RevBlock:
        """Read the transaction undo records of one block."""
        count = read_var_int(stream)
        return cls(txs=[TxUndo.deserialize(stream) for _ in range(count)])


@dataclass
class CBlockFileIndex:
    """A block index record from the node's index database."""

    version: int = 0
    height: int = 0
    status: int = 0
    tx_count: int = 0
    file: int = 0
    data_pos: int = 0
    undo_pos: int = 0


def read_var_int(stream: BinaryIO) -> int:
    """Read a canonical little-endian compact-size integer."""
    prefix = _read_exact(stream, 1)[0]
    if prefix < 0xFD:
        return prefix
    fmt, minimum = {
        0xFD: ("<H", 0xFD),
        0xFE: ("<I", 0x10000),
        0xFF: ("<Q", 0x100000000),
    }[prefix]
    (value,) = struct.unpack(fmt, _read_exact(stream, struct.calcsize(fmt)))
    if value < minimum:
        raise ValueError(
            f"non-canonical varint {value:#x} - discriminant {prefix:#x} "
            f"must encode a value greater than {minimum:#x}"
        )
    return value


def read_tx_in_undo(stream: BinaryIO) -> TxInUndo:
    """Read one input undo record."""
    n_code, _ = deserialize_vlq(stream)
    height = _int32(n_code // 2)
    coinbase = n_code & 1 == 1
    # a version number, always present and not needed
    read_var_int(stream)
    compressed_amount, _ = deserialize_vlq(stream)
    amount = decompress_tx_out_amount(compressed_amount)
    pk_script = decompress_script(stream)
    if pk_script is None:
        raise ValueError(f"nil pkscript on h {height}")
    return TxInUndo(height=height, pk_script=pk_script, amount=amount, coinbase=coinbase)


def read_cblock_file_index(stream: BinaryIO) -> CBlockFileIndex:
    """Read a block index record value."""
    values = [deserialize_vlq(stream)[0] for _ in range(7)]
    version, height, status, tx_count, file_num, data_pos, undo_pos = values
    return CBlockFileIndex(
        version=_int32(version),
        height=_int32(height),
        status=_int32(status),
        tx_count=_int32(tx_count),
        file=_int32(file_num),
        data_pos=_uint32(data_pos),
        undo_pos=_uint32(undo_pos),
    )


def _block_index_records(
    entries: Iterable[tuple[bytes, bytes]],
) -> Iterable[tuple[bytes, CBlockFileIndex]]:
    import io

    for key, value in entries:
        if not key.startswith(BLOCK_INDEX_PREFIX):
            continue
        header = bytes(key[1:33])
        yield header, read_cblock_file_index(io.BytesIO(value))


def buffer_db(entries: Iterable[tuple[bytes, bytes]]) -> dict[bytes, int]:
    """Map header hash to undo position for every indexed block that has
    undo data.  ``entries`` are the key/value pairs of the index database."""
    return {
        header: record.undo_pos
        for header, record in _block_index_records(entries)
        if record.status & BlockStatus.HAVE_UNDO
    }


def buffer_db_height(entries: Iterable[tuple[bytes, bytes]]) -> dict[bytes, int]:
    """Map header hash to block height for every indexed block."""
    return {header: record.height for header, record in _block_index_records(entries)}


def fetch_block_height_from_buf_db(header: bytes, db: Mapping[bytes, int]) -> int:
    """Return the height recorded for ``header``."""
    try:
        return db[bytes(header)]
    except KeyError:
        raise KeyError("Requested block header record not found") from None


def get_block_bytes_from_file(
    height: int, offset_file_name: str | os.PathLike[str], block_dir: str | os.PathLike[str]
) -> bytes:
    """Return the raw bytes of the block at ``height`` (1 is the first block
    after genesis) as located by the offset file."""
    if height == 0:
        raise ValueError("Block 0 is not in blk files or utxo set")
    index = height - 1

    with open(offset_file_name, "rb") as offset_file:
        offset_file.seek(_OFFSET_RECORD.size + 4 if False else 12 * index)
        dat_file, offset = _OFFSET_RECORD.unpack(_read_exact(offset_file, _OFFSET_RECORD.size))

    block_path = os.path.join(block_dir, f"blk{dat_file:05d}.dat")
    with open(block_path, "rb") as block_file:
        # skip the 4 magic bytes
        block_file.seek(offset + 4)
        (block_len,) = _BLOCK_LEN.unpack(_read_exact(block_file, _BLOCK_LEN.size))
        data = block_file.read(block_len)
    if len(data) != block_len:
        log.warning("%d byte block but only read %d bytes", block_len, len(data))
    return data