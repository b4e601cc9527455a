import io
import struct

import pytest

from utreexo.bridgenode.compress import (
    compress_script,
    compress_tx_out_amount,
    encode_vlq,
)
from utreexo.bridgenode.rev import (
    BlockStatus,
    CBlockFileIndex,
    RevBlock,
    TxUndo,
    buffer_db,
    buffer_db_height,
    fetch_block_height_from_buf_db,
    get_block_bytes_from_file,
    read_cblock_file_index,
    read_tx_in_undo,
    read_var_int,
)

P2PKH = bytes([0x76, 0xA9, 0x14]) + bytes(range(20)) + bytes([0x88, 0xAC])
P2SH = bytes([0xA9, 0x14]) + bytes(range(20, 40)) + bytes([0x87])


def _tx_in_bytes(height, coinbase, amount, script):
    return (
        encode_vlq(height * 2 + (1 if coinbase else 0))
        + b"\x00"
        + encode_vlq(compress_tx_out_amount(amount))
        + compress_script(script)
    )


def _index_value(version, height, status, tx_count, file_num, data_pos, undo_pos):
    return b"".join(
        encode_vlq(v) for v in (version, height, status, tx_count, file_num, data_pos, undo_pos)
    )


def test_read_var_int_single_byte():
    assert read_var_int(io.BytesIO(b"\x05")) == 5
    assert read_var_int(io.BytesIO(b"\xfc")) == 0xFC


def test_read_var_int_wide_forms():
    assert read_var_int(io.BytesIO(b"\xfd\xfd\x00")) == 0xFD
    assert read_var_int(io.BytesIO(b"\xfe" + struct.pack("<I", 0x10000))) == 0x10000
    big = 0x100000000
    assert read_var_int(io.BytesIO(b"\xff" + struct.pack("<Q", big))) == big


def test_read_var_int_rejects_non_canonical():
    with pytest.raises(ValueError):
        read_var_int(io.BytesIO(b"\xfd\x01\x00"))


def test_read_var_int_truncated():
    with pytest.raises(EOFError):
        read_var_int(io.BytesIO(b""))
    with pytest.raises(EOFError):
        read_var_int(io.BytesIO(b"\xfe\x00"))


def test_read_tx_in_undo_round_trip():
    stream = io.BytesIO(_tx_in_bytes(170, True, 5000000000, P2PKH))
    ti = read_tx_in_undo(stream)
    assert ti.height == 170
    assert ti.coinbase is True
    assert ti.amount == 5000000000
    assert ti.pk_script == P2PKH
    assert stream.read() == b""


def test_read_tx_in_undo_not_coinbase():
    ti = read_tx_in_undo(io.BytesIO(_tx_in_bytes(412, False, 1000, P2SH)))
    assert (ti.height, ti.coinbase, ti.amount, ti.pk_script) == (412, False, 1000, P2SH)


def test_read_tx_in_undo_invalid_key_raises():
    data = encode_vlq(2) + b"\x00" + encode_vlq(0) + bytes([4]) + b"\xff" * 32
    with pytest.raises(ValueError):
        read_tx_in_undo(io.BytesIO(data))


def test_rev_block_deserialize():
    tx1 = b"\x01" + _tx_in_bytes(5, False, 100, P2PKH)
    tx2 = b"\x02" + _tx_in_bytes(6, True, 200, P2SH) + _tx_in_bytes(7, False, 300, P2PKH)
    rb = RevBlock.deserialize(io.BytesIO(b"\x02" + tx1 + tx2))
    assert len(rb.txs) == 2
    assert [len(tx.tx_in) for tx in rb.txs] == [1, 2]
    assert [ti.height for ti in rb.txs[1].tx_in] == [6, 7]
    assert rb.txs[1].tx_in[0].pk_script == P2SH


def test_tx_undo_empty():
    assert TxUndo.deserialize(io.BytesIO(b"\x00")).tx_in == []


def test_read_cblock_file_index():
    value = _index_value(1, 1000, 29, 3, 2, 123456, 654321)
    idx = read_cblock_file_index(io.BytesIO(value))
    assert idx == CBlockFileIndex(1, 1000, 29, 3, 2, 123456, 654321)


def test_buffer_db_uses_status_masks():
    h1, h2 = bytes([4]) * 32, bytes([5]) * 32
    entries = [
        (b"b" + h1, _index_value(1, 20, BlockStatus.HAVE_MASK, 1, 0, 8, 55)),
        (b"b" + h2, _index_value(1, 21, BlockStatus.FAILED_MASK, 1, 0, 9, 66)),
    ]
    assert buffer_db(entries) == {h1: 55}
    assert buffer_db_height(entries) == {h1: 20, h2: 21}


def test_buffer_db_filters_by_undo_and_prefix():
    h1, h2, h3 = bytes([1]) * 32, bytes([2]) * 32, bytes([3]) * 32
    entries = [
        (b"b" + h1, _index_value(1, 10, BlockStatus.HAVE_DATA | BlockStatus.HAVE_UNDO, 1, 0, 8, 77)),
        (b"b" + h2, _index_value(1, 11, BlockStatus.HAVE_DATA, 1, 0, 9, 88)),
        (b"f" + h3, _index_value(1, 12, BlockStatus.HAVE_UNDO, 1, 0, 9, 99)),
    ]
    assert buffer_db(entries) == {h1: 77}
    assert buffer_db_height(entries) == {h1: 10, h2: 11}


def test_fetch_block_height_from_buf_db():
    header = bytes([9]) * 32
    db = {header: 42}
    assert fetch_block_height_from_buf_db(header, db) == 42
    with pytest.raises(KeyError):
        fetch_block_height_from_buf_db(bytes(32), db)


def test_get_block_bytes_from_file(tmp_path):
    magic = bytes([0xFA, 0xBF, 0xB5, 0xDA])
    block1 = b"first block payload"
    block2 = b"second"
    blk = magic + struct.pack("<I", len(block1)) + block1
    second_offset = len(blk)
    blk += magic + struct.pack("<I", len(block2)) + block2
    (tmp_path / "blk00000.dat").write_bytes(blk)

    offset_path = tmp_path / "offsetfile.dat"
    offset_path.write_bytes(
        struct.pack(">III", 0, 0, 0) + struct.pack(">III", 0, second_offset, 0)
    )

    assert get_block_bytes_from_file(1, offset_path, tmp_path) == block1
    assert get_block_bytes_from_file(2, offset_path, tmp_path) == block2


def test_get_block_bytes_height_zero(tmp_path):
    with pytest.raises(ValueError):
        get_block_bytes_from_file(0, tmp_path / "missing", tmp_path)


def test_get_block_bytes_past_offsets(tmp_path):
    offset_path = tmp_path / "offsetfile.dat"
    offset_path.write_bytes(struct.pack(">III", 0, 0, 0))
    with pytest.raises(EOFError):
        get_block_bytes_from_file(5, offset_path, tmp_path)