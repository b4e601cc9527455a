"""Compact encodings for amounts and output scripts found in undo data.

Integers use a most-significant-byte-first base-128 variable length
quantity (VLQ) in which every continuation group subtracts one, so each
integer has exactly one encoding:

    0 -> 00, 127 -> 7f, 128 -> 80 00, 16511 -> ff 7f, 16512 -> 80 80 00

Scripts are stored as ``<size or type><data>``.  Standard pay-to-pubkey-hash,
pay-to-script-hash and pay-to-pubkey scripts are replaced by a one-byte type
and their hash or key; any other script is stored whole, preceded by its
length plus the number of special types.

Amounts are compressed by pulling out trailing decimal zeros, which makes
typical values short as a VLQ.
"""

from __future__ import annotations

from typing import BinaryIO, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

OP_DATA_20 = 0x14
OP_DATA_33 = 0x21
OP_DATA_65 = 0x41
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC

# Special script types; serialized, so the values must never change.
CST_PAY_TO_PUB_KEY_HASH = 0
CST_PAY_TO_SCRIPT_HASH = 1
CST_PAY_TO_PUB_KEY_COMP2 = 2
CST_PAY_TO_PUB_KEY_COMP3 = 3
CST_PAY_TO_PUB_KEY_UNCOMP4 = 4
CST_PAY_TO_PUB_KEY_UNCOMP5 = 5
NUM_SPECIAL_SCRIPTS = 6

_CURVE = ec.SECP256K1()


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes but read {len(data)}")
    return data


def serialize_size_vlq(n: int) -> int:
    """Return the number of bytes ``encode_vlq(n)`` produces."""
    if n < 0:
        raise ValueError("VLQ values must not be negative")
    size = 1
    while n > 0x7F:
        n = (n >> 7) - 1
        size += 1
    return size


def encode_vlq(n: int) -> bytes:
    """Encode ``n`` as a variable length quantity."""
    if n < 0:
        raise ValueError("VLQ values must not be negative")
    out = bytearray()
    high_bit = 0x00
    while True:
        out.append((n & 0x7F) | high_bit)
        if n <= 0x7F:
            break
        n = (n >> 7) - 1
        high_bit = 0x80
    out.reverse()
    return bytes(out)


def deserialize_vlq(stream: BinaryIO) -> tuple[int, int]:
    """Read a variable length quantity; return the value and bytes read."""
    n = 0
    size = 0
    while True:
        byte = _read_exact(stream, 1)[0]
        size += 1
        n = (n << 7) | (byte & 0x7F)
        if not byte & 0x80:
            return n, size
        n += 1


def is_pub_key_hash(script: bytes) -> Optional[bytes]:
    """Return the 20-byte hash if ``script`` is a standard pay-to-pubkey-hash."""
    if (
        len(script) == 25
        and script[0] == OP_DUP
        and script[1] == OP_HASH160
        and script[2] == OP_DATA_20
        and script[23] == OP_EQUALVERIFY
        and script[24] == OP_CHECKSIG
    ):
        return bytes(script[3:23])
    return None


def is_script_hash(script: bytes) -> Optional[bytes]:
    """Return the 20-byte hash if ``script`` is a standard pay-to-script-hash."""
    if (
        len(script) == 23
        and script[0] == OP_HASH160
        and script[1] == OP_DATA_20
        and script[22] == OP_EQUAL
    ):
        return bytes(script[2:22])
    return None


def _valid_pub_key(key: bytes) -> bool:
    try:
        ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, key)
    except ValueError:
        return False
    return True


def is_pub_key(script: bytes) -> Optional[bytes]:
    """Return the serialized key if ``script`` pays to a valid compressed or
    uncompressed secp256k1 public key.  Hybrid keys are not accepted."""
    if (
        len(script) == 35
        and script[0] == OP_DATA_33
        and script[34] == OP_CHECKSIG
        and script[1] in (0x02, 0x03)
    ):
        key = bytes(script[1:34])
        if _valid_pub_key(key):
            return key
    if (
        len(script) == 67
        and script[0] == OP_DATA_65
        and script[66] == OP_CHECKSIG
        and script[1] == 0x04
    ):
        key = bytes(script[1:66])
        if _valid_pub_key(key):
            return key
    return None


def compressed_script_size(script: bytes) -> int:
    """Return the number of bytes ``compress_script(script)`` produces."""
    if is_pub_key_hash(script) is not None or is_script_hash(script) is not None:
        return 21
    if is_pub_key(script) is not None:
        return 33
    return serialize_size_vlq(len(script) + NUM_SPECIAL_SCRIPTS) + len(script)


def decode_compressed_script_size(stream: BinaryIO) -> int:
    """Read a compressed script's header; return the script's total size,
    header included."""
    script_size, bytes_read = deserialize_vlq(stream)
    if script_size in (CST_PAY_TO_PUB_KEY_HASH, CST_PAY_TO_SCRIPT_HASH):
        return 21
    if script_size in (
        CST_PAY_TO_PUB_KEY_COMP2,
        CST_PAY_TO_PUB_KEY_COMP3,
        CST_PAY_TO_PUB_KEY_UNCOMP4,
        CST_PAY_TO_PUB_KEY_UNCOMP5,
    ):
        return 33
    return script_size - NUM_SPECIAL_SCRIPTS + bytes_read


def compress_script(script: bytes) -> bytes:
    """Return the compressed form of ``script``."""
    script = bytes(script)
    key_hash = is_pub_key_hash(script)
    if key_hash is not None:
        return bytes([CST_PAY_TO_PUB_KEY_HASH]) + key_hash
    script_hash = is_script_hash(script)
    if script_hash is not None:
        return bytes([CST_PAY_TO_SCRIPT_HASH]) + script_hash
    key = is_pub_key(script)
    if key is not None:
        if key[0] in (0x02, 0x03):
            return key[:33]
        # uncompressed: fold the y parity into the type byte
        return bytes([0x04 | (key[64] & 0x01)]) + key[1:33]
    return encode_vlq(len(script) + NUM_SPECIAL_SCRIPTS) + script


def decompress_script(stream: BinaryIO) -> Optional[bytes]:
    """Read one compressed script and return the original.  Returns None
    when a stored uncompressed key is not a valid curve point."""
    encoded, _ = deserialize_vlq(stream)
    if encoded == CST_PAY_TO_PUB_KEY_HASH:
        return (
            bytes([OP_DUP, OP_HASH160, OP_DATA_20])
            + _read_exact(stream, 20)
            + bytes([OP_EQUALVERIFY, OP_CHECKSIG])
        )
    if encoded == CST_PAY_TO_SCRIPT_HASH:
        return bytes([OP_HASH160, OP_DATA_20]) + _read_exact(stream, 20) + bytes([OP_EQUAL])
    if encoded in (CST_PAY_TO_PUB_KEY_COMP2, CST_PAY_TO_PUB_KEY_COMP3):
        return (
            bytes([OP_DATA_33, encoded])
            + _read_exact(stream, 32)
            + bytes([OP_CHECKSIG])
        )
    if encoded in (CST_PAY_TO_PUB_KEY_UNCOMP4, CST_PAY_TO_PUB_KEY_UNCOMP5):
        compressed_key = bytes([encoded - 2]) + _read_exact(stream, 32)
        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, compressed_key)
        except ValueError:
            return None
        uncompressed = key.public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        return bytes([OP_DATA_65]) + uncompressed + bytes([OP_CHECKSIG])
    return _read_exact(stream, encoded - NUM_SPECIAL_SCRIPTS)


def compress_tx_out_amount(amount: int) -> int:
    """Compress an amount by factoring out trailing decimal zeros."""
    if amount < 0:
        raise ValueError("amounts must not be negative")
    if amount == 0:
        return 0
    exponent = 0
    while amount % 10 == 0 and exponent < 9:
        amount //= 10
        exponent += 1
    if exponent < 9:
        last_digit = amount % 10
        amount //= 10
        return 1 + 10 * (9 * amount + last_digit - 1) + exponent
    return 10 + 10 * (amount - 1)


def decompress_tx_out_amount(amount: int) -> int:
    """Return the amount that ``compress_tx_out_amount`` turned into ``amount``."""
    if amount < 0:
        raise ValueError("compressed amounts must not be negative")
    if amount == 0:
        return 0
    amount -= 1
    exponent = amount % 10
    amount //= 10
    if exponent < 9:
        last_digit = amount % 9 + 1
        amount //= 9
        n = amount * 10 + last_digit
    else:
        n = amount + 1
    return n * 10**exponent


def compressed_tx_out_size(amount: int, script: bytes) -> int:
    """Return the number of bytes ``compress_tx_out`` produces."""
    return serialize_size_vlq(compress_tx_out_amount(amount)) + compressed_script_size(
        script
    )


def compress_tx_out(amount: int, script: bytes) -> bytes:
    """Return the compressed amount followed by the compressed script."""
    return encode_vlq(compress_tx_out_amount(amount)) + compress_script(script)