"""Deterministic payload encoding and digest for mint signatures.

The signed message is the Keccak-256 digest of the Ethereum ABI encoding of

    (string lessonTitle, string protocolTag, uint256 issuedAtMillis)

ABI layout: a head of one 32-byte word per argument (strings hold the byte
offset of their tail, integers hold the value), followed by each string's
tail: a length word and the UTF-8 bytes right-padded to a word boundary.
Any verifier with an ABI encoder can recompute the digest from the three
fields carried on a certificate.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from entangledu.core.config import PROTOCOL_TAG

WORD = 32
_UINT256_MAX = 2**256 - 1


def keccak256(data: bytes) -> bytes:
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def _uint_word(value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"uint256 value must be an int (got {type(value).__name__})")
    if value < 0 or value > _UINT256_MAX:
        raise ValueError(f"uint256 value out of range: {value}")
    return value.to_bytes(WORD, "big")


def _string_tail(text: str) -> bytes:
    if not isinstance(text, str):
        raise ValueError(f"string value must be a str (got {type(text).__name__})")
    raw = text.encode("utf-8")
    padding = -len(raw) % WORD
    return _uint_word(len(raw)) + raw + b"\x00" * padding


def abi_encode(types: list[str], values: list[object]) -> bytes:
    """ABI-encode ``values`` as a tuple of ``string``/``uint256`` arguments."""
    if len(types) != len(values):
        raise ValueError("types and values must have the same length")

    head_size = WORD * len(types)
    heads: list[bytes] = []
    tails: list[bytes] = []
    tail_offset = head_size

    for abi_type, value in zip(types, values):
        if abi_type == "uint256":
            heads.append(_uint_word(value))  # type: ignore[arg-type]
        elif abi_type == "string":
            tail = _string_tail(value)  # type: ignore[arg-type]
            heads.append(_uint_word(tail_offset))
            tails.append(tail)
            tail_offset += len(tail)
        else:
            raise ValueError(f"unsupported ABI type: {abi_type!r}")

    return b"".join(heads) + b"".join(tails)


def encode_payload(
    lesson_title: str,
    protocol_tag: str = PROTOCOL_TAG,
    issued_at_millis: int = 0,
) -> bytes:
    return abi_encode(
        ["string", "string", "uint256"],
        [lesson_title, protocol_tag, issued_at_millis],
    )


def payload_digest(
    lesson_title: str,
    protocol_tag: str = PROTOCOL_TAG,
    issued_at_millis: int = 0,
) -> bytes:
    """32-byte Keccak-256 digest of the encoded payload."""
    return keccak256(encode_payload(lesson_title, protocol_tag, issued_at_millis))


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def from_hex(value: str) -> bytes:
    """Parse a hex string with or without a ``0x`` prefix."""
    text = value[2:] if value[:2].lower() == "0x" else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"not a hex string: {value!r}") from None
