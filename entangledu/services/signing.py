"""Issuer key handling, digest signing and signature verification (secp256k1).

The issuer signs the 32-byte payload digest directly with ECDSA.  Signatures
travel as 64 bytes, ``r || s`` big-endian, hex encoded.  The issuer's public
identity is an Ethereum-style address: the last 20 bytes of the Keccak-256
hash of the uncompressed public key (without the 0x04 prefix).
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, utils

from entangledu.core.config import PROTOCOL_TAG
from entangledu.core.errors import ConfigurationError
from entangledu.services.payload_codec import from_hex, keccak256, payload_digest, to_hex

CURVE = ec.SECP256K1()
_CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_COORD_BYTES = 32

# The digest is already a 32-byte Keccak hash; Prehashed only fixes its length.
_ECDSA = ec.ECDSA(utils.Prehashed(hashes.SHA256()))


def _uncompressed(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def address_of(public_key: ec.EllipticCurvePublicKey) -> str:
    return to_hex(keccak256(_uncompressed(public_key)[1:])[-20:])


class IssuerSigner:
    """Holds the issuer private key.  Build with :meth:`from_hex` or :meth:`generate`."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        if not isinstance(private_key.curve, ec.SECP256K1):
            raise ConfigurationError("issuer key must be on secp256k1")
        self._private_key = private_key
        self.public_key = private_key.public_key()
        self.address = address_of(self.public_key)

    @classmethod
    def generate(cls) -> IssuerSigner:
        return cls(ec.generate_private_key(CURVE))

    @classmethod
    def from_hex(cls, private_key_hex: str | None) -> IssuerSigner:
        """Load a signer from a 32-byte hex scalar (``0x`` prefix optional).

        Raises ConfigurationError when the key is missing or malformed; there
        is no fallback key.
        """
        if not private_key_hex:
            raise ConfigurationError("ISSUER_PRIVATE_KEY is required to run the issuer")
        try:
            raw = from_hex(private_key_hex)
        except ValueError:
            raise ConfigurationError("ISSUER_PRIVATE_KEY is not valid hex") from None
        if len(raw) != _COORD_BYTES:
            raise ConfigurationError(
                f"ISSUER_PRIVATE_KEY must be {_COORD_BYTES} bytes (got {len(raw)})"
            )
        scalar = int.from_bytes(raw, "big")
        if not 0 < scalar < _CURVE_ORDER:
            raise ConfigurationError("ISSUER_PRIVATE_KEY is outside the curve order")
        return cls(ec.derive_private_key(scalar, CURVE))

    def private_key_hex(self) -> str:
        scalar = self._private_key.private_numbers().private_value
        return to_hex(scalar.to_bytes(_COORD_BYTES, "big"))

    @property
    def public_key_hex(self) -> str:
        return to_hex(_uncompressed(self.public_key))

    def sign_digest(self, digest: bytes) -> bytes:
        if len(digest) != 32:
            raise ValueError(f"digest must be 32 bytes (got {len(digest)})")
        der = self._private_key.sign(digest, _ECDSA)
        r, s = utils.decode_dss_signature(der)
        return r.to_bytes(_COORD_BYTES, "big") + s.to_bytes(_COORD_BYTES, "big")


def load_public_key(public_key_hex: str) -> ec.EllipticCurvePublicKey:
    """Parse a hex X9.62 point (compressed or uncompressed)."""
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, from_hex(public_key_hex))


def verify_signature(
    public_key: ec.EllipticCurvePublicKey | str,
    digest: bytes | str,
    signature: bytes | str,
) -> bool:
    """Check an ``r || s`` signature over ``digest``.  Never raises on bad input."""
    try:
        if isinstance(public_key, str):
            public_key = load_public_key(public_key)
        digest_bytes = from_hex(digest) if isinstance(digest, str) else digest
        sig_bytes = from_hex(signature) if isinstance(signature, str) else signature
    except ValueError:
        return False

    if len(sig_bytes) != 2 * _COORD_BYTES or len(digest_bytes) != 32:
        return False

    r = int.from_bytes(sig_bytes[:_COORD_BYTES], "big")
    s = int.from_bytes(sig_bytes[_COORD_BYTES:], "big")
    try:
        public_key.verify(utils.encode_dss_signature(r, s), digest_bytes, _ECDSA)
    except (InvalidSignature, ValueError):
        return False
    return True


def verify_proof(
    public_key: ec.EllipticCurvePublicKey | str,
    *,
    title: str,
    timestamp: int,
    hash: str,
    signature: str,
    protocol_tag: str = PROTOCOL_TAG,
) -> bool:
    """Recompute the payload digest, compare it to ``hash``, then check the signature."""
    try:
        expected = payload_digest(title, protocol_tag, timestamp)
        claimed = from_hex(hash)
    except ValueError:
        return False
    if expected != claimed:
        return False
    return verify_signature(public_key, expected, signature)
