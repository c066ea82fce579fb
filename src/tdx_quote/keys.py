"""
P-256 key and signature encodings.

Quotes carry public keys as raw X || Y coordinates and signatures as raw
R || S big-endian integers. The cryptography library wants SEC1 points
and DER signatures, so the conversions live here together with the
33-byte compressed point codecs.
"""

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .abi import ATTESTATION_KEY_SIZE, ECDSA_P256_COMPONENT_SIZE, SIGNATURE_SIZE
from .errors import InvalidVerifyingKeyError, VerifyingKeySizeError

COMPRESSED_KEY_SIZE = 33
UNCOMPRESSED_POINT_PREFIX = b"\x04"

# Order of the P-256 base point
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551


def encode_verifying_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """
    Encode a P-256 public key as a 33-byte SEC1 compressed point.

    Raises:
        VerifyingKeySizeError: If the encoding is not 33 bytes long
            (the key is not on P-256)
    """
    encoded = public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    if len(encoded) != COMPRESSED_KEY_SIZE:
        raise VerifyingKeySizeError(
            f"Compressed key is {len(encoded)} bytes, expected {COMPRESSED_KEY_SIZE}"
        )
    return encoded


def decode_verifying_key(data: bytes) -> ec.EllipticCurvePublicKey:
    """
    Decode a 33-byte SEC1 compressed point into a P-256 public key.

    Raises:
        VerifyingKeySizeError: If data is not 33 bytes long
        InvalidVerifyingKeyError: If data is not a valid P-256 point
    """
    if len(data) != COMPRESSED_KEY_SIZE:
        raise VerifyingKeySizeError(
            f"Compressed key is {len(data)} bytes, expected {COMPRESSED_KEY_SIZE}"
        )
    if data[:1] not in (b"\x02", b"\x03"):
        raise InvalidVerifyingKeyError(
            f"Not a compressed point: prefix 0x{data[0]:02x}"
        )
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), bytes(data))
    except (ValueError, TypeError) as e:
        raise InvalidVerifyingKeyError(f"Invalid P-256 point: {e}") from e


def raw_to_public_key(key_bytes: bytes) -> ec.EllipticCurvePublicKey:
    """
    Convert a raw 64-byte P-256 public key (X || Y) to a key object.

    Raises:
        ValueError: If the bytes are not a point on P-256
    """
    if len(key_bytes) != ATTESTATION_KEY_SIZE:
        raise ValueError(
            f"Public key is {len(key_bytes)} bytes, expected {ATTESTATION_KEY_SIZE}"
        )
    return ec.EllipticCurvePublicKey.from_encoded_point(
        ec.SECP256R1(), UNCOMPRESSED_POINT_PREFIX + key_bytes
    )


def public_key_to_raw(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Convert a P-256 public key to raw 64-byte format (X || Y)."""
    uncompressed = public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return uncompressed[len(UNCOMPRESSED_POINT_PREFIX):]


def signature_to_der(sig_bytes: bytes) -> bytes:
    """
    Convert a raw R || S signature to DER format.

    Both components must lie in [1, n - 1] for the P-256 group order n.

    Raises:
        ValueError: If the signature is not a well-formed P-256 signature
    """
    if len(sig_bytes) != SIGNATURE_SIZE:
        raise ValueError(
            f"Signature is {len(sig_bytes)} bytes, expected {SIGNATURE_SIZE}"
        )

    r = int.from_bytes(sig_bytes[:ECDSA_P256_COMPONENT_SIZE], byteorder="big")
    s = int.from_bytes(sig_bytes[ECDSA_P256_COMPONENT_SIZE:], byteorder="big")
    if not (0 < r < P256_ORDER and 0 < s < P256_ORDER):
        raise ValueError("Signature component out of range for P-256")

    return encode_dss_signature(r, s)
