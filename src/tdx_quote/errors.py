"""
Error types raised while decoding and verifying quotes.

This module has no intra-package dependencies, so any module
can import from it without risk of circular imports.
"""


class QuoteError(Exception):
    """Base class for all errors raised by this package."""
    pass


# =============================================================================
# Decode pipeline (Quote.from_bytes)
# =============================================================================

class QuoteParseError(QuoteError):
    """Raised when a quote cannot be turned into a verified Quote."""
    pass


class MalformedQuoteError(QuoteParseError):
    """Raised when the byte layout is truncated or malformed."""
    pass


class UnknownAttestationKeyTypeError(MalformedQuoteError):
    """Raised when the header declares an attestation key type other than 2 or 3."""
    pass


class UnknownTeeTypeError(MalformedQuoteError):
    """Raised when the header declares a TEE type other than SGX or TDX."""
    pass


class QuoteSignatureError(QuoteParseError):
    """Raised when the attestation key or its signature over the quote is invalid."""
    pass


class UnknownCertificationDataTypeError(QuoteParseError):
    """Raised when the certification data type is outside 1-7."""
    pass


class UnknownQuoteVersionError(QuoteParseError):
    """Raised when the quote version or TDX body type is not recognized."""
    pass


class IntConversionError(QuoteParseError):
    """Raised when a signed length field cannot be used as a size."""
    pass


class UnsupportedAttestationKeyTypeError(QuoteParseError):
    """Raised when the attestation key type is recognized but not ECDSA P-256."""
    pass


class AttestationKeyMismatchError(QuoteParseError):
    """Raised when the QE report does not commit to the attestation key."""
    pass


# =============================================================================
# PCK verification (Quote.verify_with_pck)
# =============================================================================

class QuoteVerificationError(QuoteError):
    """Raised when the QE report cannot be verified with a PCK."""
    pass


class NoQeReportCertificationDataError(QuoteVerificationError):
    """Raised when the quote carries no QE report certification data."""
    pass


class BadSignatureError(QuoteVerificationError):
    """Raised when the QE report signature does not verify."""
    pass


# =============================================================================
# Verifying key codecs
# =============================================================================

class VerifyingKeyError(QuoteError):
    """Raised when a compressed public key cannot be encoded or decoded."""
    pass


class VerifyingKeySizeError(VerifyingKeyError):
    """Raised when a compressed point does not have the expected length."""
    pass


class InvalidVerifyingKeyError(VerifyingKeyError):
    """Raised when bytes do not form a valid point on P-256."""
    pass


# =============================================================================
# Certification material
# =============================================================================

class CertificateChainError(QuoteError):
    """Raised when PEM certification material cannot be parsed."""
    pass
