from .abi import (
    AttestationKeyType,
    QeReport,
    QuoteBody,
    QuoteHeader,
    TdxVersion,
    TeeType,
)
from .certification import (
    CertificationData,
    CertificationDataType,
    OpaqueCertificationData,
    QeReportCertificationData,
)
from .errors import (
    AttestationKeyMismatchError,
    BadSignatureError,
    CertificateChainError,
    IntConversionError,
    InvalidVerifyingKeyError,
    MalformedQuoteError,
    NoQeReportCertificationDataError,
    QuoteError,
    QuoteParseError,
    QuoteSignatureError,
    QuoteVerificationError,
    UnknownAttestationKeyTypeError,
    UnknownCertificationDataTypeError,
    UnknownQuoteVersionError,
    UnknownTeeTypeError,
    UnsupportedAttestationKeyTypeError,
    VerifyingKeyError,
    VerifyingKeySizeError,
)
from .keys import decode_verifying_key, encode_verifying_key
from .quote import ParseOptions, Quote

__version__ = "0.1.0"

__all__ = [
    'Quote',
    'ParseOptions',
    'QuoteHeader',
    'QuoteBody',
    'QeReport',
    'AttestationKeyType',
    'TeeType',
    'TdxVersion',
    'CertificationData',
    'CertificationDataType',
    'OpaqueCertificationData',
    'QeReportCertificationData',
    'encode_verifying_key',
    'decode_verifying_key',
    'QuoteError',
    'QuoteParseError',
    'MalformedQuoteError',
    'UnknownAttestationKeyTypeError',
    'UnknownTeeTypeError',
    'QuoteSignatureError',
    'UnknownCertificationDataTypeError',
    'UnknownQuoteVersionError',
    'IntConversionError',
    'UnsupportedAttestationKeyTypeError',
    'AttestationKeyMismatchError',
    'QuoteVerificationError',
    'NoQeReportCertificationDataError',
    'BadSignatureError',
    'VerifyingKeyError',
    'VerifyingKeySizeError',
    'InvalidVerifyingKeyError',
    'CertificateChainError',
]
