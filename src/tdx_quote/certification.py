"""
Certification data carried in the quote's signature section.

Certification data is a `type || size || payload` record. Six of the seven
types are kept as opaque bytes. Type 6 (QE report certification data) is
decoded: it holds the Quoting Enclave report, the PCK signature over that
report, the QE authentication data, and the certification material used
to validate the PCK (usually a nested type 5 PEM chain).

Decoding type 6 also checks that the QE report commits to the quote's
attestation key:

    report_data[0:32] == SHA256(attestation_key || qe_auth_data)

Without this check, an attacker could pair a genuine QE report with a
key of their choosing.
"""

import hashlib
from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from .abi import (
    QE_REPORT_HASH_END,
    QE_REPORT_HASH_START,
    QE_REPORT_SIZE,
    SIGNATURE_SIZE,
    QeReport,
    parse_qe_report,
)
from .errors import (
    AttestationKeyMismatchError,
    IntConversionError,
    QuoteSignatureError,
    UnknownCertificationDataTypeError,
)
from .keys import signature_to_der
from .reader import ByteReader


class CertificationDataType(IntEnum):
    """Certification data types defined by the DCAP quote format."""
    PCK_ID_PPID_PLAIN_CPUSVN_PCESVN = 1
    PCK_ID_PPID_RSA2048_CPUSVN_PCESVN = 2
    PCK_ID_PPID_RSA3072_CPUSVN_PCESVN = 3
    PCK_LEAF_CERT = 4
    PCK_CERT_CHAIN = 5
    QE_REPORT_CERTIFICATION_DATA = 6
    PLATFORM_MANIFEST = 7


@dataclass(frozen=True)
class OpaqueCertificationData:
    """Certification data this package stores without interpreting."""
    data_type: CertificationDataType
    data: bytes

    def __str__(self) -> str:
        return f"OpaqueCertificationData(type={self.data_type.name}, size={len(self.data)})"


@dataclass(frozen=True)
class QeReportCertificationData:
    """
    QE Report Certification Data (type 6).

    Contains the QE report, the PCK signature over it, the QE
    authentication data, and the certification material for the PCK.
    """
    qe_report: bytes  # 384 bytes - Raw QE report
    signature: bytes  # 64 bytes - ECDSA P-256 signature (R || S) by the PCK
    qe_authentication_data: bytes  # Variable
    certification_data: bytes  # Remaining bytes, usually a nested PCK cert chain

    data_type = CertificationDataType.QE_REPORT_CERTIFICATION_DATA

    def __str__(self) -> str:
        return (
            f"QeReportCertificationData(report={self.report}, "
            f"auth_data_size={len(self.qe_authentication_data)}, "
            f"certification_data_size={len(self.certification_data)})"
        )

    @property
    def report(self) -> QeReport:
        return parse_qe_report(self.qe_report)

    @property
    def attestation_key_hash(self) -> bytes:
        """The 32 bytes of the QE report data that commit to the attestation key."""
        return self.qe_report[QE_REPORT_HASH_START:QE_REPORT_HASH_END]

    def nested_certification_data(self) -> "CertificationData":
        """
        Decode the trailing certification material as one more
        `type || size || payload` record.

        Raises:
            QuoteParseError: If the material is not a well-formed record, or
                is itself QE report certification data
        """
        reader = ByteReader(self.certification_data)
        data_type = reader.i16("nested certification data type")
        size = _to_size(reader.i32("nested certification data size"))
        payload = reader.take(size, "nested certification data")
        if data_type == CertificationDataType.QE_REPORT_CERTIFICATION_DATA:
            raise UnknownCertificationDataTypeError(
                "QE report certification data cannot be nested in itself"
            )
        return parse_certification_data(data_type, payload)


# Six variants share one shape; callers dispatch with isinstance().
CertificationData = Union[OpaqueCertificationData, QeReportCertificationData]


def _to_size(value: int) -> int:
    if value < 0:
        raise IntConversionError(f"Length field is negative: {value}")
    return value


def _certification_data_type(raw: int) -> CertificationDataType:
    try:
        return CertificationDataType(raw)
    except ValueError:
        raise UnknownCertificationDataTypeError(
            f"Unknown certification data type: {raw}"
        ) from None


def attestation_key_hash(attestation_key: bytes, qe_authentication_data: bytes) -> bytes:
    """Return SHA256(attestation_key || qe_authentication_data)."""
    return hashlib.sha256(attestation_key + qe_authentication_data).digest()


def parse_qe_report_certification_data(
    data: bytes,
    attestation_key: bytes,
    check_padding: bool = False,
) -> QeReportCertificationData:
    """
    Parse QE report certification data (type 6) and check its key binding.

    Structure:
        - QE Report: 384 bytes
        - QE Report Signature: 64 bytes
        - QE Auth Data Size: 2 bytes
        - QE Auth Data: variable
        - Certification Data: remaining bytes

    Args:
        data: Certification data payload
        attestation_key: Raw 64-byte attestation key (X || Y) from the quote
        check_padding: Also require report_data[32:64] to be zero

    Returns:
        Parsed QeReportCertificationData

    Raises:
        MalformedQuoteError: If data is truncated
        QuoteSignatureError: If the PCK signature is not a valid P-256 encoding
        IntConversionError: If the auth data size is negative
        AttestationKeyMismatchError: If the QE report does not commit to the key
    """
    reader = ByteReader(data)
    qe_report = reader.take(QE_REPORT_SIZE, "QE report")
    signature = reader.take(SIGNATURE_SIZE, "QE report signature")
    try:
        signature_to_der(signature)
    except ValueError as e:
        raise QuoteSignatureError(f"Malformed QE report signature: {e}") from e

    auth_data_size = _to_size(reader.i16("QE auth data size"))
    qe_authentication_data = reader.take(auth_data_size, "QE auth data")
    certification_data = reader.rest()

    expected = attestation_key_hash(attestation_key, qe_authentication_data)
    if qe_report[QE_REPORT_HASH_START:QE_REPORT_HASH_END] != expected:
        raise AttestationKeyMismatchError(
            "QE report data binding verification failed: "
            "SHA256(attestation_key || auth_data) does not match QE report data. "
            "The attestation key may have been tampered with."
        )
    if check_padding and any(qe_report[QE_REPORT_HASH_END:]):
        raise AttestationKeyMismatchError(
            "QE report data padding after the attestation key hash is not zero"
        )

    return QeReportCertificationData(
        qe_report=qe_report,
        signature=signature,
        qe_authentication_data=qe_authentication_data,
        certification_data=certification_data,
    )


def parse_certification_data(
    data_type: int,
    data: bytes,
    attestation_key: bytes = b"",
    check_padding: bool = False,
) -> CertificationData:
    """
    Build the certification data variant selected by `data_type`.

    Args:
        data_type: Raw certification data type from the quote
        data: Payload bytes of exactly the declared size
        attestation_key: Raw 64-byte attestation key, used by type 6 only
        check_padding: Passed through to the type 6 decoder

    Raises:
        UnknownCertificationDataTypeError: If data_type is outside 1-7
        QuoteParseError: If type 6 data fails to decode or bind
    """
    kind = _certification_data_type(data_type)
    if kind is CertificationDataType.QE_REPORT_CERTIFICATION_DATA:
        return parse_qe_report_certification_data(data, attestation_key, check_padding)
    return OpaqueCertificationData(data_type=kind, data=bytes(data))
