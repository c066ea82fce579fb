"""
Helpers for the PEM certification material carried inside quotes.

Chain validation against the Intel SGX root is left to the caller; these
functions only extract certificates so a validator can work on them and
hand the resulting PCK to Quote.verify_with_pck.
"""

from typing import List

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec

from .certification import (
    CertificationDataType,
    OpaqueCertificationData,
)
from .errors import CertificateChainError, QuoteParseError
from .quote import Quote

PEM_END_MARKER = b'-----END CERTIFICATE-----'
_PADDING = b'\x00\n\r\t '


def parse_pem_chain(pem_data: bytes) -> List[x509.Certificate]:
    """
    Parse concatenated PEM certificates.

    Handles:
    - Concatenated PEM certificates
    - Leading/trailing whitespace and null bytes
    - Trailing null bytes between certificates (common in TDX quotes)

    Args:
        pem_data: PEM-encoded certificate chain (bytes)

    Returns:
        List of parsed certificates in order

    Raises:
        CertificateChainError: If parsing fails
    """
    certs = []
    remaining = pem_data.strip(_PADDING)

    while remaining:
        end_pos = remaining.find(PEM_END_MARKER)
        if end_pos == -1:
            raise CertificateChainError(
                "Trailing data after last PEM certificate"
            )
        block_end = end_pos + len(PEM_END_MARKER)
        try:
            certs.append(x509.load_pem_x509_certificate(remaining[:block_end]))
        except ValueError as e:
            raise CertificateChainError(f"Failed to parse PEM certificate: {e}") from e
        remaining = remaining[block_end:].lstrip(_PADDING)

    return certs


def pck_cert_chain(quote: Quote) -> List[x509.Certificate]:
    """
    Return the PCK certificate chain embedded in the quote.

    The chain is read from the PCK cert chain data nested inside the QE
    report certification data, or from top-level type 5 certification data.

    Raises:
        CertificateChainError: If the quote carries no PEM chain or the
            chain cannot be parsed
    """
    qe_report_data = quote.qe_report_certification_data()
    if qe_report_data is not None:
        try:
            cert_data = qe_report_data.nested_certification_data()
        except QuoteParseError as e:
            raise CertificateChainError(f"Malformed nested certification data: {e}") from e
    else:
        cert_data = quote.certification_data

    if not (
        isinstance(cert_data, OpaqueCertificationData)
        and cert_data.data_type is CertificationDataType.PCK_CERT_CHAIN
    ):
        raise CertificateChainError(
            f"Expected PCK cert chain data, got {cert_data.data_type.name}"
        )

    certs = parse_pem_chain(cert_data.data)
    if not certs:
        raise CertificateChainError("PCK certificate chain is empty")
    return certs


def pck_leaf_public_key(quote: Quote) -> ec.EllipticCurvePublicKey:
    """
    Return the public key of the PCK leaf certificate in the quote.

    The key is not trusted until the chain has been validated.

    Raises:
        CertificateChainError: If there is no chain or the leaf key is
            not an elliptic curve key
    """
    public_key = pck_cert_chain(quote)[0].public_key()
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise CertificateChainError(
            f"PCK leaf certificate has unexpected key type: {type(public_key).__name__}"
        )
    return public_key
