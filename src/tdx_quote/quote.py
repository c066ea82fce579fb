"""
Quote decoding and verification.

Quote.from_bytes is the only way to build a Quote. It decodes the layout
and verifies the attestation key's signature over the header and body in
one step, so a Quote object always holds a verified signature.

Verification flow:
1. Parse the header and reject attestation keys other than ECDSA P-256
2. Slice the signed region (header || body section) from the raw input
3. Parse the body and the signature section
4. Verify the quote signature with the embedded attestation key
5. Parse the certification data; for type 6, check that the QE report
   commits to the attestation key

Checking the QE report signature needs a PCK obtained from a validated
certificate chain, so it is a separate call: Quote.verify_with_pck.
"""

import hashlib
from dataclasses import dataclass
from typing import List, Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from .abi import (
    ATTESTATION_KEY_SIZE,
    CERT_DATA_HEADER_SIZE,
    SIGNATURE_SIZE,
    AttestationKeyType,
    QuoteBody,
    QuoteHeader,
    parse_body,
    parse_header,
    signed_data_size,
)
from .certification import (
    CertificationData,
    QeReportCertificationData,
    parse_certification_data,
)
from .errors import (
    BadSignatureError,
    IntConversionError,
    MalformedQuoteError,
    NoQeReportCertificationDataError,
    QuoteSignatureError,
    UnsupportedAttestationKeyTypeError,
)
from .keys import public_key_to_raw, raw_to_public_key, signature_to_der
from .reader import ByteReader


@dataclass(frozen=True)
class ParseOptions:
    """
    Consistency checks that deployed quote producers do not always honour.

    All checks are off by default, which accepts every quote the lenient
    decoder accepts. Use ParseOptions.strict() to enable all of them.
    """
    # Signature section length must equal signature + key + certification data
    check_signature_section_length: bool = False
    # Version 5 body size field must match the body type
    check_body_size: bool = False
    # QE report data bytes 32..64 must be zero
    check_qe_report_padding: bool = False

    @classmethod
    def strict(cls) -> "ParseOptions":
        return cls(
            check_signature_section_length=True,
            check_body_size=True,
            check_qe_report_padding=True,
        )


DEFAULT_OPTIONS = ParseOptions()


@dataclass(frozen=True)
class Quote:
    """
    A decoded quote whose signature has been verified.

    Do not construct directly; use Quote.from_bytes.
    """
    header: QuoteHeader
    body: QuoteBody
    signature: bytes  # 64 bytes - ECDSA P-256 signature (R || S)
    attestation_key: ec.EllipticCurvePublicKey
    certification_data: CertificationData

    def __str__(self) -> str:
        return (
            f"Quote(\n"
            f"  header={self.header},\n"
            f"  body={self.body},\n"
            f"  signature={self.signature[:8].hex()}...,\n"
            f"  attestation_key={self.attestation_key_bytes[:8].hex()}...,\n"
            f"  certification_data={self.certification_data}\n"
            f")"
        )

    @classmethod
    def from_bytes(cls, data: bytes, options: Optional[ParseOptions] = None) -> "Quote":
        """
        Parse a quote and verify its attestation key signature.

        Args:
            data: Raw quote bytes. Bytes after the certification data are ignored.
            options: Optional strictness settings, lenient by default

        Returns:
            Verified Quote

        Raises:
            QuoteParseError: If the quote is malformed, uses an unsupported
                format, or fails signature or key binding verification

        Example:
            >>> quote = Quote.from_bytes(raw_quote)
            >>> quote.verify_with_pck(pck_cert.public_key())
            >>> nonce = quote.report_input_data()
        """
        if options is None:
            options = DEFAULT_OPTIONS
        data = bytes(data)
        reader = ByteReader(data)

        header = parse_header(reader)
        if header.attestation_key_type is not AttestationKeyType.ECDSA_P256:
            raise UnsupportedAttestationKeyTypeError(
                f"Unsupported attestation key type: {header.attestation_key_type.name}. "
                f"Only {AttestationKeyType.ECDSA_P256.name} is supported."
            )

        # The signed region is taken from the raw input, not re-serialized
        window_size = signed_data_size(data, header.version)
        if len(data) < window_size:
            raise MalformedQuoteError(
                f"Quote truncated: signed region is {window_size} bytes, "
                f"only {len(data)} available"
            )
        signed_region = data[:window_size]

        body = parse_body(reader, header.version, check_size=options.check_body_size)

        signature_section_size = reader.u32("signature section size")
        signature = reader.take(SIGNATURE_SIZE, "quote signature")
        attestation_key_raw = reader.take(ATTESTATION_KEY_SIZE, "attestation key")

        attestation_key = _verify_quote_signature(signed_region, signature, attestation_key_raw)

        certification_data_type = reader.i16("certification data type")
        certification_data_size = reader.i32("certification data size")
        if certification_data_size < 0:
            raise IntConversionError(
                f"Certification data size is negative: {certification_data_size}"
            )
        if options.check_signature_section_length:
            expected = (
                SIGNATURE_SIZE + ATTESTATION_KEY_SIZE
                + CERT_DATA_HEADER_SIZE + certification_data_size
            )
            if signature_section_size != expected:
                raise MalformedQuoteError(
                    f"Signature section size mismatch: declared {signature_section_size} "
                    f"bytes, contents are {expected} bytes"
                )
        certification_payload = reader.take(certification_data_size, "certification data")

        certification_data = parse_certification_data(
            certification_data_type,
            certification_payload,
            attestation_key=attestation_key_raw,
            check_padding=options.check_qe_report_padding,
        )

        return cls(
            header=header,
            body=body,
            signature=signature,
            attestation_key=attestation_key,
            certification_data=certification_data,
        )

    @property
    def attestation_key_bytes(self) -> bytes:
        """The attestation key as raw 64-byte X || Y, as carried in the quote."""
        return public_key_to_raw(self.attestation_key)

    def report_input_data(self) -> bytes:
        """Return the 64-byte report data supplied by the attested workload."""
        return self.body.report_data

    def mrtd(self) -> bytes:
        """Return the 48-byte build-time measurement of the TD."""
        return self.body.mr_td

    def measurements(self) -> List[bytes]:
        """Return the 5 TDX measurements: [MRTD, RTMR0, RTMR1, RTMR2, RTMR3]."""
        return self.body.measurements()

    def qe_report_certification_data(self) -> Optional[QeReportCertificationData]:
        if isinstance(self.certification_data, QeReportCertificationData):
            return self.certification_data
        return None

    def verify_with_pck(self, pck: ec.EllipticCurvePublicKey) -> None:
        """
        Verify the QE report signature with a platform certification key.

        The key must come from a PCK certificate whose chain the caller has
        already validated. Together with the key binding checked during
        decoding, this ties the quote signature to the platform.

        Args:
            pck: Public key of the PCK leaf certificate

        Raises:
            NoQeReportCertificationDataError: If the quote has no type 6
                certification data
            BadSignatureError: If the signature does not verify with pck
        """
        qe_report_data = self.qe_report_certification_data()
        if qe_report_data is None:
            raise NoQeReportCertificationDataError(
                f"Quote carries {self.certification_data.data_type.name} "
                f"certification data, not QE report certification data"
            )

        try:
            signature_der = signature_to_der(qe_report_data.signature)
            pck.verify(signature_der, qe_report_data.qe_report, ec.ECDSA(hashes.SHA256()))
        except InvalidSignature:
            raise BadSignatureError(
                "QE report signature verification failed using PCK"
            ) from None
        except (TypeError, AttributeError, ValueError, UnsupportedAlgorithm) as e:
            raise BadSignatureError(f"PCK cannot verify QE report: {e}") from e


def _verify_quote_signature(
    signed_region: bytes,
    signature: bytes,
    attestation_key_raw: bytes,
) -> ec.EllipticCurvePublicKey:
    """
    Verify the quote signature using the attestation key.

    The signature covers SHA256(Header || Body).

    Returns:
        The decoded attestation key

    Raises:
        QuoteSignatureError: If the key or signature is invalid
    """
    try:
        public_key = raw_to_public_key(attestation_key_raw)
    except (ValueError, TypeError) as e:
        raise QuoteSignatureError(f"Invalid attestation key: {e}") from e

    try:
        signature_der = signature_to_der(signature)
    except ValueError as e:
        raise QuoteSignatureError(f"Malformed quote signature: {e}") from e

    # Use Prehashed to avoid double-hashing (we already computed SHA256)
    message_hash = hashlib.sha256(signed_region).digest()
    try:
        public_key.verify(signature_der, message_hash, ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        raise QuoteSignatureError(
            "Quote signature verification failed: signature does not match"
        ) from None

    return public_key
