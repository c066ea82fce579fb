"""
Mock quote generation.

Builds quotes from caller supplied signing keys, laid out exactly as real
quotes are, so they pass Quote.from_bytes. Intended for tests and for
simulating a TEE on hardware without one.

Usage:
    attestation_key = ec.generate_private_key(ec.SECP256R1())
    pck = ec.generate_private_key(ec.SECP256R1())
    raw = mock_quote(attestation_key, pck, report_data=b'\\x01' * 64)
    quote = Quote.from_bytes(raw)
    quote.verify_with_pck(pck.public_key())
"""

import struct
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .abi import (
    ECDSA_P256_COMPONENT_SIZE,
    MR_SEAM_SIZE,
    QE_REPORT_HASH_START,
    QE_REPORT_SIZE,
    QUOTE_VERSION_V4,
    QUOTE_VERSION_V5,
    REPORT_DATA_SIZE,
    RTMR_SIZE,
    TEE_TCB_SVN_SIZE,
    AttestationKeyType,
    QuoteBody,
    QuoteHeader,
    TdxVersion,
    TeeType,
    body_payload_size,
    body_type_for_tdx_version,
)
from .certification import CertificationDataType, attestation_key_hash
from .keys import public_key_to_raw


def sign_raw(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """Sign a message with ECDSA/SHA256 and return the raw R || S signature."""
    der_signature = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der_signature)
    return (
        r.to_bytes(ECDSA_P256_COMPONENT_SIZE, byteorder='big')
        + s.to_bytes(ECDSA_P256_COMPONENT_SIZE, byteorder='big')
    )


def mock_header(version: int = QUOTE_VERSION_V4, tee_type: TeeType = TeeType.TDX) -> QuoteHeader:
    return QuoteHeader(
        version=version,
        attestation_key_type=AttestationKeyType.ECDSA_P256,
        tee_type=tee_type,
        reserved1=b'\x00' * 2,
        reserved2=b'\x00' * 2,
        qe_vendor_id=b'\x00' * 16,
        user_data=b'\x00' * 20,
    )


def mock_body(
    report_data: bytes = b'\x00' * REPORT_DATA_SIZE,
    tdx_version: TdxVersion = TdxVersion.ONE,
) -> QuoteBody:
    """Build a body with zeroed measurements and the given report data."""
    extended = tdx_version is TdxVersion.ONE_POINT_FIVE
    return QuoteBody(
        tdx_version=tdx_version,
        tee_tcb_svn=b'\x00' * TEE_TCB_SVN_SIZE,
        mr_seam=b'\x00' * MR_SEAM_SIZE,
        mr_signer_seam=b'\x00' * 48,
        seam_attributes=b'\x00' * 8,
        td_attributes=b'\x00' * 8,
        xfam=b'\x00' * 8,
        mr_td=b'\x00' * 48,
        mr_config_id=b'\x00' * 48,
        mr_owner=b'\x00' * 48,
        mr_owner_config=b'\x00' * 48,
        rtmr0=b'\x00' * RTMR_SIZE,
        rtmr1=b'\x00' * RTMR_SIZE,
        rtmr2=b'\x00' * RTMR_SIZE,
        rtmr3=b'\x00' * RTMR_SIZE,
        report_data=report_data,
        tee_tcb_svn_2=b'\x00' * TEE_TCB_SVN_SIZE if extended else None,
        mr_service_td=b'\x00' * 48 if extended else None,
    )


def serialize_header(header: QuoteHeader) -> bytes:
    """Serialize a header into its 48-byte wire form."""
    return (
        struct.pack('<HHI', header.version, header.attestation_key_type, header.tee_type)
        + header.reserved1
        + header.reserved2
        + header.qe_vendor_id
        + header.user_data
    )


def serialize_body(body: QuoteBody, version: int = QUOTE_VERSION_V4) -> bytes:
    """
    Serialize a body into its wire form.

    Version 5 bodies are prefixed with the body type and size descriptor.
    Version 4 only carries TDX 1.0 bodies.
    """
    payload = (
        body.tee_tcb_svn
        + body.mr_seam
        + body.mr_signer_seam
        + body.seam_attributes
        + body.td_attributes
        + body.xfam
        + body.mr_td
        + body.mr_config_id
        + body.mr_owner
        + body.mr_owner_config
        + b''.join(body.rtmrs)
        + body.report_data
    )
    if body.tdx_version is TdxVersion.ONE_POINT_FIVE:
        payload += body.tee_tcb_svn_2 + body.mr_service_td

    if version == QUOTE_VERSION_V4:
        if body.tdx_version is not TdxVersion.ONE:
            raise ValueError("Version 4 quotes only carry TDX 1.0 bodies")
        return payload
    if version == QUOTE_VERSION_V5:
        body_type = body_type_for_tdx_version(body.tdx_version)
        size = body_payload_size(body.tdx_version)
        return struct.pack('<HI', body_type, size) + payload
    raise ValueError(f"Cannot serialize body for quote version {version}")


def mock_qe_report(attestation_key: bytes, qe_authentication_data: bytes = b'') -> bytes:
    """Build a 384-byte QE report committing to a raw 64-byte attestation key."""
    digest = attestation_key_hash(attestation_key, qe_authentication_data)
    report = bytearray(QE_REPORT_SIZE)
    report[QE_REPORT_HASH_START:QE_REPORT_HASH_START + len(digest)] = digest
    return bytes(report)


def serialize_qe_report_certification_data(
    qe_report: bytes,
    signature: bytes,
    qe_authentication_data: bytes = b'',
    certification_data: bytes = b'',
) -> bytes:
    return (
        qe_report
        + signature
        + struct.pack('<h', len(qe_authentication_data))
        + qe_authentication_data
        + certification_data
    )


def certification_data_record(data_type: int, payload: bytes) -> bytes:
    """Wrap a payload as `type || size || payload`."""
    return struct.pack('<hi', data_type, len(payload)) + payload


def mock_quote(
    attestation_key: ec.EllipticCurvePrivateKey,
    pck: Optional[ec.EllipticCurvePrivateKey] = None,
    report_data: bytes = b'\x00' * REPORT_DATA_SIZE,
    version: int = QUOTE_VERSION_V4,
    tdx_version: TdxVersion = TdxVersion.ONE,
    header: Optional[QuoteHeader] = None,
    body: Optional[QuoteBody] = None,
    certification_data_type: int = CertificationDataType.QE_REPORT_CERTIFICATION_DATA,
    certification_data: bytes = b'',
    qe_authentication_data: bytes = b'',
    qe_report: Optional[bytes] = None,
) -> bytes:
    """
    Build a signed quote.

    Args:
        attestation_key: Key that signs the header and body
        pck: Key that signs the QE report (type 6 only, defaults to attestation_key)
        report_data: 64 bytes placed in the body when body is not given
        version: Quote version, 4 or 5
        tdx_version: Body layout when body is not given
        header: Header to use instead of a mock header for `version`
        body: Body to use instead of a mock body
        certification_data_type: Tag of the certification data
        certification_data: Payload for types other than 6; trailing
            certification material for type 6
        qe_authentication_data: QE auth data for type 6
        qe_report: QE report for type 6, built to match the attestation key
            when not given

    Returns:
        Raw quote bytes
    """
    if header is None:
        header = mock_header(version)
    if body is None:
        body = mock_body(report_data, tdx_version)

    signed_region = serialize_header(header) + serialize_body(body, header.version)
    signature = sign_raw(attestation_key, signed_region)
    attestation_key_raw = public_key_to_raw(attestation_key.public_key())

    if certification_data_type == CertificationDataType.QE_REPORT_CERTIFICATION_DATA:
        if pck is None:
            pck = attestation_key
        if qe_report is None:
            qe_report = mock_qe_report(attestation_key_raw, qe_authentication_data)
        payload = serialize_qe_report_certification_data(
            qe_report,
            sign_raw(pck, qe_report),
            qe_authentication_data,
            certification_data,
        )
    else:
        payload = certification_data

    signature_section = (
        signature
        + attestation_key_raw
        + certification_data_record(certification_data_type, payload)
    )
    return signed_region + struct.pack('<I', len(signature_section)) + signature_section
