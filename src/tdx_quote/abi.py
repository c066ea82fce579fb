"""
Quote layout constants, records and fixed-layout decoders.

This module describes the header and TD quote body of DCAP quotes in
versions 4 and 5 (TDX 1.0 and TDX 1.5 bodies), and the 384-byte SGX
report produced by the Quoting Enclave.
"""

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Tuple

from .errors import (
    MalformedQuoteError,
    UnknownAttestationKeyTypeError,
    UnknownQuoteVersionError,
    UnknownTeeTypeError,
)
from .reader import ByteReader

# =============================================================================
# Constants
# =============================================================================

# Quote structure sizes
HEADER_SIZE = 0x30  # 48 bytes
TD_QUOTE_BODY_SIZE = 0x248  # 584 bytes
TD_QUOTE_BODY_1_5_SIZE = 0x288  # 648 bytes
BODY_DESCRIPTOR_SIZE = 6  # 2 bytes body type + 4 bytes size (v5 only)
QE_REPORT_SIZE = 0x180  # 384 bytes

# Quote versions
QUOTE_VERSION_V4 = 4
QUOTE_VERSION_V5 = 5

# TEE types
TEE_SGX = 0x00000000
TEE_TDX = 0x00000081

# Attestation key types
ATTESTATION_KEY_TYPE_ECDSA_P256 = 2
ATTESTATION_KEY_TYPE_ECDSA_P384 = 3

# V5 body types
BODY_TYPE_TDX_1_0 = 2
BODY_TYPE_TDX_1_5 = 3

# Field sizes
TEE_TCB_SVN_SIZE = 0x10  # 16 bytes
MR_SEAM_SIZE = 0x30  # 48 bytes
MR_SIGNER_SEAM_SIZE = 0x30  # 48 bytes
SEAM_ATTRIBUTES_SIZE = 0x08  # 8 bytes
TD_ATTRIBUTES_SIZE = 0x08  # 8 bytes
XFAM_SIZE = 0x08  # 8 bytes
MR_TD_SIZE = 0x30  # 48 bytes
MR_CONFIG_ID_SIZE = 0x30  # 48 bytes
MR_OWNER_SIZE = 0x30  # 48 bytes
MR_OWNER_CONFIG_SIZE = 0x30  # 48 bytes
RTMR_SIZE = 0x30  # 48 bytes
RTMR_COUNT = 4
REPORT_DATA_SIZE = 0x40  # 64 bytes
MR_SERVICE_TD_SIZE = 0x30  # 48 bytes
RESERVED_SIZE = 0x02  # 2 bytes each, two fields
QE_VENDOR_ID_SIZE = 0x10  # 16 bytes
USER_DATA_SIZE = 0x14  # 20 bytes
SIGNATURE_SIZE = 0x40  # 64 bytes
ATTESTATION_KEY_SIZE = 0x40  # 64 bytes
ECDSA_P256_COMPONENT_SIZE = 0x20  # 32 bytes per R or S component
SHA256_HASH_SIZE = 0x20  # 32 bytes
CERT_DATA_HEADER_SIZE = 6  # 2 bytes type + 4 bytes size

# Intel QE Vendor ID: 939a7233-f79c-4ca9-940a-0db3957f0607
INTEL_QE_VENDOR_ID = bytes.fromhex("939a7233f79c4ca9940a0db3957f0607")

# =============================================================================
# QE Report offsets
# =============================================================================

QE_CPU_SVN_START = 0x00
QE_CPU_SVN_END = 0x10
QE_MISC_SELECT_START = 0x10
QE_MISC_SELECT_END = 0x14
QE_ATTRIBUTES_START = 0x30
QE_ATTRIBUTES_END = 0x40
QE_MR_ENCLAVE_START = 0x40
QE_MR_ENCLAVE_END = 0x60
QE_MR_SIGNER_START = 0x80
QE_MR_SIGNER_END = 0xA0
QE_ISV_PROD_ID_START = 0x100
QE_ISV_PROD_ID_END = 0x102
QE_ISV_SVN_START = 0x102
QE_ISV_SVN_END = 0x104
QE_REPORT_DATA_START = 0x140
QE_REPORT_DATA_END = 0x180

# SHA256(attestation_key || qe_auth_data) sits in the first half of the
# QE report data, the second half is zero padding.
QE_REPORT_HASH_START = QE_REPORT_SIZE - REPORT_DATA_SIZE
QE_REPORT_HASH_END = QE_REPORT_HASH_START + SHA256_HASH_SIZE


# =============================================================================
# Enumerations
# =============================================================================

class AttestationKeyType(IntEnum):
    """Type of the key the Quoting Enclave used to sign the quote."""
    ECDSA_P256 = ATTESTATION_KEY_TYPE_ECDSA_P256
    ECDSA_P384 = ATTESTATION_KEY_TYPE_ECDSA_P384


class TeeType(IntEnum):
    """Trusted execution environment that produced the quote."""
    SGX = TEE_SGX
    TDX = TEE_TDX


class TdxVersion(str, Enum):
    """TDX module generation the body layout belongs to."""
    ONE = "1.0"
    ONE_POINT_FIVE = "1.5"


_BODY_TYPES = {
    BODY_TYPE_TDX_1_0: TdxVersion.ONE,
    BODY_TYPE_TDX_1_5: TdxVersion.ONE_POINT_FIVE,
}

_BODY_SIZES = {
    TdxVersion.ONE: TD_QUOTE_BODY_SIZE,
    TdxVersion.ONE_POINT_FIVE: TD_QUOTE_BODY_1_5_SIZE,
}


# =============================================================================
# Data Structures
# =============================================================================

@dataclass(frozen=True)
class QuoteHeader:
    """
    Quote header (48 bytes).

    Contains quote metadata including version, attestation key type,
    TEE type, and vendor information.
    """
    version: int  # 2 bytes - 4 or 5
    attestation_key_type: AttestationKeyType  # 2 bytes
    tee_type: TeeType  # 4 bytes
    reserved1: bytes  # 2 bytes
    reserved2: bytes  # 2 bytes
    qe_vendor_id: bytes  # 16 bytes - Intel: 939a7233-f79c-4ca9-940a-0db3957f0607
    user_data: bytes  # 20 bytes - Custom data from QE

    def __str__(self) -> str:
        return (
            f"QuoteHeader(version={self.version}, "
            f"ak_type={self.attestation_key_type.name}, "
            f"tee_type={self.tee_type.name}, "
            f"qe_vendor_id={self.qe_vendor_id.hex()})"
        )


@dataclass(frozen=True)
class QuoteBody:
    """
    TD Quote Body.

    584 bytes for TDX 1.0. TDX 1.5 bodies append a second TEE TCB SVN and
    the service TD measurement (648 bytes). The two extra fields are set
    exactly when tdx_version is ONE_POINT_FIVE.
    """
    tdx_version: TdxVersion
    tee_tcb_svn: bytes  # 16 bytes - TEE TCB Security Version Number
    mr_seam: bytes  # 48 bytes - Measurement of SEAM module
    mr_signer_seam: bytes  # 48 bytes - Signer of SEAM module (zeros for Intel SEAM)
    seam_attributes: bytes  # 8 bytes
    td_attributes: bytes  # 8 bytes
    xfam: bytes  # 8 bytes - Extended feature mask
    mr_td: bytes  # 48 bytes - Build-time measurement of the TD
    mr_config_id: bytes  # 48 bytes
    mr_owner: bytes  # 48 bytes
    mr_owner_config: bytes  # 48 bytes
    rtmr0: bytes  # 48 bytes - Runtime measurement registers
    rtmr1: bytes  # 48 bytes
    rtmr2: bytes  # 48 bytes
    rtmr3: bytes  # 48 bytes
    report_data: bytes  # 64 bytes - Caller supplied report input data
    tee_tcb_svn_2: Optional[bytes] = None  # 16 bytes, TDX 1.5 only
    mr_service_td: Optional[bytes] = None  # 48 bytes, TDX 1.5 only

    def __post_init__(self):
        extended = self.tdx_version is TdxVersion.ONE_POINT_FIVE
        for name in ("tee_tcb_svn_2", "mr_service_td"):
            present = getattr(self, name) is not None
            if present != extended:
                raise ValueError(
                    f"{name} must be {'set' if extended else 'None'} "
                    f"for TDX {self.tdx_version.value} bodies"
                )

    def __str__(self) -> str:
        rtmr_lines = "".join(
            f"  rtmr{i}={rtmr.hex()},\n" for i, rtmr in enumerate(self.rtmrs)
        )
        return (
            f"QuoteBody(\n"
            f"  tdx_version={self.tdx_version.value},\n"
            f"  mr_td={self.mr_td.hex()},\n"
            f"{rtmr_lines}"
            f"  mr_seam={self.mr_seam.hex()},\n"
            f"  report_data={self.report_data.hex()}\n"
            f")"
        )

    @property
    def rtmrs(self) -> Tuple[bytes, bytes, bytes, bytes]:
        return (self.rtmr0, self.rtmr1, self.rtmr2, self.rtmr3)

    def measurements(self) -> List[bytes]:
        """Return the 5 TDX measurements: [MRTD, RTMR0, RTMR1, RTMR2, RTMR3]."""
        return [self.mr_td, *self.rtmrs]


@dataclass(frozen=True)
class QeReport:
    """
    Quoting Enclave Report (384 bytes).

    SGX enclave report from the Quoting Enclave, used to bind the
    attestation key to a legitimate QE.
    """
    cpu_svn: bytes  # 16 bytes
    misc_select: int  # 4 bytes
    attributes: bytes  # 16 bytes
    mr_enclave: bytes  # 32 bytes - QE enclave measurement
    mr_signer: bytes  # 32 bytes - QE signer measurement
    isv_prod_id: int  # 2 bytes - Product ID
    isv_svn: int  # 2 bytes - Security Version Number
    report_data: bytes  # 64 bytes - Contains hash of attestation key

    def __str__(self) -> str:
        return (
            f"QeReport(mr_enclave={self.mr_enclave.hex()}, "
            f"mr_signer={self.mr_signer.hex()}, "
            f"isv_prod_id={self.isv_prod_id}, "
            f"isv_svn={self.isv_svn})"
        )


# =============================================================================
# Parsing Functions
# =============================================================================

def _attestation_key_type(raw: int) -> AttestationKeyType:
    try:
        return AttestationKeyType(raw)
    except ValueError:
        raise UnknownAttestationKeyTypeError(
            f"Unknown attestation key type: {raw}"
        ) from None


def _tee_type(raw: int) -> TeeType:
    try:
        return TeeType(raw)
    except ValueError:
        raise UnknownTeeTypeError(f"Unknown TEE type: 0x{raw:x}") from None


def tdx_version_for_body_type(body_type: int) -> TdxVersion:
    """Map a version 5 body type to the TDX generation it describes."""
    try:
        return _BODY_TYPES[body_type]
    except KeyError:
        raise UnknownQuoteVersionError(
            f"Unknown quote body type: {body_type}. "
            f"Expected {BODY_TYPE_TDX_1_0} (TDX 1.0) or {BODY_TYPE_TDX_1_5} (TDX 1.5)."
        ) from None


def body_type_for_tdx_version(tdx_version: TdxVersion) -> int:
    for body_type, version in _BODY_TYPES.items():
        if version is tdx_version:
            return body_type
    raise UnknownQuoteVersionError(f"No body type for TDX {tdx_version}")


def body_payload_size(tdx_version: TdxVersion) -> int:
    """Return the body size excluding the version 5 descriptor."""
    return _BODY_SIZES[tdx_version]


def parse_header(reader: ByteReader) -> QuoteHeader:
    """
    Parse the 48-byte quote header.

    Args:
        reader: Reader positioned at the start of the quote

    Returns:
        Parsed QuoteHeader

    Raises:
        MalformedQuoteError: If the header is truncated or holds an
            unknown attestation key type or TEE type
    """
    version = reader.u16("quote version")
    attestation_key_type = reader.u16("attestation key type")
    tee_type = reader.u32("TEE type")
    reserved1 = reader.take(RESERVED_SIZE, "reserved header field")
    reserved2 = reader.take(RESERVED_SIZE, "reserved header field")
    qe_vendor_id = reader.take(QE_VENDOR_ID_SIZE, "QE vendor id")
    user_data = reader.take(USER_DATA_SIZE, "user data")

    return QuoteHeader(
        version=version,
        attestation_key_type=_attestation_key_type(attestation_key_type),
        tee_type=_tee_type(tee_type),
        reserved1=reserved1,
        reserved2=reserved2,
        qe_vendor_id=qe_vendor_id,
        user_data=user_data,
    )


def signed_data_size(data: bytes, version: int) -> int:
    """
    Return how many leading bytes of the quote the attestation key signs.

    The signed region is the header followed by the whole body section:
    the 584-byte body for version 4, and the 6-byte descriptor plus the
    584 or 648 byte body for version 5. The version 5 body type is read
    from the raw input, so the window does not depend on the body decoder.

    Raises:
        UnknownQuoteVersionError: For versions other than 4 and 5, or an
            unknown version 5 body type
        MalformedQuoteError: If the body descriptor is truncated
    """
    if version == QUOTE_VERSION_V4:
        return HEADER_SIZE + TD_QUOTE_BODY_SIZE
    if version == QUOTE_VERSION_V5:
        body_type = ByteReader(data, HEADER_SIZE).u16("quote body type")
        tdx_version = tdx_version_for_body_type(body_type)
        return HEADER_SIZE + BODY_DESCRIPTOR_SIZE + body_payload_size(tdx_version)
    raise UnknownQuoteVersionError(
        f"Unsupported quote version: {version}. "
        f"Expected {QUOTE_VERSION_V4} or {QUOTE_VERSION_V5}."
    )


def _parse_td_quote_body(reader: ByteReader, tdx_version: TdxVersion) -> QuoteBody:
    fields = dict(
        tee_tcb_svn=reader.take(TEE_TCB_SVN_SIZE, "TEE TCB SVN"),
        mr_seam=reader.take(MR_SEAM_SIZE, "MRSEAM"),
        mr_signer_seam=reader.take(MR_SIGNER_SEAM_SIZE, "MRSIGNERSEAM"),
        seam_attributes=reader.take(SEAM_ATTRIBUTES_SIZE, "SEAM attributes"),
        td_attributes=reader.take(TD_ATTRIBUTES_SIZE, "TD attributes"),
        xfam=reader.take(XFAM_SIZE, "XFAM"),
        mr_td=reader.take(MR_TD_SIZE, "MRTD"),
        mr_config_id=reader.take(MR_CONFIG_ID_SIZE, "MRCONFIGID"),
        mr_owner=reader.take(MR_OWNER_SIZE, "MROWNER"),
        mr_owner_config=reader.take(MR_OWNER_CONFIG_SIZE, "MROWNERCONFIG"),
    )
    for i in range(RTMR_COUNT):
        fields[f"rtmr{i}"] = reader.take(RTMR_SIZE, f"RTMR{i}")
    fields["report_data"] = reader.take(REPORT_DATA_SIZE, "report data")

    if tdx_version is TdxVersion.ONE_POINT_FIVE:
        fields["tee_tcb_svn_2"] = reader.take(TEE_TCB_SVN_SIZE, "TEE TCB SVN 2")
        fields["mr_service_td"] = reader.take(MR_SERVICE_TD_SIZE, "MRSERVICETD")

    return QuoteBody(tdx_version=tdx_version, **fields)


def parse_body(reader: ByteReader, version: int, check_size: bool = False) -> QuoteBody:
    """
    Parse the TD quote body that follows the header.

    Args:
        reader: Reader positioned right after the header
        version: Quote version from the header
        check_size: Require the version 5 size field to match the body type

    Returns:
        Parsed QuoteBody

    Raises:
        UnknownQuoteVersionError: If the version or body type is unknown
        MalformedQuoteError: If the body is truncated or, with check_size,
            the declared size is wrong
    """
    if version == QUOTE_VERSION_V4:
        return _parse_td_quote_body(reader, TdxVersion.ONE)

    if version == QUOTE_VERSION_V5:
        body_type = reader.u16("quote body type")
        size = reader.u32("quote body size")
        tdx_version = tdx_version_for_body_type(body_type)
        expected = body_payload_size(tdx_version)
        if check_size and size != expected:
            raise MalformedQuoteError(
                f"Quote body size mismatch: declared {size} bytes, "
                f"TDX {tdx_version.value} body is {expected} bytes"
            )
        return _parse_td_quote_body(reader, tdx_version)

    raise UnknownQuoteVersionError(
        f"Unsupported quote version: {version}. "
        f"Expected {QUOTE_VERSION_V4} or {QUOTE_VERSION_V5}."
    )


def parse_qe_report(data: bytes) -> QeReport:
    """
    Parse the 384-byte QE report.

    Args:
        data: 384 bytes of QE report data

    Returns:
        Parsed QeReport

    Raises:
        MalformedQuoteError: If report is malformed
    """
    if len(data) < QE_REPORT_SIZE:
        raise MalformedQuoteError(
            f"QE report too short: {len(data)} bytes, expected {QE_REPORT_SIZE}"
        )

    return QeReport(
        cpu_svn=data[QE_CPU_SVN_START:QE_CPU_SVN_END],
        misc_select=struct.unpack_from("<I", data, QE_MISC_SELECT_START)[0],
        attributes=data[QE_ATTRIBUTES_START:QE_ATTRIBUTES_END],
        mr_enclave=data[QE_MR_ENCLAVE_START:QE_MR_ENCLAVE_END],
        mr_signer=data[QE_MR_SIGNER_START:QE_MR_SIGNER_END],
        isv_prod_id=struct.unpack_from("<H", data, QE_ISV_PROD_ID_START)[0],
        isv_svn=struct.unpack_from("<H", data, QE_ISV_SVN_START)[0],
        report_data=data[QE_REPORT_DATA_START:QE_REPORT_DATA_END],
    )
