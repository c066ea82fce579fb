"""
Unit tests for header, body and QE report decoding (abi.py).
"""

import struct

import pytest

from tdx_quote.abi import (
    BODY_DESCRIPTOR_SIZE,
    HEADER_SIZE,
    INTEL_QE_VENDOR_ID,
    QE_REPORT_SIZE,
    QUOTE_VERSION_V4,
    QUOTE_VERSION_V5,
    TD_QUOTE_BODY_1_5_SIZE,
    TD_QUOTE_BODY_SIZE,
    TEE_TDX,
    AttestationKeyType,
    QuoteBody,
    TdxVersion,
    TeeType,
    parse_body,
    parse_header,
    parse_qe_report,
    signed_data_size,
)
from tdx_quote.errors import (
    MalformedQuoteError,
    UnknownAttestationKeyTypeError,
    UnknownQuoteVersionError,
    UnknownTeeTypeError,
)
from tdx_quote.reader import ByteReader


# =============================================================================
# Test Fixtures - Synthetic Layout Generation
# =============================================================================

def build_header(
    version: int = QUOTE_VERSION_V4,
    attestation_key_type: int = 2,
    tee_type: int = TEE_TDX,
    reserved1: bytes = b'\x00\x00',
    reserved2: bytes = b'\x00\x00',
    qe_vendor_id: bytes = INTEL_QE_VENDOR_ID,
    user_data: bytes = b'\x00' * 20,
) -> bytes:
    """Build a synthetic quote header (48 bytes)."""
    header = b''
    header += struct.pack('<H', version)
    header += struct.pack('<H', attestation_key_type)
    header += struct.pack('<I', tee_type)
    header += reserved1
    header += reserved2
    header += qe_vendor_id
    header += user_data
    assert len(header) == HEADER_SIZE
    return header


def build_body_payload(extended: bool = False) -> bytes:
    """Build a TD quote body with a distinct byte value per field."""
    body = b''
    body += b'\x03' + b'\x00' * 15  # tee_tcb_svn
    body += b'\xaa' * 48  # mr_seam
    body += b'\x00' * 48  # mr_signer_seam
    body += b'\x01' * 8   # seam_attributes
    body += b'\x00\x00\x00\x10\x00\x00\x00\x00'  # td_attributes
    body += b'\xe7\x02\x06\x00\x00\x00\x00\x00'  # xfam
    body += b'\x11' * 48  # mr_td
    body += b'\x12' * 48  # mr_config_id
    body += b'\x13' * 48  # mr_owner
    body += b'\x14' * 48  # mr_owner_config
    body += b'\x22' * 48  # rtmr0
    body += b'\x33' * 48  # rtmr1
    body += b'\x44' * 48  # rtmr2
    body += b'\x55' * 48  # rtmr3
    body += b'\xab' * 32 + b'\xcd' * 32  # report_data
    if extended:
        body += b'\x05' * 16  # tee_tcb_svn_2
        body += b'\x66' * 48  # mr_service_td
    return body


def build_v5_body(body_type: int = 2, size: int = None) -> bytes:
    payload = build_body_payload(extended=(body_type == 3))
    if size is None:
        size = len(payload)
    return struct.pack('<HI', body_type, size) + payload


# =============================================================================
# Header Parsing Tests
# =============================================================================

class TestParseHeader:
    """Test quote header parsing."""

    def test_parse_valid_header(self):
        header = parse_header(ByteReader(build_header()))

        assert header.version == QUOTE_VERSION_V4
        assert header.attestation_key_type is AttestationKeyType.ECDSA_P256
        assert header.tee_type is TeeType.TDX
        assert header.reserved1 == b'\x00\x00'
        assert header.reserved2 == b'\x00\x00'
        assert header.qe_vendor_id == INTEL_QE_VENDOR_ID
        assert header.user_data == b'\x00' * 20

    def test_parse_header_custom_values(self):
        header = parse_header(ByteReader(build_header(
            attestation_key_type=3,
            tee_type=0,
            reserved1=b'\xab\xcd',
            reserved2=b'\xef\x12',
            user_data=b'custom_data_here' + b'\x00' * 4,
        )))

        assert header.attestation_key_type is AttestationKeyType.ECDSA_P384
        assert header.tee_type is TeeType.SGX
        assert header.reserved1 == b'\xab\xcd'
        assert header.reserved2 == b'\xef\x12'
        assert header.user_data.startswith(b'custom_data_here')

    def test_header_consumes_exactly_48_bytes(self):
        reader = ByteReader(build_header() + b'\x99')
        parse_header(reader)
        assert reader.offset == HEADER_SIZE

    def test_header_does_not_validate_version(self):
        header = parse_header(ByteReader(build_header(version=9)))
        assert header.version == 9

    @pytest.mark.parametrize("ak_type", [0, 1, 4, 0xffff])
    def test_unknown_attestation_key_type(self, ak_type):
        with pytest.raises(UnknownAttestationKeyTypeError):
            parse_header(ByteReader(build_header(attestation_key_type=ak_type)))

    @pytest.mark.parametrize("tee_type", [1, 0x80, 0x82, 0xffffffff])
    def test_unknown_tee_type(self, tee_type):
        with pytest.raises(UnknownTeeTypeError):
            parse_header(ByteReader(build_header(tee_type=tee_type)))

    def test_unknown_enumerants_are_parse_errors(self):
        with pytest.raises(MalformedQuoteError):
            parse_header(ByteReader(build_header(tee_type=7)))

    def test_truncated_header(self):
        with pytest.raises(MalformedQuoteError):
            parse_header(ByteReader(build_header()[:47]))


# =============================================================================
# Body Parsing Tests
# =============================================================================

class TestParseBody:
    """Test TD quote body parsing for each version."""

    def test_parse_v4_body(self):
        reader = ByteReader(build_body_payload())
        body = parse_body(reader, QUOTE_VERSION_V4)

        assert reader.offset == TD_QUOTE_BODY_SIZE
        assert body.tdx_version is TdxVersion.ONE
        assert body.tee_tcb_svn == b'\x03' + b'\x00' * 15
        assert body.mr_seam == b'\xaa' * 48
        assert body.seam_attributes == b'\x01' * 8
        assert body.td_attributes == bytes.fromhex("0000001000000000")
        assert body.xfam == bytes.fromhex("e702060000000000")
        assert body.mr_td == b'\x11' * 48
        assert body.mr_config_id == b'\x12' * 48
        assert body.mr_owner == b'\x13' * 48
        assert body.mr_owner_config == b'\x14' * 48
        assert body.rtmrs == (b'\x22' * 48, b'\x33' * 48, b'\x44' * 48, b'\x55' * 48)
        assert body.report_data == b'\xab' * 32 + b'\xcd' * 32
        assert body.tee_tcb_svn_2 is None
        assert body.mr_service_td is None

    def test_parse_v5_tdx_1_0_body(self):
        reader = ByteReader(build_v5_body(body_type=2))
        body = parse_body(reader, QUOTE_VERSION_V5)

        assert reader.offset == BODY_DESCRIPTOR_SIZE + TD_QUOTE_BODY_SIZE
        assert body.tdx_version is TdxVersion.ONE
        assert body.tee_tcb_svn_2 is None
        assert body.mr_service_td is None

    def test_parse_v5_tdx_1_5_body(self):
        reader = ByteReader(build_v5_body(body_type=3))
        body = parse_body(reader, QUOTE_VERSION_V5)

        assert reader.offset == BODY_DESCRIPTOR_SIZE + TD_QUOTE_BODY_1_5_SIZE
        assert body.tdx_version is TdxVersion.ONE_POINT_FIVE
        assert body.tee_tcb_svn_2 == b'\x05' * 16
        assert body.mr_service_td == b'\x66' * 48
        assert body.report_data == b'\xab' * 32 + b'\xcd' * 32

    @pytest.mark.parametrize("body_type", [0, 1, 4, 0xffff])
    def test_unknown_v5_body_type(self, body_type):
        data = struct.pack('<HI', body_type, TD_QUOTE_BODY_SIZE) + build_body_payload()
        with pytest.raises(UnknownQuoteVersionError):
            parse_body(ByteReader(data), QUOTE_VERSION_V5)

    @pytest.mark.parametrize("version", [0, 3, 6])
    def test_unknown_version(self, version):
        with pytest.raises(UnknownQuoteVersionError):
            parse_body(ByteReader(build_body_payload()), version)

    def test_v5_size_is_lenient_by_default(self):
        body = parse_body(ByteReader(build_v5_body(size=1)), QUOTE_VERSION_V5)
        assert body.tdx_version is TdxVersion.ONE

    def test_v5_size_checked_when_requested(self):
        with pytest.raises(MalformedQuoteError, match="size mismatch"):
            parse_body(ByteReader(build_v5_body(size=1)), QUOTE_VERSION_V5, check_size=True)
        body = parse_body(ByteReader(build_v5_body(body_type=3)), QUOTE_VERSION_V5,
                          check_size=True)
        assert body.tdx_version is TdxVersion.ONE_POINT_FIVE

    def test_truncated_1_5_body(self):
        data = build_v5_body(body_type=3)[:-1]
        with pytest.raises(MalformedQuoteError):
            parse_body(ByteReader(data), QUOTE_VERSION_V5)

    def test_measurements(self):
        body = parse_body(ByteReader(build_body_payload()), QUOTE_VERSION_V4)
        assert body.measurements() == [
            b'\x11' * 48, b'\x22' * 48, b'\x33' * 48, b'\x44' * 48, b'\x55' * 48,
        ]


class TestQuoteBodyInvariant:
    """The TDX 1.5 fields are present exactly for TDX 1.5 bodies."""

    def _fields(self):
        body = parse_body(ByteReader(build_body_payload()), QUOTE_VERSION_V4)
        return {k: v for k, v in body.__dict__.items()
                if k not in ("tdx_version", "tee_tcb_svn_2", "mr_service_td")}

    def test_1_0_body_rejects_extra_fields(self):
        with pytest.raises(ValueError):
            QuoteBody(tdx_version=TdxVersion.ONE, tee_tcb_svn_2=b'\x00' * 16,
                      **self._fields())

    def test_1_5_body_requires_both_fields(self):
        with pytest.raises(ValueError):
            QuoteBody(tdx_version=TdxVersion.ONE_POINT_FIVE, tee_tcb_svn_2=b'\x00' * 16,
                      **self._fields())

    def test_body_is_immutable(self):
        body = parse_body(ByteReader(build_body_payload()), QUOTE_VERSION_V4)
        with pytest.raises(AttributeError):
            body.mr_td = b'\x00' * 48


# =============================================================================
# Signed Region Tests
# =============================================================================

class TestSignedDataSize:
    """The signed region is header plus the full body section."""

    def test_v4(self):
        assert signed_data_size(build_header(), QUOTE_VERSION_V4) == 48 + 584

    def test_v5_tdx_1_0(self):
        data = build_header(version=5) + build_v5_body(body_type=2)
        assert signed_data_size(data, QUOTE_VERSION_V5) == 48 + 6 + 584

    def test_v5_tdx_1_5(self):
        data = build_header(version=5) + build_v5_body(body_type=3)
        assert signed_data_size(data, QUOTE_VERSION_V5) == 48 + 6 + 648

    def test_v5_ignores_declared_size(self):
        data = build_header(version=5) + build_v5_body(body_type=2, size=0xffff)
        assert signed_data_size(data, QUOTE_VERSION_V5) == 48 + 6 + 584

    def test_unknown_version(self):
        with pytest.raises(UnknownQuoteVersionError):
            signed_data_size(build_header(version=3), 3)

    def test_v5_missing_descriptor(self):
        with pytest.raises(MalformedQuoteError):
            signed_data_size(build_header(version=5), QUOTE_VERSION_V5)


# =============================================================================
# QE Report Parsing Tests
# =============================================================================

def build_qe_report(
    cpu_svn: bytes = b'\x00' * 16,
    misc_select: int = 0,
    attributes: bytes = b'\x00' * 16,
    mr_enclave: bytes = b'\xee' * 32,
    mr_signer: bytes = b'\xff' * 32,
    isv_prod_id: int = 1,
    isv_svn: int = 2,
    report_data: bytes = b'\x00' * 64,
) -> bytes:
    """Build a synthetic QE report (384 bytes)."""
    report = b''
    report += cpu_svn                         # 0x00-0x10
    report += struct.pack('<I', misc_select)  # 0x10-0x14
    report += b'\x00' * 28                    # 0x14-0x30 reserved
    report += attributes                      # 0x30-0x40
    report += mr_enclave                      # 0x40-0x60
    report += b'\x00' * 32                    # 0x60-0x80 reserved
    report += mr_signer                       # 0x80-0xA0
    report += b'\x00' * 96                    # 0xA0-0x100 reserved
    report += struct.pack('<H', isv_prod_id)  # 0x100-0x102
    report += struct.pack('<H', isv_svn)      # 0x102-0x104
    report += b'\x00' * 60                    # 0x104-0x140 reserved
    report += report_data                     # 0x140-0x180
    assert len(report) == QE_REPORT_SIZE
    return report


class TestParseQeReport:
    """Test QE report parsing."""

    def test_parse_valid_qe_report(self):
        report = parse_qe_report(build_qe_report(
            cpu_svn=b'\x01' * 16,
            misc_select=0x12345678,
            report_data=b'\x42' * 64,
        ))

        assert report.cpu_svn == b'\x01' * 16
        assert report.misc_select == 0x12345678
        assert report.mr_enclave == b'\xee' * 32
        assert report.mr_signer == b'\xff' * 32
        assert report.isv_prod_id == 1
        assert report.isv_svn == 2
        assert report.report_data == b'\x42' * 64

    def test_parse_qe_report_too_short(self):
        with pytest.raises(MalformedQuoteError, match="too short"):
            parse_qe_report(b'\x00' * 383)
