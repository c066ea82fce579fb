"""
Tests for QE report signature verification with a platform certification key.
"""

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from tdx_quote import (
    BadSignatureError,
    NoQeReportCertificationDataError,
    Quote,
    QuoteVerificationError,
)
from tdx_quote.mock import mock_quote


@pytest.fixture(scope="module")
def attestation_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def pck():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="module")
def quote(attestation_key, pck):
    return Quote.from_bytes(mock_quote(attestation_key, pck, report_data=b'\x01' * 64))


class TestVerifyWithPck:
    """verify_with_pck only accepts the key that signed the QE report."""

    def test_signing_pck_verifies(self, quote, pck):
        assert quote.verify_with_pck(pck.public_key()) is None

    def test_verification_is_repeatable(self, quote, pck):
        quote.verify_with_pck(pck.public_key())
        quote.verify_with_pck(pck.public_key())

    def test_other_key_fails(self, quote):
        other = ec.generate_private_key(ec.SECP256R1())
        with pytest.raises(BadSignatureError):
            quote.verify_with_pck(other.public_key())

    def test_attestation_key_is_not_the_pck(self, quote, attestation_key):
        with pytest.raises(BadSignatureError):
            quote.verify_with_pck(attestation_key.public_key())

    def test_other_curve_fails(self, quote):
        other = ec.generate_private_key(ec.SECP384R1())
        with pytest.raises(BadSignatureError):
            quote.verify_with_pck(other.public_key())

    def test_non_ec_key_fails(self, quote):
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(BadSignatureError):
            quote.verify_with_pck(other.public_key())

    def test_pck_defaults_to_attestation_key_in_mock(self, attestation_key):
        quote = Quote.from_bytes(mock_quote(attestation_key))
        quote.verify_with_pck(attestation_key.public_key())

    @pytest.mark.parametrize("data_type", [1, 2, 3, 4, 5, 7])
    def test_no_qe_report_certification_data(self, attestation_key, pck, data_type):
        quote = Quote.from_bytes(mock_quote(
            attestation_key, certification_data_type=data_type, certification_data=b'data',
        ))
        with pytest.raises(NoQeReportCertificationDataError):
            quote.verify_with_pck(pck.public_key())

    def test_errors_share_a_base_class(self, quote):
        other = ec.generate_private_key(ec.SECP256R1())
        with pytest.raises(QuoteVerificationError):
            quote.verify_with_pck(other.public_key())
