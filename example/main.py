import argparse
import logging
import sys

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from tdx_quote import ParseOptions, Quote, QuoteError


def load_pck(path):
    """Load a PCK public key from a PEM certificate or PEM public key."""
    with open(path, 'rb') as f:
        pem = f.read()
    if b'BEGIN CERTIFICATE' in pem:
        return x509.load_pem_x509_certificate(pem).public_key()
    return serialization.load_pem_public_key(pem)


def main():
    parser = argparse.ArgumentParser(description='Decode and verify a TDX quote')
    parser.add_argument('quote', help='Path to the raw quote file')
    parser.add_argument('--pck',
                        help='PEM certificate or public key of a trusted PCK')
    parser.add_argument('--strict', action='store_true',
                        help='Enforce length fields and QE report padding')
    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        format='%(message)s',
        level=logging.INFO
    )

    try:
        with open(args.quote, 'rb') as f:
            raw_quote = f.read()
    except OSError as e:
        logging.error(f"Error reading quote: {e}")
        sys.exit(1)

    options = ParseOptions.strict() if args.strict else ParseOptions()

    logging.info(f"Decoding {len(raw_quote)} byte quote from {args.quote}")
    try:
        quote = Quote.from_bytes(raw_quote, options)
    except QuoteError as e:
        logging.error(f"Error decoding quote: {e}")
        sys.exit(1)

    print(quote)

    if args.pck:
        logging.info(f"Verifying QE report signature with {args.pck}")
        try:
            quote.verify_with_pck(load_pck(args.pck))
        except (OSError, ValueError) as e:
            logging.error(f"Error loading PCK: {e}")
            sys.exit(1)
        except QuoteError as e:
            logging.error(f"Error verifying QE report: {e}")
            sys.exit(1)

    logging.info("Verification successful!")
    logging.info(f"MRTD: {quote.mrtd().hex()}")
    logging.info(f"Report data: {quote.report_input_data().hex()}")


if __name__ == "__main__":
    main()
