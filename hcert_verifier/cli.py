"""Command line entry point: decode and verify one HC1 token."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import b45, config
from .errors import HCertError
from .pipeline import TrustStatus, process_token
from .reference import load_reference_data
from .render import certificate_to_json, render_text

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DECODE_ERROR = 1
EXIT_VERIFICATION_FAILED = 2
EXIT_UNTRUSTED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Decode and verify an HC1 health certificate')
    parser.add_argument('file', nargs='?', default='-', help='File containing the HC1 string, or - for stdin')
    parser.add_argument('--json', action='store_true', help='Print the certificate as JSON')
    parser.add_argument('--trust-list', default=config.TRUST_LIST, help='Trust list JSON file or URL')
    parser.add_argument('--valuesets', default=config.VALUESETS_DIR, help='Directory with eHN value set files')
    parser.add_argument('--base45-byteorder', choices=b45.BYTEORDERS, default=config.BASE45_BYTEORDER,
                        help='Byte order of Base45 groups; "big" is RFC 9285')
    parser.add_argument('--require-trusted', action='store_true',
                        help='Exit non-zero when no trusted signer matches the key id')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser


def read_token(path: str) -> str:
    if path == '-':
        return sys.stdin.readline()
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config.configure_logging('DEBUG' if args.verbose else None)

    reference = load_reference_data(args.trust_list, args.valuesets)

    try:
        token = read_token(args.file)
        report = process_token(token, reference, args.base45_byteorder)
    except OSError as e:
        print(f"error: cannot read {args.file}: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except HCertError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR

    if report.record is not None:
        if args.json:
            print(json.dumps(certificate_to_json(report.record.health_claim.certificate), ensure_ascii=False))
        else:
            print(render_text(report.record))
    else:
        print(f"error: {report.decode_error}", file=sys.stderr)

    trust = report.trust
    if trust.status is TrustStatus.TRUSTED:
        print(f"Verified OK (kid={trust.key_id.hex()}, country={trust.signer.country})", file=sys.stderr)
    else:
        print(f"{trust.status.value}: {trust.detail}", file=sys.stderr)

    if report.decode_error is not None:
        return EXIT_DECODE_ERROR
    if trust.status in (TrustStatus.SIGNATURE_INVALID, TrustStatus.UNSUPPORTED_ALGORITHM):
        return EXIT_VERIFICATION_FAILED
    if trust.status is TrustStatus.UNTRUSTED and args.require_trusted:
        return EXIT_UNTRUSTED
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
