#!/usr/bin/env python3
"""
HCERT Decoder & Signature Verifier Service
Implements a REST API for decoding HC1 strings and verifying their COSE
signatures against a locally loaded trust list.
"""

import argparse
import logging
import platform
import re
import sys
import unicodedata
from importlib import metadata
from typing import Dict, List, Optional, Tuple

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from . import b45, config
from .errors import HCertError
from .pipeline import PREFIX, TrustStatus, load_envelope, process_token, verify_envelope
from .reference import ReferenceData, load_reference_data
from .render import bytes_to_json_safe, record_to_dict, trust_to_dict

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

HIDDEN_CHARS = [
    '\u00A0', '\u200B', '\u200C', '\u200D', '\uFEFF', '\u2060',
]

# -------- Utility functions --------

def get_library_versions() -> Dict[str, str]:
    """Get versions of key libraries."""
    versions = {}
    for dist in ('flask', 'flask-cors', 'cbor2', 'cryptography', 'requests'):
        try:
            versions[dist] = metadata.version(dist)
        except metadata.PackageNotFoundError:
            versions[dist] = 'unknown'
    return versions


def normalize_text(text: str) -> Tuple[str, List[Dict]]:
    """Normalize scanner text; returns the clean text and removed characters."""
    text = unicodedata.normalize('NFKC', text)
    removed_chars = []

    for char in HIDDEN_CHARS:
        if char in text:
            removed_chars.append({
                'char': f'U+{ord(char):04X}',
                'name': unicodedata.name(char, 'UNKNOWN')
            })
            text = text.replace(char, '')

    text_clean = re.sub(r'[\r\n\t]+', '', text)
    return text_clean, removed_chars


def get_byteorder() -> str:
    return current_app.config.get('HCERT_BASE45_BYTEORDER', config.BASE45_BYTEORDER)


def get_reference() -> ReferenceData:
    if 'HCERT_REFERENCE' not in current_app.config:
        current_app.config['HCERT_REFERENCE'] = load_reference_data()
    return current_app.config['HCERT_REFERENCE']


def error_response(e: HCertError, status: int = 400):
    return jsonify({'error': e.code, 'details': str(e)}), status


def read_qr_data() -> Tuple[Optional[str], List[Dict]]:
    data = request.get_json(silent=True) or {}
    qr_data = data.get('qr_data')
    if not isinstance(qr_data, str):
        return None, []
    logger.info(f"[hcert] Raw input length={len(qr_data)}")
    return normalize_text(qr_data)

# -------- API Endpoints --------

@app.route('/status', methods=['GET'])
@app.route('/health', methods=['GET'])
def status():
    """Service status endpoint."""
    reference = get_reference()
    return jsonify({
        'service': config.SERVICE_NAME,
        'version': config.SERVICE_VERSION,
        'ready': True,
        'trusted_signers': len(reference.trust_store),
        'python': sys.version.split()[0],
        'platform': platform.platform(),
        'libraries': get_library_versions()
    })


@app.route('/decode/hcert', methods=['POST'])
def decode_hcert():
    """Decode an HC1 string into its COSE headers, record and trust result."""
    qr_data, norm_chars = read_qr_data()
    if qr_data is None:
        return jsonify({'error': 'missing_qr_data', 'details': 'qr_data field required'}), 400

    if qr_data.startswith('<!DOCTYPE html') or qr_data.startswith('<html'):
        return jsonify({
            'error': 'html_received_instead_of_hc1',
            'details': f'Server received HTML, not an {PREFIX} string.'
        }), 400

    try:
        report = process_token(qr_data, get_reference(), get_byteorder())
    except HCertError as e:
        logger.warning(f"[hcert] Decode failed: {e}")
        return error_response(e)

    envelope = report.envelope
    response = {
        'cose': {
            'protected': bytes_to_json_safe(envelope.protected),
            'unprotected': bytes_to_json_safe(envelope.unprotected),
            'kid_b64': bytes_to_json_safe(envelope.key_id)['_b64'],
            'kid_hex': envelope.key_id.hex(),
            'signature': bytes_to_json_safe(envelope.signature)['_b64'],
        },
        'certificate': record_to_dict(report.record) if report.record else None,
        'decode_error': None,
        'trust': trust_to_dict(report.trust),
    }
    if report.decode_error is not None:
        response['decode_error'] = {'error': report.decode_error.code, 'details': str(report.decode_error)}
    if norm_chars:
        response['normalization_note'] = f"Removed {len(norm_chars)} hidden characters"
        response['removed_chars'] = norm_chars

    data = request.get_json(silent=True) or {}
    if data.get('include_raw', False):
        response['cose']['_raw'] = {
            'protected_bstr': bytes_to_json_safe(envelope.protected_header),
            'payload_bstr': bytes_to_json_safe(envelope.payload),
            'signature': bytes_to_json_safe(envelope.signature),
        }

    return jsonify(response)


@app.route('/verify/signature', methods=['POST'])
def verify_signature():
    """Verify the COSE signature of an HC1 string against the trust list."""
    qr_data, _ = read_qr_data()
    if qr_data is None:
        return jsonify({'error': 'missing_qr_data', 'details': 'qr_data field required'}), 400

    try:
        envelope = load_envelope(qr_data, get_byteorder())
    except HCertError as e:
        logger.warning(f"[verify] Could not load envelope: {e}")
        return error_response(e)

    trust = verify_envelope(envelope, get_reference().trust_store)
    body = trust_to_dict(trust)
    if trust.status is TrustStatus.TRUSTED:
        return jsonify(body)
    return jsonify(body), 400


@app.route('/trustlist', methods=['GET'])
def trustlist():
    """List the loaded trusted signers."""
    signers = [{
        'kid_b64': signer.kid_b64,
        'country': signer.country,
        'certificate_type': signer.certificate_type,
        'thumbprint': signer.thumbprint,
        'timestamp': signer.timestamp,
    } for signer in get_reference().trust_store]
    return jsonify({'count': len(signers), 'signers': signers})


@app.errorhandler(404)
def not_found(e):
    """Handle 404 errors."""
    return jsonify({'error': 'not_found', 'details': 'Endpoint not found'}), 404


@app.errorhandler(500)
def internal_error(e):
    """Handle 500 errors."""
    logger.exception("Internal server error")
    return jsonify({'error': 'internal_error', 'details': str(e)}), 500


def create_app(reference: Optional[ReferenceData] = None,
               byteorder: str = config.BASE45_BYTEORDER) -> Flask:
    """Attach reference data to the app, loading it from config when not given."""
    app.config['HCERT_BASE45_BYTEORDER'] = byteorder
    app.config['HCERT_REFERENCE'] = reference if reference is not None else load_reference_data()
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description='HCERT Decoder & Signature Verifier Service')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    parser.add_argument('--port', type=int, default=8080, help='Port to bind to')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--trust-list', default=config.TRUST_LIST, help='Trust list JSON file or URL')
    parser.add_argument('--valuesets', default=config.VALUESETS_DIR, help='Directory with eHN value set files')
    parser.add_argument('--base45-byteorder', choices=b45.BYTEORDERS, default=config.BASE45_BYTEORDER,
                        help='Byte order of Base45 groups; "big" is RFC 9285')
    args = parser.parse_args()

    config.configure_logging('DEBUG' if args.debug else None)
    create_app(load_reference_data(args.trust_list, args.valuesets), args.base45_byteorder)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == '__main__':
    main()
