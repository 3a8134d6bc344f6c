"""Exception hierarchy for the HC1 decode and verification pipeline.

Every exception carries a stable ``code`` which the HTTP service uses as the
``error`` field of its JSON responses.
"""

from typing import Optional


class HCertError(Exception):
    """Base class for all pipeline errors."""

    code = "hcert_error"


# -------- Input format errors (fatal for the token) --------

class InputFormatError(HCertError):
    code = "invalid_format"


class InvalidPrefix(InputFormatError):
    code = "invalid_prefix"

    def __init__(self, prefix: str, received: str):
        self.prefix = prefix
        self.received = received
        super().__init__(f"Data must start with {prefix} (got {received!r})")


class InvalidCharacter(InputFormatError):
    code = "base45_decode_failed"

    def __init__(self, char: str, index: int):
        self.char = char
        self.index = index
        super().__init__(f"Invalid Base45 character {char!r} (U+{ord(char):04X}) at index {index}")


class InvalidTriple(InputFormatError):
    code = "base45_decode_failed"

    def __init__(self, value: int, index: int):
        self.value = value
        self.index = index
        super().__init__(f"Base45 group at index {index} encodes {value}, which is out of range")


class TruncatedInput(InputFormatError):
    code = "base45_decode_failed"

    def __init__(self, length: int, remainder: int):
        self.length = length
        self.remainder = remainder
        super().__init__(f"Base45 input of length {length} leaves a trailing group of {remainder} symbol(s)")


class DecompressionError(InputFormatError):
    code = "zlib_decompress_failed"


class MalformedEnvelope(InputFormatError):
    code = "cose_decode_failed"


# -------- Payload decode errors --------

class DecodeError(HCertError):
    code = "payload_decode_failed"


class MissingField(DecodeError):
    code = "missing_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class MalformedField(DecodeError):
    code = "malformed_field"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Malformed field {field}: {reason}")


# -------- Trust and verification --------

class TrustError(HCertError):
    code = "untrusted"


class SignerNotFound(TrustError):
    code = "signer_not_found"

    def __init__(self, key_id: bytes):
        self.key_id = key_id
        super().__init__(f"No trusted signer with key id {key_id.hex()}")


class VerificationError(HCertError):
    code = "verification_failed"


class UnsupportedAlgorithm(VerificationError):
    code = "unsupported_algorithm"

    def __init__(self, message: str, oid: Optional[str] = None, parameter: Optional[str] = None):
        self.oid = oid
        self.parameter = parameter
        super().__init__(message)


class SignatureInvalid(VerificationError):
    code = "signature_invalid"
