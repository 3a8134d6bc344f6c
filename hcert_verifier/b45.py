"""Base45 codec with strict input validation.

Each group of three symbols carries a 16-bit value, written as a little-endian
byte pair. RFC 9285 (and the ``base45`` library) write the same value most
significant byte first; ``decode_rfc9285`` / ``encode_rfc9285`` use that
order.
"""

from typing import Dict

from .errors import InvalidCharacter, InvalidTriple, TruncatedInput

# Base45 alphabet
BASE45_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ $%*+-./:"

BASE45_VALUES: Dict[str, int] = {char: value for value, char in enumerate(BASE45_ALPHABET)}

LITTLE_ENDIAN = "little"
RFC9285_BYTEORDER = "big"
BYTEORDERS = (LITTLE_ENDIAN, RFC9285_BYTEORDER)


def symbol_value(char: str, index: int) -> int:
    """Map one Base45 symbol to its integer value."""
    try:
        return BASE45_VALUES[char]
    except KeyError:
        raise InvalidCharacter(char, index) from None


def _check_byteorder(byteorder: str) -> None:
    if byteorder not in BYTEORDERS:
        raise ValueError(f"byteorder must be one of {BYTEORDERS}, got {byteorder!r}")


def decode(text: str, allow_tail: bool = True, byteorder: str = LITTLE_ENDIAN) -> bytes:
    """Decode Base45 text into bytes.

    Three symbols ``c d e`` carry the 16-bit value ``c + 45*d + 2025*e``,
    emitted as a little-endian byte pair unless ``byteorder`` says otherwise.
    A trailing pair of symbols carries a single byte; with
    ``allow_tail=False`` such a pair is rejected as truncated input. A single
    trailing symbol is always rejected.
    """
    _check_byteorder(byteorder)
    length = len(text)
    remainder = length % 3
    if remainder == 1 or (remainder == 2 and not allow_tail):
        # Report a bad character before the length problem.
        for i, char in enumerate(text):
            symbol_value(char, i)
        raise TruncatedInput(length, remainder)

    out = bytearray(length * 2 // 3 + 1)
    pos = 0
    full = length - remainder

    for i in range(0, full, 3):
        value = (symbol_value(text[i], i)
                 + 45 * symbol_value(text[i + 1], i + 1)
                 + 2025 * symbol_value(text[i + 2], i + 2))
        if value > 0xFFFF:
            raise InvalidTriple(value, i)
        out[pos:pos + 2] = value.to_bytes(2, byteorder)
        pos += 2

    if remainder == 2:
        value = symbol_value(text[full], full) + 45 * symbol_value(text[full + 1], full + 1)
        if value > 0xFF:
            raise InvalidTriple(value, full)
        out[pos] = value
        pos += 1

    return bytes(out[:pos])


def encode(data: bytes, byteorder: str = LITTLE_ENDIAN) -> str:
    """Encode bytes as Base45 text; the inverse of ``decode``."""
    _check_byteorder(byteorder)
    chars = []
    for i in range(0, len(data) - 1, 2):
        value = int.from_bytes(data[i:i + 2], byteorder)
        value, c = divmod(value, 45)
        e, d = divmod(value, 45)
        chars.append(BASE45_ALPHABET[c] + BASE45_ALPHABET[d] + BASE45_ALPHABET[e])
    if len(data) % 2:
        d, c = divmod(data[-1], 45)
        chars.append(BASE45_ALPHABET[c] + BASE45_ALPHABET[d])
    return "".join(chars)


def decode_rfc9285(text: str) -> bytes:
    """Decode with the RFC 9285 byte order used by published HC1 tokens."""
    return decode(text, byteorder=RFC9285_BYTEORDER)


def encode_rfc9285(data: bytes) -> str:
    return encode(data, byteorder=RFC9285_BYTEORDER)
