"""Tests for the Base45 codec (hcert_verifier.b45).

Covers little-endian group output, the RFC 9285 test vectors through the
``*_rfc9285`` functions, the 16-bit group formula, invalid characters,
out-of-range groups, trailing-group handling and agreement with the
``base45`` reference library.
"""

import os

import base45
import pytest

from hcert_verifier import b45
from hcert_verifier.errors import InputFormatError, InvalidCharacter, InvalidTriple, TruncatedInput


class TestLittleEndianGroups:
    """Default byte order: each group is written low byte first."""

    @pytest.mark.parametrize("text, expected", [
        ("BB8", b"BA"),
        ("%69 VD92EX0", b"eHll!o!"),
        ("UJCLQE7W581", b"abes4-5"),
        ("QED8WEX0", b"eift!"),
        ("", b""),
    ])
    def test_decode(self, text, expected):
        assert b45.decode(text) == expected

    @pytest.mark.parametrize("data, expected", [
        (b"BA", "BB8"),
        (b"eHll!o!", "%69 VD92EX0"),
        (b"eift!", "QED8WEX0"),
    ])
    def test_encode(self, data, expected):
        assert b45.encode(data) == expected

    def test_pairs_swapped_against_rfc_order(self):
        text = "%69 VD92EX0"
        little = b45.decode(text)
        big = b45.decode_rfc9285(text)
        assert little[0::2][:3] == big[1::2][:3]
        assert little[1::2][:3] == big[0::2][:3]
        assert little[-1] == big[-1]

    def test_unknown_byteorder(self):
        with pytest.raises(ValueError):
            b45.decode("BB8", byteorder="middle")
        with pytest.raises(ValueError):
            b45.encode(b"BA", byteorder="middle")


class TestRfcVectors:
    """Test vectors from RFC 9285 section 4.3."""

    @pytest.mark.parametrize("text, expected", [
        ("BB8", b"AB"),
        ("%69 VD92EX0", b"Hello!!"),
        ("UJCLQE7W581", b"base-45"),
        ("QED8WEX0", b"ietf!"),
        ("", b""),
    ])
    def test_decode(self, text, expected):
        assert b45.decode_rfc9285(text) == expected
        assert b45.decode(text, byteorder="big") == expected

    @pytest.mark.parametrize("data, expected", [
        (b"AB", "BB8"),
        (b"Hello!!", "%69 VD92EX0"),
        (b"ietf!", "QED8WEX0"),
    ])
    def test_encode(self, data, expected):
        assert b45.encode_rfc9285(data) == expected


class TestGroups:
    """Test the per-group arithmetic."""

    def test_group_value(self):
        """Every symbol triple maps to c + 45*d + 2025*e as a 16-bit value."""
        alphabet = b45.BASE45_ALPHABET
        for c, d, e in [(0, 0, 0), (44, 0, 0), (0, 44, 0), (9, 20, 31), (15, 15, 32), (44, 44, 31)]:
            value = c + 45 * d + 2025 * e
            decoded = b45.decode(alphabet[c] + alphabet[d] + alphabet[e])
            assert int.from_bytes(decoded, "little") == value

    def test_max_group(self):
        """65535 is the largest value a group may carry."""
        assert b45.decode("FGW") == b"\xff\xff"

    def test_group_over_16_bits(self):
        """GGW encodes 65536 and must be rejected."""
        with pytest.raises(InvalidTriple) as exc_info:
            b45.decode("GGW")
        assert exc_info.value.value == 65536
        assert exc_info.value.index == 0

    def test_group_over_16_bits_later(self):
        with pytest.raises(InvalidTriple) as exc_info:
            b45.decode("BB8:::")
        assert exc_info.value.index == 3


class TestInvalidInput:
    """Characters outside the alphabet."""

    @pytest.mark.parametrize("text, char, index", [
        ("bB8", "b", 0),
        ("BB8BB#", "#", 5),
        ("BB=", "=", 2),
        ("BB\n", "\n", 2),
        ("BBé", "é", 2),
    ])
    def test_invalid_character(self, text, char, index):
        with pytest.raises(InvalidCharacter) as exc_info:
            b45.decode(text)
        assert exc_info.value.char == char
        assert exc_info.value.index == index

    def test_invalid_character_is_input_format_error(self):
        with pytest.raises(InputFormatError):
            b45.decode("hc1")

    def test_invalid_character_reported_before_length(self):
        with pytest.raises(InvalidCharacter):
            b45.decode("BB8a")


class TestTrailingGroup:
    """Trailing group of one or two symbols."""

    def test_single_symbol_is_truncated(self):
        with pytest.raises(TruncatedInput) as exc_info:
            b45.decode("BB8B")
        assert exc_info.value.remainder == 1

    def test_two_symbols_yield_one_byte(self):
        assert b45.decode("BB8X0") == b"BA!"
        assert b45.decode("U5") == bytes([30 + 45 * 5])

    def test_two_symbol_tail_value(self):
        """The tail of "ietf!" is "X0" = 33 + 45*0 = "!"."""
        assert b45.decode("X0") == b"!"

    def test_two_symbol_tail_over_one_byte(self):
        """A tail pair may only carry values up to 255."""
        with pytest.raises(InvalidTriple):
            b45.decode("::")

    def test_two_symbols_rejected_when_tail_disallowed(self):
        with pytest.raises(TruncatedInput) as exc_info:
            b45.decode("QED8WEX0", allow_tail=False)
        assert exc_info.value.remainder == 2

    def test_full_groups_accepted_when_tail_disallowed(self):
        assert b45.decode("BB8", allow_tail=False) == b"BA"


class TestReferenceLibrary:
    """Agreement with the base45 library, which uses RFC 9285 order."""

    @pytest.mark.parametrize("size", [0, 1, 2, 3, 16, 255, 1024])
    @pytest.mark.parametrize("byteorder", b45.BYTEORDERS)
    def test_round_trip(self, size, byteorder):
        data = os.urandom(size)
        assert b45.decode(b45.encode(data, byteorder), byteorder=byteorder) == data

    @pytest.mark.parametrize("size", [2, 7, 64, 513])
    def test_decodes_library_output(self, size):
        data = os.urandom(size)
        encoded = base45.b45encode(data)
        if isinstance(encoded, bytes):
            encoded = encoded.decode("ascii")
        assert b45.decode_rfc9285(encoded) == data
        assert b45.encode_rfc9285(data) == encoded
