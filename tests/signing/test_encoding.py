# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for RFC 3986 percent-encoding."""

from s3gate.signing.encoding import encode_rfc3986, uri_encode


class TestEncodeRfc3986:
    """Tests for encode_rfc3986."""

    def test_reserved_characters_encoded(self) -> None:
        """``! ' ( ) *`` become uppercase %XX."""
        assert encode_rfc3986("!'()*") == "%21%27%28%29%2A"

    def test_existing_escapes_untouched(self) -> None:
        """Already-encoded sequences are not double-encoded."""
        assert encode_rfc3986("a%20b%2F") == "a%20b%2F"

    def test_other_characters_untouched(self) -> None:
        assert encode_rfc3986("abc/def-_.~") == "abc/def-_.~"


class TestUriEncode:
    """Tests for uri_encode."""

    def test_unreserved_chars_not_encoded(self) -> None:
        assert uri_encode("abc123-_.~") == "abc123-_.~"

    def test_space_encoded_as_percent20(self) -> None:
        """Spaces are encoded as %20, not +."""
        assert uri_encode("hello world") == "hello%20world"

    def test_slash_encoded_by_default(self) -> None:
        assert uri_encode("a/b") == "a%2Fb"

    def test_slash_preserved_when_safe(self) -> None:
        assert uri_encode("a/b", safe="/") == "a/b"

    def test_parentheses_and_star(self) -> None:
        assert uri_encode("a(b)*c") == "a%28b%29%2Ac"

    def test_uppercase_hex(self) -> None:
        assert uri_encode("@") == "%40"

    def test_utf8_multibyte(self) -> None:
        assert uri_encode("ä") == "%C3%A4"
