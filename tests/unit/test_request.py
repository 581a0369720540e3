"""
Unit tests for HTTP request parsing.
"""

import pytest

from homepage.http.request import HTTPRequest, RequestParser, HTTPParseError


@pytest.fixture
def parser() -> RequestParser:
    return RequestParser()


@pytest.fixture
def sample_get_request() -> bytes:
    return (
        b"GET /about?lang=en HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip, br\r\n"
        b"If-None-Match: a7\r\n"
        b"\r\n"
    )


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, parser, sample_get_request: bytes):
        """Request line fields and client address are kept."""
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_target_is_kept_verbatim(self, parser, sample_get_request: bytes):
        """The raw target, query included, is what pages are keyed by."""
        request = parser.parse(sample_get_request)

        assert request.target == "/about?lang=en"

    def test_percent_encoding_not_decoded_in_target(self, parser):
        request = parser.parse(b"GET /a%20b HTTP/1.1\r\n\r\n")

        assert request.target == "/a%20b"

    def test_utf8_target_is_decoded(self, parser):
        request = parser.parse("GET /über HTTP/1.1\r\n\r\n".encode("utf-8"))

        assert request.target == "/über"
        assert len(request.target) == 5

    def test_invalid_utf8_target(self, parser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET /\xff\xfe HTTP/1.1\r\n\r\n")

    def test_headers_stay_latin1(self, parser):
        request = parser.parse(b"GET / HTTP/1.1\r\nUser-Agent: caf\xe9\r\n\r\n")

        assert request.user_agent == "café"

    def test_parse_headers(self, parser, sample_get_request: bytes):
        request = parser.parse(sample_get_request)

        assert request.user_agent == "pytest"
        assert request.accept_encoding == "gzip, br"
        assert request.if_none_match == "a7"
        assert request.headers["host"] == "localhost:8080"

    def test_absent_headers_are_none(self, parser):
        request = parser.parse(b"GET / HTTP/1.1\r\n\r\n")

        assert request.if_none_match is None
        assert request.accept_encoding is None
        assert len(request.headers) == 0

    def test_any_method_token_is_accepted(self, parser):
        """Rejecting methods is the pipeline's job, not the parser's."""
        for method in (b"DELETE", b"POST", b"BREW"):
            request = parser.parse(method + b" / HTTP/1.1\r\n\r\n")
            assert request.method == method.decode()

    def test_long_target_is_accepted(self, parser):
        target = "/" + "x" * 200
        request = parser.parse(f"GET {target} HTTP/1.1\r\n\r\n".encode())

        assert request.target == target

    def test_dot_segments_are_not_rejected(self, parser):
        request = parser.parse(b"GET /../../etc/passwd HTTP/1.1\r\n\r\n")

        assert request.target == "/../../etc/passwd"

    def test_parse_invalid_request_line(self, parser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET\r\nHost: test\r\n\r\n")

    def test_parse_garbage(self, parser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GARBAGE\r\n\r\n")

    def test_missing_header_terminator(self, parser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_unsupported_version(self, parser):
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(b"GET / HTTP/2.0\r\n\r\n")

        assert "version" in str(exc_info.value).lower()

    def test_invalid_header_line(self, parser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET / HTTP/1.1\r\nno colon here\r\n\r\n")

    def test_parse_request_too_large(self):
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert "too large" in str(exc_info.value).lower()

    def test_body_is_content_length_framed(self, parser):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest body"

        request = parser.parse(raw)
        assert request.body == b"test body"

    def test_incomplete_body(self, parser):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"

        with pytest.raises(HTTPParseError):
            parser.parse(raw)

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, parser, value: bytes):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parser.parse(raw)

    def test_case_insensitive_headers(self, parser):
        raw = b"GET / HTTP/1.1\r\nACCEPT-ENCODING: gzip\r\n\r\n"
        request = parser.parse(raw)

        assert request.accept_encoding == "gzip"
        assert request.headers["accept-encoding"] == "gzip"

    def test_repeated_headers_are_joined(self, parser):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Connection: keep-alive\r\n"
            b"Connection: Upgrade\r\n"
            b"\r\n"
        )
        request = parser.parse(raw)

        assert request.headers["connection"] == "keep-alive, Upgrade"

    @pytest.mark.parametrize("name, attr", [
        (b"If-None-Match", "if_none_match"),
        (b"Accept-Encoding", "accept_encoding"),
    ])
    def test_first_value_wins(self, parser, name: bytes, attr: str):
        raw = (
            b"GET / HTTP/1.1\r\n"
            + name + b": v1\r\n"
            + name + b": v2\r\n"
            b"\r\n"
        )
        request = parser.parse(raw)

        assert getattr(request, attr) == "v1"


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_version_info(self):
        assert HTTPRequest("GET", "/", version="HTTP/1.0").version_info == (1, 0)
        assert HTTPRequest("GET", "/", version="HTTP/1.1").version_info == (1, 1)

    def test_http11_keep_alive_by_default(self):
        request = HTTPRequest("GET", "/", version="HTTP/1.1")
        assert request.is_keep_alive is True

    def test_http11_close(self):
        request = HTTPRequest("GET", "/", headers={"connection": "Close"})
        assert request.is_keep_alive is False

    def test_http10_close_by_default(self):
        request = HTTPRequest("GET", "/", version="HTTP/1.0")
        assert request.is_keep_alive is False

    def test_http10_keep_alive(self):
        request = HTTPRequest(
            "GET", "/", version="HTTP/1.0", headers={"connection": "Keep-Alive"}
        )
        assert request.is_keep_alive is True

    def test_connection_tokens(self):
        request = HTTPRequest("GET", "/", headers={"connection": "keep-alive, Upgrade"})
        assert request.connection_tokens == {"keep-alive", "upgrade"}
