"""
Tests for the raw-stream transport: request serialization and the
response parser state machine
"""

import dataclasses
import itertools

import pytest

from oci_signing_sdk.signing import RequestSigner, RequestDescriptor, HeaderField, verify_signature
from oci_signing_sdk.transport import (
    RawStreamTransport,
    ResponseParser,
    serialize_request,
    parse_response,
)
from oci_signing_sdk.transport.raw import ParserState, parse_status_line, MAX_LINE_LENGTH
from oci_signing_sdk.exceptions import ConfigError, TransportError, ErrorCodes

from conftest import FIXED_TIME, FIXED_DATE, FakeStream, FakeConnector

HOST = "objectstorage.us-phoenix-1.oraclecloud.com"

OK_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"opc-request-id: abc123\r\n"
    b"Content-Type: application/json\r\n"
    b"\r\n"
    b'{"ok":true}'
)


def split_message(payload: bytes):
    """Split serialized bytes into request line, header pairs and body."""
    head, _, body = payload.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = [tuple(line.split(": ", 1)) for line in lines[1:]]
    return lines[0], headers, body


class TestSerializeRequest:
    """Test request serialization"""

    def setup_method(self):
        self.requests = [
            RequestDescriptor(host=HOST, path="/n/", method="GET"),
            RequestDescriptor(
                host=HOST,
                path="/n/ns/b/",
                method="POST",
                body='{"name": "b1"}',
                headers={"opc-retry-token": "token-1"}
            ),
        ]

    def test_get_serialization(self, identity):
        request = self.requests[0]
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        request_line, headers, body = split_message(serialize_request(request, result))

        assert request_line == f"GET https://{HOST}/n/ HTTP/1.1"
        assert headers == [
            ("date", FIXED_DATE),
            ("Authorization", result.authorization),
            ("host", HOST),
            ("content-type", "application/json"),
            ("content-length", "0"),
            ("Connection", "close"),
        ]
        assert body == b""

    def test_post_serialization(self, identity):
        request = self.requests[1]
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        request_line, headers, body = split_message(serialize_request(request, result))

        assert request_line == f"POST https://{HOST}/n/ns/b/ HTTP/1.1"
        assert [name for name, _ in headers] == [
            "date", "Authorization", "host", "x-content-sha256",
            "opc-retry-token", "content-type", "content-length", "Connection",
        ]
        assert dict(headers)["x-content-sha256"] == result.content_sha256
        assert dict(headers)["content-length"] == str(len(body))
        assert body == b'{"name": "b1"}'

    def test_large_body_serialized_intact(self, identity, public_key_pem):
        """Test a body of about 1 MB is written in full with a valid signature"""
        body = bytes(i % 251 for i in range(1024 * 1024))
        request = RequestDescriptor(host=HOST, path="/n/ns/b/bkt/o/blob", method="PUT", body=body,
                                    content_type="application/octet-stream")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        _, headers, sent_body = split_message(serialize_request(request, result))

        assert sent_body == body
        assert dict(headers)["content-length"] == str(len(body))
        assert verify_signature(public_key_pem, result.signing_string, result.signature)

    def test_header_injection_rejected(self, identity):
        request = RequestDescriptor(host=HOST, path="/")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)
        tampered = dataclasses.replace(result, authorization=result.authorization + "\r\nX-Evil: 1")

        with pytest.raises(ConfigError):
            serialize_request(request, tampered)

    def test_non_latin1_header_rejected(self, identity):
        request = RequestDescriptor(host=HOST, path="/", headers={"x-name": "日本"})
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        with pytest.raises(ConfigError) as exc_info:
            serialize_request(request, result)
        assert exc_info.value.error_code == ErrorCodes.INVALID_HEADER

    def test_user_header_cannot_replace_transport_header(self, identity):
        request = RequestDescriptor(host=HOST, path="/", method="POST", body="{}")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)
        request.headers = (HeaderField("Content-Length", "999"),)

        with pytest.raises(ConfigError) as exc_info:
            serialize_request(request, result)
        assert exc_info.value.error_code == ErrorCodes.INVALID_HEADER


class TestStatusLine:
    """Test status line parsing"""

    def test_valid(self):
        assert parse_status_line("HTTP/1.1 200 OK") == 200
        assert parse_status_line("HTTP/1.0 404 Not Found") == 404
        assert parse_status_line("HTTP/1.1 503") == 503

    def test_malformed(self):
        for line in ("GARBAGE", "", "HTTP/1.1", "HTTP/1.1 20 OK", "HTTP/1.1 abc OK", "FTP/1.1 200 OK"):
            with pytest.raises(TransportError) as exc_info:
                parse_status_line(line)
            assert exc_info.value.error_code == ErrorCodes.MALFORMED_STATUS_LINE


class TestResponseParser:
    """Test the response state machine"""

    def test_parse_basic_response(self):
        response = parse_response(FakeStream(OK_RESPONSE), ["opc-request-id"])

        assert response.status_code == 200
        assert response.headers == {"opc-request-id": "abc123"}
        assert response.body == '{"ok":true}'

    def test_parser_reaches_done(self):
        parser = ResponseParser(["opc-request-id"])
        assert parser.state is ParserState.AWAIT_STATUS_LINE
        parser.parse(FakeStream(OK_RESPONSE))
        assert parser.state is ParserState.DONE

    def test_header_capture_is_case_sensitive(self):
        response = parse_response(FakeStream(OK_RESPONSE), ["Opc-Request-Id", "content-type"])
        assert response.headers == {}

    def test_unrequested_headers_ignored(self):
        response = parse_response(FakeStream(OK_RESPONSE), [])
        assert response.headers == {}
        assert response.body == '{"ok":true}'

    def test_first_occurrence_wins_and_single_space_trimmed(self):
        raw = (
            b"HTTP/1.1 200 OK\r\n"
            b"etag:  spaced\r\n"
            b"etag: second\r\n"
            b"x-bare:nospace\r\n"
            b"\r\n"
        )
        response = parse_response(FakeStream(raw), ["etag", "x-bare"])
        assert response.headers == {"etag": " spaced", "x-bare": "nospace"}

    def test_malformed_header_lines_skipped(self):
        raw = b"HTTP/1.1 200 OK\r\nnot a header\r\nopc-request-id: r1\r\n\r\nbody"
        response = parse_response(FakeStream(raw), ["opc-request-id"])
        assert response.headers == {"opc-request-id": "r1"}
        assert response.body == "body"

    def test_garbage_status_line(self):
        with pytest.raises(TransportError) as exc_info:
            parse_response(FakeStream(b"GARBAGE"), ["opc-request-id"])
        assert exc_info.value.error_code == ErrorCodes.MALFORMED_STATUS_LINE

    def test_empty_stream(self):
        with pytest.raises(TransportError) as exc_info:
            parse_response(FakeStream(b""))
        assert exc_info.value.error_code == ErrorCodes.UNEXPECTED_EOF

    def test_eof_during_headers(self):
        with pytest.raises(TransportError) as exc_info:
            parse_response(FakeStream(b"HTTP/1.1 200 OK\r\nopc-request-id: x\r\n"))
        assert exc_info.value.error_code == ErrorCodes.UNEXPECTED_EOF

    def test_error_status_is_returned(self):
        raw = b'HTTP/1.1 404 Not Found\r\nopc-request-id: r404\r\n\r\n{"code":"NotAuthorizedOrNotFound"}'
        response = parse_response(FakeStream(raw), ["opc-request-id"])

        assert response.status_code == 404
        assert not response.ok
        assert "NotAuthorizedOrNotFound" in response.body

    def test_body_not_truncated(self):
        body = b"x" * 500000
        raw = b"HTTP/1.1 200 OK\r\n\r\n" + body
        response = parse_response(FakeStream(raw, chunk_size=4096))
        assert len(response.body) == len(body)

    def test_invalid_utf8_body_replaced(self):
        response = parse_response(FakeStream(b"HTTP/1.1 200 OK\r\n\r\n\xff\xfeok"))
        assert response.body.endswith("ok")
        assert "\ufffd" in response.body

    def test_timeout_before_status_line(self):
        with pytest.raises(TransportError) as exc_info:
            parse_response(FakeStream(OK_RESPONSE, timeout_after_bytes=0))
        assert exc_info.value.error_code == ErrorCodes.READ_TIMEOUT

    def test_timeout_during_body_keeps_partial_body(self):
        """Test a read timeout after the headers ends the body"""
        head = b"HTTP/1.1 200 OK\r\nopc-request-id: abc\r\n\r\n"
        stream = FakeStream(head + b"partial-body-and-more", chunk_size=8,
                            timeout_after_bytes=len(head) + 8)

        response = parse_response(stream, ["opc-request-id"])

        assert response.status_code == 200
        assert response.headers == {"opc-request-id": "abc"}
        assert response.body == "partial-"

    def test_deadline_before_headers_complete(self):
        ticks = itertools.count(0, 10)
        parser = ResponseParser(read_timeout=15, monotonic=lambda: next(ticks))

        with pytest.raises(TransportError) as exc_info:
            parser.parse(FakeStream(OK_RESPONSE))
        assert exc_info.value.error_code == ErrorCodes.READ_TIMEOUT

    def test_overlong_line_rejected(self):
        raw = b"HTTP/1.1 200 OK\r\nx-big: " + b"a" * (MAX_LINE_LENGTH + 1) + b"\r\n\r\n"
        with pytest.raises(TransportError):
            parse_response(FakeStream(raw))


class TestRawStreamTransport:
    """Test the transport end to end over a fake stream"""

    def test_send(self, identity):
        stream = FakeStream(OK_RESPONSE)
        connector = FakeConnector(stream)
        transport = RawStreamTransport(connector=connector, connect_timeout=3, read_timeout=5)
        request = RequestDescriptor(host=HOST, path="/n/", trust_anchor="PEM")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        response = transport.send(request, result, ["opc-request-id"])

        assert response.status_code == 200
        assert response.headers == {"opc-request-id": "abc123"}
        assert bytes(stream.written) == serialize_request(request, result)
        assert connector.calls == [(HOST, 443, "PEM", 3, True)]
        assert stream.closed

    def test_plain_http_skips_tls(self, identity):
        connector = FakeConnector(FakeStream(OK_RESPONSE))
        transport = RawStreamTransport(connector=connector)
        request = RequestDescriptor(host="localhost", path="/", scheme="http", port=8080)
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        transport.send(request, result)

        assert connector.calls[0][1] == 8080
        assert connector.calls[0][4] is False

    def test_stream_closed_on_parse_error(self, identity):
        stream = FakeStream(b"GARBAGE")
        transport = RawStreamTransport(connector=FakeConnector(stream))
        request = RequestDescriptor(host=HOST, path="/")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        with pytest.raises(TransportError):
            transport.send(request, result)
        assert stream.closed

    def test_connect_failure_propagates(self, identity):
        error = TransportError("Connection refused", ErrorCodes.CONNECTION_FAILED)
        transport = RawStreamTransport(connector=FakeConnector(error=error))
        request = RequestDescriptor(host=HOST, path="/")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        with pytest.raises(TransportError) as exc_info:
            transport.send(request, result)
        assert exc_info.value.error_code == ErrorCodes.CONNECTION_FAILED

    def test_write_failure(self, identity):
        class BrokenStream(FakeStream):
            def write(self, data):
                raise BrokenPipeError("broken pipe")

        stream = BrokenStream()
        transport = RawStreamTransport(connector=FakeConnector(stream))
        request = RequestDescriptor(host=HOST, path="/")
        result = RequestSigner(identity).sign_request(request, timestamp=FIXED_TIME)

        with pytest.raises(TransportError) as exc_info:
            transport.send(request, result)
        assert exc_info.value.error_code == ErrorCodes.CONNECTION_FAILED
        assert stream.closed
