"""
Raw-stream transport

Writes the HTTP/1.1 request by hand onto a byte stream and parses the reply
with a small state machine: status line, headers, body. Used where no HTTP
client library should sit between the signer and the socket.
"""

import enum
import socket
import ssl
import time
import logging
from contextlib import closing
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from ..exceptions import ConfigError, TransportError, ErrorCodes
from ..signing.types import RequestDescriptor, ResponseDescriptor, SigningResult
from .base import Transport, build_request_headers

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 30.0

MAX_LINE_LENGTH = 64 * 1024
MAX_HEADER_SECTION_LENGTH = 256 * 1024
READ_CHUNK_SIZE = 16 * 1024


class Stream(Protocol):
    """
    Byte stream to a server.

    ``read_line`` returns one line including its terminator and
    ``read_available`` returns whatever bytes are ready; both return ``b""``
    once the peer has closed the connection and raise ``TimeoutError`` when
    no data arrives in time.
    """

    def write(self, data: bytes) -> None: ...

    def read_line(self) -> bytes: ...

    def read_available(self) -> bytes: ...

    def close(self) -> None: ...


class Connector(Protocol):
    """Opens streams to servers"""

    def connect(self, host: str, port: int, trust_anchor: Optional[str],
                timeout: float, use_tls: bool = True) -> Stream: ...


class SocketStream:
    """Stream over a (TLS) socket"""

    def __init__(self, sock: socket.socket, read_timeout: float = DEFAULT_READ_TIMEOUT):
        self.sock = sock
        self.sock.settimeout(read_timeout)
        self._reader = sock.makefile("rb")

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def read_line(self) -> bytes:
        try:
            return self._reader.readline(MAX_LINE_LENGTH + 1)
        except socket.timeout as e:
            raise TimeoutError(str(e)) from e

    def read_available(self) -> bytes:
        try:
            return self._reader.read1(READ_CHUNK_SIZE)
        except socket.timeout as e:
            raise TimeoutError(str(e)) from e

    def close(self) -> None:
        try:
            self._reader.close()
        finally:
            self.sock.close()


class SocketConnector:
    """
    Opens TCP connections, wrapped in TLS for https requests.

    With a trust anchor the server certificate and host name are verified
    against it. Without one the connection is explicitly unverified.
    """

    def __init__(self, read_timeout: float = DEFAULT_READ_TIMEOUT):
        self.read_timeout = read_timeout

    def connect(self, host: str, port: int, trust_anchor: Optional[str],
                timeout: float, use_tls: bool = True) -> SocketStream:
        context = self._create_ssl_context(trust_anchor) if use_tls else None

        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except socket.timeout:
            raise TransportError(
                f"Connection to {host}:{port} timed out after {timeout} seconds",
                ErrorCodes.TIMEOUT,
                {"host": host, "port": port}
            ) from None
        except OSError as e:
            raise TransportError(
                f"Connection to {host}:{port} failed: {e}",
                ErrorCodes.CONNECTION_FAILED,
                {"host": host, "port": port}
            ) from e

        if context is None:
            return SocketStream(sock, self.read_timeout)

        try:
            tls_sock = context.wrap_socket(sock, server_hostname=host)
        except (ssl.SSLError, socket.timeout, OSError) as e:
            sock.close()
            raise TransportError(
                f"TLS handshake with {host}:{port} failed: {e}",
                ErrorCodes.CONNECTION_FAILED,
                {"host": host, "port": port}
            ) from e

        return SocketStream(tls_sock, self.read_timeout)

    @staticmethod
    def _create_ssl_context(trust_anchor: Optional[str]) -> ssl.SSLContext:
        if trust_anchor is None:
            logger.warning("No trust anchor given; server certificate will not be verified")
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            return context

        try:
            return ssl.create_default_context(cadata=trust_anchor)
        except (ssl.SSLError, ValueError) as e:
            raise ConfigError(
                f"Trust anchor is not a valid PEM certificate: {e}",
                ErrorCodes.INVALID_CONFIG
            ) from e


def serialize_request(request: RequestDescriptor, signing_result: SigningResult) -> bytes:
    """
    Serialize a signed request as HTTP/1.1 bytes.

    Args:
        request: Request to serialize
        signing_result: Signature for this request

    Returns:
        bytes: Request line, headers, blank line and body

    Raises:
        ConfigError: If a header would inject extra lines or is not Latin-1
    """
    buffer = bytearray()
    buffer += _encode_line(f"{request.method.value} {request.url} HTTP/1.1")
    for name, value in build_request_headers(request, signing_result, connection_close=True):
        buffer += _encode_line(f"{name}: {value}")
    buffer += b"\r\n"
    if request.content_length > 0:
        buffer += request.body_bytes
    return bytes(buffer)


def _encode_line(text: str) -> bytes:
    try:
        return text.encode("latin-1") + b"\r\n"
    except UnicodeEncodeError as e:
        raise ConfigError(
            "Request line or header contains characters outside Latin-1",
            ErrorCodes.INVALID_HEADER,
            {"position": e.start}
        ) from None


def parse_status_line(line: str) -> int:
    """
    Parse the status code from an HTTP status line.

    The code is the token between the first and second space.

    Raises:
        TransportError: If the line is not a valid status line
    """
    parts = line.split(" ", 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):
        raise TransportError(
            "Malformed status line",
            ErrorCodes.MALFORMED_STATUS_LINE,
            {"status_line": line[:100]}
        )

    code = parts[1]
    if len(code) != 3 or not code.isdigit():
        raise TransportError(
            "Malformed status code in status line",
            ErrorCodes.MALFORMED_STATUS_LINE,
            {"status_line": line[:100]}
        )
    return int(code)


class ParserState(enum.Enum):
    """States of the response parser"""
    AWAIT_STATUS_LINE = "await_status_line"
    READING_HEADERS = "reading_headers"
    READING_BODY = "reading_body"
    DONE = "done"


class ResponseParser:
    """
    Parser for one raw HTTP/1.1 response.

    Only the headers named in ``requested_headers`` are kept, matched
    case-sensitively. The body is everything after the blank line until the
    peer closes the stream or the read deadline passes.
    """

    def __init__(
        self,
        requested_headers: Sequence[str] = (),
        read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.requested_headers = frozenset(requested_headers)
        self.read_timeout = read_timeout
        self._monotonic = monotonic
        self.state = ParserState.AWAIT_STATUS_LINE
        self.status_code: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self._body_chunks: List[bytes] = []
        self._header_bytes = 0
        self._deadline: Optional[float] = None

    def parse(self, stream: Stream) -> ResponseDescriptor:
        """
        Run the state machine to completion.

        Args:
            stream: Stream positioned at the start of the response

        Returns:
            ResponseDescriptor: Status code, captured headers and body

        Raises:
            TransportError: On a malformed status line, a premature end of
                stream, or a read timeout before the body
        """
        if self.read_timeout is not None:
            self._deadline = self._monotonic() + self.read_timeout

        while self.state is not ParserState.DONE:
            if self.state is ParserState.AWAIT_STATUS_LINE:
                self._read_status_line(stream)
            elif self.state is ParserState.READING_HEADERS:
                self._read_header_line(stream)
            elif self.state is ParserState.READING_BODY:
                self._read_body(stream)

        return ResponseDescriptor(
            status_code=self.status_code,
            body=b"".join(self._body_chunks).decode("utf-8", errors="replace"),
            headers=dict(self.headers)
        )

    def _read_status_line(self, stream: Stream) -> None:
        line = self._read_line(stream, "status line")
        if not line:
            raise TransportError(
                "Connection closed before a status line was received",
                ErrorCodes.UNEXPECTED_EOF
            )
        self.status_code = parse_status_line(self._decode_line(line))
        self.state = ParserState.READING_HEADERS

    def _read_header_line(self, stream: Stream) -> None:
        line = self._read_line(stream, "headers")
        if not line:
            raise TransportError(
                "Connection closed while reading response headers",
                ErrorCodes.UNEXPECTED_EOF,
                {"status_code": self.status_code}
            )

        self._header_bytes += len(line)
        if self._header_bytes > MAX_HEADER_SECTION_LENGTH:
            raise TransportError(
                f"Response headers exceed {MAX_HEADER_SECTION_LENGTH} bytes",
                ErrorCodes.REQUEST_FAILED
            )

        text = self._decode_line(line)
        if text == "":
            self.state = ParserState.READING_BODY
            return

        name, sep, value = text.partition(":")
        if not sep:
            logger.debug("Skipping malformed response header line")
            return

        if name in self.requested_headers and name not in self.headers:
            if value.startswith(" "):
                value = value[1:]
            self.headers[name] = value

    def _read_body(self, stream: Stream) -> None:
        while True:
            if self._deadline_passed():
                logger.warning("Read deadline elapsed while reading response body; body may be incomplete")
                break
            try:
                chunk = stream.read_available()
            except TimeoutError:
                logger.warning("Read timed out while reading response body; body may be incomplete")
                break
            except OSError as e:
                raise TransportError(
                    f"Read failed while reading body: {e}",
                    ErrorCodes.CONNECTION_FAILED,
                    {"status_code": self.status_code}
                ) from e
            if not chunk:
                break
            self._body_chunks.append(chunk)
        self.state = ParserState.DONE

    def _read_line(self, stream: Stream, section: str) -> bytes:
        if self._deadline_passed():
            raise self._timeout_error(section)
        try:
            line = stream.read_line()
        except TimeoutError:
            raise self._timeout_error(section) from None
        except OSError as e:
            raise TransportError(
                f"Read failed while reading {section}: {e}",
                ErrorCodes.CONNECTION_FAILED
            ) from e

        if len(line) > MAX_LINE_LENGTH:
            raise TransportError(
                f"Response line exceeds {MAX_LINE_LENGTH} bytes",
                ErrorCodes.REQUEST_FAILED,
                {"section": section}
            )
        return line

    @staticmethod
    def _decode_line(line: bytes) -> str:
        return line.decode("latin-1").rstrip("\r\n")

    def _deadline_passed(self) -> bool:
        return self._deadline is not None and self._monotonic() >= self._deadline

    def _timeout_error(self, section: str) -> TransportError:
        return TransportError(
            f"Read deadline elapsed while reading {section}",
            ErrorCodes.READ_TIMEOUT,
            {"read_timeout": self.read_timeout}
        )


def parse_response(
    stream: Stream,
    requested_headers: Sequence[str] = (),
    read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT
) -> ResponseDescriptor:
    """
    Parse a raw HTTP/1.1 response from a stream.

    Args:
        stream: Stream positioned at the start of the response
        requested_headers: Header names to capture (case-sensitive)
        read_timeout: Overall read deadline in seconds, None for no deadline

    Returns:
        ResponseDescriptor: Parsed response
    """
    return ResponseParser(requested_headers, read_timeout).parse(stream)


class RawStreamTransport(Transport):
    """
    Transport that writes HTTP/1.1 by hand onto a stream.

    A new stream is opened for every call and closed on every exit path.
    """

    def __init__(
        self,
        connector: Optional[Connector] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT
    ):
        self.connector = connector or SocketConnector(read_timeout=read_timeout)
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def send(
        self,
        request: RequestDescriptor,
        signing_result: SigningResult,
        requested_headers: Sequence[str] = ()
    ) -> ResponseDescriptor:
        payload = serialize_request(request, signing_result)

        logger.debug(f"Connecting to {request.host}:{request.port}")
        stream = self.connector.connect(
            request.host,
            request.port,
            request.trust_anchor,
            self.connect_timeout,
            use_tls=request.scheme == "https"
        )

        with closing(stream):
            try:
                stream.write(payload)
            except OSError as e:
                raise TransportError(
                    f"Failed to send request to {request.host}: {e}",
                    ErrorCodes.CONNECTION_FAILED,
                    {"host": request.host}
                ) from e

            logger.debug(f"Sent {request.method.value} {request.path} ({len(payload)} bytes)")
            response = ResponseParser(requested_headers, self.read_timeout).parse(stream)

        logger.debug(f"Received status {response.status_code} from {request.host}")
        return response
