"""
Tests for request and response types
"""

import pytest

from oci_signing_sdk.signing import (
    RequestDescriptor,
    ResponseDescriptor,
    HeaderField,
    HttpMethod,
)
from oci_signing_sdk.signing.types import (
    MAX_HOST_LENGTH,
    MAX_PATH_LENGTH,
    MAX_HEADER_VALUE_LENGTH,
    MAX_TRUST_ANCHOR_LENGTH,
    normalize_headers,
    normalize_requested_headers,
)
from oci_signing_sdk.exceptions import ConfigError, ErrorCodes

HOST = "iaas.us-ashburn-1.oraclecloud.com"


class TestRequestDescriptor:
    """Test request validation and normalization"""

    def test_defaults(self):
        request = RequestDescriptor(host=HOST, path="/20160918/instances")

        assert request.method is HttpMethod.GET
        assert request.content_type == "application/json"
        assert request.body_bytes == b""
        assert request.content_length == 0
        assert request.headers == ()
        assert request.url == f"https://{HOST}/20160918/instances"

    def test_text_body_encoded_as_utf8(self):
        request = RequestDescriptor(host=HOST, path="/", method="POST", body="é")
        assert request.body == "é".encode("utf-8")
        assert request.content_length == 2

    def test_url_includes_non_default_port(self):
        request = RequestDescriptor(host="localhost", path="/x", port=8443)
        assert request.url == "https://localhost:8443/x"

        plain = RequestDescriptor(host="localhost", path="/x", port=80, scheme="http")
        assert plain.url == "http://localhost/x"

    def test_invalid_host(self):
        for host in ("", "bad host", "evil.com/path", "a\r\nb"):
            with pytest.raises(ConfigError):
                RequestDescriptor(host=host, path="/")

    def test_host_too_long_rejected(self):
        """Test oversized inputs are rejected instead of truncated"""
        with pytest.raises(ConfigError) as exc_info:
            RequestDescriptor(host="a" * (MAX_HOST_LENGTH + 1), path="/")
        assert exc_info.value.error_code == ErrorCodes.INPUT_TOO_LARGE

    def test_invalid_path(self):
        for path in ("", "no-slash", "/with space", "/line\nbreak"):
            with pytest.raises(ConfigError) as exc_info:
                RequestDescriptor(host=HOST, path=path)
            assert exc_info.value.error_code == ErrorCodes.INVALID_PATH

    def test_path_too_long_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            RequestDescriptor(host=HOST, path="/" + "a" * MAX_PATH_LENGTH)
        assert exc_info.value.error_code == ErrorCodes.INPUT_TOO_LARGE

    def test_trust_anchor_too_long_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            RequestDescriptor(host=HOST, path="/", trust_anchor="x" * (MAX_TRUST_ANCHOR_LENGTH + 1))
        assert exc_info.value.error_code == ErrorCodes.INPUT_TOO_LARGE

    def test_trust_anchor_not_in_repr(self):
        request = RequestDescriptor(host=HOST, path="/", trust_anchor="-----BEGIN CERTIFICATE-----")
        assert "BEGIN CERTIFICATE" not in repr(request)

    def test_content_type_injection_rejected(self):
        with pytest.raises(ConfigError):
            RequestDescriptor(host=HOST, path="/", method="POST", content_type="text/plain\r\nX-Evil: 1")

    def test_invalid_scheme_and_port(self):
        with pytest.raises(ConfigError):
            RequestDescriptor(host=HOST, path="/", scheme="ftp")
        with pytest.raises(ConfigError):
            RequestDescriptor(host=HOST, path="/", port=0)

    def test_invalid_body_type(self):
        with pytest.raises(ConfigError):
            RequestDescriptor(host=HOST, path="/", method="POST", body={"a": 1})


class TestHeaders:
    """Test header normalization"""

    def test_normalize_mapping_and_pairs(self):
        from_mapping = normalize_headers({"opc-retry-token": "abc"})
        from_pairs = normalize_headers([("opc-retry-token", "abc")])
        from_fields = normalize_headers([HeaderField("opc-retry-token", "abc")])

        assert from_mapping == from_pairs == from_fields == (HeaderField("opc-retry-token", "abc"),)

    def test_outbound_header_needs_value(self):
        with pytest.raises(ConfigError):
            normalize_headers([HeaderField("opc-request-id")])

    def test_transport_headers_cannot_be_overridden(self):
        overrides = [
            {"Content-Length": "999"},
            {"Host": "evil.example"},
            {"date": "Thu, 01 Jan 1970 00:00:00 GMT"},
            {"AUTHORIZATION": "Signature x"},
            [("x-content-sha256", "abc")],
            {"Connection": "keep-alive"},
        ]
        for headers in overrides:
            with pytest.raises(ConfigError) as exc_info:
                RequestDescriptor(host=HOST, path="/", headers=headers)
            assert exc_info.value.error_code == ErrorCodes.INVALID_HEADER

    def test_header_name_validation(self):
        for name in ("", "bad name", "bad:name", "new\nline"):
            with pytest.raises(ConfigError):
                HeaderField(name, "v")

    def test_header_value_validation(self):
        with pytest.raises(ConfigError) as exc_info:
            HeaderField("x-test", "a\r\nInjected: yes")
        assert exc_info.value.error_code == ErrorCodes.INVALID_HEADER

        with pytest.raises(ConfigError) as exc_info:
            HeaderField("x-test", "v" * (MAX_HEADER_VALUE_LENGTH + 1))
        assert exc_info.value.error_code == ErrorCodes.INPUT_TOO_LARGE

    def test_requested_headers_keep_case(self):
        names = normalize_requested_headers(["opc-request-id", "ETag", "etag", "ETag", HeaderField("Content-Type")])
        assert names == ("opc-request-id", "ETag", "etag", "Content-Type")

    def test_requested_headers_single_string(self):
        assert normalize_requested_headers("opc-request-id") == ("opc-request-id",)
        assert normalize_requested_headers(None) == ()


class TestResponseDescriptor:
    """Test response helpers"""

    def test_ok_range(self):
        assert ResponseDescriptor(status_code=200).ok
        assert ResponseDescriptor(status_code=204).ok
        assert not ResponseDescriptor(status_code=404).ok
        assert not ResponseDescriptor(status_code=None).ok

    def test_from_error(self):
        response = ResponseDescriptor.from_error("Connection refused")

        assert response.status_code is None
        assert response.body == ""
        assert response.headers == {}
        assert response.is_error
        assert not response.ok
        assert response.error_message == "Connection refused"

    def test_header_lookup_is_case_sensitive(self):
        response = ResponseDescriptor(status_code=200, headers={"ETag": "v1"})
        assert response.header("ETag") == "v1"
        assert response.header("etag") is None
