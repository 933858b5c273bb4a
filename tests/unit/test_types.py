"""Unit tests for protocol types and the error hierarchy."""

import pytest

from minimcp.errors import (
    CapabilityError,
    HTTPStatusError,
    InvalidResponseError,
    McpClientError,
    NotConnectedError,
    ProtocolStateError,
    RemoteError,
    RequestTimeoutError,
    TransportError,
)
from minimcp.types import (
    ClientCapabilities,
    Implementation,
    InitializeResult,
    JsonRpcRequest,
    ServerCapabilities,
)


class TestCapabilities:
    """Tests for capability declarations."""

    def test_client_capabilities_default_off(self):
        caps = ClientCapabilities()

        assert caps.model_dump() == {"roots": False, "sampling": False}

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, True),
            ({}, True),
            ({"listChanged": True}, True),
            (False, False),
            (None, False),
        ],
    )
    def test_server_supports(self, value, expected):
        caps = ServerCapabilities.model_validate({"roots": value})

        assert caps.supports("roots") is expected

    def test_server_supports_unknown_capability(self):
        caps = ServerCapabilities.model_validate({"experimental": {"x": 1}})

        assert caps.supports("experimental") is True
        assert caps.supports("missing") is False

    def test_initialize_result_defaults(self):
        result = InitializeResult.model_validate({})

        assert result.capabilities.supports("roots") is False
        assert result.serverInfo is None

    def test_initialize_result_tolerates_loose_fields(self):
        result = InitializeResult.model_validate(
            {"capabilities": None, "serverInfo": {"name": "srv"}, "protocolVersion": 1}
        )

        assert result.capabilities == ServerCapabilities()
        assert result.serverInfo is not None
        assert result.serverInfo.name == "srv"
        assert result.serverInfo.version is None


class TestEnvelopes:
    def test_request_envelope(self):
        request = JsonRpcRequest(id=7, method="listTools")

        assert request.model_dump() == {
            "jsonrpc": "2.0",
            "id": 7,
            "method": "listTools",
            "params": {},
        }

    def test_implementation_is_frozen(self):
        info = Implementation(name="a", version="1")

        with pytest.raises(ValueError):
            info.name = "b"


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(TransportError, McpClientError)
        assert issubclass(TransportError, ConnectionError)
        assert issubclass(HTTPStatusError, TransportError)
        assert issubclass(NotConnectedError, ProtocolStateError)
        assert issubclass(NotConnectedError, TransportError)
        assert issubclass(RequestTimeoutError, TimeoutError)
        assert issubclass(InvalidResponseError, McpClientError)

    def test_http_status_error_carries_status(self):
        error = HTTPStatusError(503)

        assert error.status_code == 503
        assert str(error) == "HTTP error: 503"

    def test_capability_error_message(self):
        assert str(CapabilityError("roots", "client")) == "Client does not support roots capability"
        assert str(CapabilityError("roots", "server")) == "Server does not support roots capability"

    def test_remote_error_from_descriptor(self):
        error = RemoteError.from_descriptor({"code": -32601, "message": "nope", "data": [1]})

        assert error.message == "nope"
        assert error.code == -32601
        assert error.data == [1]

    @pytest.mark.parametrize("descriptor", [None, "boom", {}, {"message": ""}, {"message": 3}])
    def test_remote_error_malformed_descriptor(self, descriptor):
        error = RemoteError.from_descriptor(descriptor)

        assert error.message == "Unknown error"
        assert error.code is None
