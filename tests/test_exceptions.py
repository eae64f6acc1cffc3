"""Tests for the exception hierarchy."""

import pytest

from pbxgate.exceptions import (
    ERROR_MESSAGES,
    ArgumentError,
    AuthenticationError,
    CommandInFlightError,
    ConnectionClosedError,
    ErrorKind,
    PbxGateError,
    ProtocolError,
    TransportError,
    format_error,
)


class TestErrorMessages:
    """Tests for the message table."""

    def test_every_kind_has_a_message(self):
        assert set(ERROR_MESSAGES) == set(ErrorKind)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            ERROR_MESSAGES[ErrorKind.UNDEFINED] = "changed"

    def test_format_fills_placeholders(self):
        assert format_error(ErrorKind.SOCKET_ERROR, "ECONNREFUSED") == (
            "Socket error. Code: ECONNREFUSED."
        )

    def test_format_missing_detail(self):
        assert format_error(ErrorKind.ARGUMENT) == "Argument '?' missing or invalid."

    def test_format_extra_detail_is_appended(self):
        assert format_error(ErrorKind.SOCKET_CLOSED, "by peer") == "Socket closed. by peer"


class TestExceptions:
    """Tests for tagged exceptions."""

    def test_default_kinds(self):
        assert ArgumentError().kind is ErrorKind.ARGUMENT
        assert TransportError().kind is ErrorKind.SOCKET_ERROR
        assert ConnectionClosedError().kind is ErrorKind.SOCKET_CLOSED
        assert AuthenticationError().kind is ErrorKind.AUTH_FAILED
        assert PbxGateError().kind is ErrorKind.UNDEFINED

    def test_explicit_kind_and_detail(self):
        error = ArgumentError(ErrorKind.ARGUMENT, "port")
        assert error.detail == "Argument 'port' missing or invalid."
        assert str(error) == error.detail

    def test_in_flight_detail(self):
        error = CommandInFlightError(None, "Answer")
        assert error.kind is ErrorKind.COMMAND_IN_FLIGHT
        assert "Answer" in str(error)

    def test_hierarchy(self):
        """Test that every error is catchable by its family."""
        assert issubclass(ConnectionClosedError, TransportError)
        assert issubclass(CommandInFlightError, ProtocolError)
        assert issubclass(AuthenticationError, PbxGateError)
        assert not issubclass(AuthenticationError, TransportError)

    def test_repr(self):
        assert repr(AuthenticationError()) == "AuthenticationError(AUTH_FAILED, 'Authentication failed.')"
