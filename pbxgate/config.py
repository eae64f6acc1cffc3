"""
Connection settings for the gateway server and the manager client.

Settings are frozen Pydantic models. The from_args() constructors convert
validation failures into ArgumentError naming the first offending field,
so a bad configuration is reported before any socket is touched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pbxgate.exceptions import ArgumentError, ErrorKind
from pbxgate.protocol.constants import ProtocolConstants


def _argument_error(exc: ValidationError) -> ArgumentError:
    errors = exc.errors()
    location = errors[0]["loc"] if errors else ()
    name = str(location[0]) if location else "?"
    return ArgumentError(ErrorKind.ARGUMENT, name)


class GatewayConfig(BaseModel):
    """
    Listening address for the gateway server.

    Example:
        >>> GatewayConfig(port=4573).host
        '0.0.0.0'
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=0, le=65535, description="TCP port, 0 for any free port")
    host: str = Field(default=ProtocolConstants.DEFAULT_GATEWAY_HOST, min_length=1)

    @classmethod
    def from_args(cls, port: Any = None, host: Any = None) -> GatewayConfig:
        """
        Build a config from loosely typed arguments.

        Raises:
            ArgumentError: If port is missing or out of range.
        """
        values: dict[str, Any] = {"port": port}
        if host:
            values["host"] = host
        try:
            return cls(**values)
        except ValidationError as e:
            raise _argument_error(e) from e


class ManagerConfig(BaseModel):
    """
    Address and credentials for the manager client.

    ``events`` is sent as the login ``Events`` field and controls which
    events the PBX forwards ("on", "off" or a class mask).
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(default=ProtocolConstants.DEFAULT_MANAGER_PORT, ge=1, le=65535)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)
    events: str = "on"
    connect_timeout: float | None = Field(default=None, gt=0)

    @field_validator("host", "username")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @classmethod
    def from_args(
        cls,
        host: Any = None,
        port: Any = ProtocolConstants.DEFAULT_MANAGER_PORT,
        username: Any = None,
        password: Any = None,
        **options: Any,
    ) -> ManagerConfig:
        """
        Build a config from loosely typed arguments.

        Fields are checked in the order host, port, username, password.

        Raises:
            ArgumentError: Naming the first missing or invalid field.
        """
        for name, value in (
            ("host", host),
            ("port", port),
            ("username", username),
            ("password", password),
        ):
            if value is None or value == "":
                raise ArgumentError(ErrorKind.ARGUMENT, name)
        try:
            return cls(
                host=host,
                port=port,
                username=username,
                password=password,
                **options,
            )
        except ValidationError as e:
            raise _argument_error(e) from e
