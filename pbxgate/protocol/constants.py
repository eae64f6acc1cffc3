"""
Wire constants for the gateway and manager protocols.

Both protocols are UTF-8 text. Gateway replies are single lines of the form
``200 result=49 (data)``; manager messages are ``key: value`` blocks ended
by a blank line.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Mapping


class ProtocolConstants:
    """Protocol tokens and defaults."""

    ENCODING: Final[str] = "utf-8"

    EOL: Final[str] = "\n"
    """Line terminator for gateway commands and line-mode input."""

    CR: Final[str] = "\r"

    CRLF: Final[str] = "\r\n"
    """Line terminator used when writing manager actions."""

    BLOCK_TERMINATORS: Final[tuple[str, ...]] = ("\n\n", "\r\n\r\n")
    """Either token ends a header block."""

    KEY_SEPARATOR: Final[str] = ":"

    # ===== Gateway replies =====

    SUCCESS_CODE: Final[int] = 200

    HANGUP_LINE: Final[str] = "hangup"
    """Compared case-insensitively against each inbound line."""

    CONTINUATION_START: Final[str] = "520-Invalid"

    CONTINUATION_END: Final[str] = "520 End of proper"

    RESULT_PREFIX: Final[str] = "result="

    CODE_WIDTH: Final[int] = 3

    RESULT_OFFSET: Final[int] = 4

    # ===== Gateway greeting =====

    SELECTOR_VARIABLE: Final[str] = "agi_network_script"
    """Greeting variable used to pick a registered menu script."""

    # ===== Manager messages =====

    FIELD_ACTION: Final[str] = "Action"
    FIELD_ACTION_ID: Final[str] = "ActionID"
    FIELD_RESPONSE: Final[str] = "Response"
    FIELD_EVENT: Final[str] = "Event"

    RESPONSE_SUCCESS: Final[str] = "Success"

    LOGIN_ACTION: Final[str] = "Login"

    EVENT_PREFIX: Final[str] = "event"
    """Prefix for per-event listener signals, e.g. ``eventShutdown``."""

    ANY_EVENT: Final[str] = "eventAny"

    # ===== Defaults =====

    DEFAULT_GATEWAY_HOST: Final[str] = "0.0.0.0"
    DEFAULT_MANAGER_PORT: Final[int] = 5038
    READ_SIZE: Final[int] = 4096


BRANCH_KEYS: Final[tuple[str, ...]] = (
    "0", "1", "2", "3", "4", "5", "6", "7", "8", "9", "*", "#",
)
"""Menu branch keys in lookup priority order."""

LEGACY_BRANCH_FIELDS: Final[Mapping[str, str]] = MappingProxyType(
    {
        **{f"key{digit}": digit for digit in "0123456789"},
        "keyAsterisk": "*",
        "keyPound": "#",
    }
)
"""Branch field names of operator-authored menu trees."""

LEGACY_NO_RESULT_FIELD: Final[str] = "keyNone"
