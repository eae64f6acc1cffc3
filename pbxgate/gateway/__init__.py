"""
Gateway (server) role: the PBX connects in and is driven by commands.

- GatewayServer: listens and dispatches sessions
- GatewaySession: one PBX connection
- CommandChannel: one-command-at-a-time reply correlation
- MenuScript / MenuEngine: scripted command menus
"""

from pbxgate.gateway.channel import CommandChannel, PendingCommand
from pbxgate.gateway.menu import (
    Menu,
    MenuCursor,
    MenuEngine,
    MenuItem,
    MenuScript,
    select_branch,
)
from pbxgate.gateway.server import GatewayServer
from pbxgate.gateway.session import GatewaySession

__all__ = [
    "GatewayServer",
    "GatewaySession",
    "CommandChannel",
    "PendingCommand",
    "Menu",
    "MenuItem",
    "MenuScript",
    "MenuCursor",
    "MenuEngine",
    "select_branch",
]
