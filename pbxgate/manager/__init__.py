"""
Manager (client) role: log in once, then multiplex actions and events.
"""

from pbxgate.manager.client import ClientState, ManagerClient, PendingAction

__all__ = [
    "ClientState",
    "ManagerClient",
    "PendingAction",
]
