"""
Scripted menus for gateway sessions.

A MenuScript is a set of named menus. Each menu is an ordered list of
items; each item holds a command and optional branches keyed by the
character the caller pressed (``0``-``9``, ``*``, ``#``) plus a
``no_result`` branch taken when the command returned 0. Branches name other
menus of the same script, so loops back to an earlier menu are allowed.

MenuEngine walks a script over one session:

    (menu, index) --200 reply--> branch target at index 0
                             or  no_result target at index 0
                             or  (menu, index + 1)

The walk ends, and the session is closed, when the cursor points past the
end of a menu or at an item without a command, or when a reply is not 200.
Scripts are frozen and shared by every session using them; the cursor
lives in the engine.

Example:
    >>> script = MenuScript(
    ...     selector="app300",
    ...     menus={
    ...         "entry": Menu(commands=(
    ...             MenuItem(command="Answer"),
    ...             MenuItem(command='Get Data "beep" 3000 1', branches={"1": "sales"}),
    ...         )),
    ...         "sales": Menu(commands=(MenuItem(command="Hangup"),)),
    ...     },
    ... )
    >>> await MenuEngine(session, script).run()
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pbxgate.exceptions import ArgumentError, ConnectionClosedError, ErrorKind
from pbxgate.protocol.constants import (
    BRANCH_KEYS,
    LEGACY_BRANCH_FIELDS,
    LEGACY_NO_RESULT_FIELD,
    ProtocolConstants,
)

if TYPE_CHECKING:
    from pbxgate.gateway.session import GatewaySession
    from pbxgate.protocol.reply import DecodedReply

logger = logging.getLogger(__name__)

ENTRY_MENU = "entry"


def _argument_error(exc: ValidationError, prefix: str = "") -> ArgumentError:
    errors = exc.errors()
    location = ".".join(str(part) for part in errors[0]["loc"]) if errors else ""
    if prefix:
        location = f"{prefix}.{location}" if location else prefix
    return ArgumentError(ErrorKind.ARGUMENT, location or "?")


class MenuItem(BaseModel):
    """
    One scripted command and where to go after it.

    Attributes:
        command: Gateway command text; an item without one ends the menu.
        branches: Pressed character to target menu name.
        no_result: Target menu when the command returned 0.
    """

    model_config = ConfigDict(frozen=True)

    command: str | None = None
    branches: dict[str, str] = Field(default_factory=dict)
    no_result: str | None = None

    @field_validator("branches")
    @classmethod
    def validate_keys(cls, v: dict[str, str]) -> dict[str, str]:
        """Only the twelve keypad characters may branch."""
        for key in v:
            if key not in BRANCH_KEYS:
                raise ValueError(f"Invalid branch key {key!r}")
        return v

    def targets(self) -> list[str]:
        """Names of all menus this item can branch to."""
        names = list(self.branches.values())
        if self.no_result:
            names.append(self.no_result)
        return names


class Menu(BaseModel):
    """An ordered list of menu items."""

    model_config = ConfigDict(frozen=True)

    commands: tuple[MenuItem, ...] = ()


class MenuScript(BaseModel):
    """
    A complete menu tree, selected by the greeting's network script name.

    Attributes:
        selector: Value of ``agi_network_script`` that picks this script.
        entry: Name of the menu the walk starts in.
        menus: All menus by name.
    """

    model_config = ConfigDict(frozen=True)

    selector: str = ""
    entry: str = ENTRY_MENU
    menus: dict[str, Menu] = Field(default_factory=dict)

    def check(self) -> MenuScript:
        """
        Verify the script holds together.

        Returns:
            self, for chaining.

        Raises:
            ArgumentError: MENU_SELECTOR, MENU_ENTRY or MENU_REFERENCE.
        """
        if not self.selector:
            raise ArgumentError(ErrorKind.MENU_SELECTOR)
        if self.entry not in self.menus:
            raise ArgumentError(ErrorKind.MENU_ENTRY, self.entry)
        for menu in self.menus.values():
            for item in menu.commands:
                for target in item.targets():
                    if target not in self.menus:
                        raise ArgumentError(ErrorKind.MENU_REFERENCE, target)
        return self

    @classmethod
    def from_json(cls, text: str | bytes) -> MenuScript:
        """
        Load a script in its named form from JSON.

        Raises:
            ArgumentError: If the document is invalid or inconsistent.
        """
        try:
            script = cls.model_validate_json(text)
        except ValidationError as e:
            raise _argument_error(e) from e
        return script.check()

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any]) -> MenuScript:
        """
        Convert an operator-authored nested menu tree.

        The tree form nests menus directly::

            {
                "agi_network_script": "app300",
                "entry": {"cmds": [
                    {"command": "Answer"},
                    {"command": "...", "key1": {"cmds": [...]}, "keyNone": ...},
                ]},
            }

        Branch fields are ``key0``-``key9``, ``keyAsterisk``, ``keyPound`` and
        ``keyNone``. Nodes are named by identity, so a node reused in several
        places, or referring back to an ancestor, becomes one named menu.
        Top-level mappings keep their key as name.

        Raises:
            ArgumentError: If the selector or entry menu is missing, or an
                item is malformed (e.g. a non-string command).
        """
        selector = tree.get(ProtocolConstants.SELECTOR_VARIABLE)
        if not selector:
            raise ArgumentError(ErrorKind.MENU_SELECTOR)
        entry = tree.get(ENTRY_MENU)
        if not isinstance(entry, Mapping):
            raise ArgumentError(ErrorKind.MENU_ENTRY, ENTRY_MENU)

        names: dict[int, str] = {id(entry): ENTRY_MENU}
        for key, value in tree.items():
            if isinstance(value, Mapping) and id(value) not in names:
                names[id(value)] = str(key)
        used = set(names.values())

        def name_of(node: Mapping[str, Any]) -> str:
            if id(node) not in names:
                number = len(names)
                while f"menu{number}" in used:
                    number += 1
                names[id(node)] = f"menu{number}"
                used.add(names[id(node)])
            return names[id(node)]

        menus: dict[str, Menu] = {}
        pending: list[Mapping[str, Any]] = [entry]
        while pending:
            node = pending.pop()
            name = name_of(node)
            if name in menus:
                continue

            commands = node.get("cmds") or ()
            if not isinstance(commands, (list, tuple)):
                raise ArgumentError(ErrorKind.ARGUMENT, f"{name}.cmds")

            items: list[MenuItem] = []
            for index, raw in enumerate(commands):
                if not isinstance(raw, Mapping):
                    items.append(MenuItem())
                    continue
                branches: dict[str, str] = {}
                for field, key in LEGACY_BRANCH_FIELDS.items():
                    target = raw.get(field)
                    if isinstance(target, Mapping):
                        branches[key] = name_of(target)
                        pending.append(target)
                no_result = raw.get(LEGACY_NO_RESULT_FIELD)
                if isinstance(no_result, Mapping):
                    pending.append(no_result)
                try:
                    item = MenuItem(
                        command=raw.get("command") or None,
                        branches=branches,
                        no_result=name_of(no_result) if isinstance(no_result, Mapping) else None,
                    )
                except ValidationError as e:
                    raise _argument_error(e, f"{name}.cmds.{index}") from e
                items.append(item)
            menus[name] = Menu(commands=tuple(items))

        return cls(selector=str(selector), entry=ENTRY_MENU, menus=menus).check()

    @classmethod
    def from_tree_json(cls, text: str | bytes) -> MenuScript:
        """Load an operator-authored tree from JSON; see from_tree()."""
        try:
            tree = json.loads(text)
        except ValueError as e:
            raise ArgumentError(ErrorKind.ARGUMENT, "tree") from e
        if not isinstance(tree, Mapping):
            raise ArgumentError(ErrorKind.ARGUMENT, "tree")
        return cls.from_tree(tree)


@dataclass(frozen=True)
class MenuCursor:
    """Position of a walk: menu name and item index."""

    menu: str
    index: int = 0


def select_branch(item: MenuItem, reply: DecodedReply) -> str | None:
    """
    Pick the branch a successful reply leads to.

    Keypad branches are checked in BRANCH_KEYS order against the result
    read as a character; then ``no_result`` when the result is 0.

    Returns:
        Target menu name, or None to continue with the next item.
    """
    character = reply.character
    for key in BRANCH_KEYS:
        if character == key and key in item.branches:
            return item.branches[key]
    if reply.result == 0 and item.no_result:
        return item.no_result
    return None


class MenuEngine:
    """
    Runs a MenuScript over one session, one command at a time.

    Attributes:
        cursor: Current position, None before run() and after it ends.
        executed: Number of commands sent so far.
    """

    def __init__(self, session: GatewaySession, script: MenuScript) -> None:
        self._session = session
        self._script = script
        self._cursor: MenuCursor | None = None
        self._executed = 0

    @property
    def script(self) -> MenuScript:
        return self._script

    @property
    def cursor(self) -> MenuCursor | None:
        return self._cursor

    @property
    def executed(self) -> int:
        return self._executed

    def start_cursor(self) -> MenuCursor:
        return MenuCursor(self._script.entry, 0)

    def current_item(self, cursor: MenuCursor) -> MenuItem | None:
        """
        The item under the cursor, or None if the walk must end there.
        """
        menu = self._script.menus.get(cursor.menu)
        if menu is None or not menu.commands:
            return None
        if not 0 <= cursor.index < len(menu.commands):
            return None
        item = menu.commands[cursor.index]
        if not item.command:
            return None
        return item

    def advance(self, cursor: MenuCursor, reply: DecodedReply) -> MenuCursor:
        """Next cursor after a 200 reply to the item under ``cursor``."""
        item = self.current_item(cursor)
        target = select_branch(item, reply) if item is not None else None
        if target is not None:
            return MenuCursor(target, 0)
        return MenuCursor(cursor.menu, cursor.index + 1)

    async def run(self) -> int:
        """
        Walk the script until it ends, then close the session.

        Returns:
            Number of commands executed.
        """
        self._cursor = self.start_cursor()
        peer = self._session.transport.peer_name
        logger.info("Running menu %r for %s", self._script.selector, peer)
        try:
            while True:
                item = self.current_item(self._cursor)
                if item is None:
                    logger.debug("Menu %r finished at %s", self._script.selector, self._cursor)
                    break

                logger.debug("%s[%d] %s", self._cursor.menu, self._cursor.index, item.command)
                reply = await self._session.command(item.command)
                self._executed += 1

                if not reply.ok:
                    logger.info("Menu %r stopped by reply %r", self._script.selector, reply)
                    break
                self._cursor = self.advance(self._cursor, reply)
        except ConnectionClosedError:
            logger.info("Session %s closed during menu %r", peer, self._script.selector)
        finally:
            self._cursor = None
            await self._session.close()
        return self._executed
