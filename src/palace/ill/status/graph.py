from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator
from enum import StrEnum
from typing import Any

from frozendict import frozendict

from palace.ill.core.exceptions import IllLookupError, IllValueError
from palace.ill.util.log import LoggerMixin


class Direction(StrEnum):
    """Which side of an ILL request this library is on.

    IN: we are borrowing from a partner library ("Inlån"). The item comes
    in to us.
    OUT: a partner library is borrowing from us ("Utlån").

    Note that "incoming" is sometimes used for the lending side, meaning
    the request comes in to us. The prefixes here follow the item instead:
    IN_ANK ("Ankommen") is a loan that has arrived at our library.
    """

    IN = "IN"
    OUT = "OUT"


def direction_of(status_code: str | None) -> Direction | None:
    """Get the direction out of a prefixed status code like ``IN_ANK``.

    Unprefixed codes (``Makulerad``) have no direction.
    """
    if not status_code:
        return None
    prefix, sep, _ = status_code.partition("_")
    if not sep:
        return None
    try:
        return Direction(prefix)
    except ValueError:
        return None


@dataclasses.dataclass(frozen=True)
class StatusNode:
    """A single status a request can be in."""

    id: str
    name: str
    # Label for the button that leads to this status.
    ui_method_name: str
    # The lifecycle action that produces this status.
    method: str
    next_actions: tuple[str, ...] = ()
    prev_actions: tuple[str, ...] = ()
    # Font Awesome 4.7 icon class.
    ui_method_icon: str = "fa-send-o"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ui_method_name": self.ui_method_name,
            "method": self.method,
            "next_actions": list(self.next_actions),
            "prev_actions": list(self.prev_actions),
            "ui_method_icon": self.ui_method_icon,
        }


class StatusNotFound(IllLookupError):
    def __init__(self, node_id: str):
        super().__init__(f"Unknown ILL status '{node_id}'.")
        self.node_id = node_id


class InvalidStatusGraph(IllValueError):
    def __init__(self, problems: list[str]):
        super().__init__(
            "Invalid status graph:\n" + "\n".join(f"  {p}" for p in problems)
        )
        self.problems = problems


class StatusGraph(LoggerMixin):
    """The statuses an ILL request moves through.

    The graph is built once and never changes afterwards. Besides the
    declared ``next_actions`` of a node, a node listing another node in its
    ``prev_actions`` makes itself reachable from that node. This is the same
    union the library system does when it merges backend graphs, so
    ``IN_LAST`` offers ``IN_RESPONSE`` even though only ``IN_RESPONSE``
    mentions the relationship.
    """

    def __init__(self, nodes: Iterable[StatusNode]):
        nodes = tuple(nodes)
        self.validate(nodes)
        self._nodes: frozendict[str, StatusNode] = frozendict(
            (node.id, node) for node in nodes
        )

        effective: dict[str, list[str]] = {
            node.id: list(node.next_actions) for node in nodes
        }
        for node in nodes:
            for prev_id in node.prev_actions:
                if node.id not in effective[prev_id]:
                    effective[prev_id].append(node.id)
        self._next_actions: frozendict[str, tuple[str, ...]] = frozendict(
            (node_id, tuple(next_ids)) for node_id, next_ids in effective.items()
        )

    @staticmethod
    def validate(nodes: Iterable[StatusNode]) -> None:
        """Make sure ids are unique and every referenced id is defined.

        :raises InvalidStatusGraph: listing every problem found.
        """
        problems = []
        seen: set[str] = set()
        nodes = tuple(nodes)
        for node in nodes:
            if node.id in seen:
                problems.append(f"Duplicate status id '{node.id}'.")
            seen.add(node.id)

        for node in nodes:
            for field in ("next_actions", "prev_actions"):
                for ref in getattr(node, field):
                    if ref not in seen:
                        problems.append(
                            f"'{node.id}' refers to undefined status '{ref}' in {field}."
                        )
        if problems:
            raise InvalidStatusGraph(problems)

    def __iter__(self) -> Iterator[StatusNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._nodes)

    def lookup(self, node_id: str) -> StatusNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise StatusNotFound(node_id) from None

    def get(self, node_id: str | None) -> StatusNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def next_actions(self, node_id: str) -> tuple[str, ...]:
        """The statuses reachable from this one, including the ones that
        declare this status as a predecessor."""
        self.lookup(node_id)
        return self._next_actions[node_id]

    def nodes_for_action(self, action: str) -> tuple[StatusNode, ...]:
        return tuple(node for node in self if node.method == action)

    def is_valid_transition(self, from_id: str | None, action: str) -> bool:
        """Can a request in status `from_id` move on through `action`?

        True when some status produced by `action` is offered by `from_id`.
        An unknown `from_id` never has a valid transition.
        """
        if from_id not in self._nodes:
            return False
        reachable = self._next_actions[from_id]
        return any(node.id in reachable for node in self.nodes_for_action(action))

    def status_name(self, node_id: str | None) -> str:
        node = self.get(node_id)
        if node is None:
            return node_id or ""
        return node.name

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """The graph in the shape the library system merges into its own."""
        return {node.id: node.to_dict() for node in self}
