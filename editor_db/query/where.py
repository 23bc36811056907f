"""
WHERE condition tree.

Conditions are held as an explicit tree: leaves (Condition) carry an already
rendered SQL fragment, groups (WhereGroup) carry ordered children. Every node
records the connective (AND / OR) that joins it to its previous sibling.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

AND = "AND"
OR = "OR"

# Rendered in place of an empty group so the SQL stays valid
EMPTY_GROUP = "1=1"


def normalise_connective(op: str) -> str:
    op = (op or AND).strip().upper()
    if op not in (AND, OR):
        raise ValueError(f"Unknown condition connective: {op}")
    return op


@dataclass
class Condition:
    """A single rendered condition, e.g. `"age" > @where_0`."""

    sql: str
    connective: str = AND
    field: Optional[str] = None

    def render(self) -> str:
        return self.sql


@dataclass
class WhereGroup:
    """A parenthesised set of conditions and nested groups."""

    connective: str = AND
    children: List["WhereNode"] = field(default_factory=list)

    def add(self, node: "WhereNode") -> None:
        self.children.append(node)

    def is_empty(self) -> bool:
        return len(self.children) == 0

    def render_children(self) -> str:
        parts: List[str] = []
        for i, child in enumerate(self.children):
            if i > 0:
                parts.append(child.connective)
            parts.append(child.render())
        return " ".join(parts)

    def render(self) -> str:
        if self.is_empty():
            return f"( {EMPTY_GROUP} )"
        return f"( {self.render_children()} )"

    def count_conditions(self) -> int:
        """Number of leaf conditions in this group and its descendants."""
        total = 0
        for child in self.children:
            if isinstance(child, WhereGroup):
                total += child.count_conditions()
            else:
                total += 1
        return total


WhereNode = Union[Condition, WhereGroup]


class WhereTree:
    """
    Root of a query's conditions plus the stack of currently open groups.

    Grouping callbacks push a group, add to whatever is on top of the stack
    and pop it again, so nesting depth is unbounded and always balanced.
    """

    def __init__(self):
        self.root = WhereGroup()
        self._stack: List[WhereGroup] = [self.root]

    @property
    def current(self) -> WhereGroup:
        return self._stack[-1]

    def add(self, condition: Condition) -> None:
        self.current.add(condition)

    def open_group(self, connective: str = AND) -> WhereGroup:
        group = WhereGroup(connective=normalise_connective(connective))
        self.current.add(group)
        self._stack.append(group)
        return group

    def close_group(self) -> None:
        if len(self._stack) == 1:
            raise ValueError("No open condition group to close")
        self._stack.pop()

    def depth(self) -> int:
        return len(self._stack) - 1

    def is_empty(self) -> bool:
        return self.root.is_empty()

    def render(self) -> str:
        """Render as a full `WHERE ...` clause, or an empty string."""
        if self.is_empty():
            return ""
        return "WHERE " + self.root.render_children()
