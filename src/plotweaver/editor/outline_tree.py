"""Pure functions that transform an outline forest.

Every operation takes a forest and returns a forest without touching its
input. A missing target id is not an error: the function returns the input
forest itself, so callers detect failures by identity or equality once, after
composing as many operations as they need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Literal, Sequence

from .document_model import OutlineNode, new_id

LOGGER = logging.getLogger(__name__)

Forest = tuple[OutlineNode, ...]
Position = Literal["before", "after"]
_Splice = Callable[[OutlineNode], tuple[OutlineNode, ...]]
_PROTECTED_FIELDS = frozenset({"id", "children"})


@dataclass(slots=True, frozen=True)
class MoveTarget:
    """Destination of a move.

    A sibling takes precedence over a parent. With neither, the node is
    promoted to the top level.
    """

    parent_id: str | None = None
    sibling_id: str | None = None
    position: Position = "after"

    def __post_init__(self) -> None:
        if self.position not in ("before", "after"):
            raise ValueError(f"position must be 'before' or 'after', got {self.position!r}")

    def referenced_ids(self) -> tuple[str, ...]:
        return tuple(value for value in (self.parent_id, self.sibling_id) if value is not None)


def _freeze(forest: Sequence[OutlineNode]) -> Forest:
    return forest if isinstance(forest, tuple) else tuple(forest)


def _splice(forest: Forest, node_id: str, transform: _Splice) -> tuple[Forest, bool]:
    """Replace the first node matching ``node_id`` with ``transform(node)``.

    The transform returns zero or more nodes, which covers update (one),
    removal (none) and sibling insertion (two) with the same walk.
    """

    for index, node in enumerate(forest):
        if node.id == node_id:
            replacement = transform(node)
        else:
            children, found = _splice(node.children, node_id, transform)
            if not found:
                continue
            replacement = (replace(node, children=children),)
        return forest[:index] + replacement + forest[index + 1 :], True
    return forest, False


def _update(forest: Sequence[OutlineNode], node_id: str, transform: _Splice) -> Forest:
    frozen = _freeze(forest)
    updated, found = _splice(frozen, node_id, transform)
    return updated if found else frozen


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


def iter_nodes(forest: Sequence[OutlineNode]) -> Iterator[OutlineNode]:
    """Walk the forest depth-first, parents before children."""

    for node in forest:
        yield node
        yield from iter_nodes(node.children)


def find_by_id(forest: Sequence[OutlineNode], node_id: str) -> OutlineNode | None:
    for node in iter_nodes(forest):
        if node.id == node_id:
            return node
    return None


def contains(forest: Sequence[OutlineNode], node_id: str) -> bool:
    return find_by_id(forest, node_id) is not None


def find_parent_id(forest: Sequence[OutlineNode], node_id: str) -> str | None:
    """Return the id of ``node_id``'s parent, or ``None`` for roots and unknown ids."""

    for node in iter_nodes(forest):
        if any(child.id == node_id for child in node.children):
            return node.id
    return None


def collect_ids(forest: Sequence[OutlineNode]) -> set[str]:
    return {node.id for node in iter_nodes(forest)}


def new_node(
    title: str,
    content: str = "",
    *,
    character_ids: Sequence[str] = (),
    image_url: str | None = None,
) -> OutlineNode:
    return OutlineNode(
        id=new_id(),
        title=title,
        content=content,
        character_ids=tuple(character_ids),
        image_url=image_url,
    )


# -----------------------------------------------------------------------------
# Field updates
# -----------------------------------------------------------------------------


def rename(forest: Sequence[OutlineNode], node_id: str, new_title: str) -> Forest:
    return _update(forest, node_id, lambda node: (replace(node, title=new_title),))


def set_content(forest: Sequence[OutlineNode], node_id: str, new_content: str) -> Forest:
    return _update(forest, node_id, lambda node: (replace(node, content=new_content),))


def set_fields(forest: Sequence[OutlineNode], node_id: str, **changes: object) -> Forest:
    """Merge ``changes`` into the matching node.

    Raises:
        ValueError: If ``changes`` touches ``id`` or ``children``; structure
            only changes through insert, remove and move.
    """

    protected = _PROTECTED_FIELDS.intersection(changes)
    if protected:
        raise ValueError(f"Cannot set structural field(s): {', '.join(sorted(protected))}")
    if not changes:
        return _freeze(forest)
    return _update(forest, node_id, lambda node: (replace(node, **changes),))


def toggle_flag(forest: Sequence[OutlineNode], node_id: str) -> Forest:
    """Flip export inclusion. An unset flag counts as included."""

    return _update(
        forest,
        node_id,
        lambda node: (replace(node, include_in_export=not node.included_in_export),),
    )


def toggle_character_association(
    forest: Sequence[OutlineNode], section_id: str, character_id: str
) -> Forest:
    def _toggle(node: OutlineNode) -> tuple[OutlineNode, ...]:
        if character_id in node.character_ids:
            ids = tuple(item for item in node.character_ids if item != character_id)
        else:
            ids = node.character_ids + (character_id,)
        return (replace(node, character_ids=ids),)

    return _update(forest, section_id, _toggle)


def strip_character(forest: Sequence[OutlineNode], character_id: str) -> Forest:
    """Remove ``character_id`` from every node's associations, at every depth."""

    frozen = _freeze(forest)
    stripped, _ = _strip(frozen, character_id)
    return stripped


def _strip(forest: Forest, character_id: str) -> tuple[Forest, bool]:
    result: list[OutlineNode] = []
    changed = False
    for node in forest:
        children, children_changed = _strip(node.children, character_id)
        if children_changed or character_id in node.character_ids:
            node = replace(
                node,
                children=children,
                character_ids=tuple(item for item in node.character_ids if item != character_id),
            )
            changed = True
        result.append(node)
    return (tuple(result), True) if changed else (forest, False)


# -----------------------------------------------------------------------------
# Structure
# -----------------------------------------------------------------------------


def insert_root(forest: Sequence[OutlineNode], node: OutlineNode) -> Forest:
    return _freeze(forest) + (node,)


def insert_child(forest: Sequence[OutlineNode], parent_id: str, node: OutlineNode) -> Forest:
    """Append ``node`` as the last child of ``parent_id``; unknown parents are a no-op."""

    return _update(
        forest,
        parent_id,
        lambda parent: (replace(parent, children=parent.children + (node,)),),
    )


def remove(forest: Sequence[OutlineNode], node_id: str) -> Forest:
    """Excise ``node_id`` together with its whole subtree."""

    return _update(forest, node_id, lambda node: ())


def move(forest: Sequence[OutlineNode], node_id: str, target: MoveTarget | None = None) -> Forest:
    """Relocate the subtree rooted at ``node_id``.

    The input forest is returned untouched when ``node_id`` is unknown, when
    the target resolves inside the moved subtree, or when the target id does
    not exist once the subtree has been extracted.
    """

    original = _freeze(forest)
    moved = find_by_id(original, node_id)
    if moved is None:
        LOGGER.warning("move: section %s not found", node_id)
        return original

    remaining = remove(original, node_id)
    target = target or MoveTarget()

    subtree_ids = collect_ids((moved,))
    cyclic = [ref for ref in target.referenced_ids() if ref in subtree_ids]
    if cyclic:
        LOGGER.warning(
            "move: rejected moving %s into its own subtree (target=%s)", node_id, cyclic[0]
        )
        return original

    if target.sibling_id is not None:
        before = target.position == "before"
        updated, found = _splice(
            remaining,
            target.sibling_id,
            lambda sibling: (moved, sibling) if before else (sibling, moved),
        )
    elif target.parent_id is not None:
        updated, found = _splice(
            remaining,
            target.parent_id,
            lambda parent: (replace(parent, children=parent.children + (moved,)),),
        )
    else:
        return remaining + (moved,)

    if not found:
        LOGGER.warning("move: target %s not found; %s left in place", target, node_id)
        return original
    return updated


__all__ = [
    "Forest",
    "MoveTarget",
    "collect_ids",
    "contains",
    "find_by_id",
    "find_parent_id",
    "insert_child",
    "insert_root",
    "iter_nodes",
    "move",
    "new_node",
    "remove",
    "rename",
    "set_content",
    "set_fields",
    "strip_character",
    "toggle_character_association",
    "toggle_flag",
]
