"""Structural scope of a topic: file > component > member > semantic block."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Global:
    pass


@dataclass(frozen=True)
class Container:
    container: str


@dataclass(frozen=True)
class Component:
    container: str
    component: str


@dataclass(frozen=True)
class Member:
    container: str
    component: str
    member: str


@dataclass(frozen=True)
class SemanticBlock:
    container: str
    component: str
    member: str
    block: str


Scope = Global | Container | Component | Member | SemanticBlock

GLOBAL = Global()


def scope_topic(scope: Scope) -> str | None:
    """Return the topic id of the innermost level of a scope (None for Global)."""
    match scope:
        case Global():
            return None
        case Container(container=container):
            return container
        case Component(component=component):
            return component
        case Member(member=member):
            return member
        case SemanticBlock(block=block):
            return block
    raise TypeError(f"Not a scope: {scope!r}")


def parent_scope(scope: Scope) -> Scope | None:
    """Return the enclosing scope, or None at the top."""
    match scope:
        case Global():
            return None
        case Container():
            return GLOBAL
        case Component(container=c):
            return Container(c)
        case Member(container=c, component=comp):
            return Component(c, comp)
        case SemanticBlock(container=c, component=comp, member=m):
            return Member(c, comp, m)
    raise TypeError(f"Not a scope: {scope!r}")


def enter_scope(scope: Scope, topic_id: str) -> Scope:
    """Return the scope that ``topic_id``, living in ``scope``, defines for its children.

    Blocks nested in blocks stay at block level.
    """
    match scope:
        case Global():
            return Container(topic_id)
        case Container(container=c):
            return Component(c, topic_id)
        case Component(container=c, component=comp):
            return Member(c, comp, topic_id)
        case Member(container=c, component=comp, member=m):
            return SemanticBlock(c, comp, m, topic_id)
        case SemanticBlock(container=c, component=comp, member=m):
            return SemanticBlock(c, comp, m, topic_id)
    raise TypeError(f"Not a scope: {scope!r}")


def scope_path(scope: Scope) -> list[Scope]:
    """Return ``[Global, ..., scope]``."""
    path = [scope]
    while (parent := parent_scope(path[-1])) is not None:
        path.append(parent)
    path.reverse()
    return path


def topic_path(scope: Scope, topic_id: str) -> list[str]:
    """Return the topic ids from the outermost enclosing scope down to ``topic_id``."""
    topics = [t for s in scope_path(scope) if (t := scope_topic(s)) is not None]
    topics.append(topic_id)
    return topics


def child_topic_toward(
    topic_id: str, descendant_scope: Scope, descendant_topic: str
) -> str | None:
    """Return the topic one level below ``topic_id`` on the path to a descendant.

    ``descendant_scope`` is the scope the descendant lives in. None when the
    descendant is not strictly below ``topic_id``.
    """
    path = topic_path(descendant_scope, descendant_topic)
    try:
        index = path.index(topic_id)
    except ValueError:
        return None
    if index + 1 >= len(path):
        return None
    return path[index + 1]


def scope_container(scope: Scope) -> str | None:
    """Return the container (file) a scope belongs to, None for Global."""
    if isinstance(scope, Global):
        return None
    return scope.container


_KINDS = {
    "global": (Global, ()),
    "container": (Container, ("container",)),
    "component": (Component, ("container", "component")),
    "member": (Member, ("container", "component", "member")),
    "block": (SemanticBlock, ("container", "component", "member", "block")),
}


def scope_from_dict(data: dict[str, Any] | None) -> Scope:
    """Build a scope from its wire form, e.g. ``{"kind": "member", ...}``."""
    if not data:
        return GLOBAL
    kind = data.get("kind", "global")
    if kind not in _KINDS:
        raise ValueError(f"Unknown scope kind: {kind}")
    cls, fields = _KINDS[kind]
    try:
        return cls(*(str(data[name]) for name in fields))
    except KeyError as e:
        raise ValueError(f"Scope of kind {kind} is missing {e}") from None


def scope_to_dict(scope: Scope) -> dict[str, str]:
    for kind, (cls, fields) in _KINDS.items():
        if type(scope) is cls:
            return {"kind": kind, **{name: getattr(scope, name) for name in fields}}
    raise TypeError(f"Not a scope: {scope!r}")
