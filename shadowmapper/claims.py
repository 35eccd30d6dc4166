"""
Claim Graph Input Types

Claims and edges are produced upstream by the semantic mapper.
They arrive as loosely-shaped JSON, so construction from mappings
tolerates missing optional fields and camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

EDGE_TYPES = ("prerequisite", "conflicts", "supports", "tradeoff")
ROLES = ("anchor", "challenger", "branch", "supplement")


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Claim:
    id: str
    label: str = ""
    text: str = ""
    type: str = ""
    role: str = ""
    supporters: tuple[int, ...] = ()
    challenges: Optional[str] = None

    @property
    def support_count(self) -> int:
        return len(self.supporters)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Claim":
        supporters = _pick(data, "supporters", default=()) or ()
        return cls(
            id=str(data["id"]),
            label=str(_pick(data, "label", default="")),
            text=str(_pick(data, "text", default="")),
            type=str(_pick(data, "type", default="")),
            role=str(_pick(data, "role", default="")),
            supporters=tuple(int(s) for s in supporters),
            challenges=_pick(data, "challenges"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "text": self.text,
            "type": self.type,
            "role": self.role,
            "supporters": list(self.supporters),
            "challenges": self.challenges,
        }


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Edge":
        source = _pick(data, "from", "source", "from_")
        target = _pick(data, "to", "target", "to_")
        if source is None or target is None:
            raise ValueError(f"Edge needs both endpoints: {dict(data)!r}")
        return cls(
            source=str(source),
            target=str(target),
            type=str(_pick(data, "type", default="")),
        )

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.target, "type": self.type}


ClaimLike = Union[Claim, Mapping[str, Any]]
EdgeLike = Union[Edge, Mapping[str, Any]]


def _has_endpoints(data: Mapping[str, Any]) -> bool:
    return (
        _pick(data, "from", "source", "from_") is not None
        and _pick(data, "to", "target", "to_") is not None
    )


def coerce_claims(claims: Optional[Iterable[ClaimLike]]) -> list[Claim]:
    return [c if isinstance(c, Claim) else Claim.from_dict(c) for c in claims or ()]


def coerce_edges(edges: Optional[Iterable[EdgeLike]]) -> list[Edge]:
    """Edges as objects; mappings missing an endpoint are dropped."""
    out = []
    for e in edges or ():
        if isinstance(e, Edge):
            out.append(e)
        elif _has_endpoints(e):
            out.append(Edge.from_dict(e))
    return out
