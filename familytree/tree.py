"""
Builds the family forest from a flat parent-pointer member list.

Relation labels are resolved once into a closed ``Relation`` variant:
"wife"/"husband" link a spouse onto the member they point at,
"son"/"daughter" nest under their parent, and every other label is a root
even when it carries a parent id. Matching is case-insensitive on those
four literal labels only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from familytree.records import MemberRecord

SPOUSE_LABELS = frozenset({"wife", "husband"})
CHILD_LABELS = frozenset({"son", "daughter"})


class RelationKind(Enum):
    SPOUSE = "spouse"
    CHILD = "child"
    OTHER = "other"


@dataclass(frozen=True)
class Relation:
    kind: RelationKind
    label: str


def classify_relation(label: Optional[str]) -> Relation:
    text = label or ""
    normalized = text.strip().lower()
    if normalized in SPOUSE_LABELS:
        return Relation(RelationKind.SPOUSE, text)
    if normalized in CHILD_LABELS:
        return Relation(RelationKind.CHILD, text)
    return Relation(RelationKind.OTHER, text)


@dataclass
class MemberSummary:
    """The subset of a spouse's fields attached to their partner."""

    id: str
    name: str
    relation: str
    gender: str
    photo: Optional[str]
    dob: Optional[str]
    occupation: Optional[str]
    address: dict

    @classmethod
    def of(cls, member: MemberRecord) -> "MemberSummary":
        data = member.as_dict()
        return cls(
            id=member.id,
            name=member.name,
            relation=member.relation,
            gender=member.gender,
            photo=data["photo"],
            dob=data["dob"],
            occupation=member.occupation,
            address=data["address"],
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "relation": self.relation,
            "gender": self.gender,
            "photo": self.photo,
            "dob": self.dob,
            "occupation": self.occupation,
            "address": self.address,
        }


@dataclass
class TreeNode:
    member: MemberRecord
    relation: Relation
    children: List["TreeNode"] = field(default_factory=list)
    spouse: Optional[MemberSummary] = None

    @property
    def id(self) -> str:
        return self.member.id

    def as_dict(self, _seen: Optional[set] = None) -> Dict[str, Any]:
        # parent_id chains are not validated, so guard against cycles here.
        seen = _seen if _seen is not None else set()
        seen.add(self.id)
        payload = self.member.as_dict()
        payload["spouse"] = self.spouse.as_dict() if self.spouse else None
        payload["children"] = [
            child.as_dict(seen) for child in self.children if child.id not in seen
        ]
        return payload


def build_tree(members: Iterable[MemberRecord]) -> List[TreeNode]:
    """Return the roots of the forest described by ``members``.

    Pure and deterministic for a given input order: children keep input
    order, roots keep input order. Never raises; dangling parent ids fail
    open to roots.
    """
    by_id: Dict[str, TreeNode] = {}
    for member in members:
        by_id[member.id] = TreeNode(
            member=member, relation=classify_relation(member.relation)
        )

    consumed: set[str] = set()
    for entry in by_id.values():
        if entry.relation.kind is not RelationKind.SPOUSE:
            continue
        if not entry.member.parent_id:
            continue
        partner = by_id.get(entry.member.parent_id)
        if partner:
            partner.spouse = MemberSummary.of(entry.member)
            consumed.add(entry.id)

    roots: List[TreeNode] = []
    for entry in by_id.values():
        if entry.id in consumed:
            continue
        parent_id = entry.member.parent_id
        if entry.relation.kind is RelationKind.CHILD and parent_id:
            parent = by_id.get(parent_id)
            if parent:
                parent.children.append(entry)
                continue
        roots.append(entry)
    return roots


def collect_subtree(
    members: Iterable[MemberRecord], root_id: str
) -> List[MemberRecord]:
    """Return the member ``root_id`` and every transitive descendant.

    Descent follows ``parent_id`` regardless of relation label, so spouses
    attached to a descendant go with it. Each member appears once.
    """
    members = list(members)
    by_parent: Dict[str, List[MemberRecord]] = {}
    root: Optional[MemberRecord] = None
    for member in members:
        if member.id == root_id:
            root = member
        if member.parent_id:
            by_parent.setdefault(member.parent_id, []).append(member)
    if root is None:
        return []

    collected: List[MemberRecord] = []
    seen: set[str] = set()
    stack = [root]
    while stack:
        current = stack.pop()
        if current.id in seen:
            continue
        seen.add(current.id)
        collected.append(current)
        stack.extend(by_parent.get(current.id, []))
    return collected
