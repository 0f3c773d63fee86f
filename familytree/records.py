"""
Record types persisted by the entity store.

Records are plain dataclasses. ``as_dict`` renders the camelCase JSON
shape the frontend consumes; graph records additionally render the
React Flow shape through ``to_flow``.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

from familytree.errors import ValidationError

GENDERS = ("male", "female", "other")

DEFAULT_NODE_STYLE = {
    "backgroundColor": "#ffffff",
    "borderColor": "#e5e7eb",
    "textColor": "#374151",
}

DEFAULT_EDGE_STYLE = {
    "strokeColor": "#6b7280",
    "strokeWidth": 2,
    "strokeDasharray": "",
    "animated": False,
}


def new_id() -> str:
    return uuid.uuid4().hex


def _now() -> float:
    return time.time()


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_date(value: Optional[str], field_name: str = "date") -> Optional[date]:
    """Parse an ISO date, or the date part of an ISO timestamp."""
    if value is None or not str(value).strip():
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be an ISO date") from exc


def check_gender(gender: Optional[str]) -> None:
    if gender is not None and gender not in GENDERS:
        raise ValidationError(f"gender must be one of {', '.join(GENDERS)}")


class RelationshipType(str, Enum):
    SPOUSE = "spouse"
    PARENT_CHILD = "parent-child"
    CHILD_PARENT = "child-parent"
    SIBLING = "sibling"
    GRANDPARENT_GRANDCHILD = "grandparent-grandchild"
    GRANDCHILD_GRANDPARENT = "grandchild-grandparent"
    UNCLE_NEPHEW = "uncle-nephew"
    AUNT_NIECE = "aunt-niece"
    COUSIN = "cousin"
    OTHER = "other"

    @classmethod
    def parse(
        cls, value: Any, default: Optional["RelationshipType"] = None
    ) -> Optional["RelationshipType"]:
        """Return the member for ``value``, or ``default`` when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


@dataclass
class PhotoRef:
    """A hosted image: public URL plus the host's deletion handle."""

    url: str
    public_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {"url": self.url, "publicId": self.public_id}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["PhotoRef"]:
        if not data or not data.get("url"):
            return None
        return cls(url=data["url"], public_id=data.get("publicId"))


@dataclass
class Address:
    house_no: Optional[str] = None
    place: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "houseNo": self.house_no,
            "place": self.place,
            "city": self.city,
            "state": self.state,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Address":
        data = data or {}
        return cls(
            house_no=data.get("houseNo"),
            place=data.get("place"),
            city=data.get("city"),
            state=data.get("state"),
            country=data.get("country"),
        )


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    def as_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


@dataclass
class UserRecord:
    id: str
    name: str
    email: str
    password_hash: str
    is_paid: bool = False
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "isPaid": self.is_paid,
        }


@dataclass
class PhotoRecord:
    id: str
    owner_id: str
    url: str
    public_id: str
    category: str = "general"
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "publicId": self.public_id,
            "category": self.category,
            "uploadedBy": self.owner_id,
            "createdAt": self.created_at,
        }


@dataclass
class PaymentRecord:
    id: str
    owner_id: str
    amount: int
    method: str
    currency: str = "inr"
    status: str = "pending"
    provider_intent_id: Optional[str] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "amount": self.amount,
            "currency": self.currency,
            "method": self.method,
            "status": self.status,
            "paymentIntentId": self.provider_intent_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class MemberRecord:
    id: str
    owner_id: str
    name: str
    relation: str
    parent_id: Optional[str] = None
    gender: str = "other"
    dob: Optional[date] = None
    address: Address = field(default_factory=Address)
    occupation: Optional[str] = None
    photo: Optional[PhotoRef] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "name": self.name,
            "relation": self.relation,
            "parentId": self.parent_id,
            "gender": self.gender,
            "dob": _iso(self.dob),
            "address": self.address.as_dict(),
            "occupation": self.occupation,
            "photo": self.photo.url if self.photo else None,
            "photoPublicId": self.photo.public_id if self.photo else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class NodeRecord:
    owner_id: str
    node_id: str
    name: str
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None
    gender: str = "other"
    photo: Optional[PhotoRef] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    position: Position = field(default_factory=Position)
    style: dict = field(default_factory=lambda: dict(DEFAULT_NODE_STYLE))
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def data(self) -> dict:
        return {
            "name": self.name,
            "dateOfBirth": _iso(self.date_of_birth),
            "dateOfDeath": _iso(self.date_of_death),
            "gender": self.gender,
            "photo": self.photo.as_dict() if self.photo else None,
            "occupation": self.occupation,
            "location": self.location,
            "notes": self.notes,
        }

    def to_flow(self) -> dict:
        return {
            "id": self.node_id,
            "type": "familyMember",
            "position": self.position.as_dict(),
            "data": self.data(),
            "style": self.style,
        }


@dataclass
class EdgeRecord:
    owner_id: str
    connection_id: str
    source_node_id: str
    target_node_id: str
    relationship_type: RelationshipType = RelationshipType.OTHER
    style: dict = field(default_factory=lambda: dict(DEFAULT_EDGE_STYLE))
    label: Optional[dict] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def to_flow(self) -> dict:
        return {
            "id": self.connection_id,
            "source": self.source_node_id,
            "target": self.target_node_id,
            "type": "smoothstep",
            "label": self.relationship_type.value,
            "labelStyle": {"fontSize": 12, "fontWeight": 600},
            "labelBgStyle": {"fill": "#ffffff", "fillOpacity": 0.8},
            "style": self.style,
            "data": {"relationshipType": self.relationship_type.value},
        }
