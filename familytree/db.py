"""
Entity store abstraction with a SQLAlchemy implementation and an
in-memory test implementation.

Every graph and member query is filtered by owner id. Unique indexes
(user email, per-owner node id, per-owner connection id, per-owner
connection endpoints) are enforced here and reported as
``DuplicateKeyError``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    or_,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from familytree.errors import DuplicateKeyError
from familytree.records import (
    Address,
    EdgeRecord,
    MemberRecord,
    NodeRecord,
    PaymentRecord,
    PhotoRecord,
    PhotoRef,
    Position,
    RelationshipType,
    UserRecord,
)


@dataclass
class BatchOutcome:
    nodes_updated: int = 0
    edges_deleted: int = 0
    edges_inserted: int = 0


class DbClient(Protocol):
    """Interface for database access."""

    # Users
    def create_user(self, user: UserRecord) -> UserRecord:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def set_user_paid(
        self, user_id: str, is_paid: bool = True
    ) -> Optional[UserRecord]:
        ...

    # Album photos
    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        ...

    def list_photos(
        self, owner_id: str, category: Optional[str] = None
    ) -> list[PhotoRecord]:
        ...

    def get_photo(self, owner_id: str, photo_id: str) -> Optional[PhotoRecord]:
        ...

    def delete_photo(self, owner_id: str, photo_id: str) -> bool:
        ...

    # Payments
    def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        ...

    def update_payment_status(
        self, owner_id: str, provider_intent_id: str, status: str
    ) -> Optional[PaymentRecord]:
        ...

    def list_payments(self, owner_id: str) -> list[PaymentRecord]:
        ...

    # Flat family members
    def create_member(self, member: MemberRecord) -> MemberRecord:
        ...

    def get_member(self, owner_id: str, member_id: str) -> Optional[MemberRecord]:
        ...

    def list_members(self, owner_id: str) -> list[MemberRecord]:
        ...

    def save_member(self, member: MemberRecord) -> MemberRecord:
        ...

    def delete_members(self, owner_id: str, member_ids: Iterable[str]) -> int:
        ...

    # Graph nodes and edges
    def create_node(self, node: NodeRecord) -> NodeRecord:
        ...

    def get_node(self, owner_id: str, node_id: str) -> Optional[NodeRecord]:
        ...

    def list_nodes(self, owner_id: str) -> list[NodeRecord]:
        ...

    def update_node(
        self, owner_id: str, node_id: str, changes: dict
    ) -> Optional[NodeRecord]:
        ...

    def delete_node(
        self, owner_id: str, node_id: str
    ) -> Optional[tuple[NodeRecord, int]]:
        ...

    def create_edge(self, edge: EdgeRecord) -> EdgeRecord:
        ...

    def list_edges(self, owner_id: str) -> list[EdgeRecord]:
        ...

    def delete_edge(self, owner_id: str, connection_id: str) -> bool:
        ...

    def apply_graph_batch(
        self,
        owner_id: str,
        positions: Dict[str, Position],
        delete_edge_ids: Iterable[str],
        new_edges: Iterable[EdgeRecord],
    ) -> BatchOutcome:
        ...

    def delete_graph(self, owner_id: str) -> tuple[int, int]:
        ...


NODE_FIELDS = (
    "name",
    "date_of_birth",
    "date_of_death",
    "gender",
    "photo",
    "occupation",
    "location",
    "notes",
    "position",
    "style",
)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.photos: Dict[str, PhotoRecord] = {}
        self.payments: Dict[str, PaymentRecord] = {}
        self.members: Dict[str, MemberRecord] = {}
        self.nodes: Dict[tuple[str, str], NodeRecord] = {}
        self.edges: Dict[tuple[str, str], EdgeRecord] = {}

    # Users

    def create_user(self, user: UserRecord) -> UserRecord:
        if self.get_user_by_email(user.email):
            raise DuplicateKeyError(f"email {user.email}")
        self.users[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def set_user_paid(
        self, user_id: str, is_paid: bool = True
    ) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if user:
            user.is_paid = is_paid
            user.updated_at = time.time()
        return user

    # Album photos

    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        self.photos[photo.id] = photo
        return photo

    def list_photos(
        self, owner_id: str, category: Optional[str] = None
    ) -> list[PhotoRecord]:
        items = [
            p
            for p in self.photos.values()
            if p.owner_id == owner_id and (category is None or p.category == category)
        ]
        return list(reversed(sorted(items, key=lambda p: p.created_at)))

    def get_photo(self, owner_id: str, photo_id: str) -> Optional[PhotoRecord]:
        photo = self.photos.get(photo_id)
        if photo and photo.owner_id == owner_id:
            return photo
        return None

    def delete_photo(self, owner_id: str, photo_id: str) -> bool:
        if not self.get_photo(owner_id, photo_id):
            return False
        del self.photos[photo_id]
        return True

    # Payments

    def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        self.payments[payment.id] = payment
        return payment

    def update_payment_status(
        self, owner_id: str, provider_intent_id: str, status: str
    ) -> Optional[PaymentRecord]:
        for payment in self.payments.values():
            if (
                payment.owner_id == owner_id
                and payment.provider_intent_id == provider_intent_id
            ):
                payment.status = status
                payment.updated_at = time.time()
                return payment
        return None

    def list_payments(self, owner_id: str) -> list[PaymentRecord]:
        items = [p for p in self.payments.values() if p.owner_id == owner_id]
        return list(reversed(sorted(items, key=lambda p: p.created_at)))

    # Flat family members

    def create_member(self, member: MemberRecord) -> MemberRecord:
        self.members[member.id] = member
        return member

    def get_member(self, owner_id: str, member_id: str) -> Optional[MemberRecord]:
        member = self.members.get(member_id)
        if member and member.owner_id == owner_id:
            return member
        return None

    def list_members(self, owner_id: str) -> list[MemberRecord]:
        items = [m for m in self.members.values() if m.owner_id == owner_id]
        return sorted(items, key=lambda m: m.created_at)

    def save_member(self, member: MemberRecord) -> MemberRecord:
        member.updated_at = time.time()
        self.members[member.id] = member
        return member

    def delete_members(self, owner_id: str, member_ids: Iterable[str]) -> int:
        deleted = 0
        for member_id in set(member_ids):
            if self.get_member(owner_id, member_id):
                del self.members[member_id]
                deleted += 1
        return deleted

    # Graph nodes and edges

    def create_node(self, node: NodeRecord) -> NodeRecord:
        key = (node.owner_id, node.node_id)
        if key in self.nodes:
            raise DuplicateKeyError(f"node {node.node_id}")
        self.nodes[key] = node
        return node

    def get_node(self, owner_id: str, node_id: str) -> Optional[NodeRecord]:
        return self.nodes.get((owner_id, node_id))

    def list_nodes(self, owner_id: str) -> list[NodeRecord]:
        items = [n for (owner, _), n in self.nodes.items() if owner == owner_id]
        return sorted(items, key=lambda n: n.created_at)

    def update_node(
        self, owner_id: str, node_id: str, changes: dict
    ) -> Optional[NodeRecord]:
        node = self.nodes.get((owner_id, node_id))
        if not node:
            return None
        for name, value in changes.items():
            if name in NODE_FIELDS:
                setattr(node, name, value)
        node.updated_at = time.time()
        return node

    def delete_node(
        self, owner_id: str, node_id: str
    ) -> Optional[tuple[NodeRecord, int]]:
        node = self.nodes.pop((owner_id, node_id), None)
        if not node:
            return None
        touching = [
            key
            for key, edge in self.edges.items()
            if edge.owner_id == owner_id
            and node_id in (edge.source_node_id, edge.target_node_id)
        ]
        for key in touching:
            del self.edges[key]
        return node, len(touching)

    @staticmethod
    def _check_edge_unique(
        edges: Dict[tuple[str, str], EdgeRecord], edge: EdgeRecord
    ) -> None:
        if (edge.owner_id, edge.connection_id) in edges:
            raise DuplicateKeyError(f"connection {edge.connection_id}")
        for existing in edges.values():
            if (
                existing.owner_id == edge.owner_id
                and existing.source_node_id == edge.source_node_id
                and existing.target_node_id == edge.target_node_id
            ):
                raise DuplicateKeyError(
                    f"connection {edge.source_node_id}->{edge.target_node_id}"
                )

    def create_edge(self, edge: EdgeRecord) -> EdgeRecord:
        self._check_edge_unique(self.edges, edge)
        self.edges[(edge.owner_id, edge.connection_id)] = edge
        return edge

    def list_edges(self, owner_id: str) -> list[EdgeRecord]:
        items = [e for (owner, _), e in self.edges.items() if owner == owner_id]
        return sorted(items, key=lambda e: e.created_at)

    def delete_edge(self, owner_id: str, connection_id: str) -> bool:
        return self.edges.pop((owner_id, connection_id), None) is not None

    def apply_graph_batch(
        self,
        owner_id: str,
        positions: Dict[str, Position],
        delete_edge_ids: Iterable[str],
        new_edges: Iterable[EdgeRecord],
    ) -> BatchOutcome:
        # Edge changes are staged on a copy so a duplicate leaves nothing applied.
        outcome = BatchOutcome()
        edges = dict(self.edges)
        for connection_id in delete_edge_ids:
            if edges.pop((owner_id, connection_id), None) is not None:
                outcome.edges_deleted += 1
        for edge in new_edges:
            self._check_edge_unique(edges, edge)
            edges[(edge.owner_id, edge.connection_id)] = edge
            outcome.edges_inserted += 1

        now = time.time()
        for node_id, position in positions.items():
            node = self.nodes.get((owner_id, node_id))
            if node:
                node.position = replace(position)
                node.updated_at = now
                outcome.nodes_updated += 1
        self.edges = edges
        return outcome

    def delete_graph(self, owner_id: str) -> tuple[int, int]:
        node_keys = [key for key in self.nodes if key[0] == owner_id]
        edge_keys = [key for key in self.edges if key[0] == owner_id]
        for key in node_keys:
            del self.nodes[key]
        for key in edge_keys:
            del self.edges[key]
        return len(node_keys), len(edge_keys)


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True for unique-index violations (Postgres SQLSTATE 23505 or SQLite)."""
    orig = exc.orig
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(orig)


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _commit(self, session: Session, what: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if _is_unique_violation(exc):
                raise DuplicateKeyError(what) from exc
            raise

    # Row conversion

    @staticmethod
    def _to_user(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            password_hash=row.password_hash,
            is_paid=bool(row.is_paid),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_photo(row: "PhotoRow") -> PhotoRecord:
        return PhotoRecord(
            id=row.id,
            owner_id=row.owner_id,
            url=row.url,
            public_id=row.public_id,
            category=row.category,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_payment(row: "PaymentRow") -> PaymentRecord:
        return PaymentRecord(
            id=row.id,
            owner_id=row.owner_id,
            amount=row.amount,
            method=row.method,
            currency=row.currency,
            status=row.status,
            provider_intent_id=row.provider_intent_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_member(row: "MemberRow") -> MemberRecord:
        photo = None
        if row.photo_url:
            photo = PhotoRef(url=row.photo_url, public_id=row.photo_public_id)
        return MemberRecord(
            id=row.id,
            owner_id=row.owner_id,
            name=row.name,
            relation=row.relation,
            parent_id=row.parent_id,
            gender=row.gender,
            dob=row.dob,
            address=Address.from_dict(row.address),
            occupation=row.occupation,
            photo=photo,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _apply_member(row: "MemberRow", member: MemberRecord) -> None:
        row.name = member.name
        row.relation = member.relation
        row.parent_id = member.parent_id
        row.gender = member.gender
        row.dob = member.dob
        row.address = member.address.as_dict()
        row.occupation = member.occupation
        row.photo_url = member.photo.url if member.photo else None
        row.photo_public_id = member.photo.public_id if member.photo else None
        row.updated_at = member.updated_at

    @staticmethod
    def _to_node(row: "NodeRow") -> NodeRecord:
        return NodeRecord(
            owner_id=row.owner_id,
            node_id=row.node_id,
            name=row.name,
            date_of_birth=row.date_of_birth,
            date_of_death=row.date_of_death,
            gender=row.gender,
            photo=PhotoRef.from_dict(row.photo),
            occupation=row.occupation,
            location=row.location,
            notes=row.notes,
            position=Position(x=row.position_x, y=row.position_y),
            style=dict(row.style or {}),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _set_node_field(row: "NodeRow", name: str, value) -> None:
        if name == "position":
            row.position_x = value.x
            row.position_y = value.y
        elif name == "photo":
            row.photo = value.as_dict() if value else None
        else:
            setattr(row, name, value)

    @staticmethod
    def _to_edge(row: "EdgeRow") -> EdgeRecord:
        return EdgeRecord(
            owner_id=row.owner_id,
            connection_id=row.connection_id,
            source_node_id=row.source_node_id,
            target_node_id=row.target_node_id,
            relationship_type=RelationshipType.parse(
                row.relationship_type, RelationshipType.OTHER
            ),
            style=dict(row.style or {}),
            label=row.label,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _edge_row(edge: EdgeRecord) -> "EdgeRow":
        return EdgeRow(
            owner_id=edge.owner_id,
            connection_id=edge.connection_id,
            source_node_id=edge.source_node_id,
            target_node_id=edge.target_node_id,
            relationship_type=edge.relationship_type.value,
            style=edge.style,
            label=edge.label,
            created_at=edge.created_at,
            updated_at=edge.updated_at,
        )

    # Users

    def create_user(self, user: UserRecord) -> UserRecord:
        with self.Session() as session:
            session.add(
                UserRow(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    password_hash=user.password_hash,
                    is_paid=user.is_paid,
                    created_at=user.created_at,
                    updated_at=user.updated_at,
                )
            )
            self._commit(session, f"email {user.email}")
        return user

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.email == email)
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def set_user_paid(
        self, user_id: str, is_paid: bool = True
    ) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            row.is_paid = is_paid
            row.updated_at = time.time()
            session.commit()
            return self._to_user(row)

    # Album photos

    def create_photo(self, photo: PhotoRecord) -> PhotoRecord:
        with self.Session() as session:
            session.add(
                PhotoRow(
                    id=photo.id,
                    owner_id=photo.owner_id,
                    url=photo.url,
                    public_id=photo.public_id,
                    category=photo.category,
                    created_at=photo.created_at,
                )
            )
            session.commit()
        return photo

    def list_photos(
        self, owner_id: str, category: Optional[str] = None
    ) -> list[PhotoRecord]:
        with self.Session() as session:
            stmt = select(PhotoRow).where(PhotoRow.owner_id == owner_id)
            if category is not None:
                stmt = stmt.where(PhotoRow.category == category)
            stmt = stmt.order_by(PhotoRow.created_at.desc())
            return [self._to_photo(row) for row in session.execute(stmt).scalars()]

    def get_photo(self, owner_id: str, photo_id: str) -> Optional[PhotoRecord]:
        with self.Session() as session:
            row = session.get(PhotoRow, photo_id)
            if not row or row.owner_id != owner_id:
                return None
            return self._to_photo(row)

    def delete_photo(self, owner_id: str, photo_id: str) -> bool:
        with self.Session() as session:
            deleted = (
                session.query(PhotoRow)
                .filter(PhotoRow.id == photo_id, PhotoRow.owner_id == owner_id)
                .delete(synchronize_session=False)
            )
            session.commit()
            return bool(deleted)

    # Payments

    def create_payment(self, payment: PaymentRecord) -> PaymentRecord:
        with self.Session() as session:
            session.add(
                PaymentRow(
                    id=payment.id,
                    owner_id=payment.owner_id,
                    amount=payment.amount,
                    currency=payment.currency,
                    method=payment.method,
                    status=payment.status,
                    provider_intent_id=payment.provider_intent_id,
                    created_at=payment.created_at,
                    updated_at=payment.updated_at,
                )
            )
            session.commit()
        return payment

    def update_payment_status(
        self, owner_id: str, provider_intent_id: str, status: str
    ) -> Optional[PaymentRecord]:
        with self.Session() as session:
            row = session.execute(
                select(PaymentRow).where(
                    PaymentRow.owner_id == owner_id,
                    PaymentRow.provider_intent_id == provider_intent_id,
                )
            ).scalar_one_or_none()
            if not row:
                return None
            row.status = status
            row.updated_at = time.time()
            session.commit()
            return self._to_payment(row)

    def list_payments(self, owner_id: str) -> list[PaymentRecord]:
        with self.Session() as session:
            stmt = (
                select(PaymentRow)
                .where(PaymentRow.owner_id == owner_id)
                .order_by(PaymentRow.created_at.desc())
            )
            return [self._to_payment(row) for row in session.execute(stmt).scalars()]

    # Flat family members

    def create_member(self, member: MemberRecord) -> MemberRecord:
        with self.Session() as session:
            row = MemberRow(
                id=member.id,
                owner_id=member.owner_id,
                created_at=member.created_at,
            )
            self._apply_member(row, member)
            session.add(row)
            self._commit(session, f"member {member.id}")
        return member

    def get_member(self, owner_id: str, member_id: str) -> Optional[MemberRecord]:
        with self.Session() as session:
            row = session.get(MemberRow, member_id)
            if not row or row.owner_id != owner_id:
                return None
            return self._to_member(row)

    def list_members(self, owner_id: str) -> list[MemberRecord]:
        with self.Session() as session:
            stmt = (
                select(MemberRow)
                .where(MemberRow.owner_id == owner_id)
                .order_by(MemberRow.created_at.asc())
            )
            return [self._to_member(row) for row in session.execute(stmt).scalars()]

    def save_member(self, member: MemberRecord) -> MemberRecord:
        member.updated_at = time.time()
        with self.Session() as session:
            row = session.get(MemberRow, member.id)
            if not row or row.owner_id != member.owner_id:
                raise KeyError(member.id)
            self._apply_member(row, member)
            session.commit()
        return member

    def delete_members(self, owner_id: str, member_ids: Iterable[str]) -> int:
        ids = list(set(member_ids))
        if not ids:
            return 0
        with self.Session() as session:
            deleted = (
                session.query(MemberRow)
                .filter(MemberRow.owner_id == owner_id, MemberRow.id.in_(ids))
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted or 0

    # Graph nodes and edges

    def create_node(self, node: NodeRecord) -> NodeRecord:
        with self.Session() as session:
            row = NodeRow(
                owner_id=node.owner_id,
                node_id=node.node_id,
                created_at=node.created_at,
                updated_at=node.updated_at,
            )
            for name in NODE_FIELDS:
                self._set_node_field(row, name, getattr(node, name))
            session.add(row)
            self._commit(session, f"node {node.node_id}")
        return node

    def get_node(self, owner_id: str, node_id: str) -> Optional[NodeRecord]:
        with self.Session() as session:
            row = session.get(NodeRow, (owner_id, node_id))
            return self._to_node(row) if row else None

    def list_nodes(self, owner_id: str) -> list[NodeRecord]:
        with self.Session() as session:
            stmt = (
                select(NodeRow)
                .where(NodeRow.owner_id == owner_id)
                .order_by(NodeRow.created_at.asc())
            )
            return [self._to_node(row) for row in session.execute(stmt).scalars()]

    def update_node(
        self, owner_id: str, node_id: str, changes: dict
    ) -> Optional[NodeRecord]:
        with self.Session() as session:
            row = session.get(NodeRow, (owner_id, node_id))
            if not row:
                return None
            for name, value in changes.items():
                if name in NODE_FIELDS:
                    self._set_node_field(row, name, value)
            row.updated_at = time.time()
            session.commit()
            return self._to_node(row)

    def delete_node(
        self, owner_id: str, node_id: str
    ) -> Optional[tuple[NodeRecord, int]]:
        with self.Session() as session:
            row = session.get(NodeRow, (owner_id, node_id))
            if not row:
                return None
            node = self._to_node(row)
            session.delete(row)
            deleted_edges = (
                session.query(EdgeRow)
                .filter(
                    EdgeRow.owner_id == owner_id,
                    or_(
                        EdgeRow.source_node_id == node_id,
                        EdgeRow.target_node_id == node_id,
                    ),
                )
                .delete(synchronize_session=False)
            )
            session.commit()
            return node, deleted_edges or 0

    def create_edge(self, edge: EdgeRecord) -> EdgeRecord:
        with self.Session() as session:
            session.add(self._edge_row(edge))
            self._commit(session, f"connection {edge.connection_id}")
        return edge

    def list_edges(self, owner_id: str) -> list[EdgeRecord]:
        with self.Session() as session:
            stmt = (
                select(EdgeRow)
                .where(EdgeRow.owner_id == owner_id)
                .order_by(EdgeRow.created_at.asc())
            )
            return [self._to_edge(row) for row in session.execute(stmt).scalars()]

    def delete_edge(self, owner_id: str, connection_id: str) -> bool:
        with self.Session() as session:
            row = session.get(EdgeRow, (owner_id, connection_id))
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def apply_graph_batch(
        self,
        owner_id: str,
        positions: Dict[str, Position],
        delete_edge_ids: Iterable[str],
        new_edges: Iterable[EdgeRecord],
    ) -> BatchOutcome:
        outcome = BatchOutcome()
        now = time.time()
        delete_ids = list(delete_edge_ids)
        with self.Session() as session:
            for node_id, position in positions.items():
                row = session.get(NodeRow, (owner_id, node_id))
                if row:
                    row.position_x = position.x
                    row.position_y = position.y
                    row.updated_at = now
                    outcome.nodes_updated += 1
            if delete_ids:
                outcome.edges_deleted = (
                    session.query(EdgeRow)
                    .filter(
                        EdgeRow.owner_id == owner_id,
                        EdgeRow.connection_id.in_(delete_ids),
                    )
                    .delete(synchronize_session=False)
                ) or 0
            for edge in new_edges:
                session.add(self._edge_row(edge))
                outcome.edges_inserted += 1
            self._commit(session, "connection batch")
        return outcome

    def delete_graph(self, owner_id: str) -> tuple[int, int]:
        with self.Session() as session:
            nodes = (
                session.query(NodeRow)
                .filter(NodeRow.owner_id == owner_id)
                .delete(synchronize_session=False)
            )
            edges = (
                session.query(EdgeRow)
                .filter(EdgeRow.owner_id == owner_id)
                .delete(synchronize_session=False)
            )
            session.commit()
            return nodes or 0, edges or 0


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class PhotoRow(Base):
    __tablename__ = "photos"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    public_id = Column(String, nullable=False)
    category = Column(String, nullable=False, default="general")
    created_at = Column(Float, nullable=False)


class PaymentRow(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="inr")
    method = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    provider_intent_id = Column(String, nullable=True, index=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class MemberRow(Base):
    __tablename__ = "family_members"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    relation = Column(String, nullable=False)
    parent_id = Column(String, nullable=True, index=True)
    gender = Column(String, nullable=False, default="other")
    dob = Column(Date, nullable=True)
    address = Column(JSON, nullable=True)
    occupation = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    photo_public_id = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class NodeRow(Base):
    __tablename__ = "family_nodes"

    owner_id = Column(String, primary_key=True)
    node_id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    date_of_death = Column(Date, nullable=True)
    gender = Column(String, nullable=False, default="other")
    photo = Column(JSON, nullable=True)
    occupation = Column(String, nullable=True)
    location = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    position_x = Column(Float, nullable=False, default=0.0)
    position_y = Column(Float, nullable=False, default=0.0)
    style = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class EdgeRow(Base):
    __tablename__ = "family_connections"
    __table_args__ = (
        UniqueConstraint(
            "owner_id",
            "source_node_id",
            "target_node_id",
            name="uq_family_connections_endpoints",
        ),
    )

    owner_id = Column(String, primary_key=True)
    connection_id = Column(String, primary_key=True)
    source_node_id = Column(String, nullable=False)
    target_node_id = Column(String, nullable=False)
    relationship_type = Column(String, nullable=False)
    style = Column(JSON, nullable=True)
    label = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
