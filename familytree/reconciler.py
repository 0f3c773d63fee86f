"""
Owner-scoped reconciliation of the canvas graph model (nodes + edges).

Every operation takes the caller's owner id explicitly; store lookups are
always filtered by it, so ids belonging to another owner are simply not
found. Photo releases on delete paths are best-effort: a failed release
is logged and the deletion stands.
"""

from __future__ import annotations

import logging
import math
import random
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from familytree.db import BatchOutcome, DbClient
from familytree.errors import (
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from familytree.records import (
    DEFAULT_EDGE_STYLE,
    DEFAULT_NODE_STYLE,
    EdgeRecord,
    NodeRecord,
    Position,
    RelationshipType,
    check_gender,
)
from familytree.storage import (
    NODE_FOLDER,
    ImageHost,
    PhotoUpload,
    host_photo,
    release_quietly,
)

logger = logging.getLogger(__name__)

NODE_CONFLICT = "Family member with this ID already exists"
EDGE_CONFLICT = "Connection already exists between these members"


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex}"


def new_connection_id() -> str:
    return f"connection-{uuid.uuid4().hex}"


def _check_finite(*coordinates: Optional[float]) -> None:
    for value in coordinates:
        if value is not None and not math.isfinite(value):
            raise ValidationError("position must be a finite number")


@dataclass
class NodeInput:
    """Node fields from a create or edit request; None means not provided."""

    node_id: Optional[str] = None
    name: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    style: Optional[dict] = None

    def position(self) -> Optional[Position]:
        if self.position_x is None or self.position_y is None:
            return None
        return Position(x=float(self.position_x), y=float(self.position_y))


@dataclass
class EdgeInput:
    source_node_id: Optional[str] = None
    target_node_id: Optional[str] = None
    relationship_type: Optional[str] = None
    connection_id: Optional[str] = None
    style: Optional[dict] = None
    label: Optional[dict] = None


@dataclass
class NodePlacement:
    node_id: str
    position: Position


@dataclass
class NodeDeletion:
    node: NodeRecord
    deleted_edges: int
    photo_deleted: bool = False


@dataclass
class Graph:
    nodes: List[NodeRecord] = field(default_factory=list)
    edges: List[EdgeRecord] = field(default_factory=list)


class GraphReconciler:
    def __init__(self, db: DbClient, images: ImageHost):
        self.db = db
        self.images = images

    def get_graph(self, owner_id: str) -> Graph:
        nodes = self.db.list_nodes(owner_id)
        edges = self.db.list_edges(owner_id)
        logger.debug(
            "Loaded graph for %s: %d nodes, %d edges", owner_id, len(nodes), len(edges)
        )
        return Graph(nodes=nodes, edges=edges)

    # Nodes

    def upsert_node(
        self,
        owner_id: str,
        fields: NodeInput,
        *,
        is_editing: bool = False,
        photo: Optional[PhotoUpload] = None,
    ) -> tuple[NodeRecord, bool]:
        """Create or partially update a node; returns (node, created).

        The photo is uploaded only after the request has been validated;
        an upload failure aborts the operation.
        """
        check_gender(fields.gender)
        if fields.name is not None and not fields.name.strip():
            raise ValidationError("name is required")
        _check_finite(fields.position_x, fields.position_y)
        if is_editing:
            return self._update_node(owner_id, fields, photo), False
        return self._create_node(owner_id, fields, photo), True

    def _update_node(
        self, owner_id: str, fields: NodeInput, upload: Optional[PhotoUpload]
    ) -> NodeRecord:
        if not fields.node_id:
            raise ValidationError("nodeId is required when editing")
        existing = self.db.get_node(owner_id, fields.node_id)
        if not existing:
            raise NotFoundError("Family member not found")
        replaced_photo_id = existing.photo.public_id if existing.photo else None
        photo = host_photo(self.images, upload, NODE_FOLDER)

        changes: dict = {}
        for name in ("gender", "occupation", "location", "notes", "style"):
            value = getattr(fields, name)
            if value is not None:
                changes[name] = value
        if fields.name is not None:
            changes["name"] = fields.name.strip()
        if fields.date_of_birth is not None:
            changes["date_of_birth"] = fields.date_of_birth
        if fields.date_of_death is not None:
            changes["date_of_death"] = fields.date_of_death
        position = fields.position()
        if position is not None:
            changes["position"] = position
        if photo is not None:
            changes["photo"] = photo

        hosted_id = photo.public_id if photo else None
        try:
            updated = self.db.update_node(owner_id, fields.node_id, changes)
        except Exception:
            release_quietly(self.images, hosted_id)
            raise
        if updated is None:
            # Removed between the lookup and the write.
            release_quietly(self.images, hosted_id)
            raise NotFoundError("Family member not found")
        if photo is not None:
            release_quietly(self.images, replaced_photo_id)
        return updated

    def _create_node(
        self, owner_id: str, fields: NodeInput, upload: Optional[PhotoUpload]
    ) -> NodeRecord:
        if not fields.name:
            raise ValidationError("name is required")
        photo = host_photo(self.images, upload, NODE_FOLDER)
        position = Position(
            x=float(fields.position_x)
            if fields.position_x is not None
            else random.random() * 400,
            y=float(fields.position_y)
            if fields.position_y is not None
            else random.random() * 300,
        )
        node = NodeRecord(
            owner_id=owner_id,
            node_id=fields.node_id or new_node_id(),
            name=fields.name.strip(),
            date_of_birth=fields.date_of_birth,
            date_of_death=fields.date_of_death,
            gender=fields.gender or "other",
            photo=photo,
            occupation=fields.occupation,
            location=fields.location,
            notes=fields.notes,
            position=position,
            style={**DEFAULT_NODE_STYLE, **(fields.style or {})},
        )
        try:
            return self.db.create_node(node)
        except DuplicateKeyError as exc:
            release_quietly(self.images, photo.public_id if photo else None)
            raise ConflictError(NODE_CONFLICT) from exc

    def delete_node(self, owner_id: str, node_id: str) -> NodeDeletion:
        result = self.db.delete_node(owner_id, node_id)
        if result is None:
            logger.info("Node %s not found for %s", node_id, owner_id)
            raise NotFoundError("Family member not found")
        node, deleted_edges = result
        logger.info(
            "Deleted node %s (%s) and %d connections for %s",
            node.node_id,
            node.name,
            deleted_edges,
            owner_id,
        )
        # Reports that a release was attempted; the release itself may fail.
        photo_deleted = bool(node.photo and node.photo.public_id)
        if photo_deleted:
            release_quietly(self.images, node.photo.public_id)
        return NodeDeletion(
            node=node, deleted_edges=deleted_edges, photo_deleted=photo_deleted
        )

    def delete_node_by_name(self, owner_id: str, name: str) -> NodeDeletion:
        needle = (name or "").strip().lower()
        if not needle:
            raise ValidationError("name is required")
        for node in self.db.list_nodes(owner_id):
            if needle in node.name.lower():
                return self.delete_node(owner_id, node.node_id)
        raise NotFoundError(f'Member "{name}" not found')

    # Edges

    def _build_edge(
        self,
        owner_id: str,
        fields: EdgeInput,
        relationship_type: RelationshipType,
        connection_id: str,
    ) -> EdgeRecord:
        if not fields.source_node_id or not fields.target_node_id:
            raise ValidationError("source and target are required")
        return EdgeRecord(
            owner_id=owner_id,
            connection_id=connection_id,
            source_node_id=fields.source_node_id,
            target_node_id=fields.target_node_id,
            relationship_type=relationship_type,
            style={**DEFAULT_EDGE_STYLE, **(fields.style or {})},
            label=fields.label,
        )

    def add_edge(self, owner_id: str, fields: EdgeInput) -> EdgeRecord:
        relationship_type = RelationshipType.parse(fields.relationship_type)
        if relationship_type is None:
            raise ValidationError("relationshipType is invalid")
        edge = self._build_edge(
            owner_id,
            fields,
            relationship_type,
            fields.connection_id or new_connection_id(),
        )
        try:
            return self.db.create_edge(edge)
        except DuplicateKeyError as exc:
            raise ConflictError(EDGE_CONFLICT) from exc

    def delete_edge(self, owner_id: str, connection_id: str) -> None:
        if not self.db.delete_edge(owner_id, connection_id):
            raise NotFoundError("Connection not found")

    # Bulk operations

    def save_batch(
        self,
        owner_id: str,
        nodes: Iterable[NodePlacement],
        edges: Optional[Iterable[EdgeInput]] = None,
    ) -> BatchOutcome:
        """Reconcile stored positions and edges with the client's full state.

        Positions are update-only; unknown node ids are ignored. When
        ``edges`` is given, stored edges missing from it are deleted and new
        ids are inserted. Applying the same input twice converges.
        """
        positions: Dict[str, Position] = {
            placement.node_id: placement.position for placement in nodes
        }
        for position in positions.values():
            _check_finite(position.x, position.y)

        delete_ids: List[str] = []
        new_edges: List[EdgeRecord] = []
        if edges is not None:
            provided: Dict[str, EdgeInput] = {}
            for edge in edges:
                if not edge.connection_id:
                    raise ValidationError("every edge needs an id")
                provided.setdefault(edge.connection_id, edge)
            existing_ids = {e.connection_id for e in self.db.list_edges(owner_id)}
            delete_ids = sorted(existing_ids - provided.keys())
            for connection_id, edge in provided.items():
                if connection_id in existing_ids:
                    continue
                relationship_type = RelationshipType.parse(
                    edge.relationship_type, RelationshipType.OTHER
                )
                new_edges.append(
                    self._build_edge(owner_id, edge, relationship_type, connection_id)
                )

        try:
            outcome = self.db.apply_graph_batch(
                owner_id, positions, delete_ids, new_edges
            )
        except DuplicateKeyError as exc:
            raise ConflictError(EDGE_CONFLICT) from exc
        logger.info(
            "Saved graph for %s: %d positions, %d edges removed, %d edges added",
            owner_id,
            outcome.nodes_updated,
            outcome.edges_deleted,
            outcome.edges_inserted,
        )
        return outcome

    def clear_all(self, owner_id: str) -> tuple[int, int]:
        # Hosted photos are left in place here and cleaned up out of band.
        nodes, edges = self.db.delete_graph(owner_id)
        logger.info(
            "Cleared graph for %s: %d nodes, %d connections", owner_id, nodes, edges
        )
        return nodes, edges
