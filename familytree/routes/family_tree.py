"""
Canvas family-tree routes. Nodes and edges are returned in the shape the
React Flow canvas consumes.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from familytree.auth import get_current_user
from familytree.config import Settings, get_settings
from familytree.dependencies import get_reconciler
from familytree.reconciler import EdgeInput, GraphReconciler, NodeInput, NodePlacement
from familytree.records import Position, UserRecord, parse_date
from familytree.routes.uploads import blank_to_none, form_float, read_photo
from familytree.schemas import (
    ClearTreeResponse,
    ConnectionRequest,
    FlowEdge,
    FlowNode,
    GraphResponse,
    MessageResponse,
    NodeDeleteResponse,
    SaveTreeRequest,
    SaveTreeResponse,
)

router = APIRouter(prefix="/family-tree", tags=["Family Tree"])


def node_form(
    node_id: Optional[str] = Form(default=None, alias="nodeId"),
    name: Optional[str] = Form(default=None),
    date_of_birth: Optional[str] = Form(default=None, alias="dateOfBirth"),
    date_of_death: Optional[str] = Form(default=None, alias="dateOfDeath"),
    gender: Optional[str] = Form(default=None),
    occupation: Optional[str] = Form(default=None),
    location: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    position_x: Optional[str] = Form(default=None, alias="positionX"),
    position_y: Optional[str] = Form(default=None, alias="positionY"),
) -> NodeInput:
    return NodeInput(
        node_id=blank_to_none(node_id),
        name=name,
        date_of_birth=parse_date(date_of_birth, "dateOfBirth"),
        date_of_death=parse_date(date_of_death, "dateOfDeath"),
        gender=blank_to_none(gender),
        occupation=occupation,
        location=location,
        notes=notes,
        position_x=form_float(position_x, "positionX"),
        position_y=form_float(position_y, "positionY"),
    )


@router.get("", response_model=GraphResponse)
@router.get("/", response_model=GraphResponse, include_in_schema=False)
def get_graph(
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    graph = reconciler.get_graph(user.id)
    return GraphResponse(
        nodes=[FlowNode(**node.to_flow()) for node in graph.nodes],
        edges=[FlowEdge(**edge.to_flow()) for edge in graph.edges],
    )


@router.post("/node", response_model=FlowNode, status_code=201)
async def upsert_node(
    response: Response,
    user: UserRecord = Depends(get_current_user),
    fields: NodeInput = Depends(node_form),
    is_editing: Optional[str] = Form(default=None, alias="isEditing"),
    photo: Optional[UploadFile] = File(default=None),
    reconciler: GraphReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
):
    upload = await read_photo(photo, settings.max_upload_bytes)
    node, created = reconciler.upsert_node(
        user.id, fields, is_editing=is_editing == "true", photo=upload
    )
    if not created:
        response.status_code = 200
    return FlowNode(**node.to_flow())


@router.delete("/node/{node_id}", response_model=NodeDeleteResponse)
def delete_node(
    node_id: str,
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    deletion = reconciler.delete_node(user.id, node_id)
    return NodeDeleteResponse(
        message="Family member completely deleted",
        deletedMember=deletion.node.name,
        deletedConnections=deletion.deleted_edges,
        photoDeleted=deletion.photo_deleted,
    )


@router.post("/connection", response_model=FlowEdge, status_code=201)
def add_connection(
    payload: ConnectionRequest,
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    edge = reconciler.add_edge(
        user.id,
        EdgeInput(
            source_node_id=payload.sourceNodeId,
            target_node_id=payload.targetNodeId,
            relationship_type=payload.relationshipType,
            connection_id=payload.connectionId,
            style=payload.style,
            label=payload.label,
        ),
    )
    return FlowEdge(**edge.to_flow())


@router.delete("/connection/{connection_id}", response_model=MessageResponse)
def delete_connection(
    connection_id: str,
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    reconciler.delete_edge(user.id, connection_id)
    return MessageResponse(message="Connection deleted successfully")


@router.put("/save", response_model=SaveTreeResponse)
def save_tree(
    payload: SaveTreeRequest,
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    placements = [
        NodePlacement(
            node_id=node.id, position=Position(x=node.position.x, y=node.position.y)
        )
        for node in payload.nodes
        if node.position is not None
    ]
    edges = None
    if payload.edges is not None:
        edges = [
            EdgeInput(
                source_node_id=edge.source,
                target_node_id=edge.target,
                relationship_type=(edge.data or {}).get("relationshipType"),
                connection_id=edge.id,
                style=edge.style,
            )
            for edge in payload.edges
        ]
    outcome = reconciler.save_batch(user.id, placements, edges)
    return SaveTreeResponse(
        message="Family tree saved successfully",
        nodesUpdated=outcome.nodes_updated,
        edgesDeleted=outcome.edges_deleted,
        edgesInserted=outcome.edges_inserted,
    )


@router.delete("/debug-delete/{name}", response_model=NodeDeleteResponse)
def delete_node_by_name(
    name: str,
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    deletion = reconciler.delete_node_by_name(user.id, name)
    return NodeDeleteResponse(
        message=f"Successfully deleted {deletion.node.name}",
        deletedMember=deletion.node.name,
        deletedConnections=deletion.deleted_edges,
        photoDeleted=deletion.photo_deleted,
    )


@router.delete("/clear-all", response_model=ClearTreeResponse)
def clear_all(
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    nodes, edges = reconciler.clear_all(user.id)
    return ClearTreeResponse(
        message="All family tree data cleared successfully",
        deletedNodes=nodes,
        deletedConnections=edges,
    )


@router.post("/nuclear-delete", response_model=ClearTreeResponse)
def nuclear_delete(
    user: UserRecord = Depends(get_current_user),
    reconciler: GraphReconciler = Depends(get_reconciler),
):
    nodes, edges = reconciler.clear_all(user.id)
    return ClearTreeResponse(
        message="ALL family tree data permanently deleted",
        deletedNodes=nodes,
        deletedConnections=edges,
    )
