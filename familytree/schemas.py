"""
Pydantic schemas for the family album API.

Field names follow the camelCase JSON the web client sends and expects.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str


# Auth


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    isPaid: bool


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


# Photos


class PhotoResponse(BaseModel):
    id: str
    url: str
    publicId: str
    category: str
    uploadedBy: str
    createdAt: float


# Flat family members


class AddressModel(BaseModel):
    houseNo: Optional[str] = None
    place: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class SpouseResponse(BaseModel):
    id: str
    name: str
    relation: str
    gender: str
    photo: Optional[str] = None
    dob: Optional[str] = None
    occupation: Optional[str] = None
    address: AddressModel


class MemberResponse(BaseModel):
    id: str
    userId: str
    name: str
    relation: str
    parentId: Optional[str] = None
    gender: str
    dob: Optional[str] = None
    address: AddressModel
    occupation: Optional[str] = None
    photo: Optional[str] = None
    photoPublicId: Optional[str] = None
    createdAt: float
    updatedAt: float


class TreeNodeResponse(MemberResponse):
    spouse: Optional[SpouseResponse] = None
    children: list[TreeNodeResponse] = Field(default_factory=list)


TreeNodeResponse.model_rebuild()


class DeleteCountResponse(BaseModel):
    message: str
    count: int


# Canvas graph


class PositionModel(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class FlowNode(BaseModel):
    id: str
    type: str = "familyMember"
    position: PositionModel
    data: dict[str, Any]
    style: Optional[dict[str, Any]] = None


class FlowEdge(BaseModel):
    id: str
    source: str
    target: str
    type: str = "smoothstep"
    label: Optional[str] = None
    labelStyle: Optional[dict[str, Any]] = None
    labelBgStyle: Optional[dict[str, Any]] = None
    style: Optional[dict[str, Any]] = None
    data: dict[str, Any]


class GraphResponse(BaseModel):
    nodes: list[FlowNode]
    edges: list[FlowEdge]


class ConnectionRequest(BaseModel):
    connectionId: Optional[str] = None
    sourceNodeId: Optional[str] = None
    targetNodeId: Optional[str] = None
    relationshipType: Optional[str] = None
    style: Optional[dict[str, Any]] = None
    label: Optional[dict[str, Any]] = None


class SaveNode(BaseModel):
    id: str
    position: Optional[PositionModel] = None


class SaveEdge(BaseModel):
    id: Optional[str] = None
    source: Optional[str] = None
    target: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    style: Optional[dict[str, Any]] = None


class SaveTreeRequest(BaseModel):
    nodes: list[SaveNode] = Field(default_factory=list)
    edges: Optional[list[SaveEdge]] = None


class SaveTreeResponse(BaseModel):
    message: str
    nodesUpdated: int
    edgesDeleted: int
    edgesInserted: int


class NodeDeleteResponse(BaseModel):
    message: str
    deletedMember: str
    deletedConnections: int
    photoDeleted: bool = False


class ClearTreeResponse(BaseModel):
    success: bool = True
    message: str
    deletedNodes: int
    deletedConnections: int


# Billing and payments


class PublicKeyResponse(BaseModel):
    publishableKey: Optional[str] = None


class IntentRequest(BaseModel):
    amount: Optional[int] = Field(default=None, gt=0)
    currency: Optional[str] = None


class IntentResponse(BaseModel):
    clientSecret: Optional[str] = None
    paymentIntentId: str


class VerifyIntentRequest(BaseModel):
    paymentIntentId: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    url: Optional[str] = None


class ConfirmCheckoutRequest(BaseModel):
    sessionId: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    amount: Optional[int] = Field(default=None, gt=0)
    method: Optional[str] = None
    currency: Optional[str] = None


class PaymentResponse(BaseModel):
    id: str
    userId: str
    amount: int
    currency: str
    method: str
    status: str
    paymentIntentId: Optional[str] = None
    createdAt: float
    updatedAt: float


class PaymentVerifyResponse(BaseModel):
    payment: Optional[PaymentResponse] = None
    user: Optional[UserResponse] = None
