"""
Flat family-member routes. Every route requires a paid account.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from familytree.auth import require_paid
from familytree.config import Settings, get_settings
from familytree.dependencies import get_family_service
from familytree.errors import ForbiddenError
from familytree.family import FamilyService, MemberInput
from familytree.records import UserRecord
from familytree.routes.uploads import blank_to_none, read_photo
from familytree.schemas import DeleteCountResponse, MemberResponse, TreeNodeResponse

router = APIRouter(prefix="/family", tags=["Family"])


def member_form(
    name: Optional[str] = Form(default=None),
    relation: Optional[str] = Form(default=None),
    gender: Optional[str] = Form(default=None),
    dob: Optional[str] = Form(default=None),
    occupation: Optional[str] = Form(default=None),
    parent_id: Optional[str] = Form(default=None, alias="parentId"),
    house_no: Optional[str] = Form(default=None, alias="address_houseNo"),
    place: Optional[str] = Form(default=None, alias="address_place"),
    city: Optional[str] = Form(default=None, alias="address_city"),
    state: Optional[str] = Form(default=None, alias="address_state"),
    country: Optional[str] = Form(default=None, alias="address_country"),
) -> MemberInput:
    return MemberInput(
        name=name.strip() if name is not None else None,
        relation=relation.strip() if relation is not None else None,
        gender=blank_to_none(gender),
        dob=dob,
        occupation=occupation,
        parent_id=parent_id,
        house_no=house_no,
        place=place,
        city=city,
        state=state,
        country=country,
    )


@router.post("", response_model=MemberResponse, status_code=201)
@router.post("/", response_model=MemberResponse, status_code=201, include_in_schema=False)
async def create_member(
    user: UserRecord = Depends(require_paid),
    fields: MemberInput = Depends(member_form),
    photo: Optional[UploadFile] = File(default=None),
    service: FamilyService = Depends(get_family_service),
    settings: Settings = Depends(get_settings),
):
    upload = await read_photo(photo, settings.max_upload_bytes)
    member = service.create_member(user.id, fields, upload)
    return MemberResponse(**member.as_dict())


@router.get("/member/{member_id}", response_model=MemberResponse)
def get_member(
    member_id: str,
    user: UserRecord = Depends(require_paid),
    service: FamilyService = Depends(get_family_service),
):
    return MemberResponse(**service.get_member(user.id, member_id).as_dict())


@router.get("/{user_id}", response_model=list[TreeNodeResponse])
def get_tree(
    user_id: str,
    user: UserRecord = Depends(require_paid),
    service: FamilyService = Depends(get_family_service),
):
    if user_id != user.id:
        raise ForbiddenError()
    return [node.as_dict() for node in service.get_tree(user.id)]


@router.put("/{member_id}", response_model=MemberResponse)
async def update_member(
    member_id: str,
    user: UserRecord = Depends(require_paid),
    fields: MemberInput = Depends(member_form),
    photo: Optional[UploadFile] = File(default=None),
    service: FamilyService = Depends(get_family_service),
    settings: Settings = Depends(get_settings),
):
    upload = await read_photo(photo, settings.max_upload_bytes)
    member = service.update_member(user.id, member_id, fields, upload)
    return MemberResponse(**member.as_dict())


@router.delete("/{member_id}", response_model=DeleteCountResponse)
def delete_member(
    member_id: str,
    user: UserRecord = Depends(require_paid),
    service: FamilyService = Depends(get_family_service),
):
    count = service.delete_member(user.id, member_id)
    return DeleteCountResponse(
        message="Member and descendants deleted", count=count
    )
