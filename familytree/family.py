"""
Flat family-member operations: create, edit, fetch the forest, and
delete a member together with its whole descendant subtree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from familytree.db import DbClient
from familytree.errors import NotFoundError, ValidationError
from familytree.records import (
    Address,
    MemberRecord,
    check_gender,
    new_id,
    parse_date,
)
from familytree.storage import (
    MEMBER_FOLDER,
    ImageHost,
    PhotoUpload,
    host_photo,
    release_quietly,
)
from familytree.tree import TreeNode, build_tree, collect_subtree

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("house_no", "place", "city", "state", "country")


@dataclass
class MemberInput:
    """Member form fields. None means not provided; an empty ``dob`` or
    ``parent_id`` clears the stored value."""

    name: Optional[str] = None
    relation: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = None
    occupation: Optional[str] = None
    parent_id: Optional[str] = None
    house_no: Optional[str] = None
    place: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class FamilyService:
    def __init__(self, db: DbClient, images: ImageHost):
        self.db = db
        self.images = images

    def get_member(self, owner_id: str, member_id: str) -> MemberRecord:
        member = self.db.get_member(owner_id, member_id)
        if not member:
            raise NotFoundError("Member not found")
        return member

    def get_tree(self, owner_id: str) -> List[TreeNode]:
        return build_tree(self.db.list_members(owner_id))

    def create_member(
        self,
        owner_id: str,
        fields: MemberInput,
        photo: Optional[PhotoUpload] = None,
    ) -> MemberRecord:
        if not fields.name or not fields.relation:
            raise ValidationError("name and relation are required")
        check_gender(fields.gender)
        dob = parse_date(fields.dob, "dob")

        hosted = host_photo(self.images, photo, MEMBER_FOLDER)
        member = MemberRecord(
            id=new_id(),
            owner_id=owner_id,
            name=fields.name,
            relation=fields.relation,
            parent_id=fields.parent_id or None,
            gender=fields.gender or "other",
            dob=dob,
            address=Address(
                **{name: getattr(fields, name) for name in ADDRESS_FIELDS}
            ),
            occupation=fields.occupation,
            photo=hosted,
        )
        try:
            return self.db.create_member(member)
        except Exception:
            release_quietly(self.images, hosted.public_id if hosted else None)
            raise

    def update_member(
        self,
        owner_id: str,
        member_id: str,
        fields: MemberInput,
        photo: Optional[PhotoUpload] = None,
    ) -> MemberRecord:
        member = self.get_member(owner_id, member_id)
        if fields.name is not None and not fields.name:
            raise ValidationError("name cannot be empty")
        if fields.relation is not None and not fields.relation:
            raise ValidationError("relation cannot be empty")
        check_gender(fields.gender)
        dob = parse_date(fields.dob, "dob")
        replaced = member.photo.public_id if member.photo else None
        hosted = host_photo(self.images, photo, MEMBER_FOLDER)

        if fields.name is not None:
            member.name = fields.name
        if fields.relation is not None:
            member.relation = fields.relation
        if fields.gender is not None:
            member.gender = fields.gender
        if fields.dob is not None:
            member.dob = dob
        if fields.occupation is not None:
            member.occupation = fields.occupation
        if fields.parent_id is not None:
            member.parent_id = fields.parent_id or None
        for name in ADDRESS_FIELDS:
            value = getattr(fields, name)
            if value is not None:
                setattr(member.address, name, value)
        if hosted is not None:
            member.photo = hosted
        try:
            saved = self.db.save_member(member)
        except Exception:
            release_quietly(self.images, hosted.public_id if hosted else None)
            raise
        if hosted is not None:
            release_quietly(self.images, replaced)
        return saved

    def delete_member(self, owner_id: str, member_id: str) -> int:
        """Delete a member and every descendant; returns the count removed.

        Hosted photos are released best-effort after the records are gone.
        """
        members = self.db.list_members(owner_id)
        subtree = collect_subtree(members, member_id)
        if not subtree:
            raise NotFoundError("Member not found")

        deleted = self.db.delete_members(owner_id, [m.id for m in subtree])
        for member in subtree:
            if member.photo:
                release_quietly(self.images, member.photo.public_id)
        logger.info(
            "Deleted member %s and %d descendants for %s",
            member_id,
            deleted - 1,
            owner_id,
        )
        return deleted
