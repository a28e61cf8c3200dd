"""
Actor - the principal performing an operation.

The engine has no ambient session: every mutating call receives the actor
explicitly, and services check role and ownership against it.
"""

from __future__ import annotations

from dataclasses import dataclass

from merit.database.models.enums import MemberRole


@dataclass(frozen=True)
class Actor:
    member_id: str
    role: MemberRole = MemberRole.MEMBER

    @property
    def can_review(self) -> bool:
        return self.role.can_review

    @property
    def is_admin(self) -> bool:
        return self.role is MemberRole.ADMIN

    @classmethod
    def member(cls, member_id: str) -> "Actor":
        return cls(member_id=member_id, role=MemberRole.MEMBER)

    @classmethod
    def reviewer(cls, member_id: str) -> "Actor":
        return cls(member_id=member_id, role=MemberRole.REVIEWER)

    @classmethod
    def admin(cls, member_id: str) -> "Actor":
        return cls(member_id=member_id, role=MemberRole.ADMIN)
