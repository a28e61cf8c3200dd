from merit.modules.member.service import MemberService

__all__ = ["MemberService"]
