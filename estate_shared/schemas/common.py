from enum import Enum
from typing import Optional

from pydantic import BaseModel


class UserType(str, Enum):
    ADMIN = "ADMIN"
    BROKER = "BROKER"
    DEVELOPER = "DEVELOPER"
    OWNER = "OWNER"
    AGENCY = "AGENCY"
    USER = "USER"


class OrganizationType(str, Enum):
    BROKERAGE = "BROKERAGE"
    DEVELOPER = "DEVELOPER"


class OrgMemberRole(str, Enum):
    OWNER_ADMIN = "OWNER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    AGENT = "AGENT"
    ACCOUNTING = "ACCOUNTING"
    MARKETING = "MARKETING"


# Roles allowed to manage an organization's partnerships
MANAGEMENT_ROLES: frozenset["OrgMemberRole"] = frozenset(
    {OrgMemberRole.OWNER_ADMIN, OrgMemberRole.ADMIN}
)


class OrgMemberStatus(str, Enum):
    INVITED = "INVITED"
    ACTIVE = "ACTIVE"
    REMOVED = "REMOVED"


class OrgPartnershipStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ListingStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class NotificationType(str, Enum):
    GENERAL = "GENERAL"
    MESSAGE = "MESSAGE"


class ThreadType(str, Enum):
    DIRECT = "DIRECT"
    GROUP = "GROUP"
    BROADCAST = "BROADCAST"


class Pagination(BaseModel):
    page: int
    size: int
    total: Optional[int] = None
