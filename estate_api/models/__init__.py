# SQLModel definitions, imported so the metadata is complete for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .org_membership import OrgMembership  # noqa: F401
from .org_partnership import OrgPartnership  # noqa: F401
from .property import Property  # noqa: F401
from .thread import MessageThread, ThreadParticipant  # noqa: F401
from .message import Message  # noqa: F401
from .notification import Notification, NotificationCounter  # noqa: F401
