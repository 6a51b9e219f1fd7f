from helpdesk.models.account import Account
from helpdesk.models.account_refresh_token import AccountRefreshToken
from helpdesk.models.audit_log import AuditLog
from helpdesk.models.base import Base, TimestampMixin
from helpdesk.models.profile import Profile
from helpdesk.models.setup_state import SetupState
from helpdesk.models.ticket import Ticket
from helpdesk.models.ticket_comment import TicketComment

__all__ = [
    "Account",
    "AccountRefreshToken",
    "AuditLog",
    "Base",
    "TimestampMixin",
    "Profile",
    "SetupState",
    "Ticket",
    "TicketComment",
]
