from .user import User
from .connection_code import ConnectionCode
from .scan_event import ScanEvent
from .email_invitation import EmailInvitation
from .connections.connection_memory import ConnectionMemory
from .connections.connection_request import ConnectionRequest
from .contacts.contact import Contact, ContactNote
from .notifications import Notification
from .rate_limit import RateLimitAttempt

__all__ = ["User", "ConnectionCode", "ScanEvent", "EmailInvitation", "ConnectionMemory", "ConnectionRequest", "Contact", "ContactNote", "Notification", "RateLimitAttempt"]
