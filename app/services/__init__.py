from .user_service import get_user_by_id, get_user_by_email, project_public_profile
from .code_generator import CodeGenerator
from .code_validator import CodeValidator, extract_code
from .scan_tracker import ScanTracker
from .invitation_service import InvitationService
from .connection_memory_service import ConnectionMemoryService
from .connection_request_service import ConnectionRequestManager
from .notification_service import NotificationDispatcher
from .scan_flow import ScanFlow
from .connection_reconciler import ConnectionReconciler

__all__ = [
    "get_user_by_id", "get_user_by_email", "project_public_profile",
    "CodeGenerator", "CodeValidator", "extract_code", "ScanTracker",
    "InvitationService", "ConnectionMemoryService", "ConnectionRequestManager",
    "NotificationDispatcher", "ScanFlow", "ConnectionReconciler",
]
