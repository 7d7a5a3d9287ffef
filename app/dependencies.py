"""FastAPI providers that assemble the connection services per request."""
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.init_db import get_db
from app.services.code_generator import CodeGenerator
from app.services.code_validator import CodeValidator
from app.services.connection_memory_service import ConnectionMemoryService
from app.services.connection_reconciler import ConnectionReconciler
from app.services.connection_request_service import ConnectionRequestManager
from app.services.email_service import EmailTransport, LoggingEmailTransport, SendGridEmailTransport
from app.services.geocoding_service import ReverseGeocoder
from app.services.invitation_service import InvitationService
from app.services.notification_service import NotificationDispatcher
from app.services.rate_limit_service import RateLimiter
from app.services.scan_flow import ScanFlow
from app.services.scan_tracker import ScanTracker
from app.utils.id_generator import IdGenerator
from app.utils.pending_token import PendingTokenSigner
from app.utils.time_utils import Clock


def get_clock() -> Clock:
    return Clock()

def get_id_generator() -> IdGenerator:
    return IdGenerator()

@lru_cache
def get_email_transport() -> EmailTransport:
    if settings.environment == "production":
        return SendGridEmailTransport(
            api_key=settings.sendgrid_api_key.get_secret_value(),
            from_email=settings.email_from,
            url=settings.sendgrid_url,
            timeout=settings.email_timeout_seconds
        )
    return LoggingEmailTransport()

@lru_cache
def get_geocoder() -> ReverseGeocoder:
    return ReverseGeocoder(settings.geocoder_user_agent, settings.geocoder_timeout_seconds)

def get_pending_token_signer() -> PendingTokenSigner:
    return PendingTokenSigner(settings.pending_token_secret.get_secret_value(), settings.pending_token_ttl_days)


def get_code_generator(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator)
) -> CodeGenerator:
    return CodeGenerator(db, clock, ids, settings.public_origin, settings.connection_code_ttl_hours)

def get_code_validator(db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)) -> CodeValidator:
    return CodeValidator(db, clock)

def get_scan_tracker(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator),
    geocoder: ReverseGeocoder = Depends(get_geocoder)
) -> ScanTracker:
    return ScanTracker(db, clock, ids, geocoder)

def get_invitation_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator),
    transport: EmailTransport = Depends(get_email_transport)
) -> InvitationService:
    return InvitationService(
        db,
        clock,
        ids,
        transport,
        settings.public_origin,
        ttl_days=settings.invitation_ttl_days,
        rate_limiter=RateLimiter(db, clock),
        rate_limit_attempts=settings.invitation_rate_limit_attempts,
        rate_limit_window=timedelta(minutes=settings.invitation_rate_limit_window_minutes)
    )

def get_memory_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator)
) -> ConnectionMemoryService:
    return ConnectionMemoryService(db, clock, ids)

def get_request_manager(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator)
) -> ConnectionRequestManager:
    return ConnectionRequestManager(db, clock, ids)

def get_notification_dispatcher(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator)
) -> NotificationDispatcher:
    return NotificationDispatcher(db, clock, ids)

def get_scan_flow(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ids: IdGenerator = Depends(get_id_generator),
    validator: CodeValidator = Depends(get_code_validator),
    tracker: ScanTracker = Depends(get_scan_tracker),
    memories: ConnectionMemoryService = Depends(get_memory_service),
    requests: ConnectionRequestManager = Depends(get_request_manager),
    invitations: InvitationService = Depends(get_invitation_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    signer: PendingTokenSigner = Depends(get_pending_token_signer)
) -> ScanFlow:
    return ScanFlow(db, clock, ids, validator, tracker, memories, requests, invitations, notifier, signer)

def get_connection_reconciler(
    db: AsyncSession = Depends(get_db),
    invitations: InvitationService = Depends(get_invitation_service),
    memories: ConnectionMemoryService = Depends(get_memory_service),
    requests: ConnectionRequestManager = Depends(get_request_manager),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    signer: PendingTokenSigner = Depends(get_pending_token_signer)
) -> ConnectionReconciler:
    return ConnectionReconciler(db, invitations, memories, requests, notifier, signer)
