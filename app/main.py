import logging

from .common import app
from .routers.connection_codes.endpoints import router as ConnectionCodesEndpoints
from .routers.scan.endpoints import router as ScanEndpoints
from .routers.invitations.endpoints import router as InvitationsEndpoints
from .routers.connections.endpoints import router as ConnectionsEndpoints
from .routers.connection_requests.endpoints import router as ConnectionRequestsEndpoints
from .routers.notifications.endpoints import router as NotificationsEndpoints

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Include routers
app.include_router(ConnectionCodesEndpoints)
app.include_router(ScanEndpoints)
app.include_router(InvitationsEndpoints)
app.include_router(ConnectionsEndpoints)
app.include_router(ConnectionRequestsEndpoints)
app.include_router(NotificationsEndpoints)

@app.get("/health")
async def health_check():
    return {"status": "ok"}
