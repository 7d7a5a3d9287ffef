import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import initialize_app, auth
from app.config import settings

logger = logging.getLogger(__name__)

# Initialize Firebase
firebase_app = None

DEV_USER = {
    "uid": "dev-user-0001",
    "email": "dev@example.com",
    "name": "Development User",
}

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    global firebase_app
    if settings.environment == "production":
        try:
            from firebase_admin import credentials as fb_credentials

            cred = fb_credentials.ApplicationDefault()
            firebase_app = initialize_app(
                credential=cred,
                options={
                    'projectId': settings.firebase_project_id
                }
            )
            logger.info("Firebase initialized successfully")
        except Exception as e:
            logger.exception("Error initializing Firebase")
            raise e
    else:
        logger.info("Running in development mode - skipping Firebase initialization")

    yield

    # Shutdown
    if firebase_app:
        from firebase_admin import delete_app
        delete_app(firebase_app)
        firebase_app = None

app = FastAPI(lifespan=lifespan, title="QR Connect API")
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def _verify_token(token: str) -> dict:
    logger.info(f"Verifying token: {token[:10]}... (truncated for security)")
    try:
        decoded_token = auth.verify_id_token(token)
        logger.info(f"Successfully decoded token with UID: {decoded_token.get('uid')}")
        return decoded_token
    except Exception as e:
        logger.exception(f"Error verifying Firebase ID token: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token"
        )

# Dependency to get current user from token
async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    if settings.environment != "production":
        logger.info("Development mode - skipping token verification")
        return DEV_USER

    return _verify_token(credentials.credentials)

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> Optional[dict]:
    """Identity for endpoints that also serve anonymous viewers, such as scanning a code."""
    if credentials is None:
        return None
    if settings.environment != "production":
        return DEV_USER

    return _verify_token(credentials.credentials)
