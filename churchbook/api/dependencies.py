"""
API Dependencies for FastAPI Router Modules
Shared dependencies for authentication and service access
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Initialize security scheme
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


class APIAuthenticator:
    """Centralized API authentication handler"""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def verify_api_key(self, credentials: Optional[HTTPAuthorizationCredentials] = None) -> bool:
        """Verify API key from authorization header"""
        if not credentials:
            return False

        return credentials.credentials == self.api_key

    def raise_unauthorized(self):
        """Raise unauthorized error"""
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_api_key(request: Request,
                         credentials: HTTPAuthorizationCredentials = Depends(security)) -> bool:
    """FastAPI dependency for API key verification"""
    authenticator: Optional[APIAuthenticator] = getattr(request.app.state, 'authenticator', None)
    if not authenticator:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API authentication not initialized"
        )

    if not authenticator.verify_api_key(credentials):
        logger.warning(f"Rejected unauthenticated request to {request.url.path}")
        authenticator.raise_unauthorized()

    return True


def get_services(request: Request):
    """FastAPI dependency returning the application's service container"""
    services = getattr(request.app.state, 'services', None)
    if services is None:
        logger.error("Services not initialized on the application state")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not available"
        )
    return services
