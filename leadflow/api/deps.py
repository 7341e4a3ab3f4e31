"""
Request dependencies - actor context from the identity service's bearer token.

Tokens are issued elsewhere; this service only verifies them. Claims:
  sub  - agent id (UUID)
  role - admin | sales_manager | sales_agent
"""
import logging
import uuid

import jwt as pyjwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from leadflow.config import get_settings
from leadflow.services.access import Actor
from leadflow.vocabulary import Role

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Actor:
    """Dependency to extract and verify the acting agent from a JWT Bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    settings = get_settings()
    try:
        payload = pyjwt.decode(
            credentials.credentials,
            settings.jwt_secret or settings.app_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        agent_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    role = payload.get("role")
    if role not in Role.ALL:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return Actor(agent_id=agent_id, role=role)
