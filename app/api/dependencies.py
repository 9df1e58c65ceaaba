from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.clock import Clock, get_clock
from app.core.database import get_async_session
from app.auth.jwt_handler import decode_access_token
from app.models.auth.user import User
from app.models.shared.enums import UserRole
from app.services.auth.user_service import UserService
from app.services.salary.salary_service import SalaryService
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current authenticated user"""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized()

    user_service = UserService(session)
    user = await user_service.get_user(user_id)

    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    request.state.current_user = user
    return user

def require_roles(*roles: UserRole):
    """
    Dependency to require one of the given roles for an endpoint.
    The caller must also belong to a PG, since every salary query is scoped by it.

    Examples:
        require_roles(UserRole.ADMIN, UserRole.SUPERADMIN)
    """
    async def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            logger.warning(f"User {current_user.id} with role {current_user.role.value} denied; requires one of: {allowed}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required one of: {allowed}"
            )
        if current_user.pg_id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User is not associated with any PG"
            )
        return current_user

    return role_dependency

require_salary_admin = require_roles(UserRole.ADMIN, UserRole.SUPERADMIN)

def get_salary_service(
    session: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
) -> SalaryService:
    return SalaryService(session, clock=clock)
