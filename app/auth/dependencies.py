import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import auth_service
from app.database import get_session
from app.models.user import User

security = HTTPBearer()

async def get_current_user(
		request: Request,
		credentials: HTTPAuthorizationCredentials = Depends(security),
		session: AsyncSession = Depends(get_session)
) -> User:
	"""Get current authenticated user"""
	token = credentials.credentials
	payload = auth_service.decode_token(token)

	if not payload or payload.get("type") != "access":
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Invalid authentication credentials",
			headers={"WWW-Authenticate": "Bearer"}
		)
	try:
		user_id = uuid.UUID(payload.get("sub") or "")
	except ValueError:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Invalid token payload"
		)

	result = await session.execute(select(User).where(User.id == user_id))
	user = result.scalar_one_or_none()

	if not user:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="User not found"
		)

	if not user.is_active:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="User account is deactivated"
		)
	request.state.user_id = str(user.id)
	return user
