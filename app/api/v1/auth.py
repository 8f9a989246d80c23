import logging
from uuid import UUID


from fastapi import APIRouter, status, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.jwt import auth_service
from app.database import get_session
from app.models.user import User
from app.schemas.auth import UserResponse, UserProfileResponse, LoginResponse, LoginRequest, RefreshRequest

router = APIRouter()
logger = logging.getLogger(__name__)


def _issue_tokens(user: User) -> LoginResponse:
	access_token = auth_service.create_access_token({"sub": str(user.id), "role": user.role.value})
	refresh_token = auth_service.create_refresh_token({"sub": str(user.id)})
	return LoginResponse(
		access_token=access_token,
		refresh_token=refresh_token,
		user=UserResponse.model_validate(user)
	)

@router.post("/login", response_model=LoginResponse)
async def login(
		request: LoginRequest,
		session: AsyncSession = Depends(get_session)
):
	"""Login and get access token."""
	result = await session.execute(select(User).where(User.email == request.email))
	user = result.scalar_one_or_none()

	if not user or not auth_service.verify_password(request.password, user.hashed_password):
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Incorrect email or password",
			headers={"WWW-Authenticate": "Bearer"}
		)
	if not user.is_active:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="User account is deactivated"
		)

	logger.info(f"User logged in: {user.email}")
	return _issue_tokens(user)

@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(
		request: RefreshRequest,
		session: AsyncSession = Depends(get_session)
):
	"""Refresh access token"""
	payload = auth_service.decode_token(request.refresh_token)

	if not payload or payload.get("type") != "refresh":
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Invalid refresh token"
		)

	try:
		user_id = UUID(payload.get("sub") or "")
	except ValueError:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Invalid token payload"
		)

	result = await session.execute(select(User).where(User.id == user_id))
	user = result.scalar_one_or_none()

	if not user or not user.is_active:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="User not found or inactive"
		)
	return _issue_tokens(user)

@router.get("/me", response_model=UserProfileResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
	"""Get current user information"""
	return current_user
