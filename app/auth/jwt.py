import logging
from datetime import timedelta, datetime, timezone
from typing import Dict, Any, Optional
from jose import JWTError, jwt

from passlib.context import CryptContext

from app.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


class AuthService:
	"""Password hashing and bearer tokens for operators and admins.

	Tokens carry ``type`` so a long-lived refresh token is never accepted
	where an access token is expected.
	"""

	@staticmethod
	def verify_password(plain_password: str, hashed_password: str) -> bool:
		return pwd_context.verify(plain_password, hashed_password)

	@staticmethod
	def hash_password(password: str) -> str:
		return pwd_context.hash(password)

	@staticmethod
	def _encode(data: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
		claims = dict(data)
		claims["exp"] = datetime.now(timezone.utc) + lifetime
		claims["type"] = token_type
		return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

	def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
		lifetime = expires_delta or timedelta(hours=settings.JWT_EXPIRATION_HOURS)
		return self._encode(data, "access", lifetime)

	def create_refresh_token(self, data: Dict[str, Any]) -> str:
		return self._encode(data, "refresh", timedelta(days=settings.JWT_REFRESH_EXPIRATION_DAYS))

	@staticmethod
	def decode_token(token: str) -> Optional[Dict[str, Any]]:
		"""Claims of a valid token, None for anything expired, forged or malformed"""
		try:
			return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
		except JWTError as e:
			logger.warning(f"JWT decode error: {e}")
			return None


auth_service = AuthService()
