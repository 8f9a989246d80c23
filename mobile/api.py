import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from mobile.errors import ApiError, AuthenticationError, SyncTransportError
from mobile.schemas import PendingPayload, RemoteStation, UploadOutcome

logger = logging.getLogger(__name__)


class ApiClient:
	"""Thin async wrapper over the sync API. One instance per device session."""

	def __init__(
			self,
			base_url: str,
			prefix: str = "/api/v1",
			timeout: float = 10.0,
			token: Optional[str] = None,
			transport: Optional[httpx.AsyncBaseTransport] = None
	):
		self.prefix = prefix.rstrip("/")
		self.token = token
		self._client = httpx.AsyncClient(
			base_url=base_url,
			timeout=timeout,
			transport=transport,
			headers={"Accept": "application/json"},
		)

	def set_token(self, token: Optional[str]):
		self.token = token

	def clear_token(self):
		self.token = None

	async def close(self):
		await self._client.aclose()

	async def _request(self, method: str, path: str, **kwargs) -> Any:
		headers = kwargs.pop("headers", {})
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"

		try:
			response = await self._client.request(method, f"{self.prefix}{path}", headers=headers, **kwargs)
		except httpx.RequestError as e:
			logger.warning(f"{method} {path} failed: {e}")
			raise SyncTransportError(f"Network error on {method} {path}: {e}") from e

		if response.status_code == 401:
			self.clear_token()
			raise AuthenticationError(self._detail(response, "Authentication required"))
		if response.is_error:
			detail = self._detail(response, response.reason_phrase)
			logger.warning(f"{method} {path} returned {response.status_code}: {detail}")
			raise ApiError(response.status_code, detail)

		try:
			return response.json()
		except ValueError as e:
			raise SyncTransportError(f"Unreadable response from {method} {path}") from e

	@staticmethod
	def _detail(response: httpx.Response, default: str) -> str:
		try:
			body = response.json()
		except ValueError:
			return default
		detail = body.get("detail") if isinstance(body, dict) else None
		return detail if isinstance(detail, str) else default

	# Auth

	async def login(self, email: str, password: str) -> Dict[str, Any]:
		body = await self._request("POST", "/auth/login", json={"email": email, "password": password})
		self.set_token(body["access_token"])
		return body

	async def me(self) -> Dict[str, Any]:
		return await self._request("GET", "/auth/me")

	async def get_user_id(self) -> str:
		profile = await self.me()
		return str(profile["id"])

	# Data

	async def list_stations(self) -> List[RemoteStation]:
		body = await self._request("GET", "/stations/", params={"limit": 1000})
		return [RemoteStation.model_validate(item) for item in body["data"]]

	async def upload(self, readings: List[dict], faults: List[dict]) -> UploadOutcome:
		body = await self._request("POST", "/sync/upload", json={"readings": readings, "faults": faults})
		return UploadOutcome.model_validate(body["data"])

	async def pending(self, since: Optional[datetime] = None) -> PendingPayload:
		params = {"since": since.isoformat()} if since else None
		body = await self._request("GET", "/sync/pending", params=params)
		return PendingPayload.model_validate(body["data"])

	async def mark_synced(self, ids: List[str], kind: str) -> int:
		if not ids:
			return 0
		body = await self._request("POST", "/sync/mark-synced", json={"ids": ids, "type": kind})
		return body["data"]["count"]
