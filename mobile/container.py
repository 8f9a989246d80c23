import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from mobile.api import ApiClient
from mobile.config import MobileSettings, get_mobile_settings
from mobile.connectivity import ConnectivityMonitor, HttpProbe
from mobile.store import LocalStore
from mobile.sync import SyncClient, USER_ID_KEY

logger = logging.getLogger(__name__)

TOKEN_KEY = "access_token"


@dataclass
class MobileServices:
	"""Everything the app shell needs, built once per process"""
	settings: MobileSettings
	store: LocalStore
	api: ApiClient
	monitor: ConnectivityMonitor
	sync: SyncClient

	async def start(self, poll: bool = True):
		await self.store.init()

		token = await self.store.get_metadata(TOKEN_KEY)
		if token:
			self.api.set_token(token)
		self.sync.user_id = await self.store.get_metadata(USER_ID_KEY)

		if self.settings.AUTO_SYNC:
			self.sync.enable_auto_sync()
		await self.monitor.refresh()
		if poll:
			self.monitor.start(self.settings.CONNECTIVITY_POLL_SECONDS)

	async def login(self, email: str, password: str) -> dict:
		body = await self.api.login(email, password)
		user_id = str(body["user"]["id"])
		await self.store.set_metadata(TOKEN_KEY, body["access_token"])
		await self.store.set_metadata(USER_ID_KEY, user_id)
		self.sync.user_id = user_id
		logger.info(f"Signed in as {body['user']['email']}")
		return body

	async def logout(self):
		self.api.clear_token()
		await self.store.set_metadata(TOKEN_KEY, None)

	async def close(self):
		self.sync.disable_auto_sync()
		await self.monitor.stop()
		await self.api.close()
		await self.store.close()


def build_sync_client(
		settings: Optional[MobileSettings] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
		probe: Optional[Callable[[], Awaitable[bool]]] = None
) -> MobileServices:
	settings = settings or get_mobile_settings()

	store = LocalStore(settings.LOCAL_DB_URL)
	api = ApiClient(
		settings.API_BASE_URL,
		prefix=settings.API_V1_PREFIX,
		timeout=settings.API_TIMEOUT,
		transport=transport,
	)
	if probe is None:
		probe = HttpProbe(
			settings.API_BASE_URL,
			path=settings.CONNECTIVITY_PROBE_PATH,
			timeout=settings.CONNECTIVITY_PROBE_TIMEOUT,
			transport=transport,
		)
	monitor = ConnectivityMonitor(probe)

	return MobileServices(
		settings=settings,
		store=store,
		api=api,
		monitor=monitor,
		sync=SyncClient(store, api, monitor),
	)
