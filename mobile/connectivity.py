import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Union[None, Awaitable[None]]]


class HttpProbe:
	"""Online means the API answers its health check"""

	def __init__(
			self,
			base_url: str,
			path: str = "/health",
			timeout: float = 5.0,
			transport: Optional[httpx.AsyncBaseTransport] = None
	):
		self.base_url = base_url
		self.path = path
		self.timeout = timeout
		self.transport = transport

	async def __call__(self) -> bool:
		try:
			async with httpx.AsyncClient(
					base_url=self.base_url,
					timeout=self.timeout,
					transport=self.transport
			) as client:
				response = await client.get(self.path)
				return response.is_success
		except httpx.HTTPError as e:
			logger.debug(f"Connectivity probe failed: {e}")
			return False


class StaticProbe:
	"""Probe with a fixed answer, flipped by hand"""

	def __init__(self, online: bool = False):
		self.online = online
		self.calls = 0

	async def __call__(self) -> bool:
		self.calls += 1
		return self.online


class ConnectivityMonitor:
	"""Tracks whether the device can reach the server.

	Starts offline until the first probe says otherwise. Subscribers are
	told about every change, never about a repeat of the current state.
	"""

	def __init__(self, probe: Callable[[], Awaitable[bool]]):
		self.probe = probe
		self._online = False
		self._listeners: List[Listener] = []
		self._task: Optional[asyncio.Task] = None

	def is_online(self) -> bool:
		return self._online

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe():
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	async def refresh(self) -> bool:
		try:
			online = bool(await self.probe())
		except Exception as e:
			logger.warning(f"Connectivity probe raised, treating as offline: {e}")
			online = False
		await self.set_online(online)
		return online

	async def set_online(self, online: bool):
		if online == self._online:
			return
		self._online = online
		logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

		for listener in list(self._listeners):
			try:
				result = listener(online)
				if inspect.isawaitable(result):
					await result
			except Exception:
				logger.exception("Connectivity listener failed")

	async def run(self, interval: float):
		while True:
			await self.refresh()
			await asyncio.sleep(interval)

	def start(self, interval: float) -> asyncio.Task:
		if self._task is None or self._task.done():
			self._task = asyncio.create_task(self.run(interval))
		return self._task

	async def stop(self):
		if self._task is None:
			return
		self._task.cancel()
		try:
			await self._task
		except asyncio.CancelledError:
			pass
		self._task = None
