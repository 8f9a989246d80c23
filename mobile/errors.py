from typing import Any, Optional


class SyncError(Exception):
	"""Base class for everything the device sync core raises"""

	# Progress of an interrupted sync_all, None when raised outside one
	partial_result: Optional[Any] = None


class NoConnectivityError(SyncError):
	def __init__(self, message: str = "No internet connection"):
		super().__init__(message)


class SyncInProgressError(SyncError):
	def __init__(self, message: str = "Sync already in progress"):
		super().__init__(message)


class SyncTransportError(SyncError):
	"""The request never got a usable answer; nothing it carried counts as synced"""

	def __init__(self, message: str, partial_result: Optional[Any] = None):
		super().__init__(message)
		self.partial_result = partial_result


class ApiError(SyncError):
	"""The server answered with an error status"""

	def __init__(self, status_code: int, detail: str):
		super().__init__(f"{status_code}: {detail}")
		self.status_code = status_code
		self.detail = detail


class AuthenticationError(ApiError):
	def __init__(self, detail: str = "Authentication required"):
		super().__init__(401, detail)
