import httpx
import pytest

from app.main import app
from mobile.connectivity import ConnectivityMonitor, HttpProbe, StaticProbe


@pytest.mark.asyncio
async def test_starts_offline():
	monitor = ConnectivityMonitor(StaticProbe(True))
	assert monitor.is_online() is False


@pytest.mark.asyncio
async def test_subscribers_hear_transitions_only():
	probe = StaticProbe(False)
	monitor = ConnectivityMonitor(probe)
	seen = []

	async def on_change(online):
		seen.append(online)

	monitor.subscribe(on_change)
	monitor.subscribe(lambda online: seen.append(f"sync:{online}"))

	await monitor.refresh()
	probe.online = True
	await monitor.refresh()
	await monitor.refresh()
	probe.online = False
	await monitor.refresh()

	assert seen == [True, "sync:True", False, "sync:False"]


@pytest.mark.asyncio
async def test_unsubscribe():
	monitor = ConnectivityMonitor(StaticProbe(True))
	seen = []
	unsubscribe = monitor.subscribe(seen.append)
	unsubscribe()
	unsubscribe()

	await monitor.refresh()
	assert seen == []


@pytest.mark.asyncio
async def test_failing_probe_means_offline():
	async def broken():
		raise RuntimeError("radio off")

	monitor = ConnectivityMonitor(broken)
	await monitor.set_online(True)

	assert await monitor.refresh() is False
	assert monitor.is_online() is False


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_others():
	monitor = ConnectivityMonitor(StaticProbe(True))
	seen = []

	def broken(online):
		raise ValueError("boom")

	monitor.subscribe(broken)
	monitor.subscribe(seen.append)
	await monitor.refresh()

	assert seen == [True]


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, expected", [(200, True), (503, False)])
async def test_http_probe_status(status_code, expected):
	transport = httpx.MockTransport(lambda request: httpx.Response(status_code, json={"status": "ok"}))
	probe = HttpProbe("http://api.test", transport=transport)

	assert await probe() is expected


@pytest.mark.asyncio
async def test_http_probe_network_error():
	def unreachable(request):
		raise httpx.ConnectError("no route to host", request=request)

	probe = HttpProbe("http://api.test", transport=httpx.MockTransport(unreachable))
	assert await probe() is False


@pytest.mark.asyncio
async def test_http_probe_hits_health():
	probe = HttpProbe("http://test", transport=httpx.ASGITransport(app=app))
	assert await probe() is True
