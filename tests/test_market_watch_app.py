import json
import unittest

import requests

from marketwatch.data.models import Endpoint
from marketwatch.infra.config import parse_config
from marketwatch.infra.watchlist import InMemoryWatchlistBackend
from marketwatch.main import MarketWatchApp


def make_response(status: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    return response


def listing(*coin_ids: str) -> list:
    return [
        {
            "id": coin_id,
            "symbol": coin_id[:3],
            "name": coin_id.title(),
            "image": f"https://img.test/{coin_id}.png",
            "current_price": 2.0,
            "market_cap": 200.0,
        }
        for coin_id in coin_ids
    ]


class ScriptedSession:
    def __init__(self, script) -> None:
        self.script = list(script)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None, **kwargs):
        self.calls.append(url)
        return self.script.pop(0)


class InstantSleep:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class MarketWatchAppTest(unittest.IsolatedAsyncioTestCase):
    def make_app(self, script):
        config = parse_config(
            {"endpoints": {"primary": "https://primary.test/api/v3", "backup": "https://backup.test/api/v3"}}
        )
        self.session = ScriptedSession(script)
        self.sleep = InstantSleep()
        return MarketWatchApp(
            config,
            session=self.session,
            watchlist_backend=InMemoryWatchlistBackend(),
            sleep=self.sleep,
        )

    async def test_refresh_notifies_subscribers_with_progress(self) -> None:
        app = self.make_app([make_response(429, {"error": "slow down"}), make_response(200, listing("bitcoin"))])
        results, progress = [], []
        app.subscribe(results.append, on_progress=progress.append)

        result = await app.refresh()

        self.assertTrue(result.ok)
        self.assertEqual([result], results)
        self.assertEqual([1], [status.attempt for status in progress])
        self.assertEqual([5.0], self.sleep.delays)
        self.assertEqual("bitcoin", app.view().assets[0].id)
        self.assertEqual(1, app.metrics.export()["marketwatch_cycle_settled_total"])

    async def test_failover_persists_across_refreshes(self) -> None:
        app = self.make_app(
            [
                make_response(403, {"error": "blocked"}),
                make_response(200, listing("bitcoin")),
                make_response(200, listing("bitcoin", "ethereum")),
            ]
        )

        await app.refresh()
        await app.refresh()

        self.assertEqual(Endpoint.BACKUP, app.view().endpoint)
        self.assertTrue(self.session.calls[-1].startswith("https://backup.test"))

    async def test_watchlist_passthrough(self) -> None:
        app = self.make_app([])

        self.assertTrue(app.toggle_watchlist("solana"))
        self.assertEqual(frozenset({"solana"}), app.get_watchlist_state())

    async def test_close_without_start_is_safe(self) -> None:
        app = self.make_app([])
        await app.close()
        self.assertFalse(app.loop.running)


if __name__ == "__main__":
    unittest.main()
