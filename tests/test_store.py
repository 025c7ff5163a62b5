import unittest
from datetime import datetime, timedelta, timezone

from marketwatch.data.models import CryptoAsset, Endpoint, PollCycleResult, RetryStatus
from marketwatch.data.store import DatasetStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_asset(coin_id: str) -> CryptoAsset:
    return CryptoAsset(
        id=coin_id,
        symbol=coin_id[:3],
        name=coin_id.title(),
        image=f"https://img.test/{coin_id}.png",
        current_price=1.0,
        market_cap=10.0,
    )


def success(*coin_ids: str, endpoint: Endpoint = Endpoint.PRIMARY, at: datetime = NOW) -> PollCycleResult:
    return PollCycleResult(endpoint=endpoint, settled_at=at, assets=tuple(make_asset(c) for c in coin_ids))


def failure(message: str, endpoint: Endpoint = Endpoint.PRIMARY) -> PollCycleResult:
    return PollCycleResult(endpoint=endpoint, settled_at=NOW + timedelta(minutes=5), retries=5, error=message)


class DatasetStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DatasetStore()

    def test_starts_loading(self) -> None:
        view = self.store.view()
        self.assertTrue(view.loading)
        self.assertEqual((), view.assets)
        self.assertIsNone(view.error)

    def test_success_replaces_dataset_and_records_source(self) -> None:
        self.store.publish(success("bitcoin"))
        view = self.store.publish(success("ethereum", "solana", endpoint=Endpoint.BACKUP))

        self.assertEqual(["ethereum", "solana"], [asset.id for asset in view.assets])
        self.assertEqual(NOW, view.updated_at)
        self.assertTrue(view.using_backup)
        self.assertFalse(view.loading)

    def test_failure_keeps_last_good_dataset(self) -> None:
        self.store.publish(success("bitcoin", "ethereum"))
        view = self.store.publish(failure("rate limit exceeded", endpoint=Endpoint.BACKUP))

        self.assertEqual(["bitcoin", "ethereum"], [asset.id for asset in view.assets])
        self.assertEqual("rate limit exceeded", view.error)
        self.assertEqual(NOW, view.updated_at)
        self.assertEqual(Endpoint.PRIMARY, view.endpoint)

    def test_success_after_failure_clears_error(self) -> None:
        self.store.publish(failure("access denied"))
        self.assertFalse(self.store.view().loading)

        view = self.store.publish(success("bitcoin"))
        self.assertIsNone(view.error)

    def test_progress_is_cleared_when_cycle_settles(self) -> None:
        status = RetryStatus(delay_seconds=4.0, attempt=2, max_retries=5, endpoint=Endpoint.PRIMARY)
        self.store.publish_progress(status)
        self.assertEqual(status, self.store.view().progress)

        self.store.publish(failure("HTTP error! status: 500"))
        self.assertIsNone(self.store.view().progress)

    def test_views_are_snapshots(self) -> None:
        self.store.publish(success("bitcoin"))
        before = self.store.view()
        self.store.publish(success("ethereum"))

        self.assertEqual("bitcoin", before.assets[0].id)

    def test_subscribe_and_unsubscribe(self) -> None:
        results, progress = [], []
        unsubscribe = self.store.subscribe(results.append, on_progress=progress.append)

        self.store.publish_progress(RetryStatus(delay_seconds=5.0, attempt=1, max_retries=5, endpoint=Endpoint.PRIMARY))
        self.store.publish(success("bitcoin"))
        unsubscribe()
        self.store.publish(success("ethereum"))

        self.assertEqual(1, len(results))
        self.assertEqual(1, len(progress))
        self.assertEqual(0, self.store.subscriber_count())

    def test_failing_subscriber_does_not_block_others(self) -> None:
        received = []

        def explode(_result) -> None:
            raise RuntimeError("render failed")

        self.store.subscribe(explode)
        self.store.subscribe(received.append)

        with self.assertLogs("marketwatch.data.store", level="ERROR"):
            self.store.publish(success("bitcoin"))
        self.assertEqual(1, len(received))


if __name__ == "__main__":
    unittest.main()
