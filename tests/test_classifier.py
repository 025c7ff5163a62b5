import asyncio
import json
import unittest

import requests

from marketwatch.data.classifier import ResponseClassifier
from marketwatch.data.models import OutcomeKind


def make_response(status: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    response.url = "https://primary.test/api/v3/coins/markets"
    return response


def asset_payload(coin_id: str, price: float = 100.0) -> dict:
    return {
        "id": coin_id,
        "symbol": coin_id[:3],
        "name": coin_id.title(),
        "image": f"https://img.test/{coin_id}.png",
        "current_price": price,
        "price_change_percentage_24h": -1.25,
        "market_cap": 1_500_000_000,
        "total_volume": 250_000_000,
        "market_cap_rank": 1,
        "high_24h": price * 1.1,
        "low_24h": price * 0.9,
        "circulating_supply": 19_000_000,
    }


class ResponseClassifierTest(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = ResponseClassifier()

    def test_valid_listing_is_success_in_order(self) -> None:
        body = [asset_payload("bitcoin"), asset_payload("ethereum", 3000), asset_payload("tether", 1)]
        outcome = self.classifier.classify(make_response(200, body))

        self.assertEqual(OutcomeKind.SUCCESS, outcome.kind)
        self.assertEqual(["bitcoin", "ethereum", "tether"], [asset.id for asset in outcome.assets])
        self.assertEqual(3000.0, outcome.assets[1].current_price)

    def test_status_codes_map_to_outcomes(self) -> None:
        cases = {
            429: OutcomeKind.RATE_LIMITED,
            403: OutcomeKind.FORBIDDEN,
            404: OutcomeKind.NOT_FOUND,
            500: OutcomeKind.TRANSIENT,
            502: OutcomeKind.TRANSIENT,
        }
        for status, expected in cases.items():
            with self.subTest(status=status):
                outcome = self.classifier.classify(make_response(status, b"oops"))
                self.assertEqual(expected, outcome.kind)
                self.assertEqual(status, outcome.status_code)

    def test_transient_uses_structured_error_body(self) -> None:
        outcome = self.classifier.classify(make_response(503, {"error": "Service is down"}))
        self.assertEqual("Service is down", outcome.reason)

        nested = self.classifier.classify(make_response(500, {"status": {"error_message": "Backend exploded"}}))
        self.assertEqual("Backend exploded", nested.reason)

    def test_transient_falls_back_to_status_message(self) -> None:
        outcome = self.classifier.classify(make_response(500, b"<html>bad gateway</html>"))
        self.assertEqual("HTTP error! status: 500", outcome.reason)

    def test_empty_array_is_malformed(self) -> None:
        outcome = self.classifier.classify(make_response(200, []))
        self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)

    def test_non_array_body_is_malformed(self) -> None:
        for body in ({"coins": []}, b"not json", "bitcoin"):
            with self.subTest(body=body):
                outcome = self.classifier.classify(make_response(200, body))
                self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)

    def test_entry_missing_required_fields_is_malformed(self) -> None:
        broken = asset_payload("bitcoin")
        del broken["current_price"]
        outcome = self.classifier.classify(make_response(200, [asset_payload("ethereum"), broken]))

        self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)
        self.assertIn("entry 1", outcome.reason)
        self.assertIn("current_price", outcome.reason)

    def test_wrongly_typed_fields_are_malformed(self) -> None:
        cases = [
            ("name", 42),
            ("market_cap", "big"),
            ("current_price", True),
            ("total_volume", "lots"),
        ]
        for key, value in cases:
            with self.subTest(key=key):
                entry = asset_payload("bitcoin")
                entry[key] = value
                outcome = self.classifier.classify(make_response(200, [entry]))
                self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)

    def test_nullable_numbers_are_accepted(self) -> None:
        entry = asset_payload("newcoin")
        entry["price_change_percentage_24h"] = None
        entry["market_cap_rank"] = None
        outcome = self.classifier.classify(make_response(200, [entry]))

        self.assertEqual(OutcomeKind.SUCCESS, outcome.kind)
        self.assertIsNone(outcome.assets[0].market_cap_rank)

    def test_non_finite_numbers_are_malformed(self) -> None:
        cases = [
            ("market_cap_rank", float("inf")),
            ("current_price", float("nan")),
            ("total_volume", float("-inf")),
        ]
        for key, value in cases:
            with self.subTest(key=key):
                entry = asset_payload("bitcoin")
                entry[key] = value
                outcome = self.classifier.classify(make_response(200, [entry]))
                self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)
                self.assertIn(key, outcome.reason)

    def test_oversized_integer_is_malformed(self) -> None:
        body = json.dumps([asset_payload("bitcoin")]).replace(
            '"market_cap": 1500000000', '"market_cap": 1' + "0" * 400
        )
        outcome = self.classifier.classify(make_response(200, body.encode("utf-8")))
        self.assertEqual(OutcomeKind.MALFORMED, outcome.kind)

    def test_transport_errors(self) -> None:
        self.assertEqual(OutcomeKind.TIMEOUT, self.classifier.classify(error=asyncio.TimeoutError()).kind)
        self.assertEqual(OutcomeKind.TIMEOUT, self.classifier.classify(error=requests.ReadTimeout()).kind)

        outcome = self.classifier.classify(error=requests.ConnectionError("connection refused"))
        self.assertEqual(OutcomeKind.TRANSIENT, outcome.kind)
        self.assertEqual("connection refused", outcome.reason)

    def test_classification_is_idempotent(self) -> None:
        responses = [
            make_response(200, [asset_payload("bitcoin")]),
            make_response(429, {"error": "slow down"}),
            make_response(200, []),
            make_response(500, b""),
        ]
        for response in responses:
            with self.subTest(status=response.status_code):
                self.assertEqual(self.classifier.classify(response), self.classifier.classify(response))

    def test_requires_response_or_error(self) -> None:
        with self.assertRaises(ValueError):
            self.classifier.classify()


if __name__ == "__main__":
    unittest.main()
