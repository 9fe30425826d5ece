from __future__ import annotations

from pathlib import Path
import sys
import unittest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tradeoffer_bot.errors import ERESULT_ITEM_MISMATCH, ErrorKind, TradeApiError
from tradeoffer_bot.models import OfferState
from tradeoffer_bot.retry import OP_FETCH, AttemptState, ResilientExecutor
from tests.helpers import (
    FakeInventory,
    FakeSession,
    ScriptedClient,
    SleepRecorder,
    build_offer,
    make_config,
    session_expired,
    transient,
)


class ResilientExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = ScriptedClient()
        self.session = FakeSession()
        self.inventory = FakeInventory()
        self.sleep = SleepRecorder()
        self.executor = ResilientExecutor(
            self.client,
            self.session,
            self.inventory,
            make_config(),
            sleep=self.sleep,
        )

    def test_fetch_succeeds_on_fifth_attempt(self) -> None:
        offer = build_offer("1", give=["x"])
        self.client.offers["1"] = offer
        self.client.script("fetch", transient(), transient(), transient(), transient())

        fetched = self.executor.fetch("1")

        self.assertIs(fetched, offer)
        self.assertEqual(self.client.count("fetch"), 5)
        self.assertEqual(self.sleep.delays, [5.0, 10.0, 15.0, 20.0])

    def test_fetch_surfaces_error_after_five_transient_failures(self) -> None:
        self.client.offers["1"] = build_offer("1")
        errors = [transient(f"timeout-{idx}") for idx in range(5)]
        self.client.script("fetch", *errors)

        with self.assertRaises(TradeApiError) as ctx:
            self.executor.fetch("1")

        self.assertIs(ctx.exception, errors[-1])
        self.assertEqual(self.client.count("fetch"), 5)
        self.assertEqual(self.sleep.delays, [5.0, 10.0, 15.0, 20.0])

    def test_fetch_of_missing_offer_is_a_null_result(self) -> None:
        self.assertIsNone(self.executor.fetch("missing"))
        self.assertEqual(self.client.count("fetch"), 1)
        self.assertEqual(self.sleep.delays, [])

    def test_fetch_of_inactive_offer_is_a_null_result(self) -> None:
        self.client.offers["1"] = build_offer("1", state=OfferState.DECLINED)
        self.assertIsNone(self.executor.fetch("1"))
        self.assertEqual(self.client.count("fetch"), 1)

    def test_permanent_send_failure_is_not_retried(self) -> None:
        offer = build_offer("1", give=["x"])
        self.client.script("send", TradeApiError("can only be sent to friends", ErrorKind.PERMANENT))

        with self.assertRaises(TradeApiError):
            self.executor.send(offer)

        self.assertEqual(self.client.count("send"), 1)
        self.assertEqual(self.sleep.delays, [])
        self.assertTrue(offer.data("handledByUs"))

    def test_item_mismatch_refreshes_inventory_and_surfaces(self) -> None:
        offer = build_offer("1", give=["x"])
        self.client.script("send", TradeApiError("items missing", eresult=ERESULT_ITEM_MISMATCH))

        with self.assertRaises(TradeApiError):
            self.executor.send(offer)

        self.assertEqual(self.client.count("send"), 1)
        self.assertEqual(self.inventory.refreshes, ["76561190000000001"])

    def test_session_expiry_recovers_and_retries_immediately(self) -> None:
        offer = build_offer("1")
        self.client.script("accept", session_expired())

        status = self.executor.accept(offer)

        self.assertEqual(status, "accepted")
        self.assertEqual(self.session.calls, [True])
        self.assertEqual(self.client.count("accept"), 2)
        self.assertEqual(self.sleep.delays, [])
        self.assertTrue(offer.data("handledByUs"))

    def test_failed_session_recovery_backs_off_before_retry(self) -> None:
        self.session.failures = 1
        offer = build_offer("1")
        self.client.script("accept", session_expired())

        self.assertEqual(self.executor.accept(offer), "accepted")
        self.assertEqual(self.sleep.delays, [5.0])

    def test_unclassified_exception_is_retried_as_transient(self) -> None:
        offer = build_offer("1")
        self.client.script("accept", ConnectionResetError("reset by peer"))

        self.assertEqual(self.executor.accept(offer), "accepted")

        self.assertEqual(self.client.count("accept"), 2)
        self.assertEqual(self.sleep.delays, [5.0])

    def test_decline_is_attempted_once(self) -> None:
        offer = build_offer("1")
        self.client.script("decline", transient())

        with self.assertRaises(TradeApiError):
            self.executor.decline(offer)

        self.assertEqual(self.client.count("decline"), 1)
        self.assertEqual(self.sleep.delays, [])
        self.assertEqual(self.session.calls, [])
        self.assertTrue(offer.data("handledByUs"))

    def test_run_reports_outcome_details(self) -> None:
        self.client.script("fetch", transient(), transient())
        self.client.offers["1"] = build_offer("1")

        outcome = self.executor.run(OP_FETCH, "1", lambda: self.client.fetch_offer("1"))

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.state, AttemptState.DONE)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(outcome.delays, [5.0, 10.0])
        self.assertEqual(outcome.error_kind, ErrorKind.TRANSIENT)

    def test_attempt_cap_follows_config(self) -> None:
        executor = ResilientExecutor(
            self.client,
            self.session,
            self.inventory,
            make_config(max_attempts=2, retry_backoff_seconds=1.5),
            sleep=self.sleep,
        )
        self.client.script("send", transient(), transient(), transient())

        with self.assertRaises(TradeApiError):
            executor.send(build_offer("1"))

        self.assertEqual(self.client.count("send"), 2)
        self.assertEqual(self.sleep.delays, [1.5])


if __name__ == "__main__":
    unittest.main()
