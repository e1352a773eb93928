"""Tests for multi-stop aggregation, recompute() and DepartureBoard."""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add src to path so we can import transitboard
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixtures import MINUTE_MS, NOW_MS, NOW_S, make_feed, make_snapshot, prediction, stop_time, trip_update
from transitboard.board import aggregate, is_at_platform, rank_arrivals, recompute
from transitboard.config import BoardConfig
from transitboard.departure_board import DepartureBoard
from transitboard.models import Arrival, Direction, StopResult
from transitboard.static_index import StaticScheduleIndex


def make_arrival(route_id, minutes, is_realtime, stop_code="330"):
    return Arrival(
        route_id=route_id,
        trip_id=f"Trip {route_id}",
        arrival_time_ms=int(NOW_MS + minutes * MINUTE_MS),
        delay_seconds=0,
        stop_code=stop_code,
        stop_name="Stop",
        is_realtime=is_realtime,
    )


class TestRanking(unittest.TestCase):
    """Test the at-platform-first ordering."""

    def test_platform_bucket_first(self):
        static_earlier = make_arrival("1", -0.5, is_realtime=False)
        live_now = make_arrival("2", 0.5, is_realtime=True)
        live_late = make_arrival("3", 5, is_realtime=True)

        ranked = rank_arrivals([live_late, static_earlier, live_now], NOW_MS)

        self.assertEqual([a.route_id for a in ranked], ["2", "1", "3"])

    def test_platform_bucket_bounds(self):
        self.assertTrue(is_at_platform(make_arrival("1", -2, True), NOW_MS))
        self.assertTrue(is_at_platform(make_arrival("1", 0.9, True), NOW_MS))
        self.assertFalse(is_at_platform(make_arrival("1", 1, True), NOW_MS))
        self.assertFalse(is_at_platform(make_arrival("1", -2.5, True), NOW_MS))
        self.assertFalse(is_at_platform(make_arrival("1", 0, False), NOW_MS))

    def test_ties_keep_input_order(self):
        first = make_arrival("A1", 5, True)
        second = make_arrival("A2", 5, False)
        self.assertEqual(rank_arrivals([first, second], NOW_MS), [first, second])
        self.assertEqual(rank_arrivals([second, first], NOW_MS), [second, first])

    def test_window_reapplied_idempotently(self):
        results = [
            StopResult("330", [make_arrival("1", -3, True), make_arrival("2", 10, False)]),
            StopResult("100", [make_arrival("3", 61, False), make_arrival("4", 0, True, "100")]),
        ]
        once = aggregate(results, NOW_MS, 60)
        twice = aggregate([StopResult("all", once)], NOW_MS, 60)

        self.assertEqual([a.route_id for a in once], ["4", "2"])
        self.assertEqual(once, twice)


class TestRecompute(unittest.TestCase):
    """Test full board recomputation from snapshots."""

    def setUp(self):
        self.snapshot = make_snapshot([
            stop_time("T8A-1", "S330", "08:10:00"),
        ])

    def test_static_only(self):
        """No real-time data: the scheduled trip is shown as static."""
        result = recompute(["330"], self.snapshot, None, now_ms=NOW_MS)

        self.assertEqual(len(result.arrivals), 1)
        arrival = result.arrivals[0]
        self.assertFalse(arrival.is_realtime)
        self.assertEqual(arrival.arrival_time_ms, NOW_MS + 10 * MINUTE_MS)
        self.assertFalse(result.realtime_available)
        self.assertEqual(result.realtime_error, "Real-time data not available")
        self.assertFalse(result.no_data)

    def test_realtime_replaces_static(self):
        """A live prediction for the same route, headsign and stop wins."""
        feed = make_feed(trip_update("T8A-1", "BT8A", prediction("S330", NOW_S + 570, delay=60)))

        result = recompute(["330"], self.snapshot, feed, now_ms=NOW_MS)

        self.assertEqual(len(result.arrivals), 1)
        arrival = result.arrivals[0]
        self.assertTrue(arrival.is_realtime)
        self.assertEqual(arrival.arrival_time_ms, (NOW_S + 570) * 1000)
        self.assertEqual(arrival.delay_seconds, 60)
        self.assertTrue(result.realtime_available)
        self.assertIsNone(result.realtime_error)

    def test_paired_estimate(self):
        """8A borrows 8B's live time in the opposite direction when pairs are set."""
        feed = make_feed(trip_update("T8B-1", "BT8B", prediction("S330", NOW_S + 420)))
        config = BoardConfig(route_pairs={"8A": "8B", "8B": "8A"})

        result = recompute(["330"], self.snapshot, feed, config=config, now_ms=NOW_MS)

        arrival_8a = next(a for a in result.arrivals if a.route_id == "8A")
        self.assertTrue(arrival_8a.is_realtime)
        self.assertTrue(arrival_8a.paired_estimate)
        self.assertEqual(arrival_8a.arrival_time_ms, (NOW_S + 420) * 1000)
        self.assertEqual(arrival_8a.direction, Direction.NORTHBOUND)

    def test_pairing_disabled_by_default(self):
        feed = make_feed(trip_update("T8B-1", "BT8B", prediction("S330", NOW_S + 420)))

        result = recompute(["330"], self.snapshot, feed, now_ms=NOW_MS)

        arrival_8a = next(a for a in result.arrivals if a.route_id == "8A")
        self.assertFalse(arrival_8a.is_realtime)
        self.assertFalse(arrival_8a.paired_estimate)
        self.assertFalse(any(a.paired_estimate for a in result.arrivals))

    def test_platform_row_first_across_stops(self):
        """A live arrival due now at one stop ranks above a later one elsewhere."""
        snapshot = make_snapshot()
        feed = make_feed(
            trip_update("T8B-1", "BT8B", prediction("S100", NOW_S + 45 * 60)),
            trip_update("T8A-1", "BT8A", prediction("S330", NOW_S + 10)),
        )

        result = recompute(["100", "330"], snapshot, feed, now_ms=NOW_MS)

        self.assertEqual([a.stop_code for a in result.arrivals], ["330", "100"])

    def test_unknown_stop_does_not_block_others(self):
        result = recompute(["999", "330"], self.snapshot, None, now_ms=NOW_MS)

        self.assertEqual(result.stop_errors, {"999": "Stop code 999 not found"})
        self.assertEqual(len(result.arrivals), 1)
        self.assertEqual(result.stop_results["999"].arrivals, [])

    def test_stop_failure_is_contained(self):
        index = StaticScheduleIndex(self.snapshot)
        with patch("transitboard.board.build_stop_arrivals", side_effect=[RuntimeError("boom"), ([], [])]):
            result = recompute(["330", "100"], index, None, now_ms=NOW_MS)

        self.assertIn("boom", result.stop_results["330"].error)
        self.assertIsNone(result.stop_results["100"].error)

    def test_missing_static_data(self):
        feed = make_feed()
        result = recompute(["330"], None, feed, now_ms=NOW_MS)

        self.assertEqual(result.arrivals, [])
        self.assertEqual(result.stop_errors["330"], "Static schedule data not available")
        self.assertFalse(result.no_data)

    def test_no_data(self):
        result = recompute(["330"], None, None, now_ms=NOW_MS)
        self.assertTrue(result.no_data)

    def test_stale_feed_flagged(self):
        feed = make_feed(
            trip_update("T8A-1", "BT8A", prediction("S330", NOW_S + 570)),
            header_timestamp=NOW_S - 125 * 60,
        )

        result = recompute(["330"], self.snapshot, feed, now_ms=NOW_MS)

        self.assertTrue(result.is_stale)
        self.assertEqual(result.feed_age_minutes, 125)
        self.assertIn("2h 5m old", result.realtime_error)
        self.assertTrue(result.arrivals[0].is_realtime)

    def test_stale_feed_keeps_fetch_error(self):
        feed = make_feed(header_timestamp=NOW_S - 45 * 60)

        result = recompute(
            ["330"], self.snapshot, feed, now_ms=NOW_MS,
            realtime_error="Failed to fetch real-time data: timed out",
        )

        self.assertTrue(result.is_stale)
        self.assertTrue(result.realtime_error.startswith("Failed to fetch real-time data: timed out"))
        self.assertIn("45m old", result.realtime_error)

    def test_fresh_feed_not_stale(self):
        feed = make_feed(header_timestamp=NOW_S - 5 * 60)
        result = recompute(["330"], self.snapshot, feed, now_ms=NOW_MS)
        self.assertFalse(result.is_stale)
        self.assertEqual(result.feed_age_minutes, 5)

    def test_duplicate_and_excess_stop_codes(self):
        config = BoardConfig(max_stops=1)
        result = recompute(["330", "330", "100"], self.snapshot, None, config=config, now_ms=NOW_MS)

        self.assertEqual(list(result.stop_results), ["330", "100"])
        self.assertEqual(len(result.arrivals), 1)
        self.assertIn("Only 1 stops", result.stop_errors["100"])

    def test_snapshots_not_mutated(self):
        feed = make_feed(trip_update("T8A-1", "BT8A", prediction("S330", NOW_S + 570)))
        stop_times = list(self.snapshot.stop_times)
        entities = list(feed.entities)

        recompute(["330"], self.snapshot, feed, now_ms=NOW_MS)

        self.assertEqual(self.snapshot.stop_times, stop_times)
        self.assertEqual(feed.entities, entities)


class TestBoardConfig(unittest.TestCase):
    """Test configuration defaults and option mapping."""

    def test_defaults(self):
        config = BoardConfig()
        self.assertEqual(config.refresh_interval_ms, 15000)
        self.assertEqual(config.max_stops, 15)
        self.assertEqual(config.max_arrivals_window_min, 60)
        self.assertEqual(config.debounce_delay_ms, 1000)
        self.assertEqual(config.route_pairs, {})
        self.assertEqual(config.directional_routes, frozenset({"8A", "8B", "400"}))

    def test_from_dict_upper_case_options(self):
        config = BoardConfig.from_dict({
            "REFRESH_INTERVAL_MS": 30000,
            "MAX_STOPS": 5,
            "ROUTE_PAIRS": {"8A": "8B"},
            "CACHE_DURATION_MS": 120000,
            "direction_rules": {"7": [["college", "inbound"]]},
        })
        self.assertEqual(config.refresh_interval_ms, 30000)
        self.assertEqual(config.max_stops, 5)
        self.assertEqual(config.route_pairs, {"8A": "8B"})
        self.assertEqual(config.static_cache_ttl_s, 120)
        self.assertEqual(config.direction_rules, {"7": [("college", Direction.INBOUND)]})

    def test_from_dict_rejects_unknown_and_invalid(self):
        with self.assertRaises(ValueError):
            BoardConfig.from_dict({"NOPE": 1})
        with self.assertRaises(ValueError):
            BoardConfig.from_dict({"MAX_STOPS": 0})


class TestDepartureBoard(unittest.TestCase):
    """Test scheduling and refresh orchestration."""

    def setUp(self):
        self.gtfs_loader = MagicMock()
        self.gtfs_loader.get_snapshot.return_value = make_snapshot([stop_time("T8A-1", "S330", "08:10:00")])
        self.realtime_client = MagicMock()
        self.realtime_client.get_feed.return_value = (
            make_feed(trip_update("T8A-1", "BT8A", prediction("S330", NOW_S + 570))),
            None,
        )
        self.listener = MagicMock()
        self.board = DepartureBoard(
            gtfs_loader=self.gtfs_loader,
            realtime_client=self.realtime_client,
            on_update=self.listener,
            clock=lambda: NOW_MS / 1000,
        )

    def test_set_stop_codes_recomputes(self):
        result = self.board.set_stop_codes(["330"])

        self.assertEqual(len(result.arrivals), 1)
        self.assertTrue(result.arrivals[0].is_realtime)
        self.listener.assert_called_once_with(result)
        self.assertIs(self.board.last_result, result)

    def test_static_index_reused(self):
        self.board.set_stop_codes(["330"])
        index = self.board._static_index
        self.board.refresh()
        self.assertIs(self.board._static_index, index)

    def test_too_many_stops(self):
        with self.assertRaises(ValueError):
            self.board.set_stop_codes([str(code) for code in range(16)])

    def test_refresh_skipped_while_running(self):
        self.board.set_stop_codes(["330"])
        self.listener.reset_mock()

        self.board._refresh_lock.acquire()
        try:
            self.assertIsNone(self.board.refresh())
        finally:
            self.board._refresh_lock.release()

        self.listener.assert_not_called()

    def test_listener_error_does_not_propagate(self):
        self.listener.side_effect = RuntimeError("render failed")
        result = self.board.set_stop_codes(["330"])
        self.assertIsNotNone(result)

    def test_realtime_error_passed_through(self):
        self.realtime_client.get_feed.return_value = (None, "Error parsing real-time data")

        result = self.board.set_stop_codes(["330"])

        self.assertFalse(result.realtime_available)
        self.assertEqual(result.realtime_error, "Error parsing real-time data")
        self.assertFalse(result.arrivals[0].is_realtime)

    @patch("transitboard.departure_board.BackgroundScheduler")
    def test_start_schedules_poll(self, mock_scheduler_cls):
        scheduler = mock_scheduler_cls.return_value
        self.board.set_stop_codes(["330"])

        self.board.start()

        scheduler.add_job.assert_called_once()
        self.assertEqual(scheduler.add_job.call_args[1]["seconds"], 15.0)
        scheduler.start.assert_called_once()
        self.assertTrue(self.board.is_polling)

    @patch("transitboard.departure_board.BackgroundScheduler")
    def test_empty_stop_list_stops_polling(self, mock_scheduler_cls):
        scheduler = mock_scheduler_cls.return_value
        self.board.set_stop_codes(["330"])
        self.board.start()

        self.assertIsNone(self.board.set_stop_codes([]))

        scheduler.shutdown.assert_called_once_with(wait=False)
        self.assertFalse(self.board.is_polling)
        self.assertIsNone(self.board.last_result)

    @patch("transitboard.departure_board.BackgroundScheduler")
    def test_polling_resumes_when_stops_return(self, mock_scheduler_cls):
        scheduler = mock_scheduler_cls.return_value
        self.board.set_stop_codes(["330"])
        self.board.start()
        self.board.set_stop_codes([])

        result = self.board.set_stop_codes(["330"])

        self.assertTrue(self.board.is_polling)
        self.assertEqual(scheduler.add_job.call_count, 2)
        self.assertIsNotNone(result)
        self.assertIs(self.board.last_result, result)

    @patch("transitboard.departure_board.BackgroundScheduler")
    def test_explicit_stop_not_resumed(self, mock_scheduler_cls):
        self.board.set_stop_codes(["330"])
        self.board.start()
        self.board.stop()
        self.board.set_stop_codes([])

        self.assertIsNotNone(self.board.set_stop_codes(["330"]))

        self.assertFalse(self.board.is_polling)
        mock_scheduler_cls.return_value.add_job.assert_called_once()

    @patch("transitboard.departure_board.BackgroundScheduler")
    def test_close_stops_everything(self, mock_scheduler_cls):
        self.board.set_stop_codes(["330"])
        self.board.start()
        self.listener.reset_mock()

        self.board.close()

        self.assertIsNone(self.board.refresh())
        self.listener.assert_not_called()
        self.realtime_client.clear_cache.assert_called_once()
        with self.assertRaises(RuntimeError):
            self.board.start()


if __name__ == "__main__":
    unittest.main()
