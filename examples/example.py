"""Example usage of DepartureBoard: a text departure board."""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path

# Add src to path so we can import transitboard
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from transitboard import BoardConfig, DepartureBoard
from transitboard.models import Arrival, BoardResult

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def format_arrival(arrival: Arrival, now_ms: int) -> str:
    """Rider-facing arrival label: "At platform", "Now", or "N min"."""
    minutes = arrival.minutes_until(now_ms)
    if arrival.is_realtime and -2 <= minutes <= 0:
        label = "At platform"
    elif minutes <= 0:
        label = "Now"
    else:
        label = f"{minutes} min"

    if arrival.paired_estimate:
        label += " ~paired"
    elif arrival.is_realtime:
        label += " (live)"
    return label


def print_board(result: BoardResult) -> None:
    """Print one board update."""
    print(f"\n{'='*78}")
    print(f"Departures at {datetime.fromtimestamp(result.generated_at_ms / 1000):%H:%M:%S}")
    print(f"{'='*78}")

    if result.no_data:
        print("No schedule or real-time data available")
        return

    if result.realtime_error:
        print(f"! {result.realtime_error}")

    for stop_code, error in result.stop_errors.items():
        print(f"! {stop_code}: {error}")

    if not result.arrivals:
        print("  No departures in the next hour")
        return

    for arrival in result.arrivals:
        direction = arrival.direction.value.capitalize() if arrival.direction else "-"
        destination = arrival.trip_id.split(" to")[0].strip() or arrival.trip_id
        print(
            f"  {arrival.route_id:>5}  {direction:<11}  {destination:<24.24}  "
            f"{arrival.stop_code:>6} {arrival.stop_name:<20.20}  "
            f"{format_arrival(arrival, result.generated_at_ms)}"
        )


def main(stop_codes):
    """
    Poll and print a departure board until interrupted.

    Args:
        stop_codes: Stop codes to monitor (e.g. ["330", "1"])
    """
    config = BoardConfig()
    board = DepartureBoard(config, on_update=print_board)

    try:
        board.set_stop_codes(stop_codes)
        board.start()
        while True:
            time.sleep(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
    finally:
        board.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python examples/example.py STOP_CODE [STOP_CODE ...]")
        sys.exit(1)
    main(sys.argv[1:])
