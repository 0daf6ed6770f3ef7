import os
import sys
import json
import time
import signal
import logging
import traceback
import requests
from backend.config import AUTOSCALE_URL, FETCH_INTERVAL_SECONDS, LOG_FILE, DRY_RUN

RETRY_DELAY_SECONDS = 30

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(sig, frame):
    """Handle shutdown signals gracefully."""
    global shutdown_requested
    logging.info("Shutdown signal received, finishing current cycle...")
    shutdown_requested = True


def load_payload():
    """
    Load the autoscaler configuration payload.

    Reads inline JSON from AUTOSCALE_PAYLOAD, or the JSON file named by
    AUTOSCALE_PAYLOAD_FILE.

    Raises:
        ValueError: If neither variable is set or the JSON is invalid
    """
    inline = os.getenv("AUTOSCALE_PAYLOAD")
    path = os.getenv("AUTOSCALE_PAYLOAD_FILE")
    try:
        if inline:
            return json.loads(inline)
        if path:
            with open(path) as f:
                return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot load autoscale payload: {e}") from e
    raise ValueError("Set AUTOSCALE_PAYLOAD or AUTOSCALE_PAYLOAD_FILE")


def call_autoscale_endpoint(payload, url=AUTOSCALE_URL):
    """
    POST the payload to the /autoscale endpoint.

    Returns:
        Plain-text outcome, or None if the call failed
    """
    try:
        response = requests.post(url, json=payload, timeout=660)
        response.raise_for_status()
        result = response.text

        print(f"\n{'='*60}")
        print(f"Cycle completed at {time.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"Instance: {payload.get('project')}/{payload.get('instance')}")
        print(f"Result: {result}")
        if DRY_RUN:
            print("DRY RUN MODE - No actual scaling performed")
        print(f"{'='*60}\n")

        return result
    except requests.exceptions.ConnectionError:
        logging.error("Cannot connect to autoscaler server. Is it running?")
        print(f"ERROR: Cannot connect to autoscaler server at {url}")
        print("Please start the server first: uvicorn backend.main:app --host 0.0.0.0 --port 8000")
        return None
    except requests.exceptions.HTTPError as e:
        logging.error(f"Autoscale endpoint returned an error: {e} - {e.response.text}")
        return None
    except requests.exceptions.RequestException as e:
        logging.error(f"Failed to call autoscale endpoint: {e}")
        return None


def autoscale_loop(payload, interval=FETCH_INTERVAL_SECONDS, sleep=time.sleep):
    """Main daemon loop."""
    global shutdown_requested

    # Register signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logging.info("="*60)
    logging.info("Autoscaler daemon started")
    logging.info(f"Target: {AUTOSCALE_URL}")
    logging.info(f"Fetch interval: {interval} seconds")
    logging.info(f"Dry run mode: {DRY_RUN}")
    logging.info("="*60)

    print("\nAutoscaler daemon started")
    print(f"   Interval: {interval} seconds ({interval/60:.1f} minutes)")
    print(f"   Dry run: {DRY_RUN}")
    print(f"   Log file: {LOG_FILE}")
    print("\nPress Ctrl+C to stop\n")

    cycle_count = 0

    while not shutdown_requested:
        cycle_count += 1
        logging.info(f"Starting autoscaling cycle #{cycle_count}")

        result = call_autoscale_endpoint(payload)

        if result is None:
            logging.warning("Autoscale endpoint call failed, waiting before retry...")
            sleep(RETRY_DELAY_SECONDS)
            continue

        logging.info(f"Cycle #{cycle_count} completed: {result}")

        # Sleep until next cycle (unless shutdown requested)
        if not shutdown_requested:
            logging.info(f"Sleeping for {interval} seconds...")
            sleep(interval)

    logging.info("Autoscaler daemon stopped")
    print("\nAutoscaler daemon stopped gracefully")
    return cycle_count


if __name__ == "__main__":
    # Setup logging
    if os.path.dirname(LOG_FILE):
        os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
    logging.basicConfig(
        filename=LOG_FILE,
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    try:
        autoscale_loop(load_payload())
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        logging.error(traceback.format_exc())
        sys.exit(1)
