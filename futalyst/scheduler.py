"""
Background Scheduler for league completion.

Completes every active league whose end date has passed, on a fixed
interval (COMPLETION_CHECK_MINUTES). Runs standalone or as a daemon thread
inside the API process.
"""

import schedule
import threading
import time
from datetime import datetime
from typing import Optional

from . import config
from .services.league_service import LeagueService, get_league_service


def complete_expired(service: Optional[LeagueService] = None) -> int:
    """Background job to complete expired leagues."""
    service = service or get_league_service()
    print(f"[{datetime.now()}] Checking for expired leagues...")
    try:
        completed = service.complete_expired_leagues()
        if completed:
            print(f"[{datetime.now()}] Completed {len(completed)} league(s):")
            for league_id in completed:
                print(f"  - {league_id}")
        return len(completed)

    except Exception as e:
        print(f"[{datetime.now()}] Error during league completion: {e}")
        return 0


def register_jobs(
    scheduler: Optional[schedule.Scheduler] = None,
    service: Optional[LeagueService] = None,
    minutes: Optional[int] = None
) -> schedule.Job:
    """Schedule the completion job."""
    scheduler = scheduler or schedule.default_scheduler
    minutes = minutes or config.COMPLETION_CHECK_MINUTES
    return scheduler.every(minutes).minutes.do(complete_expired, service=service)


def start_background(
    service: Optional[LeagueService] = None,
    poll_seconds: int = 30
) -> threading.Event:
    """
    Run the completion job in a daemon thread.

    Returns:
        Event that stops the thread when set
    """
    scheduler = schedule.Scheduler()
    register_jobs(scheduler, service=service)
    stop = threading.Event()

    def loop():
        while not stop.is_set():
            scheduler.run_pending()
            stop.wait(poll_seconds)

    threading.Thread(target=loop, name="league-completion", daemon=True).start()
    print(f"[*] League completion scheduled every {config.COMPLETION_CHECK_MINUTES} minutes")
    return stop


def main():
    """Main entry point for scheduler."""
    print("=" * 50)
    print("FUTALYST - League Completion Scheduler")
    print("=" * 50)

    # Run immediately on start
    print("\n[*] Running initial completion check...")
    complete_expired()

    register_jobs()
    print(f"\n[*] Scheduled to run every {config.COMPLETION_CHECK_MINUTES} minutes")
    print("[*] Press Ctrl+C to stop\n")

    # Keep running
    while True:
        schedule.run_pending()
        time.sleep(60)


if __name__ == '__main__':
    main()
