"""
Blink Camera Media Sync Application

Entry point for the sync service. Logs into Blink, asks the operator for the
one-time PIN, and schedules periodic mirroring of camera thumbnails and clips
to local storage.

Uses BlockingScheduler to run sync cycles; each cycle is followed by a fixed
sleep of POLL_INTERVAL_MINUTES.
"""

from dotenv import load_dotenv

load_dotenv()

from tools import logger
from blink_api import BlinkApi
from blink_auth_wrapper import BlinkAuthenticator
from blink_sync import BlinkMediaSync
from credential_prompt import load_credentials, prompt_pin
from errors import AuthError, ConfigError, PinError
from media_downloader import MediaDownloader

import os
import sys
import datetime
import requests
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.blocking import BlockingScheduler

__version__ = "1.0"

SYNC_JOB_ID = "blink-sync"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() in ("true", "1")

try:
    POLL_INTERVAL_MINUTES = int(os.getenv("POLL_INTERVAL_MINUTES", "30"))
except ValueError:
    logger.warning("Invalid POLL_INTERVAL_MINUTES, using default of 30 minutes")
    POLL_INTERVAL_MINUTES = 30

try:
    RETRY_DELAY_SECONDS = int(os.getenv("RETRY_DELAY_SECONDS", "10"))
except ValueError:
    logger.warning("Invalid RETRY_DELAY_SECONDS, using default of 10 seconds")
    RETRY_DELAY_SECONDS = 10

try:
    HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS")) if os.getenv("HTTP_TIMEOUT_SECONDS") else None
except ValueError:
    logger.warning("Invalid HTTP_TIMEOUT_SECONDS, requests will not time out")
    HTTP_TIMEOUT_SECONDS = None


def schedule_sync(scheduler, media_sync: BlinkMediaSync, interval_minutes: int):
    """
    Run media_sync.sync() now and then interval_minutes after each cycle ends.

    The interval job keeps the schedule alive; the listener pushes the next
    run back so the sleep always starts when a cycle finishes.
    """
    interval = datetime.timedelta(minutes=interval_minutes)

    def _sleep_after_cycle(event):
        if event.job_id != SYNC_JOB_ID:
            return
        if event.exception:
            logger.error(f"Sync cycle crashed: {event.exception}")
        next_run = datetime.datetime.now() + interval
        scheduler.modify_job(SYNC_JOB_ID, next_run_time=next_run)
        logger.info(f"Sleeping for {interval_minutes} minutes before next run...")

    scheduler.add_listener(_sleep_after_cycle, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        media_sync.sync,
        'interval',
        minutes=interval_minutes,
        id=SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.datetime.now(),
    )


def main():
    """
    Initialize and run the sync service.

    Validates configuration, performs the two-step login, then starts the
    scheduler. Configuration, login and PIN errors exit with status 1.
    """
    logger.info("Welcome to the Blink Media Sync")
    logger.info(f"Version: {__version__}")

    try:
        credentials = load_credentials()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    http = requests.Session()
    media_sync = BlinkMediaSync(
        credentials,
        authenticator=BlinkAuthenticator(http=http, timeout=HTTP_TIMEOUT_SECONDS),
        api=BlinkApi(http=http, timeout=HTTP_TIMEOUT_SECONDS),
        downloader=MediaDownloader(http=http, timeout=HTTP_TIMEOUT_SECONDS, dry_run=DRY_RUN),
        retry_delay_seconds=RETRY_DELAY_SECONDS,
    )

    try:
        media_sync.start(prompt_pin)
    except (AuthError, PinError) as e:
        logger.error(str(e))
        sys.exit(1)

    if DRY_RUN:
        logger.warning("DRY RUN MODE ENABLED - Media will NOT be written to disk!")
    logger.info(f"Syncing to {credentials.save_directory} every {POLL_INTERVAL_MINUTES} minute(s)")

    scheduler = BlockingScheduler()
    schedule_sync(scheduler, media_sync, POLL_INTERVAL_MINUTES)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        http.close()


if __name__ == "__main__":
    main()
