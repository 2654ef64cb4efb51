"""
Blink media sync orchestrator - core application logic.

Coordinates one authenticated session and any number of download cycles:
1. Log in and verify the one-time PIN (once per process)
2. List networks and cameras (retried after a fixed delay on failure)
3. Download the current thumbnail of every camera
4. Walk the media listing page by page and download every live clip
5. Sleep until the next cycle (scheduled by main.py)

Deduplication is purely filesystem based: anything whose destination file
exists is skipped, so cycles are safe to repeat.
"""

import enum
import time
from dataclasses import dataclass

from blink_api import BlinkApi
from blink_auth_wrapper import BlinkAuthenticator
from errors import FetchError
from media_downloader import (
    MediaDownloader,
    camera_folder,
    media_url,
    thumbnail_filename,
    thumbnail_url,
    video_filename,
)
from models import BlinkMediaItem, Credentials, DownloadResult, DownloadStatus
from tools import logger


class PollState(enum.Enum):
    IDLE = "idle"  # constructed, start() not called yet
    AUTHENTICATING = "authenticating"
    VERIFYING_PIN = "verifying_pin"
    CYCLE_LISTING_NETWORKS = "cycle_listing_networks"
    CYCLE_DOWNLOADING_THUMBNAILS = "cycle_downloading_thumbnails"
    CYCLE_LISTING_MEDIA_PAGES = "cycle_listing_media_pages"
    CYCLE_DOWNLOADING_MEDIA = "cycle_downloading_media"
    SLEEPING = "sleeping"


@dataclass
class CycleSummary:
    networks: int = 0
    cameras: int = 0
    camera_failures: int = 0
    listing_retries: int = 0
    pages: int = 0
    media_seen: int = 0
    unreadable_entries: int = 0
    deleted_skipped: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, result: DownloadResult):
        if result.status == DownloadStatus.DOWNLOADED:
            self.downloaded += 1
        elif result.status == DownloadStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


class BlinkMediaSync(object):
    """
    Main sync orchestrator for Blink thumbnails and clips.

    Responsibilities:
    - Own the session lifecycle (created once in start(), never refreshed)
    - Drive the cycle state machine in sync()
    - Isolate failures: a bad camera, page or file never aborts the cycle

    The only blocking collaborators are the PIN prompt (passed to start())
    and the sleep function used between listing retries, both injectable.
    """

    DEFAULT_RETRY_DELAY_SECONDS = 10

    def __init__(self, credentials: Credentials, authenticator: BlinkAuthenticator = None,
                 api: BlinkApi = None, downloader: MediaDownloader = None,
                 retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS, sleep=time.sleep) -> None:
        self._credentials = credentials
        self._authenticator = authenticator or BlinkAuthenticator()
        self._api = api or BlinkApi()
        self._downloader = downloader or MediaDownloader()
        self._retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

        self._session = None
        self.state = PollState.IDLE

    @property
    def session(self):
        return self._session

    def _transition(self, state: PollState):
        logger.debug(f"State: {self.state.value} -> {state.value}")
        self.state = state

    def start(self, pin_prompt):
        """
        Authenticate and verify the PIN.

        Args:
            pin_prompt: Callable returning the PIN typed by the operator

        Raises:
            AuthError, PinError: both fatal, never retried
        """
        self._transition(PollState.AUTHENTICATING)
        logger.info("Authenticating with Blink API...")
        session = self._authenticator.authenticate(self._credentials)
        logger.info("Authenticated. Please check your email or SMS for the PIN.")

        self._transition(PollState.VERIFYING_PIN)
        pin = pin_prompt()
        self._session = self._authenticator.verify_pin(session, pin)
        self._transition(PollState.SLEEPING)
        return self._session

    def _list_networks(self, summary: CycleSummary):
        self._transition(PollState.CYCLE_LISTING_NETWORKS)
        while True:
            try:
                return self._api.list_networks_and_cameras(self._session)
            except FetchError as e:
                summary.listing_retries += 1
                logger.error(f"Error fetching networks: {e}. Retrying in {self._retry_delay_seconds}s")
                self._sleep(self._retry_delay_seconds)

    def _download_thumbnails(self, networks, summary: CycleSummary):
        self._transition(PollState.CYCLE_DOWNLOADING_THUMBNAILS)
        for network in networks:
            for camera_ref in network.cameras:
                summary.cameras += 1
                try:
                    camera = self._api.get_camera_detail(self._session, network.id, camera_ref.id)
                except FetchError as e:
                    summary.camera_failures += 1
                    logger.error(f"Error fetching camera data for {camera_ref.name}: {e}")
                    continue

                folder = camera_folder(self._credentials.save_directory, network.name, camera_ref.name)
                result = self._downloader.download(
                    thumbnail_url(self._session, camera.thumbnail),
                    folder / thumbnail_filename(camera.thumbnail),
                    self._session,
                )
                summary.record(result)

    def _download_media_item(self, item: BlinkMediaItem, summary: CycleSummary):
        summary.media_seen += 1
        if item.deleted:
            summary.deleted_skipped += 1
            return

        folder = camera_folder(self._credentials.save_directory, item.network_name, item.device_name)
        result = self._downloader.download(
            media_url(self._session, item.media),
            folder / video_filename(item.created_at),
            self._session,
        )
        summary.record(result)

    def _download_media_pages(self, summary: CycleSummary):
        # TODO: remember the newest created_at between cycles instead of re-listing from MEDIA_SINCE
        page = 1
        while True:
            self._transition(PollState.CYCLE_LISTING_MEDIA_PAGES)
            try:
                media_page = self._api.list_media_page(self._session, page)
            except FetchError as e:
                logger.error(f"Error fetching videos page {page}: {e}")
                break

            if media_page.is_last:
                break
            summary.pages += 1
            summary.unreadable_entries += media_page.entry_count - len(media_page.items)

            self._transition(PollState.CYCLE_DOWNLOADING_MEDIA)
            for item in media_page.items:
                self._download_media_item(item, summary)

            page += 1

    def sync(self) -> CycleSummary:
        """
        Run one complete download cycle.

        Called by the scheduler every POLL_INTERVAL_MINUTES after the previous
        cycle finished. Never raises for remote failures.
        """
        if self._session is None:
            raise RuntimeError("sync() called before start()")

        logger.info("Starting download cycle...")
        summary = CycleSummary()

        networks = self._list_networks(summary)
        summary.networks = len(networks)

        self._download_thumbnails(networks, summary)
        self._download_media_pages(summary)

        self._transition(PollState.SLEEPING)
        logger.info(
            f"Cycle complete: downloaded {summary.downloaded}, skipped: {summary.skipped}, "
            f"failed: {summary.failed}, deleted clips ignored: {summary.deleted_skipped}, "
            f"cameras unavailable: {summary.camera_failures}"
        )
        logger.info(f"All new videos and thumbnails downloaded to {self._credentials.save_directory / 'Blink'}")
        return summary
