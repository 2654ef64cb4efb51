"""
Media download and local path layout.

Files are mirrored to <save_directory>/Blink/<network>/<camera>/. Whether an
item was already fetched is decided only by the presence of its file, so
bodies are streamed to a ".part" file first and renamed into place once
complete. A failed transfer therefore leaves nothing behind and is retried on
the next cycle.
"""

import datetime
import posixpath
from pathlib import Path

import pytz
import requests

from models import BlinkSession, DownloadResult, DownloadStatus
from tools import logger

CHUNK_SIZE = 1024 * 1024  # 1MB
PART_SUFFIX = ".part"

VIDEO_TIME_FORMAT = "%Y-%m-%dT%H-%M-%S"


def camera_folder(save_directory, network_name: str, camera_name: str) -> Path:
    return Path(save_directory) / "Blink" / network_name / camera_name


def thumbnail_filename(thumbnail_ref: str) -> str:
    """thumbnail_<last path segment>.jpg, e.g. /media/e/thumb_abc -> thumbnail_thumb_abc.jpg"""
    return f"thumbnail_{posixpath.basename(thumbnail_ref)}.jpg"


def video_filename(created_at: datetime.datetime) -> str:
    """UTC timestamp with colons replaced and sub-seconds dropped, e.g. 2024-01-01T00-00-00.mp4"""
    if created_at.tzinfo is None:
        created_at = pytz.UTC.localize(created_at)
    return created_at.astimezone(pytz.UTC).strftime(VIDEO_TIME_FORMAT) + ".mp4"


def thumbnail_url(session: BlinkSession, thumbnail_ref: str) -> str:
    return f"{session.base_url}{thumbnail_ref}.jpg"


def media_url(session: BlinkSession, media_ref: str) -> str:
    return f"{session.base_url}{media_ref}"


class MediaDownloader(object):
    """
    Streams a remote resource to disk unless the destination already exists.

    download() never raises: every outcome is reported as a DownloadResult so
    one failed file cannot abort a cycle.
    """

    def __init__(self, http=None, timeout=None, dry_run=False):
        self._http = http or requests.Session()
        self._timeout = timeout
        self._dry_run = dry_run

    def download(self, url: str, destination, session: BlinkSession) -> DownloadResult:
        destination = Path(destination)

        if destination.exists():
            logger.debug(f"Skipping existing file: {destination}")
            return DownloadResult(status=DownloadStatus.SKIPPED, path=destination, reason="already exists")

        if self._dry_run:
            logger.info(f"[DRY RUN] Would download: {destination}")
            return DownloadResult(status=DownloadStatus.SKIPPED, path=destination, reason="dry run")

        logger.info(f"Downloading: {destination}")
        part_path = destination.with_name(destination.name + PART_SUFFIX)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with self._http.get(url, headers=session.auth_headers, stream=True, timeout=self._timeout) as res:
                res.raise_for_status()
                with open(part_path, "wb") as f:
                    for chunk in res.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            part_path.replace(destination)
        except (requests.RequestException, OSError) as e:
            logger.error(f"Error downloading {url}: {e}")
            part_path.unlink(missing_ok=True)
            return DownloadResult(status=DownloadStatus.FAILED, path=destination, reason=str(e))

        return DownloadResult(status=DownloadStatus.DOWNLOADED, path=destination)
