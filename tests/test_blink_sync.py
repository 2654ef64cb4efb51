import datetime

import pytest
import pytz
import responses
from responses import matchers

from blink_api import BlinkApi, MEDIA_SINCE
from blink_auth_wrapper import BlinkAuthenticator
from blink_sync import BlinkMediaSync, PollState
from errors import AuthError, FetchError, PinError
from media_downloader import MediaDownloader
from models import (
    BlinkCamera,
    BlinkCameraRef,
    BlinkMediaItem,
    BlinkMediaPage,
    BlinkNetwork,
    DownloadResult,
    DownloadStatus,
)


class FakeAuthenticator(object):
    def __init__(self, session, fail_login=False, fail_pin=False):
        self._session = session
        self._fail_login = fail_login
        self._fail_pin = fail_pin
        self.logins = 0
        self.pins = []

    def authenticate(self, credentials):
        self.logins += 1
        if self._fail_login:
            raise AuthError("bad password")
        return self._session

    def verify_pin(self, session, pin):
        self.pins.append(pin)
        if self._fail_pin:
            raise PinError("bad pin")
        return session


class FakeApi(object):
    def __init__(self, networks=None, cameras=None, pages=None, usage_failures=0, failing_pages=()):
        self._networks = networks or []
        self._cameras = cameras or {}
        self._pages = pages or []
        self._usage_failures = usage_failures
        self._failing_pages = failing_pages
        self.usage_calls = 0
        self.camera_calls = []
        self.page_calls = []

    def list_networks_and_cameras(self, session):
        self.usage_calls += 1
        if self.usage_calls <= self._usage_failures:
            raise FetchError("usage unavailable")
        return self._networks

    def get_camera_detail(self, session, network_id, camera_id):
        self.camera_calls.append(camera_id)
        camera = self._cameras.get(camera_id)
        if camera is None:
            raise FetchError("camera offline")
        return camera

    def list_media_page(self, session, page):
        assert page >= 1
        self.page_calls.append(page)
        if page in self._failing_pages:
            raise FetchError("page unavailable")
        if page > len(self._pages):
            return BlinkMediaPage(page=page)
        media = self._pages[page - 1]
        if isinstance(media, BlinkMediaPage):
            return media
        return BlinkMediaPage(page=page, items=media, entry_count=len(media))


class RecordingDownloader(object):
    def __init__(self):
        self.downloads = []

    def download(self, url, destination, session):
        self.downloads.append((url, destination))
        return DownloadResult(status=DownloadStatus.DOWNLOADED, path=destination)


def make_item(media, deleted=False, device_name="Front"):
    return BlinkMediaItem(
        media=media,
        created_at=datetime.datetime(2024, 1, 1, tzinfo=pytz.UTC),
        network_name="Home",
        device_name=device_name,
        deleted=deleted,
    )


def make_sync(credentials, session, api, downloader=None, authenticator=None, sleeps=None):
    media_sync = BlinkMediaSync(
        credentials,
        authenticator=authenticator or FakeAuthenticator(session),
        api=api,
        downloader=downloader or RecordingDownloader(),
        retry_delay_seconds=10,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )
    media_sync.start(lambda: "123456")
    return media_sync


def test_start_authenticates_then_verifies_pin(credentials, session):
    authenticator = FakeAuthenticator(session)
    media_sync = BlinkMediaSync(credentials, authenticator=authenticator, api=FakeApi(),
                                downloader=RecordingDownloader())

    assert media_sync.state == PollState.IDLE
    assert media_sync.start(lambda: "654321") == session
    assert authenticator.pins == ["654321"]
    assert media_sync.session == session
    assert media_sync.state == PollState.SLEEPING


def test_login_failure_is_fatal_and_skips_prompt(credentials, session):
    prompted = []
    media_sync = BlinkMediaSync(credentials, authenticator=FakeAuthenticator(session, fail_login=True),
                                api=FakeApi(), downloader=RecordingDownloader())

    with pytest.raises(AuthError):
        media_sync.start(lambda: prompted.append(True))

    assert prompted == []
    assert media_sync.state == PollState.AUTHENTICATING
    assert media_sync.session is None


def test_pin_failure_is_fatal(credentials, session):
    media_sync = BlinkMediaSync(credentials, authenticator=FakeAuthenticator(session, fail_pin=True),
                                api=FakeApi(), downloader=RecordingDownloader())

    with pytest.raises(PinError):
        media_sync.start(lambda: "000000")

    assert media_sync.state == PollState.VERIFYING_PIN
    assert media_sync.session is None


def test_sync_requires_start(credentials):
    media_sync = BlinkMediaSync(credentials, api=FakeApi(), downloader=RecordingDownloader())

    with pytest.raises(RuntimeError):
        media_sync.sync()


def test_listing_failure_waits_and_retries_without_reauthenticating(credentials, session):
    authenticator = FakeAuthenticator(session)
    api = FakeApi(usage_failures=2)
    sleeps = []
    media_sync = make_sync(credentials, session, api, authenticator=authenticator, sleeps=sleeps)

    summary = media_sync.sync()

    assert api.usage_calls == 3
    assert sleeps == [10, 10]
    assert summary.listing_retries == 2
    assert authenticator.logins == 1
    assert media_sync.session == session
    assert media_sync.state == PollState.SLEEPING


def test_camera_failure_does_not_stop_siblings(credentials, session):
    network = BlinkNetwork(id=1, name="Home", cameras=[
        BlinkCameraRef(id=10, name="Front"),
        BlinkCameraRef(id=11, name="Garage"),
        BlinkCameraRef(id=12, name="Back"),
    ])
    api = FakeApi(networks=[network], cameras={
        10: BlinkCamera(id=10, name="Front", thumbnail="/thumb/front"),
        12: BlinkCamera(id=12, name="Back", thumbnail="/thumb/back"),
    })
    downloader = RecordingDownloader()
    media_sync = make_sync(credentials, session, api, downloader=downloader)

    summary = media_sync.sync()

    assert api.camera_calls == [10, 11, 12]
    assert summary.cameras == 3
    assert summary.camera_failures == 1
    assert [d[1].name for d in downloader.downloads] == ["thumbnail_front.jpg", "thumbnail_back.jpg"]
    assert downloader.downloads[1][1].parent == credentials.save_directory / "Blink" / "Home" / "Back"


def test_pagination_stops_at_first_empty_page(credentials, session):
    api = FakeApi(pages=[[make_item("/a.mp4")], [make_item("/b.mp4")]])
    media_sync = make_sync(credentials, session, api)

    summary = media_sync.sync()

    assert api.page_calls == [1, 2, 3]
    assert summary.pages == 2
    assert summary.downloaded == 2


def test_unreadable_page_does_not_end_pagination(credentials, session):
    api = FakeApi(pages=[
        BlinkMediaPage(page=1, items=[], entry_count=3),
        [make_item("/b.mp4")],
    ])
    downloader = RecordingDownloader()
    media_sync = make_sync(credentials, session, api, downloader=downloader)

    summary = media_sync.sync()

    assert api.page_calls == [1, 2, 3]
    assert [d[0] for d in downloader.downloads] == ["https://rest-e.immedia-semi.com/b.mp4"]
    assert summary.unreadable_entries == 3


def test_malformed_first_page_over_http(mocked_responses, credentials, session, tmp_path):
    regional = "https://rest-e.immedia-semi.com"
    media_changed = regional + "/api/v1/accounts/123/media/changed"
    mocked_responses.add(responses.GET, regional + "/api/v1/camera/usage", json={"networks": []})
    mocked_responses.add(
        responses.GET, media_changed,
        match=[matchers.query_param_matcher({"since": MEDIA_SINCE, "page": "1"})],
        json={"media": [
            {"media": "/broken/%d.mp4" % n, "created_at": None, "network_name": "Home", "device_name": "Front"}
            for n in range(3)
        ]},
    )
    mocked_responses.add(
        responses.GET, media_changed,
        match=[matchers.query_param_matcher({"since": MEDIA_SINCE, "page": "2"})],
        json={"media": [{
            "media": "/api/v2/clip/2.mp4", "created_at": "2024-01-02T00:00:00Z",
            "network_name": "Home", "device_name": "Front", "deleted": "False",
        }]},
    )
    mocked_responses.add(
        responses.GET, media_changed,
        match=[matchers.query_param_matcher({"since": MEDIA_SINCE, "page": "3"})],
        json={"media": []},
    )
    mocked_responses.add(responses.GET, regional + "/api/v2/clip/2.mp4", body=b"mp4")

    media_sync = make_sync(credentials, session, BlinkApi(), downloader=MediaDownloader())
    media_sync.sync()

    page_urls = [call.request.url for call in mocked_responses.calls if call.request.url.startswith(media_changed)]
    assert [url.rsplit("page=", 1)[1] for url in page_urls] == ["1", "2", "3"]
    assert (tmp_path / "Blink" / "Home" / "Front" / "2024-01-02T00-00-00.mp4").read_bytes() == b"mp4"


def test_page_failure_ends_pagination_but_keeps_cycle(credentials, session):
    network = BlinkNetwork(id=1, name="Home", cameras=[BlinkCameraRef(id=10, name="Front")])
    api = FakeApi(
        networks=[network],
        cameras={10: BlinkCamera(id=10, name="Front", thumbnail="/thumb/front")},
        pages=[[make_item("/a.mp4")], [make_item("/b.mp4")]],
        failing_pages=(2,),
    )
    downloader = RecordingDownloader()
    media_sync = make_sync(credentials, session, api, downloader=downloader)

    summary = media_sync.sync()

    assert api.page_calls == [1, 2]
    assert len(downloader.downloads) == 2
    assert summary.downloaded == 2
    assert media_sync.state == PollState.SLEEPING


def test_deleted_items_are_never_downloaded(credentials, session):
    api = FakeApi(pages=[[make_item("/gone.mp4", deleted=True), make_item("/kept.mp4")]])
    downloader = RecordingDownloader()
    media_sync = make_sync(credentials, session, api, downloader=downloader)

    summary = media_sync.sync()

    assert [d[0] for d in downloader.downloads] == ["https://rest-e.immedia-semi.com/kept.mp4"]
    assert summary.media_seen == 2
    assert summary.deleted_skipped == 1


def test_deleted_string_flag_is_honoured(credentials, session):
    item = BlinkMediaItem.from_media_entry({
        "media": "/gone.mp4", "created_at": "2024-01-01T00:00:00Z",
        "network_name": "Home", "device_name": "Front", "deleted": "True",
    })
    downloader = RecordingDownloader()
    media_sync = make_sync(credentials, session, FakeApi(pages=[[item]]), downloader=downloader)

    media_sync.sync()

    assert downloader.downloads == []


def test_end_to_end_cycle(mocked_responses, credentials, tmp_path):
    regional = "https://rest-e.immedia-semi.com"
    mocked_responses.add(responses.POST, "https://rest-prod.immedia-semi.com/api/v5/account/login", json={
        "account": {"tier": "e", "account_id": "123", "client_id": "456"},
        "auth": {"token": "tok"},
    })
    mocked_responses.add(responses.POST, regional + "/api/v4/account/123/client/456/pin/verify", json={})
    mocked_responses.add(responses.GET, regional + "/api/v1/camera/usage", json={
        "networks": [{"network_id": 1, "name": "Home", "cameras": [{"id": 7, "name": "Front"}]}],
    })
    mocked_responses.add(responses.GET, regional + "/network/1/camera/7",
                         json={"camera_status": {"thumbnail": "/thumb/abc"}})
    mocked_responses.add(responses.GET, regional + "/thumb/abc.jpg", body=b"jpeg")

    media_changed = regional + "/api/v1/accounts/123/media/changed"
    mocked_responses.add(
        responses.GET, media_changed,
        match=[matchers.query_param_matcher({"since": MEDIA_SINCE, "page": "1"})],
        json={"media": [{
            "media": "/api/v2/accounts/123/media/clip/1.mp4",
            "created_at": "2024-01-01T00:00:00Z",
            "network_name": "Home",
            "device_name": "Front",
            "deleted": "False",
        }]},
    )
    mocked_responses.add(
        responses.GET, media_changed,
        match=[matchers.query_param_matcher({"since": MEDIA_SINCE, "page": "2"})],
        json={"media": []},
    )
    mocked_responses.add(responses.GET, regional + "/api/v2/accounts/123/media/clip/1.mp4", body=b"mp4")

    media_sync = BlinkMediaSync(credentials, authenticator=BlinkAuthenticator(), api=BlinkApi(),
                                downloader=MediaDownloader(), sleep=lambda seconds: None)
    media_sync.start(lambda: "123456")
    summary = media_sync.sync()

    camera_dir = tmp_path / "Blink" / "Home" / "Front"
    assert (camera_dir / "thumbnail_abc.jpg").read_bytes() == b"jpeg"
    assert (camera_dir / "2024-01-01T00-00-00.mp4").read_bytes() == b"mp4"
    assert summary.downloaded == 2

    page_urls = [call.request.url for call in mocked_responses.calls if call.request.url.startswith(media_changed)]
    assert len([url for url in page_urls if url.endswith("page=2")]) == 1
    assert not any(url.endswith("page=3") for url in page_urls)

    # A second cycle finds everything on disk and fetches no media
    calls_before = len(mocked_responses.calls)
    second = media_sync.sync()
    media_gets = [
        call for call in mocked_responses.calls[calls_before:]
        if call.request.url.endswith((".jpg", ".mp4"))
    ]
    assert media_gets == []
    assert second.skipped == 2
