import datetime
import enum
from pathlib import Path
from typing import List, Optional

import dateutil.parser
import pytz
from pydantic import BaseModel, Field, validator

REGIONAL_HOST_TEMPLATE = "rest-{tier}.immedia-semi.com"


class Credentials(BaseModel):
    email: str
    password: str = Field(repr=False)
    save_directory: Path
    api_host: str

    class Config:
        frozen = True


class BlinkSession(BaseModel):
    """Authenticated session, read-only once the PIN has been verified."""
    auth_token: str = Field(repr=False)
    account_id: int
    client_id: int
    tier: str

    class Config:
        frozen = True

    @property
    def regional_host(self) -> str:
        return REGIONAL_HOST_TEMPLATE.format(tier=self.tier)

    @property
    def base_url(self) -> str:
        return f"https://{self.regional_host}"

    @property
    def auth_headers(self) -> dict:
        """Headers carried by every request after login."""
        return {"TOKEN_AUTH": self.auth_token}

    @classmethod
    def from_login_response(cls, login_json: dict):
        return BlinkSession(
            auth_token=login_json["auth"]["token"],
            account_id=login_json["account"]["account_id"],
            client_id=login_json["account"]["client_id"],
            tier=login_json["account"]["tier"],
        )


class BlinkCameraRef(BaseModel):
    id: int
    name: str

    class Config:
        frozen = True


class BlinkNetwork(BaseModel):
    id: int
    name: str
    cameras: List[BlinkCameraRef] = []

    class Config:
        frozen = True

    @classmethod
    def from_usage(cls, usage_entry: dict):
        return BlinkNetwork(
            id=usage_entry["network_id"],
            name=usage_entry["name"],
            cameras=[
                BlinkCameraRef(id=camera["id"], name=camera["name"])
                for camera in usage_entry.get("cameras") or []
            ],
        )


class BlinkCamera(BaseModel):
    id: int
    name: str
    thumbnail: str

    class Config:
        frozen = True


class BlinkMediaItem(BaseModel):
    media: str
    created_at: datetime.datetime
    network_name: str
    device_name: str
    deleted: bool = False

    class Config:
        frozen = True

    @validator("created_at", pre=True)
    def parse_created_at(cls, v):
        """Parse the API timestamp and normalise it to UTC (naive values are taken as UTC)."""
        if isinstance(v, str):
            v = dateutil.parser.isoparse(v)
        if isinstance(v, datetime.datetime):
            if v.tzinfo is None:
                return pytz.UTC.localize(v)
            return v.astimezone(pytz.UTC)
        return v

    @validator("deleted", pre=True)
    def parse_deleted(cls, v):
        # The API reports this flag as either a JSON bool or the string "True"/"False"
        if isinstance(v, str):
            return v.strip().lower() == "true"
        return bool(v)

    @classmethod
    def from_media_entry(cls, entry: dict):
        return BlinkMediaItem(
            media=entry["media"],
            created_at=entry["created_at"],
            network_name=entry["network_name"],
            device_name=entry["device_name"],
            deleted=entry.get("deleted", False),
        )


class BlinkMediaPage(BaseModel):
    """One page of the media listing; entry_count includes entries that failed to parse."""
    page: int
    items: List[BlinkMediaItem] = []
    entry_count: int = 0

    class Config:
        frozen = True

    @property
    def is_last(self) -> bool:
        return self.entry_count == 0


class DownloadStatus(str, enum.Enum):
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    FAILED = "failed"


class DownloadResult(BaseModel):
    status: DownloadStatus
    path: Path
    reason: Optional[str] = None

    class Config:
        frozen = True

    @property
    def ok(self) -> bool:
        return self.status != DownloadStatus.FAILED
