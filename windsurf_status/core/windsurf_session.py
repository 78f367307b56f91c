"""
Windsurf seat management API (Connect protocol over JSON):
- GetUserStatus - by api key, contains `userStatus.planStatus`
- GetPlanStatus - by auth token, contains `planStatus`
- GetCurrentUser - by auth token, contains user and subscription

Local editor keeps last auth status in SQLite `state.vscdb`, key
`windsurfAuthStatus`. It contains `userStatusProtoBinaryBase64` - the same
user status but in binary form, see `user_status.py`.
"""
import json
import logging
import os
import sqlite3
import sys
import time
from contextlib import closing
from pathlib import Path

from aiohttp import ClientError, ClientSession

from .const import (
    AUTH_STATUS_KEY,
    DEFAULT_API_SERVER_URL,
    EXTENSION_NAME,
    EXTENSION_VERSION,
    IDE_NAME,
    IDE_VERSION,
    LOCALE,
    SEAT_MANAGEMENT_SERVICE,
    USER_AGENT,
)

_LOGGER = logging.getLogger(__name__)


class WindsurfError(Exception):
    pass


class WindsurfSession:
    """Class for requesting account status with api key or auth token."""
    proxy: str = None

    def __init__(self, session: ClientSession, api_key: str = None,
                 api_server_url: str = None):
        """
        :param api_key: optional `sk-ws-...` key, required for GetUserStatus
        :param api_server_url: optional server from RegisterUser response
        """
        self.session = session
        self.api_key = api_key
        self.api_server_url = (api_server_url or DEFAULT_API_SERVER_URL).strip()

    def url(self, method: str) -> str:
        base = self.api_server_url.rstrip("/")
        return f"{base}/{SEAT_MANAGEMENT_SERVICE}/{method}"

    async def post(self, method: str, payload: dict) -> dict:
        url = self.url(method)
        _LOGGER.debug(f"Request {method}")
        try:
            r = await self.session.post(
                url, json=payload, headers={
                    "User-Agent": USER_AGENT,
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                }, proxy=self.proxy
            )
            text = await r.text()
        except ClientError as e:
            raise WindsurfError(f"{method} request error: {e}") from e

        if not 200 <= r.status < 300:
            raise WindsurfError(f"{method} return {r.status} status: {text}")

        try:
            return json.loads(text)
        except ValueError as e:
            raise WindsurfError(f"{method} wrong response: {text}") from e

    def user_status_metadata(self) -> dict:
        ts = int(time.time())
        return {
            "apiKey": self.api_key,
            "ideName": IDE_NAME,
            "ideVersion": IDE_VERSION,
            "extensionName": EXTENSION_NAME,
            "extensionVersion": EXTENSION_VERSION,
            "locale": LOCALE,
            "os": "darwin" if sys.platform == "darwin" else sys.platform,
            "disableTelemetry": False,
            "sessionId": f"windsurf-status-{ts}",
            "requestId": str(ts),
        }

    async def get_user_status(self) -> dict:
        assert self.api_key, "api key required"
        return await self.post(
            "GetUserStatus", {"metadata": self.user_status_metadata()}
        )

    async def get_plan_status(self, auth_token: str) -> dict:
        return await self.post(
            "GetPlanStatus",
            {"authToken": auth_token, "includeTopUpStatus": True},
        )

    async def get_current_user(self, auth_token: str) -> dict:
        return await self.post(
            "GetCurrentUser",
            {"authToken": auth_token, "includeSubscription": True},
        )

    async def fetch_account(self, auth_token: str = None) -> dict:
        """Collect all remote statuses into account dict for
        `build_credits_summary`. Failed requests only leave empty fields.
        """
        account = {
            "windsurf_api_key": self.api_key,
            "windsurf_api_server_url": self.api_server_url,
        }
        user = {}
        user_status = {}

        if self.api_key:
            try:
                resp = await self.get_user_status()
                account["windsurf_user_status"] = resp
                user_status = resp.get("userStatus") or {}
            except WindsurfError as e:
                _LOGGER.warning(f"GetUserStatus failed, no email and credits: {e}")

        if auth_token:
            try:
                resp = await self.get_current_user(auth_token)
                account["windsurf_current_user"] = resp
                user = resp.get("user") or {}
            except WindsurfError as e:
                _LOGGER.warning(f"GetCurrentUser failed: {e}")

            try:
                account["windsurf_plan_status"] = await self.get_plan_status(auth_token)
            except WindsurfError as e:
                _LOGGER.warning(f"GetPlanStatus failed: {e}")

        # current user has priority over user status
        for key in ("email", "name"):
            if value := user.get(key) or user_status.get(key):
                account[f"github_{key}"] = value

        return account


def get_default_state_db_path() -> Path:
    if sys.platform == "darwin":
        return Path.home().joinpath(
            "Library/Application Support/Windsurf/User/globalStorage/state.vscdb"
        )
    if sys.platform == "win32":
        if not (appdata := os.environ.get("APPDATA")):
            raise WindsurfError("APPDATA is not set")
        return Path(appdata, "Windsurf", "User", "globalStorage", "state.vscdb")
    return Path.home().joinpath(".config/Windsurf/User/globalStorage/state.vscdb")


def read_local_auth_status(path: str | Path = None) -> dict | None:
    path = Path(path) if path else get_default_state_db_path()
    if not path.exists():
        return None

    try:
        with closing(sqlite3.connect(path)) as conn:
            row = conn.execute(
                "SELECT value FROM ItemTable WHERE key = ?", (AUTH_STATUS_KEY,)
            ).fetchone()
    except sqlite3.Error as e:
        raise WindsurfError(f"Can't read {AUTH_STATUS_KEY}: {e}") from e

    if row is None:
        return None

    try:
        return json.loads(row[0])
    except ValueError as e:
        raise WindsurfError(f"Can't parse {AUTH_STATUS_KEY}: {e}") from e


def merge_local_auth_status(account: dict, auth_status: dict | None) -> dict:
    """Add local auth status to account if it belongs to the same api key."""
    api_key = (account.get("windsurf_api_key") or "").strip()
    if not api_key or not isinstance(auth_status, dict):
        return account

    local_key = auth_status.get("apiKey") or auth_status.get("api_key")
    if local_key != api_key:
        return account

    raw = account.get("windsurf_auth_status_raw")
    raw = dict(raw) if isinstance(raw, dict) else {}
    raw.update({k: v for k, v in auth_status.items() if v is not None})

    account = {**account, "windsurf_auth_status_raw": raw}
    if not account.get("windsurf_api_server_url"):
        account["windsurf_api_server_url"] = raw.get("apiServerUrl") or raw.get(
            "api_server_url"
        )
    if not account.get("github_email"):
        account["github_email"] = raw.get("email")
    if not account.get("github_name"):
        account["github_name"] = raw.get("name")
    return account
