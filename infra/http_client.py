# infra/http_client.py
from __future__ import annotations

import aiohttp
import asyncio
import hashlib
import hmac
import json
import random
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode, urlparse
import logging

from orderwatch.errors import VenueApiError
from utils.logger import logger

JSON_SEPARATORS = (",", ":")

API_KEY_HEADER = "RBT-API-KEY"
SIGNATURE_HEADER = "RBT-SIGNATURE"
TIMESTAMP_HEADER = "RBT-TS"
SIGNATURE_LIFETIME_S = 300

SIGNED_METHODS = {"POST", "PUT", "DELETE"}


class HttpError(Exception):
    def __init__(self, status: int, message: str, payload: Optional[dict] = None):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.payload = payload or {}


def _json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False)


def _build_query(params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return ""
    return "?" + urlencode(params, doseq=True, safe=":/")


def _mask(s: Optional[str]) -> str:
    if not s:
        return ""
    if len(s) <= 8:
        return "*" * len(s)
    return s[:4] + "*" * (len(s) - 8) + s[-4:]


def signing_payload(method: str, path: str, body: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Flatten a JSON body the way the venue verifies it:
    each top-level field as its raw JSON text with surrounding quotes trimmed,
    plus the HTTP method and the full URL path.
    """
    payload = {k: _json_dumps_compact(v).strip('"') for k, v in (body or {}).items()}
    payload["method"] = method.upper()
    payload["path"] = path
    return payload


def payload_signature(payload: Mapping[str, str], secret: str, timestamp: int) -> str:
    """
    0x-hex HMAC-SHA256(key=hex(secret), msg=SHA256(sorted "k=v" pairs + timestamp)).
    """
    secret_hex = secret[2:] if secret.startswith("0x") else secret
    try:
        key = bytes.fromhex(secret_hex)
    except ValueError as e:
        raise ValueError("api secret must be hex encoded") from e

    message = "".join(f"{k}={payload[k]}" for k in sorted(payload))
    digest = hashlib.sha256((message + str(timestamp)).encode("utf-8")).digest()
    return "0x" + hmac.new(key, digest, hashlib.sha256).hexdigest()


class HttpClient:
    def __init__(self,
                 cfg: Mapping[str, Any],
                 logger: Optional[logging.Logger] = None,
                 api_key: Optional[str] = None,
                 api_secret: Optional[str] = None,
                 *,
                 timeout_ms: Optional[int] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        self.cfg = cfg
        self.log = logger or logging.getLogger("HttpClient")
        self.session = session
        self._owned_session = session is None

        venue_cfg = cfg.get("venue", {})
        self.base_url = str(venue_cfg["api_url"]).rstrip("/")
        # signature covers the full URL path, including any base path of api_url
        self.base_path = urlparse(self.base_url).path.rstrip("/")

        # credentials
        self.api_key = api_key if api_key is not None else venue_cfg.get("api_key", "")
        self.api_secret = api_secret if api_secret is not None else venue_cfg.get("api_secret", "")

        # timeouts & retries
        timeouts_cfg = cfg.get("timeouts", {})
        retries_cfg = cfg.get("retries", {})
        self.timeout_ms = int(timeout_ms or timeouts_cfg.get("rest_ms", 5000))
        self.max_attempts = int(retries_cfg.get("rest_max_attempts", 3))
        self.backoff_ms = int(retries_cfg.get("backoff_ms", 200))

        self.log.debug(
            f"HttpClient init base_url={self.base_url} key={_mask(self.api_key)}"
        )

    # ---- async context manager ----------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._owned_session and (self.session is None or self.session.closed):
            timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)
        return self.session

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    # ---- signing ------------------------------------------------------------------
    def _expiry_ts(self) -> int:
        return int(time.time()) + SIGNATURE_LIFETIME_S

    def _build_auth_headers(self, method: str, path: str, body: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        if not self.api_key:
            raise VenueApiError("missing API key")
        headers = {API_KEY_HEADER: self.api_key}
        if method.upper() not in SIGNED_METHODS:
            return headers
        if not self.api_secret:
            raise VenueApiError("missing API secret")

        ts = self._expiry_ts()
        payload = signing_payload(method, self.base_path + path, body)
        headers[SIGNATURE_HEADER] = payload_signature(payload, self.api_secret, ts)
        headers[TIMESTAMP_HEADER] = str(ts)
        return headers

    async def request(
            self,
            method: str,
            path: str,
            *,
            params: Optional[Mapping[str, Any]] = None,
            json_body: Optional[Mapping[str, Any]] = None,
            auth: bool = True,
            expect_envelope: bool = True,
            retry: bool = True,
        ) -> Any:
        """
        Single request entry point.
        - path: venue path starting with "/", appended to api_url
        - auth: add RBT-API-KEY, and the payload signature for POST/PUT/DELETE
        - expect_envelope: unwrap {"success", "error", "result"} and return result (a list)
        - retry: exponential backoff on 429/5xx and network errors
        """
        assert path.startswith("/"), "path must start with /"
        method = method.upper()
        url = self.base_url + path + _build_query(params)
        body_str = _json_dumps_compact(json_body) if json_body is not None else ""
        req_headers = {
            "Content-Type": "application/json", "Accept": "application/json"
        }
        if auth:
            req_headers.update(self._build_auth_headers(method, path, json_body))

        session = self._ensure_session()
        attempt = 0
        while True:
            attempt += 1
            try:
                async with session.request(
                    method,
                    url,
                    data=body_str if body_str else None,
                    headers=req_headers,
                ) as resp:
                    text = await resp.text()
                    status = resp.status
                    if status >= 400:
                        if retry and (status >= 500 or status == 429) and attempt < self.max_attempts:
                            await self._sleep_backoff(attempt)
                            continue
                        raise HttpError(status, text[:256])

                    try:
                        payload = json.loads(text) if text else {}
                    except json.JSONDecodeError:
                        raise HttpError(status, f"invalid json: {text[:256]}")

                    if not expect_envelope:
                        return payload
                    return self._unwrap(payload)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if retry and attempt < self.max_attempts:
                    logger.warning(f"Network error: {e} when requesting {method} {url}, retrying...")
                    await self._sleep_backoff(attempt)
                    continue
                raise HttpError(599, f"Network error: {e}") from e

    @staticmethod
    def _unwrap(payload: Any) -> List[Any]:
        if not isinstance(payload, dict):
            raise HttpError(200, f"unexpected payload type: {type(payload).__name__}")
        if not payload.get("success", False):
            raise VenueApiError(str(payload.get("error") or "unknown error"), payload)
        return payload.get("result") or []

    async def _sleep_backoff(self, attempt: int) -> None:
        base = self.backoff_ms * (2 ** (attempt - 1))
        jitter = random.randint(0, self.backoff_ms)
        await asyncio.sleep((base + jitter) / 1000.0)

    # ---- convenience wrappers -----------------------------------------------------
    async def get_private(self, path: str, params: Optional[Mapping[str, Any]] = None) -> List[Any]:
        return await self.request("GET", path, params=params)

    async def post_private(self, path: str, json_body: Mapping[str, Any]) -> List[Any]:
        return await self.request("POST", path, json_body=json_body)

    async def delete_private(self, path: str, json_body: Optional[Mapping[str, Any]] = None) -> List[Any]:
        return await self.request("DELETE", path, json_body=json_body)
