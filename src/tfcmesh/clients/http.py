# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/clients/http.py

"""HTTP client for talking to peer agents."""

import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type, TypeVar

import requests
from loguru import logger
from pydantic import BaseModel, ValidationError
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from tfcmesh.config import TlsSettings
from tfcmesh.errors import FetchError
from tfcmesh.models import (
    AgentStatus,
    CatalogEntry,
    Registration,
    TransferCollection,
    UploadReceipt,
)

M = TypeVar("M", bound=BaseModel)


def secure_http_client(tls: Optional[TlsSettings] = None) -> requests.Session:
    """requests session carrying the X509 client certificate when one is set."""
    tls = tls if tls is not None else TlsSettings.from_env()
    session = requests.Session()
    if tls.proxy:
        session.cert = str(tls.proxy)
    elif tls.cert and tls.key:
        session.cert = (str(tls.cert), str(tls.key))
    if tls.enabled:
        logger.debug(f"HTTP client using certificate {session.cert}")
    return session


class PeerClient:
    """JSON calls against a peer agent's HTTP surface.

    GETs are retried on connection errors and timeouts with linear backoff
    (``backoff``, 2x``backoff``, ...). POSTs are sent once.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        retries: int = 3,
        backoff: float = 1.0,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session if session is not None else secure_http_client()
        self.retries = retries
        self.backoff = backoff
        self.timeout = timeout
        self.sleep = sleep

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception_type((RequestsConnectionError, Timeout)),
            sleep=self.sleep,
            reraise=True,
        )

    def _check(self, url: str, response: requests.Response) -> requests.Response:
        if response.status_code >= 400:
            raise FetchError(url, response.text, response.status_code)
        return response

    def get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        try:
            for attempt in self._retrying():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.debug(f"Retrying {url} (attempt {attempt.retry_state.attempt_number})")
                    response = self.session.get(url, params=params, timeout=self.timeout)
        except RequestException as e:
            raise FetchError(url, str(e)) from e
        return self._check(url, response)

    def _json(self, url: str, response: requests.Response):
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(url, f"invalid JSON: {e}", response.status_code) from e

    def _parse(self, url: str, model: Type[M], data) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise FetchError(url, f"unexpected {model.__name__} reply: {e}") from e

    def get_json(self, url: str, params: Optional[dict] = None):
        return self._json(url, self.get(url, params=params))

    def post_json(self, url: str, payload) -> requests.Response:
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except RequestException as e:
            raise FetchError(url, str(e)) from e
        return self._check(url, response)

    def delete(self, url: str) -> requests.Response:
        try:
            response = self.session.delete(url, timeout=self.timeout)
        except RequestException as e:
            raise FetchError(url, str(e)) from e
        return self._check(url, response)

    # agent endpoints

    def status(self, base_url: str) -> AgentStatus:
        url = f"{base_url}/status"
        return self._parse(url, AgentStatus, self.get_json(url))

    def agents(self, base_url: str) -> Dict[str, str]:
        return self.get_json(f"{base_url}/agents")

    def files(self, base_url: str, pattern: str = "") -> List[str]:
        return self.get_json(f"{base_url}/files", params={"pattern": pattern})

    def records(self, base_url: str, dataset: str = "", block: str = "", lfn: str = "") -> List[CatalogEntry]:
        url = f"{base_url}/tfc"
        data = self.get_json(url, params={"dataset": dataset, "block": block, "lfn": lfn})
        return [self._parse(url, CatalogEntry, item) for item in data]

    def pending(self, base_url: str, status: str = "") -> List[dict]:
        params = {"status": status} if status else None
        return self.get_json(f"{base_url}/requests", params=params)

    def request(self, base_url: str, request_id: int) -> dict:
        return self.get_json(f"{base_url}/requests/{request_id}")

    def transfers(self, base_url: str, t0: int, t1: int) -> List[dict]:
        return self.get_json(f"{base_url}/transfers", params={"t0": t0, "t1": t1})

    def register(self, base_url: str, alias: str, agent_url: str):
        """Announce ``alias -> agent_url`` to a peer."""
        payload = Registration(agent=agent_url, alias=alias).to_wire()
        self.post_json(f"{base_url}/register", payload)

    def submit(self, base_url: str, collection: TransferCollection) -> dict:
        url = f"{base_url}/request"
        return self._json(url, self.post_json(url, collection.to_wire()))

    def cancel(self, base_url: str, request_id: int):
        self.delete(f"{base_url}/requests/{request_id}")

    def post_tfc(self, base_url: str, entries: List[CatalogEntry]):
        self.post_json(f"{base_url}/tfc", [e.to_wire() for e in entries])

    def snapshot(self, base_url: str) -> dict:
        url = f"{base_url}/snapshot"
        return self._json(url, self.post_json(url, {}))

    def upload(self, base_url: str, path: Path, entry: CatalogEntry, src: str, dst: str) -> UploadReceipt:
        """Multipart upload of a local file; not retried."""
        url = f"{base_url}/upload"
        headers = {
            "Pfn": entry.pfn,
            "Lfn": entry.lfn,
            "Bytes": str(entry.size),
            "Hash": entry.digest,
            "Src": src,
            "Dst": dst,
        }
        try:
            with open(path, "rb") as f:
                response = self.session.post(
                    url,
                    files={"data": (Path(path).name, f)},
                    headers=headers,
                    timeout=self.timeout,
                )
        except RequestException as e:
            raise FetchError(url, str(e)) from e
        except OSError as e:
            raise FetchError(url, f"unable to read {path}: {e}") from e
        self._check(url, response)
        return self._parse(url, UploadReceipt, self._json(url, response))
