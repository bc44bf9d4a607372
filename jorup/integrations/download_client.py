from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import requests

from jorup import __version__

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_ENV = "JORUP_HTTP_TIMEOUT"
DEFAULT_TIMEOUT_SECONDS = 60.0
_CHUNK_SIZE = 64 * 1024


class DownloadError(RuntimeError):
    """Raised for any transport failure (feed query or asset download)."""


def _timeout_from_env() -> float:
    raw = (os.getenv(HTTP_TIMEOUT_ENV) or "").strip()
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", HTTP_TIMEOUT_ENV, raw)
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


class DownloadClient:
    """
    Thin blocking HTTP client around a requests.Session.

    - no retries (failures surface immediately)
    - downloads stream into `<dest>.part` and are renamed once complete,
      so a half-written file is never mistaken for a finished asset
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else _timeout_from_env()
        )
        self.headers: Dict[str, str] = {"User-Agent": f"jorup/{__version__}"}

    def get_json(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[Any, Optional[str]]:
        """GET a JSON document; returns (payload, next_page_url)."""
        headers = dict(self.headers)
        headers["Accept"] = "application/vnd.github+json"
        try:
            resp = self.session.get(
                url, params=params, headers=headers, timeout=self.timeout_seconds
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise DownloadError(f"request failed: GET {url}") from exc
        except ValueError as exc:
            raise DownloadError(f"invalid JSON from {url}") from exc

        links = getattr(resp, "links", None) or {}
        next_url = (links.get("next") or {}).get("url")
        return payload, next_url

    def download_file(self, url: str, dest: Path) -> Path:
        dest = Path(dest)
        part = dest.with_name(dest.name + ".part")
        dest.parent.mkdir(parents=True, exist_ok=True)

        logger.info("downloading %s -> %s", url, dest)
        try:
            resp = self.session.get(
                url, headers=self.headers, stream=True, timeout=self.timeout_seconds
            )
            try:
                resp.raise_for_status()
                with open(part, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            finally:
                resp.close()
        except requests.RequestException as exc:
            raise DownloadError(f"download failed: {url}") from exc
        except OSError as exc:
            raise DownloadError(f"cannot write {part}") from exc

        try:
            part.replace(dest)
        except OSError as exc:
            raise DownloadError(f"cannot move {part} to {dest}") from exc
        return dest
