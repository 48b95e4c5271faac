"""
app/connectors/base.py

Base connector abstraction and shared HTTP streaming mechanics.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from app.domain.errors import TransportError

logger = logging.getLogger(__name__)


class BaseConnector:
    """
    Connector holding one HTTP session and a per-request timeout.

    Requests are attempted once; retry policy belongs to the scheduler.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        timeout_seconds: float,
        chunk_size_bytes: int = 1024 * 1024,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._chunk_size_bytes = chunk_size_bytes

    def _download_to(self, *, url: str, target: Path) -> Path:
        """
        Stream `url` into `target` through a temporary `.part` file.

        The target only appears once the whole body has been written; on any
        failure the temporary file is removed and TransportError is raised.
        """

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(f"{target.name}.part")
        try:
            with self._session.get(url, stream=True, timeout=self._timeout_seconds) as response:
                if not 200 <= response.status_code < 300:
                    logger.error(
                        "Connector request failed source=%s status=%s url=%s",
                        self.source,
                        response.status_code,
                        url,
                    )
                    raise TransportError(f"{self.source}: HTTP {response.status_code} for {url}")
                with tmp_path.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=self._chunk_size_bytes):
                        if chunk:
                            handle.write(chunk)
            tmp_path.replace(target)
        except requests.RequestException as exc:
            logger.error(
                "Connector stream failed source=%s url=%s error=%s",
                self.source,
                url,
                exc,
            )
            raise TransportError(f"{self.source}: request failed for {url}: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"{self.source}: could not write {target}: {exc}") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.warning("Could not remove partial download %s", tmp_path)
        return target
