"""
app/connectors/dump_downloader.py

Downloader for the monthly contract registry XML dumps.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from app.config import RegistryDumpSettings
from app.connectors.base import BaseConnector
from app.domain.registry import Period

logger = logging.getLogger(__name__)


def dump_file_name(period: Period) -> str:
    return f"dump_{period.year}_{period.month:02d}.xml"


class RegistryDumpDownloader(BaseConnector):
    """
    Fetches one period's dump into the staging directory.

    A staged file is reused as-is, so repeated runs for the same period never
    hit the network twice.
    """

    def __init__(
        self,
        *,
        settings: RegistryDumpSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            source="registry_dump",
            timeout_seconds=settings.timeout_seconds,
            chunk_size_bytes=settings.chunk_size_bytes,
            session=session,
        )
        self._settings = settings

    def staged_path(self, period: Period) -> Path:
        return Path(self._settings.staging_dir) / dump_file_name(period)

    def dump_url(self, period: Period) -> str:
        return f"{self._settings.base_url.rstrip('/')}/{dump_file_name(period)}"

    def fetch(self, year: int, month: int) -> Path:
        period = Period(year=year, month=month)
        target = self.staged_path(period)
        if target.exists():
            logger.info("Dump already staged period=%s path=%s", period.label, target)
            return target

        url = self.dump_url(period)
        logger.info("Downloading dump period=%s url=%s", period.label, url)
        path = self._download_to(url=url, target=target)
        logger.info("Dump staged period=%s path=%s bytes=%s", period.label, path, path.stat().st_size)
        return path
