"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector
from app.connectors.dump_downloader import RegistryDumpDownloader, dump_file_name

__all__ = [
    "BaseConnector",
    "RegistryDumpDownloader",
    "dump_file_name",
]
