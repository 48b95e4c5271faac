"""
app/extraction package marker.
"""

from app.extraction.dump_extractor import DumpExtractor
from app.extraction.party_shapes import PARTY_DECODERS, PartyResolution, PartyShape, resolve_parties

__all__ = [
    "DumpExtractor",
    "PARTY_DECODERS",
    "PartyResolution",
    "PartyShape",
    "resolve_parties",
]
