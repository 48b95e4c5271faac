"""
app/extraction/dump_extractor.py

Streaming extractor turning a registry XML dump into RawRecord values.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Sequence
from pathlib import Path

from app.config import DEFAULT_PARTY_SHAPE_ORDER
from app.domain.errors import DumpFormatError
from app.domain.registry import RawAmendment, RawRecord, RecordType
from app.extraction.party_shapes import resolve_parties, validate_shape_order
from app.extraction.xml_helpers import child, child_text, children, local_name

logger = logging.getLogger(__name__)

# Elements treated as one record when they are not nested in another record.
RECORD_TAGS = frozenset({"zaznam", "smlouva", "dodatek"})

TITLE_FIELDS = ("predmet", "nazev", "popis")
AMOUNT_FIELDS = ("hodnotaBezDph", "hodnotaVcetneDph", "castka")
DATE_FIELDS = ("datumUzavreni", "datum")
CATEGORY_FIELDS = ("typSmlouvy", "kategorie")
PROCUREMENT_FIELDS = ("druhRizeni", "typ_rizeni")
AMENDMENT_AMOUNT_FIELDS = ("castka", "hodnota", "hodnotaBezDph")
AMENDMENT_DATE_FIELDS = ("datum", "datumUzavreni")


class DumpExtractor:
    """
    Lazily decodes records from one dump file in document order.

    Only the record currently being decoded is held in memory; each call to
    `extract` re-parses the file from the start.
    """

    def __init__(self, *, party_shape_order: Sequence[str] = DEFAULT_PARTY_SHAPE_ORDER) -> None:
        self._party_shape_order = validate_shape_order(party_shape_order)

    @property
    def party_shape_order(self) -> tuple[str, ...]:
        return self._party_shape_order

    def scan(self, path: str | Path) -> int:
        """
        Walk the whole document once and return the number of records.

        Raises DumpFormatError for unreadable or malformed documents, so
        callers can reject a dump before writing anything from it.
        """

        count = 0
        for _ in self._iter_record_elements(Path(path)):
            count += 1
        logger.info("Dump scanned path=%s records=%s", path, count)
        return count

    def extract(self, path: str | Path, *, start_index: int = 1) -> Iterator[RawRecord]:
        """
        Yield one RawRecord per record element, numbered from `start_index`.

        Records that cannot be decoded are still yielded, with `parse_error`
        set, so downstream reporting sees every position in the dump.
        """

        index = start_index
        for element in self._iter_record_elements(Path(path)):
            yield self._decode(element, index)
            index += 1

    def _iter_record_elements(self, path: Path) -> Iterator[ET.Element]:
        stack: list[ET.Element] = []
        current: ET.Element | None = None
        try:
            for event, element in ET.iterparse(str(path), events=("start", "end")):
                if event == "start":
                    if current is None and stack and local_name(element.tag) in RECORD_TAGS:
                        current = element
                    stack.append(element)
                    continue

                stack.pop()
                if element is current:
                    yield element
                    current = None
                    element.clear()
                    if stack:
                        stack[-1].remove(element)
                elif current is None and len(stack) == 1:
                    element.clear()
                    stack[0].remove(element)
        except ET.ParseError as exc:
            raise DumpFormatError(f"Malformed XML in {path}: {exc}") from exc
        except OSError as exc:
            raise DumpFormatError(f"Cannot read dump {path}: {exc}") from exc

    def _decode(self, element: ET.Element, index: int) -> RawRecord:
        try:
            if local_name(element.tag) == "dodatek":
                return self._decode_amendment_record(element, index)
            return self._decode_contract_record(element, index)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to decode dump record index=%s error=%s", index, exc)
            return RawRecord(index=index, parse_error=f"{type(exc).__name__}: {exc}")

    def _decode_contract_record(self, record: ET.Element, index: int) -> RawRecord:
        if local_name(record.tag) == "zaznam":
            contract = child(record, "smlouva")
            if contract is None:
                return RawRecord(index=index, parse_error="zaznam without smlouva element")
        else:
            contract = record

        external_id = self._external_id(record, contract)
        title = child_text(contract, *TITLE_FIELDS)
        amount_raw = child_text(contract, *AMOUNT_FIELDS)
        date_raw = child_text(contract, *DATE_FIELDS) or child_text(record, "casZverejneni")
        parties = resolve_parties(contract, self._party_shape_order)

        supplier = parties.supplier if parties is not None else None
        authority = parties.authority if parties is not None else None
        if title is None and supplier is None and authority is None and amount_raw is None:
            return RawRecord(
                index=index,
                external_id=external_id,
                parse_error="record carries no contract content",
            )

        if supplier is None:
            logger.debug("No supplier detected index=%s external_id=%s", index, external_id)

        return RawRecord(
            index=index,
            record_type=RecordType.CONTRACT,
            external_id=external_id,
            title=title,
            amount_raw=amount_raw,
            date_raw=date_raw,
            category=child_text(contract, *CATEGORY_FIELDS),
            procurement_type=child_text(contract, *PROCUREMENT_FIELDS),
            supplier_name=supplier.name if supplier is not None else "",
            supplier_tax_id=supplier.tax_id if supplier is not None else None,
            authority_name=authority.name if authority is not None else "",
            latitude_raw=child_text(contract, "lat"),
            longitude_raw=child_text(contract, "lng"),
            party_shape=parties.shape if parties is not None else None,
            supplier_missing=supplier is None,
            amendments=tuple(
                RawAmendment(
                    amount_raw=child_text(node, *AMENDMENT_AMOUNT_FIELDS),
                    date_raw=child_text(node, *AMENDMENT_DATE_FIELDS),
                )
                for node in children(contract, "dodatek")
            ),
        )

    def _decode_amendment_record(self, record: ET.Element, index: int) -> RawRecord:
        identifier = child(record, "identifikator")
        parent_id = child_text(record, "idSmlouvy")
        if parent_id is None and identifier is not None:
            parent_id = child_text(identifier, "idSmlouvy")
        return RawRecord(
            index=index,
            record_type=RecordType.AMENDMENT,
            parent_external_id=parent_id,
            amendments=(
                RawAmendment(
                    amount_raw=child_text(record, *AMENDMENT_AMOUNT_FIELDS),
                    date_raw=child_text(record, *AMENDMENT_DATE_FIELDS),
                ),
            ),
        )

    @staticmethod
    def _external_id(record: ET.Element, contract: ET.Element) -> str | None:
        for holder in (record, contract):
            identifier = child(holder, "identifikator")
            if identifier is not None:
                value = child_text(identifier, "idSmlouvy", "idVerze")
                if value:
                    return value
        return child_text(record, "id") or child_text(contract, "id")
