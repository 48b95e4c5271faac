"""
app/extraction/party_shapes.py

Decoders for the ways registry dumps have expressed contract parties.

Each shape is one decoder. `resolve_parties` tries them in a configured order
and keeps the first one that finds at least one matching element.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from app.extraction.xml_helpers import child, child_text, children, name_and_tax_id


class PartyShape:
    SUBJECT = "subject"
    SUPPLIER = "supplier"
    CONTRACTING_PARTY = "contracting_party"
    APPROVER = "approver"


AUTHORITY_ROLE_KEYWORDS = ("zadavatel", "objednatel", "kupující", "objednávající")
SUPPLIER_ROLE_KEYWORDS = ("dodavatel", "poskytovatel", "zhotovitel", "prodávající")

_PUBLIC_ENTITY_MARKERS = (
    "ministerstvo",
    "úřad",
    "magistrát",
    "městský",
    "obecní",
    "kraj",
    "město ",
    "obec ",
    "státní",
    "česká republika",
    "ředitelství",
)
_PUBLIC_ENTITY_PATTERN = re.compile(r"krajsk[áý]|městsk[áý]|obecn[íý]|státn[íý]", re.IGNORECASE)
_TRUE_FLAGS = {"true", "1", "ano"}


@dataclass(frozen=True)
class Party:
    name: str
    tax_id: str | None = None


@dataclass(frozen=True)
class PartyResolution:
    """
    Parties found by one decoder. `shape` names the decoder that produced it.
    """

    shape: str
    supplier: Party | None
    authority: Party | None


def is_public_entity(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _PUBLIC_ENTITY_MARKERS) or bool(
        _PUBLIC_ENTITY_PATTERN.search(lowered)
    )


def classify_role(raw_role: str | None) -> str | None:
    if not raw_role:
        return None
    lowered = raw_role.lower()
    if any(keyword in lowered for keyword in AUTHORITY_ROLE_KEYWORDS):
        return "authority"
    if any(keyword in lowered for keyword in SUPPLIER_ROLE_KEYWORDS):
        return "supplier"
    return None


def _party(node: ET.Element) -> Party | None:
    name, tax_id = name_and_tax_id(node)
    if not name:
        return None
    return Party(name=name, tax_id=tax_id)


def decode_subject_list(contract: ET.Element) -> PartyResolution | None:
    supplier: Party | None = None
    authority: Party | None = None
    matched = False
    for subject in children(contract, "subjekt"):
        party = _party(subject)
        role = classify_role(child_text(subject, "typ"))
        if party is None or role is None:
            continue
        matched = True
        if role == "supplier" and supplier is None:
            supplier = party
        elif role == "authority" and authority is None:
            authority = party
    if not matched:
        return None
    return PartyResolution(shape=PartyShape.SUBJECT, supplier=supplier, authority=authority)


def decode_direct_supplier(contract: ET.Element) -> PartyResolution | None:
    supplier_node = child(contract, "dodavatel")
    supplier = _party(supplier_node) if supplier_node is not None else None
    if supplier is None:
        return None
    authority_node = child(contract, "zadavatel")
    authority = _party(authority_node) if authority_node is not None else None
    return PartyResolution(shape=PartyShape.SUPPLIER, supplier=supplier, authority=authority)


def decode_contracting_parties(contract: ET.Element) -> PartyResolution | None:
    parties: list[tuple[Party, str | None, bool]] = []
    for node in children(contract, "smluvniStrana"):
        party = _party(node)
        if party is None:
            continue
        role = classify_role(child_text(node, "role"))
        recipient = (child_text(node, "prijemce") or "").lower() in _TRUE_FLAGS
        parties.append((party, role, recipient))
    if not parties:
        return None

    supplier = next((party for party, role, recipient in parties if recipient or role == "supplier"), None)
    authority = next((party for party, role, _ in parties if role == "authority"), None)
    if authority is None:
        authority = next(
            (party for party, _, _ in parties if party is not supplier and is_public_entity(party.name)),
            None,
        )
    if supplier is None:
        supplier = next(
            (party for party, _, _ in parties if party is not authority and not is_public_entity(party.name)),
            None,
        )
    return PartyResolution(shape=PartyShape.CONTRACTING_PARTY, supplier=supplier, authority=authority)


def decode_approver(contract: ET.Element) -> PartyResolution | None:
    approver = child_text(contract, "schvalil")
    if not approver:
        return None
    return PartyResolution(shape=PartyShape.APPROVER, supplier=None, authority=Party(name=approver))


PartyDecoder = Callable[[ET.Element], "PartyResolution | None"]

PARTY_DECODERS: dict[str, PartyDecoder] = {
    PartyShape.SUBJECT: decode_subject_list,
    PartyShape.SUPPLIER: decode_direct_supplier,
    PartyShape.CONTRACTING_PARTY: decode_contracting_parties,
    PartyShape.APPROVER: decode_approver,
}


def validate_shape_order(order: Sequence[str]) -> tuple[str, ...]:
    unknown = [shape for shape in order if shape not in PARTY_DECODERS]
    if unknown:
        allowed = ", ".join(sorted(PARTY_DECODERS))
        raise ValueError(f"Unknown party shape(s) {unknown}. Allowed shapes: {allowed}.")
    return tuple(order)


def _fallback_authority(contract: ET.Element) -> Party | None:
    node = child(contract, "zadavatel")
    if node is not None:
        party = _party(node)
        if party is not None:
            return party
    for subject in children(contract, "subjekt"):
        party = _party(subject)
        if party is not None and is_public_entity(party.name):
            return party
    approver = child_text(contract, "schvalil")
    return Party(name=approver) if approver else None


def resolve_parties(contract: ET.Element, order: Sequence[str]) -> PartyResolution | None:
    """
    Run decoders in `order`; the first match supplies the supplier.

    The authority comes from the same match when it has one, otherwise from
    the fallback chain (zadavatel, public-looking subjekt, schvalil).
    Returns None when no shape matches at all.
    """

    for shape in order:
        resolution = PARTY_DECODERS[shape](contract)
        if resolution is None:
            continue
        authority = resolution.authority or _fallback_authority(contract)
        supplier = resolution.supplier
        if supplier is not None and authority is not None and supplier.name == authority.name:
            fallback = _fallback_authority(contract)
            authority = fallback if fallback is not None and fallback.name != supplier.name else None
        return PartyResolution(shape=resolution.shape, supplier=supplier, authority=authority)
    return None
