# parcel_hub/services/package_planner.py
"""
Package Planner - resolved row -> PackagePlan.

Pure: no store access. Only the temp id and short code are random, and both
factories can be injected.
"""
from __future__ import annotations
import json
import secrets
import string
import uuid
from typing import Callable, Dict, List, Optional, Set

from parcel_hub.services.types import ImportRow, PackagePlan, ResolvedLineItem, StockDelta

SHORT_CODE_ALPHABET = string.ascii_uppercase + string.digits


def random_short_code(length: int = 6) -> str:
    return "".join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))


def recipient_line(name: str, surname: str, company: str) -> str:
    person = " ".join(p for p in (name, surname) if p)
    return " | ".join(p for p in (person, company) if p)


def build_contents_note(row: ImportRow, items: List[ResolvedLineItem]) -> str:
    """
    Human-readable contents, one part per line:

        To: Jon Doe | ACME
        Main St 1
        Items: Widget x2, Gadget x1
    """
    lines = []
    recipient = recipient_line(row.beneficiary_name, row.surname, row.company)
    if recipient:
        lines.append(f"To: {recipient}")
    if row.address:
        lines.append(row.address)
    lines.append("Items: " + ", ".join(f"{li.display_name} x{li.quantity}" for li in items))
    return "\n".join(lines)


def parse_contents_note(text: str) -> Dict[str, object]:
    """Reverse of build_contents_note (used by the tracking lookup)."""
    out: Dict[str, object] = {"recipient": "", "company": "", "address": "", "items": []}
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("To:"):
            parts = [p.strip() for p in line[3:].split("|")]
            out["recipient"] = parts[0] if parts else ""
            out["company"] = parts[1] if len(parts) > 1 else ""
        elif line.startswith("Items:"):
            items = []
            for chunk in line[6:].split(","):
                chunk = chunk.strip()
                if not chunk:
                    continue
                name, sep, qty = chunk.rpartition(" x")
                if sep and qty.isdigit():
                    items.append({"name": name, "quantity": int(qty)})
                else:
                    items.append({"name": chunk, "quantity": 1})
            out["items"] = items
        elif not out["address"]:
            out["address"] = line
    return out


def encode_payload(temp_id: uuid.UUID) -> str:
    return json.dumps({"pkg": str(temp_id), "rev": 1})


class PackagePlanner:
    """Builds plans for one run; short codes are unique within the run."""

    def __init__(
        self,
        destination_branch_id: Optional[uuid.UUID],
        origin: str = "Main Office",
        short_code_length: int = 6,
        short_code_factory: Optional[Callable[[], str]] = None,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self.destination_branch_id = destination_branch_id
        self.origin = origin
        self._new_code = short_code_factory or (lambda: random_short_code(short_code_length))
        self._new_id = id_factory
        self.issued_codes: Set[str] = set()

    def next_short_code(self) -> str:
        code = self._new_code()
        while code in self.issued_codes:
            code = self._new_code()
        self.issued_codes.add(code)
        return code

    def plan(self, row: ImportRow, items: List[ResolvedLineItem]) -> PackagePlan:
        temp_id = self._new_id()
        return PackagePlan(
            temp_id=temp_id,
            short_code=self.next_short_code(),
            contents_note=build_contents_note(row, items),
            notes=row.notes,
            line_items=list(items),
            deltas=[StockDelta(item_id=li.product_id, delta=-li.quantity, temp_id=temp_id) for li in items],
            origin=self.origin,
            current_location=self.origin,
            destination_branch_id=self.destination_branch_id,
            encoded_payload=encode_payload(temp_id),
            row_number=row.row_number or None,
        )
