"""Printable laundry documents rendered from a batch.

Rendering is read-only: nothing here touches store state. The plain-text
generator produces the same sections the paper forms carry so the output can
be printed, attached to an email or turned into a PDF downstream.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from models.batch import BatchStatus, LaundryBatch
from models.laundry_items import total_quantity
from models.taxonomy import CATEGORIES, category_label

_DATE_FORMAT = "%d/%m/%Y"
_DATETIME_FORMAT = "%d/%m/%Y %H:%M"


class DocumentMode(str, Enum):
    REQUISITION = "requisition"
    RETURN_COMPARISON = "return_comparison"
    IN_TRANSIT_STATUS = "in_transit_status"


@dataclass(frozen=True)
class RenderedDocument:
    batch_id: str
    mode: DocumentMode
    title: str
    body: str

    @property
    def filename(self) -> str:
        return f"{self.mode.value}_{self.batch_id}.txt"


class DocumentGenerator(ABC):
    @abstractmethod
    def render(self, batch: LaundryBatch, mode: DocumentMode) -> RenderedDocument:
        """Render ``batch`` as the document named by ``mode``."""


def _fmt(value: Optional[datetime], pattern: str = _DATE_FORMAT) -> str:
    return value.strftime(pattern) if value else "-"


def _difference_label(difference: int) -> str:
    if difference == 0:
        return "OK"
    return f"+{difference}" if difference > 0 else str(difference)


def _table(rows: List[tuple], headers: tuple, footer: Optional[tuple] = None) -> List[str]:
    widths = [
        max(len(str(row[idx])) for row in [headers, *rows, *([footer] if footer else [])])
        for idx in range(len(headers))
    ]

    def line(row: tuple) -> str:
        cells = [str(row[0]).ljust(widths[0])] + [str(cell).rjust(widths[i]) for i, cell in enumerate(row) if i]
        return "  ".join(cells).rstrip()

    rule = "-" * (sum(widths) + 2 * (len(widths) - 1))
    lines = [line(headers), rule, *(line(row) for row in rows)]
    if footer:
        lines += [rule, line(footer)]
    return lines


class TextDocumentGenerator(DocumentGenerator):
    """Plain-text renderer for requisitions, return reports and status sheets."""

    def __init__(self, hotel_name: str = "Hotel Maerkli", clock: Callable[[], datetime] | None = None) -> None:
        self.hotel_name = hotel_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def render(self, batch: LaundryBatch, mode: DocumentMode | str) -> RenderedDocument:
        mode = DocumentMode(mode)
        if mode is DocumentMode.REQUISITION:
            title, lines = "LAUNDRY REQUISITION", self._requisition(batch)
        elif mode is DocumentMode.RETURN_COMPARISON:
            title, lines = "LAUNDRY RETURN REPORT", self._return_comparison(batch)
        else:
            title, lines = "LAUNDRY STATUS REPORT", self._in_transit_status(batch)
        header = [title, self.hotel_name.upper(), ""]
        return RenderedDocument(batch_id=batch.batch_id, mode=mode, title=title, body="\n".join(header + lines) + "\n")

    def _requisition(self, batch: LaundryBatch) -> List[str]:
        lines = [f"Date: {_fmt(batch.sent_date or self.clock())}"]
        if batch.floors:
            lines.append(f"Floors: {', '.join(batch.floors)}")
        rows = [
            (category_label(category), batch.total_items[category])
            for category in CATEGORIES
            if batch.total_items[category] > 0
        ]
        lines += ["", *_table(rows, ("Item", "Quantity"), ("Total", total_quantity(batch.total_items)))]
        if batch.notes:
            lines += ["", "Notes:", batch.notes]
        lines += ["", f"Batch #{batch.batch_id}", "Signature: ___________________________"]
        return lines

    def _return_comparison(self, batch: LaundryBatch) -> List[str]:
        if not batch.has_return_data:
            raise ValueError(f"Batch {batch.batch_id} has no return data")
        returned = batch.returned_items
        lines = [f"Sent: {_fmt(batch.sent_date)}", f"Returned: {_fmt(batch.returned_date)}", ""]
        rows = []
        for category in CATEGORIES:
            sent, back = batch.total_items[category], returned[category]
            if sent > 0 or back > 0:
                rows.append((category_label(category), sent, back, _difference_label(back - sent)))
        lines += _table(rows, ("Item", "Sent", "Returned", "Difference"))
        if batch.discrepancies:
            lines += ["", "ATTENTION: discrepancies found!"]
            for discrepancy in batch.discrepancies:
                amount = abs(discrepancy.difference)
                direction = "fewer" if discrepancy.is_shortage else "more"
                lines.append(f"* {category_label(discrepancy.category)}: {amount} {direction} than sent")
        lines += ["", f"Batch #{batch.batch_id}"]
        return lines

    def _in_transit_status(self, batch: LaundryBatch) -> List[str]:
        status = "IN TRANSIT" if batch.status is BatchStatus.IN_TRANSIT else batch.status.value.upper()
        if batch.status is BatchStatus.IN_TRANSIT and batch.returned_items is not None:
            status = "PARTIALLY RETURNED"
        lines = [f"Status: {status}", f"Sent on: {_fmt(batch.sent_date, _DATETIME_FORMAT)}"]
        if batch.sent_by:
            lines.append(f"Sent by: {batch.sent_by}")
        if batch.returned_date:
            lines.append(f"First delivery on: {_fmt(batch.returned_date, _DATETIME_FORMAT)}")

        sent_rows = [
            (category_label(category), batch.total_items[category])
            for category in CATEGORIES
            if batch.total_items[category] > 0
        ]
        lines += ["", "Items sent:"]
        lines += _table(sent_rows, ("Item", "Quantity"), ("Total sent", total_quantity(batch.total_items)))

        if batch.returned_items is not None and batch.discrepancies:
            outstanding = batch.outstanding_items
            missing_rows = [
                (category_label(category), outstanding[category])
                for category in CATEGORIES
                if outstanding[category] > 0
            ]
            lines += ["", "Still at the laundry:"]
            lines += _table(missing_rows, ("Item", "Missing"), ("Total missing", total_quantity(outstanding)))

            returned = batch.returned_items
            returned_rows = [
                (category_label(category), returned[category])
                for category in CATEGORIES
                if returned[category] > 0
            ]
            lines += ["", "Already returned:"]
            lines += _table(returned_rows, ("Item", "Quantity"), ("Total returned", total_quantity(returned)))

        lines += ["", f"Batch #{batch.batch_id}", f"Generated on: {_fmt(self.clock(), _DATETIME_FORMAT)}"]
        return lines


__all__ = ["DocumentMode", "RenderedDocument", "DocumentGenerator", "TextDocumentGenerator"]
