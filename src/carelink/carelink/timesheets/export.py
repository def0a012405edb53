from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from ..common.datetime_utils import to_iso_date
from ..users.model import Participant, Trainer
from .model import Timesheet

SUMMARY_FIELDS = (
    ("TimesheetId", "timesheet_id"),
    ("Period", None),
    ("Status", "status"),
    ("TrainerName", "trainer_name"),
    ("TrainerEmail", "trainer_email"),
    ("TrainerPhone", "trainer_phone"),
)

DEFAULT_ITEM_COLUMNS = (
    "Date",
    "Service",
    "ParticipantName",
    "ParticipantEmail",
    "ParticipantPhone",
    "Hours",
    "KM",
    "Notes",
)

MONEY_ITEM_COLUMNS = ("Amount", "Mileage", "Total")


@dataclass(frozen=True)
class ExportFile:
    filename: str
    mime: str
    content: bytes


class TimesheetRenderer(Protocol):
    """Turns an export payload into file bytes."""

    mime: str
    extension: str

    def render(self, payload: dict) -> bytes:
        raise NotImplementedError


def cents_to_money(cents: Optional[int]) -> str:
    return f"{(cents or 0) / 100:.2f}"


def _fmt_hours(value: Optional[float]) -> str:
    return f"{value:.2f}" if isinstance(value, (int, float)) else "0.00"


def _fmt_number(value: Any) -> str:
    if not isinstance(value, (int, float)):
        return "0"
    return f"{value:g}"


def _period(ts: Timesheet) -> str:
    return f"{ts.week_start.strftime('%a %b %d %Y')} → {ts.week_end.strftime('%a %b %d %Y')}"


def build_export_payload(
    ts: Timesheet,
    *,
    trainer: Optional[Trainer],
    trainer_email: Optional[str],
    participants: dict[int, Participant],
) -> dict:
    """Currency-agnostic view of a timesheet shared by every renderer."""

    items = []
    for i in ts.items:
        p = participants.get(i.participant_id)
        items.append(
            {
                "date_iso": to_iso_date(i.date),
                "service": i.service or "",
                "hours": i.hours if i.hours is not None else 0,
                "km": i.km or 0,
                "amount_cents": i.amount_cents or 0,
                "mileage_cents": i.mileage_cents or 0,
                "total_cents": i.total_cents or 0,
                "amount": cents_to_money(i.amount_cents),
                "mileage": cents_to_money(i.mileage_cents),
                "total": cents_to_money(i.total_cents),
                "participant": (
                    {
                        "name": p.full_name or "",
                        "email": p.email or "",
                        "phone": p.phone or "",
                        "status": p.status.value if p.status else "",
                    }
                    if p
                    else None
                ),
                "notes": i.notes or "",
            }
        )

    return {
        "title": f"Timesheet {ts.timesheet_id}",
        "meta": {
            "timesheet_id": str(ts.timesheet_id),
            "status": ts.status.value,
            "trainer_name": (trainer.full_name if trainer else None) or "",
            "trainer_email": trainer_email or "",
            "trainer_phone": (trainer.phone if trainer else None) or "",
        },
        "period": _period(ts),
        "week_start_iso": to_iso_date(ts.week_start),
        "totals": ts.totals.to_dict(),
        "items": items,
    }


class CsvTimesheetRenderer(TimesheetRenderer):
    """Excel-friendly CSV: BOM, CRLF, a summary block then the item table."""

    mime = "text/csv; charset=utf-8"
    extension = "csv"

    def __init__(
        self,
        *,
        delimiter: str = ",",
        include_summary: bool = True,
        include_amounts: bool = False,
        money_prefix: str = "$",
        item_columns: Optional[Sequence[str]] = None,
    ):
        self._delimiter = delimiter
        self._include_summary = include_summary
        self._include_amounts = include_amounts
        self._money_prefix = money_prefix
        if item_columns is not None:
            self._columns = tuple(item_columns)
        elif include_amounts:
            self._columns = DEFAULT_ITEM_COLUMNS[:-1] + MONEY_ITEM_COLUMNS + ("Notes",)
        else:
            self._columns = DEFAULT_ITEM_COLUMNS

    def _money(self, cents: Optional[int]) -> str:
        return f"{self._money_prefix}{cents_to_money(cents)}"

    def _row(self, item: dict) -> dict[str, str]:
        p = item.get("participant") or {}
        return {
            "Date": item.get("date_iso") or "",
            "Service": item.get("service") or "",
            "ParticipantName": p.get("name") or "",
            "ParticipantEmail": p.get("email") or "",
            "ParticipantPhone": p.get("phone") or "",
            "ParticipantStatus": p.get("status") or "",
            "Hours": _fmt_hours(item.get("hours")),
            "KM": _fmt_number(item.get("km")),
            "Amount": self._money(item.get("amount_cents")),
            "Mileage": self._money(item.get("mileage_cents")),
            "Total": self._money(item.get("total_cents")),
            "Notes": item.get("notes") or "",
        }

    def render(self, payload: dict) -> bytes:
        out = io.StringIO()
        writer = csv.writer(out, delimiter=self._delimiter, lineterminator="\r\n")

        if self._include_summary:
            meta = payload.get("meta") or {}
            totals = payload.get("totals") or {}
            writer.writerow(["Summary"])
            for label, key in SUMMARY_FIELDS:
                value = payload.get("period", "") if key is None else meta.get(key, "")
                writer.writerow([label, value])
            writer.writerow(["Total Hours", _fmt_hours(totals.get("hours"))])
            writer.writerow(["Total KM", _fmt_number(totals.get("km"))])
            if self._include_amounts:
                writer.writerow(["Labour", self._money(totals.get("amount_cents"))])
                writer.writerow(["Mileage", self._money(totals.get("mileage_cents"))])
                writer.writerow(["Grand Total", self._money(totals.get("total_cents"))])
            writer.writerow([])
            writer.writerow(["Items"])

        writer.writerow(self._columns)
        items = payload.get("items") or []
        for item in items:
            row = self._row(item)
            writer.writerow([row.get(c, "") for c in self._columns])
        if not items:
            # Keeps the header visible as a table in spreadsheet apps.
            writer.writerow([""] * len(self._columns))

        # csv.writer ends every row with the terminator; the file itself does not end with one.
        text = out.getvalue()
        if text.endswith("\r\n"):
            text = text[:-2]
        return text.encode("utf-8-sig")
