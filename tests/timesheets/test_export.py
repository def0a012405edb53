from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.carelink.carelink.core.enums import Role
from src.carelink.carelink.core.exceptions import AuthorizationError, ValidationError
from src.carelink.carelink.timesheets.export import CsvTimesheetRenderer, cents_to_money
from src.carelink.carelink.timesheets.service import TimesheetService
from src.carelink.carelink.users.model import Viewer
from tests.fakes import FakeTimesheetRepository, FakeUserRepository, InMemoryStore

UTC = timezone.utc
BOM = b"\xef\xbb\xbf"


class FakePdfRenderer:
    mime = "application/pdf"
    extension = "pdf"

    def __init__(self):
        self.payloads = []

    def render(self, payload):
        self.payloads.append(payload)
        return b"%PDF-1.4 fake"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def people(store):
    return {
        "admin": store.add_user("admin@example.com", Role.ADMIN),
        "trainer": store.add_trainer("terry@example.com", "Terry Trainer"),
        "participant": store.add_participant("pat@example.com", "Pat, Participant"),
    }


def _sheet(svc, people):
    return svc.upsert_item_for_shift(
        trainer_id=people["trainer"].trainer_id,
        participant_id=people["participant"].user_id,
        shift_id=1,
        service="PersonalCare",
        date=datetime(2025, 3, 5, 11, tzinfo=UTC),
        minutes=120,
        km=12,
        hourly_rate_cents=6500,
        km_rate_cents=85,
    )


def _lines(content: bytes) -> list[str]:
    assert content.startswith(BOM)
    text = content[len(BOM):].decode("utf-8")
    assert not text.endswith("\r\n")
    assert "\n" not in text.replace("\r\n", "")
    return text.split("\r\n")


def test_csv_export_layout(store, people):
    svc = TimesheetService(FakeTimesheetRepository(store), FakeUserRepository(store))
    ts = _sheet(svc, people)

    file = svc.export(ts.timesheet_id, Viewer(user_id=people["admin"].user_id, role=Role.ADMIN), "csv")

    assert file.filename == f"timesheet_{ts.timesheet_id}_2025-03-03.csv"
    assert file.mime.startswith("text/csv")
    lines = _lines(file.content)
    assert lines[:10] == [
        "Summary",
        f"TimesheetId,{ts.timesheet_id}",
        "Period,Mon Mar 03 2025 → Sun Mar 09 2025",
        "Status,DRAFT",
        "TrainerName,Terry Trainer",
        "TrainerEmail,terry@example.com",
        "TrainerPhone,0400 000 000",
        "Total Hours,2.00",
        "Total KM,12",
        "",
    ]
    assert lines[10] == "Items"
    assert lines[11] == "Date,Service,ParticipantName,ParticipantEmail,ParticipantPhone,Hours,KM,Notes"
    assert lines[12] == '2025-03-05,PersonalCare,"Pat, Participant",pat@example.com,0411 111 111,2.00,12,'
    assert len(lines) == 13


def test_csv_without_items_keeps_a_blank_row():
    payload = {"meta": {}, "totals": {}, "items": []}
    content = CsvTimesheetRenderer(include_summary=False).render(payload)
    lines = _lines(content)
    assert lines[0].startswith("Date,Service")
    assert lines[1] == ",,,,,,,"


def test_csv_with_amounts_and_custom_delimiter():
    payload = {
        "meta": {"timesheet_id": "5", "status": "APPROVED"},
        "period": "p",
        "totals": {"hours": 1, "km": 0, "amount_cents": 6500, "mileage_cents": 0, "total_cents": 6500},
        "items": [
            {
                "date_iso": "2025-03-05",
                "service": "Respite",
                "hours": 1,
                "km": 0,
                "amount_cents": 6500,
                "mileage_cents": 0,
                "total_cents": 6500,
                "participant": None,
                "notes": "",
            }
        ],
    }
    lines = _lines(CsvTimesheetRenderer(delimiter=";", include_amounts=True, money_prefix="").render(payload))
    assert "Grand Total;65.00" in lines
    header_idx = lines.index("Items") + 1
    assert lines[header_idx].split(";")[-4:] == ["Amount", "Mileage", "Total", "Notes"]
    assert lines[header_idx + 1].endswith("65.00;0.00;65.00;")


def test_pdf_export_uses_injected_renderer(store, people):
    pdf = FakePdfRenderer()
    svc = TimesheetService(FakeTimesheetRepository(store), FakeUserRepository(store), renderers={"pdf": pdf})
    ts = _sheet(svc, people)

    file = svc.export(ts.timesheet_id, Viewer(user_id=people["trainer"].user_id, role=Role.TRAINER), "PDF")

    assert file.filename.endswith(".pdf")
    assert file.content.startswith(b"%PDF")
    payload = pdf.payloads[0]
    assert payload["meta"]["trainer_name"] == "Terry Trainer"
    assert payload["items"][0]["participant"]["email"] == "pat@example.com"
    assert payload["items"][0]["total"] == "140.20"


def test_pdf_without_renderer_is_rejected(store, people):
    svc = TimesheetService(FakeTimesheetRepository(store), FakeUserRepository(store))
    ts = _sheet(svc, people)
    with pytest.raises(ValidationError):
        svc.export(ts.timesheet_id, Viewer(user_id=people["admin"].user_id, role=Role.ADMIN), "pdf")


def test_unknown_format_is_rejected(store, people):
    svc = TimesheetService(FakeTimesheetRepository(store), FakeUserRepository(store))
    ts = _sheet(svc, people)
    with pytest.raises(ValidationError):
        svc.export(ts.timesheet_id, Viewer(user_id=people["admin"].user_id, role=Role.ADMIN), "xlsx")


def test_export_respects_visibility(store, people):
    svc = TimesheetService(FakeTimesheetRepository(store), FakeUserRepository(store))
    ts = _sheet(svc, people)
    stranger = store.add_trainer("olga@example.com")
    with pytest.raises(AuthorizationError):
        svc.export(ts.timesheet_id, Viewer(user_id=stranger.user_id, role=Role.TRAINER), "csv")


def test_cents_to_money():
    assert cents_to_money(14020) == "140.20"
    assert cents_to_money(None) == "0.00"
