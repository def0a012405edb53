from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.constants import DEFAULT_HOURLY_RATE_CENTS, DEFAULT_KM_RATE_CENTS
from .dashboard.mysql_dashboard_repository import MySQLDashboardRepository
from .dashboard.repository import DashboardRepository
from .dashboard.service import DashboardService
from .database.connection import DBConfig, DatabaseConnection
from .notifications.notifier import LoggingNotifier, Notifier, SmtpNotifier, SmtpSettings
from .shift_requests.mysql_shift_request_repository import MySQLShiftRequestRepository
from .shift_requests.repository import ShiftRequestRepository
from .shift_requests.service import ShiftRequestService
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .shifts.pricing import FixedRatePricingResolver, PricingResolver
from .shifts.repository import ShiftRepository
from .shifts.service import ShiftExecutionService
from .timesheets.export import TimesheetRenderer
from .timesheets.mysql_timesheet_repository import MySQLTimesheetRepository
from .timesheets.repository import TimesheetRepository
from .timesheets.service import TimesheetService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    shift_requests_repo: ShiftRequestRepository
    shifts_repo: ShiftRepository
    timesheets_repo: TimesheetRepository
    dashboard_repo: DashboardRepository

    notifier: Notifier
    shift_request_service: ShiftRequestService
    shift_service: ShiftExecutionService
    timesheet_service: TimesheetService
    dashboard_service: DashboardService


def wire_services(
    *,
    conn: Optional[DatabaseConnection],
    users_repo: UserRepository,
    shift_requests_repo: ShiftRequestRepository,
    shifts_repo: ShiftRepository,
    timesheets_repo: TimesheetRepository,
    dashboard_repo: DashboardRepository,
    notifier: Optional[Notifier] = None,
    pricing: Optional[PricingResolver] = None,
    pdf_renderer: Optional[TimesheetRenderer] = None,
) -> Container:
    """Build the service graph over any repository implementations."""

    notifier = notifier or LoggingNotifier()
    timesheet_service = TimesheetService(
        timesheets_repo,
        users_repo,
        renderers={"pdf": pdf_renderer} if pdf_renderer else None,
    )
    return Container(
        conn=conn,
        users_repo=users_repo,
        shift_requests_repo=shift_requests_repo,
        shifts_repo=shifts_repo,
        timesheets_repo=timesheets_repo,
        dashboard_repo=dashboard_repo,
        notifier=notifier,
        shift_request_service=ShiftRequestService(shift_requests_repo, users_repo, notifier),
        shift_service=ShiftExecutionService(
            shifts_repo,
            shift_requests_repo,
            users_repo,
            timesheet_service,
            pricing=pricing,
        ),
        timesheet_service=timesheet_service,
        dashboard_service=DashboardService(dashboard_repo, users_repo),
    )


def build_notifier(kind: str, smtp_config: Optional[dict] = None) -> Notifier:
    if (kind or "log").lower() == "smtp":
        cfg = smtp_config or {}
        return SmtpNotifier(
            SmtpSettings(
                host=str(cfg.get("host", "localhost")),
                port=int(cfg.get("port", 587)),
                user=str(cfg.get("user", "")),
                password=str(cfg.get("password", "")),
                sender=str(cfg.get("sender", "")),
                use_tls=bool(cfg.get("use_tls", True)),
            )
        )
    return LoggingNotifier()


def build_container(
    *,
    db_config: dict,
    hourly_rate_cents: int = DEFAULT_HOURLY_RATE_CENTS,
    km_rate_cents: int = DEFAULT_KM_RATE_CENTS,
    notifier: Optional[Notifier] = None,
    pdf_renderer: Optional[TimesheetRenderer] = None,
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire_services(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        shift_requests_repo=MySQLShiftRequestRepository(conn),
        shifts_repo=MySQLShiftRepository(conn),
        timesheets_repo=MySQLTimesheetRepository(conn),
        dashboard_repo=MySQLDashboardRepository(conn),
        notifier=notifier,
        pricing=FixedRatePricingResolver(hourly_rate_cents, km_rate_cents),
        pdf_renderer=pdf_renderer,
    )
