"""Example: drive the service layer directly (no Flask).

Controllers are thin; every rule lives in the services built by the container.
"""

import importlib
import json

from config import get_settings_module

from src.carelink.carelink.container import build_container, build_notifier
from src.carelink.carelink.core.enums import Role
from src.carelink.carelink.users.model import Viewer


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(
        db_config=settings.DB_CONFIG,
        hourly_rate_cents=settings.HOURLY_RATE_CENTS,
        km_rate_cents=settings.KM_RATE_CENTS,
        notifier=build_notifier(settings.NOTIFIER, settings.SMTP_CONFIG),
    )
    admin = Viewer(user_id=1, role=Role.ADMIN)
    print(json.dumps(container.dashboard_service.admin_summary(), indent=2))
    print(json.dumps(container.timesheet_service.list_timesheets(admin, limit=5), indent=2))


if __name__ == "__main__":
    main()
