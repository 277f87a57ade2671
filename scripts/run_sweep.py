"""Run the scheduled sweep once. Meant for cron or an EventBridge schedule.

Usage:
    QMSGUARD_BACKEND=aws python scripts/run_sweep.py
"""

from __future__ import annotations

import json

from qmsguard.core.config import AppSettings
from qmsguard.core.logging import configure_logging
from qmsguard.workflow.services import create_services


def main() -> None:
    settings = AppSettings()
    configure_logging(settings.log_level, json=settings.log_json)
    result = create_services(settings).sweep.run()
    print(json.dumps(result.model_dump()))


if __name__ == "__main__":
    main()
