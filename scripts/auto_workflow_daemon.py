# scripts/auto_workflow_daemon.py
from __future__ import annotations

import logging
import os
import time

from app.workflow.automation import run_auto_workflow
from app.workflow.factory import get_workflow
from services.observability import configure_logging
from services.reconcile import run_reconcile
from settings import settings


logger = logging.getLogger("catering.auto_workflow_daemon")


def _interval_seconds() -> int:
    raw = os.getenv("AUTO_WORKFLOW_INTERVAL_SECONDS", "300")
    try:
        value = int(raw)
    except ValueError:
        return 300
    return max(1, value)


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    interval = _interval_seconds()
    wf = get_workflow()
    logger.info("Auto workflow daemon starting; interval=%ss", interval)

    while True:
        try:
            # reconcile first so freshly paid quotes can be confirmed in the same pass
            reconcile = run_reconcile(wf.reconciler)
            sweep = run_auto_workflow(wf.service, wf.store)
        except KeyboardInterrupt:
            logger.info("Auto workflow daemon exiting")
            raise
        except Exception:
            logger.exception("Auto workflow daemon failed")
            raise

        rs = reconcile.get("summary") or {}
        logger.info(
            "Pass done | reconciled=%s cascade_inconsistent=%s overdue=%s confirmed=%s completed=%s reminders=%s errors=%s",
            rs.get("transitioned"),
            rs.get("cascade_inconsistent"),
            sweep["marked_overdue"],
            sweep["auto_confirmed"],
            sweep["auto_completed"],
            sweep["reminders_sent"],
            len(sweep["errors"]),
        )
        time.sleep(interval)


if __name__ == "__main__":
    main()
