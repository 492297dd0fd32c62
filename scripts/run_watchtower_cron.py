# scripts/run_watchtower_cron.py
"""
Corre el job de Watchtower fuera del servidor HTTP (cron del sistema, k8s CronJob...).

    python -m scripts.run_watchtower_cron --schedule daily
    python -m scripts.run_watchtower_cron --schedule all      # evalúa todo + envía immediate
"""
from __future__ import annotations

import argparse
import logging
import sys

from automize.config import Settings
from automize.core.context import WatchtowerContext
from automize.db import build_engine, build_session_factory
from automize.services.evaluation_job import process_scheduled_notifications, run_evaluation
from automize.services.notifications import NotificationDispatcher


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run Watchtower rule evaluation")
    parser.add_argument("--schedule", choices=["daily", "weekly", "all"], default="all")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings)
    db = build_session_factory(engine)()
    dispatcher = NotificationDispatcher(settings)
    ctx = WatchtowerContext(settings=settings, db=db, dispatcher=dispatcher)
    try:
        if args.schedule == "all":
            s = run_evaluation(ctx)
            print(
                f"evaluated={s.rules_evaluated} failed={s.rules_failed} "
                f"created={s.alerts_created} skipped={s.alerts_skipped} sent={s.notifications_sent}"
            )
        else:
            r = process_scheduled_notifications(ctx, args.schedule)
            print(f"processed={r.processed} sent={r.sent}")
    finally:
        dispatcher.close()
        db.close()
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
