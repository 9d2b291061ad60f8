"""
Chore Ledger — Entry Point.

`python main.py [YYYY-MM-DD]` prints the job board for a date
(default: today in the configured TIMEZONE).
"""

import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from choreledger.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from choreledger.core.job_service import InvalidDateError, JobService, parse_occurrence_date
from choreledger.core.ledger import CompletionLedger
from choreledger.data.db import CompletionDB, JobDB

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        if argv:
            on = parse_occurrence_date(argv[0])
        else:
            on = datetime.now(ZoneInfo(settings.TIMEZONE)).date()
    except InvalidDateError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    service = JobService(JobDB(), CompletionLedger(CompletionDB()))
    items = service.jobs_for_date(on)

    print(f"Jobs for {on.isoformat()}:")
    if not items:
        print("  (nothing due)")
    for item in items:
        who = f"user {item.assignment.user_id}" if item.assignment else "everyone"
        if not item.is_recurring:
            mark = "[one-time]"
        elif item.is_completed:
            mark = "[x]"
        else:
            mark = "[ ]"
        print(f"  {mark} {item.job.title} ({who})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
