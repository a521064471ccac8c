"""Cron entry point: create the next report week when one is due.

Runs once a week (see ``ojt crontab``). A storage failure is logged and the
process exits non-zero; the next scheduled run tries again.
"""
import sys

from ojt_cycle.application.exceptions import StorageError
from ojt_cycle.application.weekly_summary import WeeklySummaryService
from ojt_cycle.domain.cycle_service import AdvanceOutcome
from ojt_cycle.infrastructure import log_utils
from ojt_cycle.infrastructure.di_container import get_container
from ojt_cycle.infrastructure.postgres_dal import PostgresDal

TAG = "CRON"


def main(service: WeeklySummaryService | None = None) -> int:
    dal: PostgresDal | None = None
    if service is None:
        container = get_container()
        dal = container.resolve(PostgresDal)
        service = container.resolve(WeeklySummaryService)

    try:
        result = service.run_scheduled_advance()
    except StorageError as exc:
        log_utils.log_message(f"Weekly advance failed; will retry on the next run: {exc}", "ERROR", tag=TAG)
        return 1
    finally:
        if dal is not None:
            dal.close()

    level = "WARNING" if result.outcome is AdvanceOutcome.NO_HISTORY else "INFO"
    log_utils.log_message(f"Weekly advance finished ({result.outcome.value}): {result.message}", level, tag=TAG)
    return 0


if __name__ == "__main__":
    sys.exit(main())
