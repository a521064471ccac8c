"""Write and install the crontab that drives the weekly cycle."""

from __future__ import annotations

import subprocess
from datetime import datetime
from pathlib import Path

from ojt_cycle.config import settings
from ojt_cycle.infrastructure import log_utils

# Save in repo so it can be version-controlled
CRONTAB_FILE = Path(__file__).resolve().parent / "ojt_crontab.txt"
BACKUP_DIR = Path.home() / "crontab_backups"

# cron weekday numbering: 0 = Sunday ... 6 = Saturday
_CRON_WEEKDAY = {0: 1, 1: 2, 2: 3, 3: 4, 4: 5, 5: 6, 6: 0}


def build_crontab(
    *,
    app_dir: Path | None = None,
    python_bin: str = "python3",
    log_file: Path | None = None,
    weekday: int | None = None,
    timezone: str | None = None,
) -> str:
    """Render the crontab text for the weekly advance job.

    ``weekday`` uses Python numbering (0 = Monday) and defaults to
    ``ADVANCE_WEEKDAY``. ``CRON_TZ`` pins the schedule to ``CYCLE_TIMEZONE``
    so the job fires at 00:05 on that weekday in the cycle's own zone.
    """
    app_dir = app_dir or settings.PROJECT_ROOT
    log_file = log_file or settings.log_path
    weekday = settings.ADVANCE_WEEKDAY if weekday is None else weekday
    timezone = timezone or settings.CYCLE_TIMEZONE
    if weekday not in _CRON_WEEKDAY:
        raise ValueError("weekday must be between 0 (Monday) and 6 (Sunday)")

    return (
        "# OJT weekly cycle cron schedule\n"
        "SHELL=/bin/bash\n"
        "PATH=/usr/local/bin:/usr/bin:/bin\n"
        f"CRON_TZ={timezone}\n"
        "\n"
        "# Advance to the next report week\n"
        f"5 0 * * {_CRON_WEEKDAY[weekday]} cd {app_dir} && \\\n"
        f"  {python_bin} -m scripts.weekly_advance \\\n"
        f"    >> {log_file} 2>&1\n"
    )


def save_crontab_file(content: str | None = None, path: Path = CRONTAB_FILE) -> Path:
    """Write the crontab into the repo for versioning."""
    path.write_text(content if content is not None else build_crontab(), encoding="utf-8")
    return path


def backup_existing_crontab() -> Path:
    """Back up current crontab to ~/crontab_backups with timestamp."""
    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_file = BACKUP_DIR / f"crontab_backup_{ts}.txt"
    with backup_file.open("w", encoding="utf-8") as f:
        subprocess.run(["crontab", "-l"], stdout=f, stderr=subprocess.DEVNULL, check=False)
    return backup_file


def activate_crontab(path: Path = CRONTAB_FILE) -> Path:
    """Back up current crontab, then install the saved one. Returns the backup path."""
    backup_file = backup_existing_crontab()
    log_utils.info(f"Backed up existing crontab to {backup_file}")
    process = subprocess.run(
        ["crontab", str(path)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )
    if process.returncode != 0:
        raise RuntimeError(f"Failed to activate crontab: {process.stderr.decode()}")
    log_utils.info(f"Installed crontab from {path}")
    return backup_file
