import zoneinfo
from datetime import datetime

from pyresults import Err, Ok, Result

from brewplan.util.dirs import load_env

ISO_FMT = "%Y-%m-%dT%H:%M:%S"
LOCAL_TZ = zoneinfo.ZoneInfo(load_env()["TIMEZONE"])


def now_iso() -> str:
    return datetime.now(LOCAL_TZ).strftime(ISO_FMT)


def parse_due_date(s: str) -> Result[str, str]:
    """Normalise a due date (date or datetime) to ISO text."""
    s = s.strip()
    if len(s) == 0:
        return Err("Empty due date")
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError as e:
        return Err(f"Invalid due date: {s} ({e!s})")
    if len(s) == 10:  # noqa: PLR2004
        return Ok(parsed.date().isoformat())
    return Ok(parsed.strftime(ISO_FMT))
