from datetime import datetime, timezone


def format_timestamp(t_unix: float) -> str:
    try:
        dt = datetime.fromtimestamp(t_unix, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        # Outside the platform's datetime range (or inf/nan); show it as sent.
        return str(t_unix)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
