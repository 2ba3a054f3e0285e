def seconds_to_hours(total_seconds: int) -> float:
    return round(total_seconds / 3600, 4)


def hours_to_minutes(hours: float) -> int:
    return round(hours * 60)


def format_hms(total_seconds: int) -> str:
    h, r = divmod(int(total_seconds), 3600)
    m, s = divmod(r, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
