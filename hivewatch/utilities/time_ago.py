"""Relative time formatting for roster listings."""


def format_time_ago(seconds: float) -> str:
    """Render an elapsed duration as '3d ago', '5h ago', '12m ago', '40s ago'.

    Args:
        seconds: Elapsed time in seconds (negative values count as zero)

    Returns:
        Largest whole unit, or 'just now' under one second
    """
    seconds = int(max(0.0, seconds))
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    if seconds > 0:
        return f"{seconds}s ago"
    return "just now"
