def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return datetime_obj.strftime('%Y-%m-%d %H:%M:%S')


def require_non_negative_int(data, field):
    """Pull a whole, non-negative number out of a JSON body."""
    if not isinstance(data, dict) or field not in data:
        raise ValueError(f"'{field}' is required.")
    value = data[field]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{field}' must be a number.")
    if value < 0:
        raise ValueError(f"'{field}' must not be negative.")
    return int(value)
