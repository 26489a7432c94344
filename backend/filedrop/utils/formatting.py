import math

BYTES_PER_MB = 1024 * 1024

_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_file_size(size_bytes: int) -> str:
    """Human readable size: exact bytes below 1 KiB, one decimal place above.

    >>> format_file_size(0)
    '0 B'
    >>> format_file_size(1536)
    '1.5 KB'
    """
    if size_bytes <= 0:
        return f"{size_bytes} B"
    p = min(int(math.log(size_bytes, 1024)), len(_UNITS) - 1)
    # log() can land a hair off an exact power of 1024
    if p + 1 < len(_UNITS) and size_bytes >= 1024 ** (p + 1):
        p += 1
    elif p > 0 and size_bytes < 1024 ** p:
        p -= 1
    if p == 0:
        return f"{size_bytes} B"
    return f"{size_bytes / (1024 ** p):.1f} {_UNITS[p]}"


def to_megabytes(size_bytes: int) -> float:
    return size_bytes / BYTES_PER_MB


def megabytes_to_bytes(size_mb: float) -> int:
    return int(size_mb * BYTES_PER_MB)
