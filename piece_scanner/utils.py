import logging


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def odd_kernel_size(size: int) -> int:
    """Normalize a kernel size to a positive odd integer (even sizes are bumped up)."""
    k = max(1, int(size))
    return k + 1 if k % 2 == 0 else k
