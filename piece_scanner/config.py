"""
Configuration settings for the scanning pipeline.
Every default used by the live and capture paths lives here.
"""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ScanConfig:
    # Frame sizing (processing width; wider frames are downscaled)
    target_width: int = 640
    capture_target_width: int = 1280

    # Extraction filters
    border_margin_px: int = 6
    padding_px: int = 6
    max_pieces: int = 80

    # Classification
    angle_tolerance_deg: float = 20.0
    min_line_length_ratio: float = 0.35
    hough_threshold: int = 30
    uncertain_margin_ratio: float = 0.10
    non_edge_confidence: float = 0.7

    # Live mode
    live_fps: float = 2.0

    # Motion estimate is computed on a small copy of the grayscale frame
    motion_target_width: int = 160

    # Logging
    logging_level: str = "INFO"

    @property
    def live_interval_s(self) -> float:
        """Minimum seconds between live ticks (never faster than 5 per second)."""
        return max(0.2, 1.0 / max(0.5, self.live_fps))

    def for_capture(self) -> "ScanConfig":
        return replace(self, target_width=self.capture_target_width)
