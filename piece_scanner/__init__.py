"""
Puzzle Edge Scanner - jigsaw piece segmentation and edge/corner classification
"""

from .config import ScanConfig
from .errors import PixelAccessError, ScanError
from .sensitivity import Sensitivity, SensitivityParams, to_params
from .scan_model import (DisplayFilter, PieceClass, ScanCounts, compute_counts,
                         normalize_legacy_class)
from .preprocessing import load_frame, to_rgba
from .segmentation import segment_pieces
from .extraction import filter_and_extract_pieces
from .edge_analysis import classify_pieces
from .quality import (compute_frame_quality, frame_quality_to_status, guidance_from_frame_quality,
                      quality_badge)
from .overlap import estimate_overlap, overlap_looks_heavy
from .pipeline import (CaptureScanner, LiveScanner, ScanFailure, ScanResult, ScanSession,
                       run_scan)
