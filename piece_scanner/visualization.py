import json
import os
from typing import Dict, List

import cv2
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from PIL import Image

from .models import ClassifiedPiece
from .pipeline import ScanResult
from .scan_model import PieceClass


# BGR colors per class
CLASS_COLORS: Dict[PieceClass, tuple] = {
    PieceClass.CORNER: (0, 0, 255),
    PieceClass.EDGE: (0, 200, 255),
    PieceClass.NON_EDGE: (200, 200, 200),
    PieceClass.UNKNOWN: (255, 0, 255),
}


def annotate_frame(frame: np.ndarray, result: ScanResult) -> np.ndarray:
    """
    Draw contours, boxes and labels of classified pieces onto a copy of the frame.

    Args:
        frame: RGBA source frame the result was computed from
        result: Scan result (SOURCE-space geometry)

    Returns:
        Annotated BGR image
    """
    canvas = cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR)

    for piece in result.detected_pieces():
        color = CLASS_COLORS[piece.piece_class]
        b = piece.bbox_source
        x1, y1 = int(round(b.x)), int(round(b.y))
        x2, y2 = int(round(b.right)), int(round(b.bottom))

        if len(piece.contour_source) >= 3:
            cv2.polylines(canvas, [piece.contour_source.as_int32()], True, color, 2)
        cv2.rectangle(canvas, (x1, y1), (x2, y2), color, 1)

        label = f"#{piece.id} {piece.piece_class.value}"
        if piece.confidence is not None:
            label += f" {piece.confidence:.2f}"
        cv2.putText(canvas, label, (x1, max(15, y1 - 5)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 2)

    return canvas


def save_cutouts(pieces: List[ClassifiedPiece], output_dir: str) -> List[str]:
    """Write each piece cutout as a transparent PNG; returns the file paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for piece in pieces:
        path = os.path.join(output_dir, f"piece_{piece.id:03d}.png")
        Image.fromarray(piece.cutout).save(path)
        paths.append(path)
    return paths


def save_piece_sheet(pieces: List[ClassifiedPiece], output_path: str) -> None:
    """
    Save a grid of piece cutouts titled with their classification.

    Args:
        pieces: Classified pieces
        output_path: Path to save the output image
    """
    if not pieces:
        fig, ax = plt.subplots(1, 1, figsize=(6, 4))
        ax.text(0.5, 0.5, 'No pieces found', fontsize=20, ha='center', va='center')
        ax.axis('off')
        plt.savefig(output_path, dpi=100, bbox_inches='tight')
        plt.close(fig)
        return

    cols = min(6, len(pieces))
    rows = (len(pieces) + cols - 1) // cols

    fig, axes = plt.subplots(rows, cols, figsize=(2.2 * cols, 2.4 * rows), squeeze=False)

    for idx, piece in enumerate(pieces):
        ax = axes[idx // cols][idx % cols]
        ax.imshow(piece.cutout)
        ax.set_title(f"#{piece.id} {piece.piece_class.value} ({piece.confidence:.2f})", fontsize=8)
        ax.axis('off')

    # Hide empty subplots
    for i in range(len(pieces), rows * cols):
        axes[i // cols][i % cols].axis('off')

    plt.tight_layout()
    plt.savefig(output_path, dpi=100, bbox_inches='tight')
    plt.close(fig)


def save_scan_log(result: ScanResult, output_path: str) -> None:
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.as_dict(), f, indent=2)


def save_summary(result: ScanResult, image_path: str, output_path: str) -> None:
    """
    Save a text summary of the scan.

    Args:
        result: Scan result
        image_path: Input image the scan was run on
        output_path: Path to save the summary file
    """
    counts = result.counts
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write("=== Puzzle Edge Scan Results ===\n\n")
        f.write(f"Input image: {image_path}\n")
        f.write(f"Sensitivity: {result.sensitivity.value}\n")
        f.write(f"Quality status: {result.status}\n")
        f.write(f"Processing time: {result.elapsed_s:.2f} seconds\n\n")

        f.write("=== Counts ===\n\n")
        f.write(f"Corners: {counts.corners}\n")
        f.write(f"Edges: {counts.edges}\n")
        f.write(f"Non-edge: {counts.non_edge}\n")
        f.write(f"Unknown: {counts.unknown}\n")
        f.write(f"Total: {counts.total}\n\n")

        f.write("=== Guidance ===\n\n")
        for item in result.guidance:
            f.write(f"[{item.level}] {item.message}\n")
        f.write("\n")

        f.write("=== Diagnostics ===\n\n")
        f.write(result.segmentation.summary() + "\n")
        f.write(result.extraction.summary() + "\n")
        f.write(result.classify_summary + "\n")

        if result.pieces:
            f.write("\n=== Pieces ===\n\n")
            for piece in result.pieces:
                c = piece.classification
                f.write(f"#{piece.id}: {c.piece_class.value} (confidence {c.confidence:.2f}) {c.debug}\n")


def save_results(result: ScanResult, frame: np.ndarray, image_path: str, output_dir: str) -> None:
    """
    Save annotated frame, cutouts, piece sheet, JSON log and summary.

    Args:
        result: Scan result
        frame: RGBA frame the scan was run on
        image_path: Input image path (recorded in the summary)
        output_dir: Directory to save results
    """
    os.makedirs(output_dir, exist_ok=True)

    cv2.imwrite(os.path.join(output_dir, 'annotated.png'), annotate_frame(frame, result))
    save_cutouts(result.pieces, os.path.join(output_dir, 'pieces'))
    save_piece_sheet(result.pieces, os.path.join(output_dir, 'pieces.png'))
    save_scan_log(result, os.path.join(output_dir, 'scan_log.json'))
    save_summary(result, image_path, os.path.join(output_dir, 'summary.txt'))
