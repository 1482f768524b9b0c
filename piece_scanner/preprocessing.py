import os
from typing import Tuple

import cv2
import numpy as np

from .utils import odd_kernel_size


def load_frame(image_path: str) -> np.ndarray:
    """
    Load an image file as an RGBA frame.

    Args:
        image_path: Path to an image readable by OpenCV

    Returns:
        RGBA frame (H, W, 4) uint8

    Raises:
        FileNotFoundError: If the file does not exist or cannot be decoded
    """
    if not os.path.isfile(image_path):
        raise FileNotFoundError(image_path)

    image = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise FileNotFoundError(f"Could not decode image: {image_path}")

    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return to_rgba(image)


def to_rgba(image: np.ndarray) -> np.ndarray:
    """
    Convert a grayscale or BGR image (OpenCV order) to RGBA.
    Images that already have four channels are returned unchanged.
    """
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    if image.shape[2] == 4:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)


def is_valid_frame(frame) -> bool:
    """True for a non-empty (H, W, 4) uint8 array."""
    return (
        isinstance(frame, np.ndarray)
        and frame.ndim == 3
        and frame.shape[2] == 4
        and frame.shape[0] > 0
        and frame.shape[1] > 0
        and frame.dtype == np.uint8
    )


def downscale_frame(frame: np.ndarray, target_width: int) -> Tuple[np.ndarray, float]:
    """
    Downscale a frame to the processing width, preserving aspect ratio.

    Frames narrower than target_width pass through untouched.

    Args:
        frame: RGBA source frame
        target_width: Processing width in pixels

    Returns:
        processed: The (possibly) resized frame
        scale_to_source: Factor mapping processed coordinates back to source
    """
    height, width = frame.shape[:2]
    scale = target_width / width if width > target_width else 1.0

    if scale == 1.0:
        return frame, 1.0

    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    processed = cv2.resize(frame, (new_width, new_height), interpolation=cv2.INTER_AREA)

    return processed, width / new_width


def to_gray(frame: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(frame, cv2.COLOR_RGBA2GRAY)


def binarize(gray: np.ndarray, blur_kernel_size: int = 5,
             morph_kernel_size: int = 5) -> Tuple[np.ndarray, bool]:
    """
    Separate pieces from a mostly uniform background.

    Args:
        gray: Grayscale frame
        blur_kernel_size: Gaussian blur kernel (normalized to odd)
        morph_kernel_size: Close/open kernel (normalized to odd)

    Returns:
        binary: Mask with pieces white (255) and background black
        inverted: Whether the Otsu result had to be inverted
    """
    blur_k = odd_kernel_size(blur_kernel_size)
    blurred = cv2.GaussianBlur(gray, (blur_k, blur_k), 0)

    _, binary = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    # Pieces are assumed to cover a minority of the frame: if "foreground"
    # is the majority, Otsu picked the background as white.
    inverted = False
    if cv2.countNonZero(binary) > binary.size * 0.5:
        binary = cv2.bitwise_not(binary)
        inverted = True

    # Close first so near-touching fragments merge before speckle removal
    morph_k = odd_kernel_size(morph_kernel_size)
    kernel = np.ones((morph_k, morph_k), np.uint8)
    binary = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)
    binary = cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel)

    return binary, inverted
