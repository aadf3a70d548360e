"""Grid-based Harris corner detection with intensity-patch descriptors."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from ...config import DetectorConfig


@dataclass(eq=False)
class FeaturePoint:
    """A corner detected in one frame.

    Feature points are created fresh for every frame and compared by identity.

    Attributes:
        x: Column in pixels
        y: Row in pixels
        response: Corner strength
        descriptor: Flattened intensity patch (uint8), or None if unavailable
    """

    x: float
    y: float
    response: float
    descriptor: np.ndarray | None = None

    @property
    def pt(self) -> tuple[float, float]:
        """Return (x, y) pixel coordinates."""
        return (self.x, self.y)


def as_gray_image(buffer: np.ndarray | bytes | bytearray, width: int, height: int) -> np.ndarray | None:
    """View a row-major grayscale buffer as a (height, width) uint8 image.

    Args:
        buffer: 1-D byte buffer or 2-D uint8 array, one byte per pixel
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        (height, width) uint8 array, or None if the buffer holds fewer than
        width * height bytes
    """
    if width <= 0 or height <= 0:
        return None

    if isinstance(buffer, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(buffer, dtype=np.uint8).copy()
    else:
        flat = np.asarray(buffer).reshape(-1)
        if flat.dtype != np.uint8:
            flat = flat.astype(np.uint8)

    if flat.size < width * height:
        return None
    return flat[: width * height].reshape(height, width)


class FeatureDetector:
    """Simplified Harris corner detector for planar feature tracking.

    The corner response is evaluated on a coarse grid (stride `step_size`),
    trading density for speed. For every grid pixel the structure tensor

        M = [[Ixx, Ixy],
             [Ixy, Iyy]]

    is accumulated over a (2w+1)x(2w+1) window from forward-difference
    gradients gx = I(x+1, y) - I(x, y) and gy = I(x, y+1) - I(x, y), and the
    response is det(M) - k * trace(M)^2 clamped to be non-negative. Pixels
    within `window_size` of the border are skipped.

    Each accepted corner gets an 8x8 intensity-patch descriptor. This is not
    rotation or scale invariant.
    """

    def __init__(self, config: DetectorConfig | None = None) -> None:
        """Initialize detector.

        Args:
            config: Detector parameters (defaults: 200 features, threshold 30,
                window half-size 3, grid stride 4, k = 0.04, 8x8 patches)
        """
        self._config = config or DetectorConfig()

    def detect(
        self,
        gray: np.ndarray | bytes | bytearray,
        width: int | None = None,
        height: int | None = None,
    ) -> list[FeaturePoint]:
        """Detect corners in a grayscale frame.

        Args:
            gray: Grayscale image, either a (height, width) uint8 array or a
                row-major byte buffer
            width: Image width. Required for flat buffers.
            height: Image height. Required for flat buffers.

        Returns:
            Up to `max_features` features sorted by descending response. Empty
            if the buffer is smaller than width * height.

        Example:
            >>> detector = FeatureDetector()
            >>> features = detector.detect(image)
            >>> print(f"Detected {len(features)} features")
        """
        if width is None or height is None:
            arr = np.asarray(gray)
            if arr.ndim != 2:
                return []
            height, width = arr.shape
        image = as_gray_image(gray, width, height)
        if image is None:
            return []

        cfg = self._config
        w = cfg.window_size
        ys = np.arange(w, height - w, cfg.step_size)
        xs = np.arange(w, width - w, cfg.step_size)
        if len(ys) == 0 or len(xs) == 0:
            return []

        responses = self.corner_response(image)[np.ix_(ys, xs)]

        # Row-major scan order, stop collecting once max_features pass.
        rows, cols = np.nonzero(responses > cfg.threshold)
        rows = rows[: cfg.max_features]
        cols = cols[: cfg.max_features]
        if len(rows) == 0:
            return []

        scores = responses[rows, cols]
        order = np.argsort(-scores, kind="stable")

        padded = self._pad_for_patches(image)
        features = []
        for i in order:
            x = int(xs[cols[i]])
            y = int(ys[rows[i]])
            features.append(
                FeaturePoint(
                    x=float(x),
                    y=float(y),
                    response=float(scores[i]),
                    descriptor=self._extract_patch(padded, x, y),
                )
            )
        return features

    def corner_response(self, image: np.ndarray) -> np.ndarray:
        """Compute the clamped Harris response for every pixel.

        Window sums are only meaningful at least `window_size` pixels away
        from the border; callers only sample those pixels.

        Args:
            image: (H, W) uint8 grayscale image

        Returns:
            (H, W) float64 response map
        """
        img = image.astype(np.float64)

        gx = np.zeros_like(img)
        gy = np.zeros_like(img)
        gx[:, :-1] = img[:, 1:] - img[:, :-1]
        gy[:-1, :] = img[1:, :] - img[:-1, :]

        ksize = 2 * self._config.window_size + 1

        def window_sum(a: np.ndarray) -> np.ndarray:
            return cv2.boxFilter(
                a, cv2.CV_64F, (ksize, ksize), normalize=False, borderType=cv2.BORDER_CONSTANT
            )

        ixx = window_sum(gx * gx)
        iyy = window_sum(gy * gy)
        ixy = window_sum(gx * gy)

        det = ixx * iyy - ixy * ixy
        trace = ixx + iyy
        response = det - self._config.harris_k * trace * trace
        response[trace == 0] = 0.0
        return np.maximum(response, 0.0)

    def _pad_for_patches(self, image: np.ndarray) -> np.ndarray:
        half = self._config.patch_size // 2
        return cv2.copyMakeBorder(image, half, half, half, half, cv2.BORDER_REPLICATE)

    def _extract_patch(self, padded: np.ndarray, x: int, y: int) -> np.ndarray:
        """Cut the patch covering offsets [-size/2, size/2) around (x, y).

        The padded image replicates edge pixels, which clamps out-of-bounds
        samples to the image border.
        """
        size = self._config.patch_size
        # (x - size//2) in image coordinates is x in padded coordinates
        return padded[y : y + size, x : x + size].reshape(-1).copy()

    def extract_descriptor(self, image: np.ndarray, x: int, y: int) -> np.ndarray:
        """Extract the intensity-patch descriptor of a single pixel."""
        return self._extract_patch(self._pad_for_patches(image), int(x), int(y))

    @property
    def max_features(self) -> int:
        """Return maximum number of features to detect."""
        return self._config.max_features

    @property
    def config(self) -> DetectorConfig:
        return self._config
