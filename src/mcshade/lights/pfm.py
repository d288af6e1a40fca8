"""Portable float map (PFM) reading and writing.

Only the three-band ``PF`` variant is supported. The header consists of
whitespace-separated tokens ``PF``, width, height and scale; a single
whitespace byte separates the scale from the raw float32 samples. Samples
are always little-endian; the scale only has to be non-zero.

Rows are returned in stored order; no vertical flip is applied, so row 0
of the returned array is the first row in the file.

Example:
    >>> import numpy as np
    >>> from mcshade.lights.pfm import read_pfm, write_pfm
    >>> write_pfm("white.pfm", np.ones((8, 6, 3), dtype=np.float32))
    >>> image = read_pfm("white.pfm")
    >>> image.shape
    (8, 6, 3)
"""

from os import PathLike
from pathlib import Path

import numpy as np
import numpy.typing as npt

_WHITESPACE = b" \t\n\r\v\f"


def _read_token(data: bytes, pos: int) -> tuple[str, int]:
    """Read one whitespace-delimited token, consuming one trailing separator."""
    while pos < len(data) and data[pos] in _WHITESPACE:
        pos += 1
    start = pos
    while pos < len(data) and data[pos] not in _WHITESPACE:
        pos += 1
    if start == pos or pos >= len(data):
        raise ValueError("Truncated PFM header")
    return data[start:pos].decode("ascii", errors="replace"), pos + 1


def read_pfm(path: str | PathLike) -> npt.NDArray[np.float32]:
    """Read a color PFM file.

    Args:
        path: File to read.

    Returns:
        Array of shape (height, width, 3) in stored row order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a well-formed color PFM.
    """
    data = Path(path).read_bytes()
    if len(data) < 2 or data[0:1] != b"P":
        raise ValueError(f"{path}: not a PNM file")
    if data[1:2] != b"F":
        raise ValueError(f"{path}: unsupported PNM variant {data[0:2]!r}, expected b'PF'")

    pos = 2
    try:
        width_token, pos = _read_token(data, pos)
        height_token, pos = _read_token(data, pos)
        scale_token, pos = _read_token(data, pos)
        width = int(width_token)
        height = int(height_token)
        scale = float(scale_token)
    except ValueError as e:
        raise ValueError(f"{path}: malformed PFM header: {e}") from e
    if width <= 0 or height <= 0:
        raise ValueError(f"{path}: invalid PFM size {width}x{height}")
    if scale == 0.0:
        raise ValueError(f"{path}: PFM scale must be non-zero")

    count = width * height * 3
    payload = data[pos:]
    if len(payload) < 4 * count:
        raise ValueError(f"{path}: expected {4 * count} bytes of pixel data, found {len(payload)}")

    pixels = np.frombuffer(payload, dtype="<f4", count=count)
    return pixels.astype(np.float32).reshape(height, width, 3)


def write_pfm(path: str | PathLike, image: npt.ArrayLike) -> None:
    """Write a (height, width, 3) image as a little-endian color PFM.

    Raises:
        ValueError: If the image is not a three-channel 2D array.
    """
    pixels = np.asarray(image, dtype=np.float32)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (height, width, 3), got {pixels.shape}")
    height, width = pixels.shape[:2]
    header = f"PF\n{width} {height}\n-1.0\n".encode("ascii")
    Path(path).write_bytes(header + pixels.astype("<f4").tobytes())
