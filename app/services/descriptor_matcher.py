import math
import numbers
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from app.config.settings import settings

DescriptorLike = Union[Sequence[float], np.ndarray]


class MalformedDescriptorError(ValueError):
    """Descriptor has the wrong shape or holds a non-finite / non-numeric value."""


@dataclass(frozen=True)
class FaceComparisonResult:
    match: bool
    distance: float
    threshold: float


def validate_descriptor(
    descriptor: DescriptorLike, dimensions: Optional[int] = None
) -> np.ndarray:
    """Return the descriptor as a float64 vector or raise MalformedDescriptorError.

    Values are checked one by one so that strings, booleans and other
    non-numbers are refused instead of being coerced by numpy.
    """
    expected = dimensions or settings.FACE_DESCRIPTOR_DIMENSIONS

    if isinstance(descriptor, np.ndarray):
        if descriptor.ndim != 1 or descriptor.dtype.kind not in "fiu":
            raise MalformedDescriptorError(
                "Descriptor must be a one-dimensional numeric array"
            )
        values = descriptor.astype(np.float64)
    elif isinstance(descriptor, (str, bytes)) or not isinstance(descriptor, Sequence):
        raise MalformedDescriptorError("Descriptor must be a sequence of numbers")
    else:
        for i, value in enumerate(descriptor):
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise MalformedDescriptorError(
                    f"Descriptor[{i}] must be a real number, got {type(value).__name__}"
                )
        try:
            values = np.asarray(descriptor, dtype=np.float64)
        except (OverflowError, TypeError) as e:
            raise MalformedDescriptorError(
                "Descriptor values must fit in a double-precision float"
            ) from e

    if values.shape[0] != expected:
        raise MalformedDescriptorError(
            f"Descriptor must have {expected} dimensions, got {values.shape[0]}"
        )
    if not np.all(np.isfinite(values)):
        raise MalformedDescriptorError("Descriptor values must be finite")
    return values


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sqrt(np.sum(np.square(a - b))))


def compare(
    a: DescriptorLike,
    b: DescriptorLike,
    threshold: Optional[float] = None,
    dimensions: Optional[int] = None,
) -> FaceComparisonResult:
    """Compare two descriptors by Euclidean distance.

    The match decision uses the full-precision distance; only the reported
    distance is rounded to 4 decimals.
    """
    if threshold is None:
        threshold = settings.FACE_RECOGNITION_THRESHOLD
    if not math.isfinite(threshold):
        raise ValueError("Threshold must be a finite number")

    left = validate_descriptor(a, dimensions)
    right = validate_descriptor(b, dimensions)

    distance = euclidean_distance(left, right)
    return FaceComparisonResult(
        match=distance <= threshold,
        distance=round(distance, 4),
        threshold=threshold,
    )


def first_match_index(
    candidate: np.ndarray, enrolled: np.ndarray, threshold: float
) -> Optional[tuple]:
    """Index and distance of the first row of `enrolled` within threshold, if any."""
    if enrolled.size == 0:
        return None
    distances = np.sqrt(np.sum(np.square(enrolled - candidate), axis=1))
    hits = np.flatnonzero(distances <= threshold)
    if hits.size == 0:
        return None
    index = int(hits[0])
    return index, round(float(distances[index]), 4)
