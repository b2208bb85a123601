"""Aspect ratio classification."""

from __future__ import annotations

from .media_models import AspectCategory, MediaDescriptor

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.2


def _almost_equal(value: float, target: float, tolerance: float) -> bool:
    return abs(value - target) <= tolerance


def classify(width: int, height: int) -> AspectCategory:
    """Map stream dimensions onto landscape, portrait or other.

    The tolerance is an absolute distance in ratio space. ``height`` must be
    positive; :class:`MediaDescriptor` rejects zero before it gets here.
    """
    if height <= 0:
        raise ValueError("height must be positive")
    ratio = width / height
    if _almost_equal(ratio, LANDSCAPE_RATIO, RATIO_TOLERANCE):
        return AspectCategory.LANDSCAPE
    if _almost_equal(ratio, PORTRAIT_RATIO, RATIO_TOLERANCE):
        return AspectCategory.PORTRAIT
    return AspectCategory.OTHER


def classify_descriptor(descriptor: MediaDescriptor) -> AspectCategory:
    return classify(descriptor.width, descriptor.height)
