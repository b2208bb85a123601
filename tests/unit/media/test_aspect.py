import pytest

from src.tubely.media.aspect import LANDSCAPE_RATIO, classify, classify_descriptor
from src.tubely.media.media_models import AspectCategory, MediaDescriptor


@pytest.mark.parametrize(
    ("width", "height", "expected"),
    [
        (1920, 1080, AspectCategory.LANDSCAPE),
        (1280, 720, AspectCategory.LANDSCAPE),
        (1080, 1920, AspectCategory.PORTRAIT),
        (720, 1280, AspectCategory.PORTRAIT),
        (1000, 1000, AspectCategory.OTHER),
        (640, 480, AspectCategory.OTHER),
    ],
)
def test_classify_reference_dimensions(width, height, expected) -> None:
    assert classify(width, height) == expected


@pytest.mark.parametrize("scale", [1, 2, 10, 1000])
@pytest.mark.parametrize("offset", [-0.19, -0.1, 0.0, 0.1, 0.19])
def test_landscape_window_is_scale_invariant(scale, offset) -> None:
    height = 900 * scale
    width = round((LANDSCAPE_RATIO + offset) * height)

    assert classify(width, height) == AspectCategory.LANDSCAPE


def test_exact_ratio_multiples_are_landscape() -> None:
    assert {classify(16 * k, 9 * k) for k in range(1, 200)} == {AspectCategory.LANDSCAPE}


def test_tolerance_boundary_falls_to_other() -> None:
    # 2.0 is ~0.22 away from 16/9, 0.3125 is ~0.25 away from 9/16.
    assert classify(2000, 1000) == AspectCategory.OTHER
    assert classify(500, 1600) == AspectCategory.OTHER


def test_classify_is_deterministic() -> None:
    results = {classify(1366, 768) for _ in range(100)}
    assert results == {AspectCategory.LANDSCAPE}


def test_classify_descriptor_delegates() -> None:
    assert classify_descriptor(MediaDescriptor(1080, 1920)) == AspectCategory.PORTRAIT


def test_zero_height_is_rejected_by_descriptor() -> None:
    with pytest.raises(ValueError):
        MediaDescriptor(1920, 0)
    with pytest.raises(ValueError):
        classify(1920, 0)
