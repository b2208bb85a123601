"""Media data models."""

from dataclasses import dataclass
from enum import StrEnum


class AspectCategory(StrEnum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class MediaDescriptor:
    """Dimensions of the first video stream of a probed file."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"invalid stream dimensions {self.width}x{self.height}")
