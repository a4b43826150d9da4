from dataclasses import dataclass, field
from enum import Enum

from pitchcal.geometry.types import (
    CameraFitConfig,
    HomographyConfig,
    TransformSource,
    ValidationMetrics,
    VideoCoord,
    Viewport,
)


class SessionPhase(Enum):
    UNCALIBRATED = "uncalibrated"
    DIRECT = "direct"
    CORNER = "corner"
    POINT = "point"
    CALIBRATED = "calibrated"


@dataclass(frozen=True, slots=True)
class CalibrationPoint:
    """A user correspondence; set once the on-video position has been clicked."""

    reference_id: str
    video: VideoCoord | None = None

    @property
    def is_set(self) -> bool:
        return self.video is not None


@dataclass(slots=True)
class CalibrationOutcome:
    success: bool
    message: str
    source: TransformSource = TransformSource.NONE
    metrics: ValidationMetrics | None = None
    error: Exception | None = None


@dataclass(slots=True)
class SessionConfig:
    viewport: Viewport = field(default_factory=lambda: Viewport(1280, 720))
    homography: HomographyConfig = field(default_factory=HomographyConfig)
    camera_fit: CameraFitConfig = field(default_factory=CameraFitConfig)

    def validate(self) -> None:
        self.viewport.validate()
        self.homography.validate()
        self.camera_fit.validate()


class SessionError(RuntimeError):
    pass
