"""
Calibration workflow state machine.

UNCALIBRATED -> DIRECT | CORNER | POINT -> CALIBRATED

The session is the single owner of mutable calibration state. Readers get an
immutable CoordinateTransformer snapshot, rebuilt lazily after any mutation
that affects the mapping. When both an accepted homography and a camera state
exist, the homography answers queries.
"""

import dataclasses
import logging
import math
from typing import Any

import numpy as np

from pitchcal.geometry.calibration import fit_camera_state
from pitchcal.geometry.camera import CameraModel
from pitchcal.geometry.homography import (
    estimate_homography,
    homography_from_matrix,
    validate_homography,
)
from pitchcal.geometry.transformer import CoordinateTransformer
from pitchcal.geometry.types import (
    DEFAULT_CALIBRATION,
    CalibrationError,
    CalibrationState,
    GeometryError,
    Homography,
    InsufficientCorrespondencesError,
    TransformSource,
    ValidationMetrics,
    VideoCoord,
    Viewport,
)
from pitchcal.pitch.reference import CORNER_IDS, REFERENCE_POINTS, get_reference_point
from pitchcal.pitch.types import PitchError

from .presets import UserPreset, get_builtin_preset
from .types import (
    CalibrationOutcome,
    CalibrationPoint,
    SessionConfig,
    SessionError,
    SessionPhase,
)

logger = logging.getLogger(__name__)

_STATE_FIELDS = tuple(f.name for f in dataclasses.fields(CalibrationState))
_FORMAT_VERSION = 1


class CalibrationSession:
    def __init__(self, config: SessionConfig | None = None):
        self._cfg = config or SessionConfig()
        self._cfg.validate()
        self._viewport = self._cfg.viewport
        self._phase = SessionPhase.UNCALIBRATED
        self._state: CalibrationState | None = None
        # CORNER or POINT: the workflow that feeds recalibration
        self._workflow: SessionPhase | None = None

        self._corner_marks: dict[str, VideoCoord] = {}
        self._active_corner: str | None = None
        self._points: dict[str, CalibrationPoint] = {}
        self._active_point: str | None = None

        self._homography: Homography | None = None
        self._metrics: ValidationMetrics | None = None

        self._transformer: CoordinateTransformer | None = None
        self._dirty = True
        self._revision = 0
        # Bumped on every correspondence edit
        self._correspondence_version = 0
        self._estimated_version: int | None = None

    @property
    def config(self) -> SessionConfig:
        return self._cfg

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> CalibrationState | None:
        return self._state

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def homography(self) -> Homography | None:
        return self._homography

    @property
    def metrics(self) -> ValidationMetrics | None:
        return self._metrics

    @property
    def revision(self) -> int:
        """Incremented on every mutation that changes the mapping."""
        return self._revision

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def is_homography_stale(self) -> bool:
        """True if correspondences changed after the accepted homography was estimated."""
        return (
            self._homography is not None
            and self._estimated_version is not None
            and self._estimated_version != self._correspondence_version
        )

    @property
    def is_calibrated(self) -> bool:
        return self._homography is not None or self._state is not None

    @property
    def transformer(self) -> CoordinateTransformer:
        if self._dirty or self._transformer is None:
            self._transformer = self._build_transformer()
            self._dirty = False
        return self._transformer

    def _build_transformer(self) -> CoordinateTransformer:
        camera = None
        if self._state is not None:
            camera = CameraModel(self._state, self._viewport)
        return CoordinateTransformer(
            homography=self._homography,
            camera=camera,
            metrics=self._metrics,
            config=self._cfg.homography,
        )

    def _invalidate(self) -> None:
        self._dirty = True
        self._revision += 1

    def _set_phase(self, phase: SessionPhase) -> None:
        if phase is not self._phase:
            logger.debug("Calibration phase: %s -> %s", self._phase.value, phase.value)
            self._phase = phase

    def set_viewport(self, viewport: Viewport) -> None:
        viewport.validate()
        if viewport != self._viewport:
            self._viewport = viewport
            self._invalidate()

    def enter_direct_mode(self) -> None:
        if self._state is None:
            self._state = DEFAULT_CALIBRATION
            self._invalidate()
        self._set_phase(SessionPhase.DIRECT)

    def update_state(self, **fields: float) -> CalibrationState:
        """Slider update of any CalibrationState fields (e.g. fov_deg=50)."""
        unknown = set(fields) - set(_STATE_FIELDS)
        if unknown:
            raise SessionError(f"Unknown calibration fields: {sorted(unknown)}")
        if any(not math.isfinite(float(v)) for v in fields.values()):
            raise SessionError("Calibration fields must be finite")
        if "fov_deg" in fields and not 0.0 < float(fields["fov_deg"]) < 180.0:
            raise SessionError(f"Invalid vertical FOV: {fields['fov_deg']}")

        base = self._state or DEFAULT_CALIBRATION
        self._state = dataclasses.replace(base, **{k: float(v) for k, v in fields.items()})
        if self._phase is SessionPhase.UNCALIBRATED:
            self._set_phase(SessionPhase.DIRECT)
        self._invalidate()
        return self._state

    def reset_state(self) -> None:
        self._state = DEFAULT_CALIBRATION
        self._invalidate()

    def apply_preset(self, name: str) -> CalibrationState:
        """Apply a built-in camera preset; skips the calibration workflows."""
        return self._apply_state(get_builtin_preset(name), name)

    def apply_user_preset(self, preset: UserPreset) -> CalibrationState:
        return self._apply_state(preset.state, preset.name)

    def _apply_state(self, state: CalibrationState, name: str) -> CalibrationState:
        self._state = state
        self._set_phase(SessionPhase.DIRECT)
        self._invalidate()
        logger.debug("Preset applied: %s", name)
        return state

    @property
    def corner_marks(self) -> dict[str, VideoCoord]:
        return dict(self._corner_marks)

    @property
    def active_corner(self) -> str | None:
        return self._active_corner

    def start_corner_calibration(self) -> None:
        self._corner_marks.clear()
        self._correspondence_version += 1
        self._active_corner = CORNER_IDS[0]
        self._workflow = SessionPhase.CORNER
        self._set_phase(SessionPhase.CORNER)

    def set_active_corner(self, corner_id: str | None) -> None:
        if corner_id is not None and corner_id not in CORNER_IDS:
            raise SessionError(f"Not a pitch corner: {corner_id!r}")
        self._active_corner = corner_id

    def mark_corner(self, video: VideoCoord, corner_id: str | None = None) -> None:
        """Record the clicked position of a corner and move on to the next unmarked one."""
        target = corner_id or self._active_corner
        if target is None:
            raise SessionError("No active corner to mark")
        if target not in CORNER_IDS:
            raise SessionError(f"Not a pitch corner: {target!r}")
        self._corner_marks[target] = video
        self._correspondence_version += 1
        self._active_corner = next((c for c in CORNER_IDS if c not in self._corner_marks), None)

    def auto_calibrate_corners(self) -> CalibrationOutcome:
        if len(self._corner_marks) < len(CORNER_IDS):
            return self._reject(
                InsufficientCorrespondencesError(
                    f"All 4 corners must be marked ({len(self._corner_marks)} set)"
                )
            )
        pitch = [REFERENCE_POINTS[c].pitch for c in CORNER_IDS]
        video = [self._corner_marks[c] for c in CORNER_IDS]
        return self._accept_homography(pitch, video, SessionPhase.CORNER)

    @property
    def points(self) -> list[CalibrationPoint]:
        return list(self._points.values())

    @property
    def active_point(self) -> str | None:
        return self._active_point

    @property
    def set_point_count(self) -> int:
        return sum(1 for p in self._points.values() if p.is_set)

    @property
    def can_auto_calibrate(self) -> bool:
        return self.set_point_count >= self._cfg.homography.min_correspondences

    def start_point_calibration(self) -> None:
        self._workflow = SessionPhase.POINT
        self._set_phase(SessionPhase.POINT)

    def add_point(self, reference_id: str) -> CalibrationPoint:
        """Add an unset point for a reference landmark and make it active."""
        try:
            get_reference_point(reference_id)
        except PitchError as exc:
            raise SessionError(str(exc)) from exc
        point = self._points.setdefault(reference_id, CalibrationPoint(reference_id))
        self._active_point = reference_id
        return point

    def set_active_point(self, reference_id: str | None) -> None:
        if reference_id is not None and reference_id not in self._points:
            raise SessionError(f"Point {reference_id!r} has not been added")
        self._active_point = reference_id

    def place_point(self, video: VideoCoord, reference_id: str | None = None) -> CalibrationPoint:
        target = reference_id or self._active_point
        if target is None:
            raise SessionError("No active point to place")
        if target not in self._points:
            self.add_point(target)
        point = CalibrationPoint(reference_id=target, video=video)
        self._points[target] = point
        self._correspondence_version += 1
        self._active_point = None
        return point

    def remove_point(self, reference_id: str) -> None:
        if self._points.pop(reference_id, None) is not None:
            self._correspondence_version += 1
        if self._active_point == reference_id:
            self._active_point = None

    def clear_points(self) -> None:
        if self._points:
            self._correspondence_version += 1
        self._points.clear()
        self._active_point = None

    def auto_calibrate_points(self) -> CalibrationOutcome:
        placed = [p for p in self._points.values() if p.is_set]
        if not self.can_auto_calibrate:
            return self._reject(
                InsufficientCorrespondencesError(
                    f"Need at least {self._cfg.homography.min_correspondences} "
                    f"placed points, got {len(placed)}"
                )
            )
        pitch = [REFERENCE_POINTS[p.reference_id].pitch for p in placed]
        video = [p.video for p in placed]
        return self._accept_homography(pitch, video, SessionPhase.POINT)

    @property
    def workflow(self) -> SessionPhase | None:
        """Workflow whose correspondences feed calibration, kept after CALIBRATED."""
        if self._phase in (SessionPhase.CORNER, SessionPhase.POINT):
            return self._phase
        if self._phase is SessionPhase.CALIBRATED:
            return self._workflow
        return None

    def auto_calibrate(self) -> CalibrationOutcome:
        """Run the estimator for the active workflow."""
        workflow = self.workflow
        if workflow is SessionPhase.CORNER:
            return self.auto_calibrate_corners()
        if workflow is SessionPhase.POINT:
            return self.auto_calibrate_points()
        return self._reject(
            CalibrationError(f"Nothing to calibrate in phase {self._phase.value!r}")
        )

    def _correspondences(self) -> tuple[list, list]:
        if self.workflow is SessionPhase.CORNER:
            ids = [c for c in CORNER_IDS if c in self._corner_marks]
            return (
                [REFERENCE_POINTS[c].pitch for c in ids],
                [self._corner_marks[c] for c in ids],
            )
        placed = [p for p in self._points.values() if p.is_set]
        return (
            [REFERENCE_POINTS[p.reference_id].pitch for p in placed],
            [p.video for p in placed],
        )

    def _accept_homography(
        self,
        pitch: list,
        video: list,
        workflow: SessionPhase,
    ) -> CalibrationOutcome:
        try:
            homography = estimate_homography(pitch, video, self._cfg.homography)
        except CalibrationError as exc:
            return self._reject(exc)

        metrics = validate_homography(homography, pitch, video, self._cfg.homography)
        if not metrics.is_valid:
            logger.warning(
                "Calibration accepted with high error: mean_error_m=%.3f (threshold=%.3f)",
                metrics.mean_error_m,
                self._cfg.homography.validation_error_threshold_m,
            )

        self._homography = homography
        self._metrics = metrics
        self._estimated_version = self._correspondence_version
        self._workflow = workflow
        self._set_phase(SessionPhase.CALIBRATED)
        self._invalidate()
        logger.debug(
            "Homography accepted: num_points=%d, mean_error_m=%.4f",
            metrics.point_count,
            metrics.mean_error_m,
        )
        return CalibrationOutcome(
            success=True,
            message=(
                f"Calibrated from {metrics.point_count} points "
                f"(mean error {metrics.mean_error_m:.2f} m)"
            ),
            source=TransformSource.HOMOGRAPHY,
            metrics=metrics,
        )

    def fit_camera_to_points(self) -> CalibrationOutcome:
        """Solve the camera sliders from the current correspondences."""
        pitch, video = self._correspondences()
        try:
            result = fit_camera_state(
                pitch,
                video,
                self._viewport,
                config=self._cfg.camera_fit,
            )
        except (CalibrationError, GeometryError) as exc:
            return self._reject(exc)

        self._state = result.state
        self._invalidate()
        logger.debug(
            "Camera fitted to %d points: reprojection_error_px=%.3f",
            result.num_points,
            result.reprojection_error_px,
        )
        return CalibrationOutcome(
            success=True,
            message=(
                f"Camera fitted to {result.num_points} points "
                f"(reprojection error {result.reprojection_error_px:.1f} px)"
            ),
            source=TransformSource.CAMERA,
        )

    def clear_homography(self) -> None:
        """Drop the accepted homography so the camera state answers queries."""
        if self._homography is None:
            return
        self._homography = None
        self._metrics = None
        self._estimated_version = None
        if self._phase is SessionPhase.CALIBRATED:
            self._set_phase(
                SessionPhase.DIRECT if self._state is not None else SessionPhase.UNCALIBRATED
            )
        self._invalidate()

    def _reject(self, error: CalibrationError | GeometryError) -> CalibrationOutcome:
        logger.info("Calibration rejected: %s", error)
        return CalibrationOutcome(success=False, message=str(error), error=error)

    def to_dict(self) -> dict[str, Any]:
        """Plain numeric snapshot; loading it needs no work beyond a matrix inversion."""
        return {
            "version": _FORMAT_VERSION,
            "phase": self._phase.value,
            "workflow": self._workflow.value if self._workflow is not None else None,
            "viewport": {
                "width_px": self._viewport.width_px,
                "height_px": self._viewport.height_px,
            },
            "state": dataclasses.asdict(self._state) if self._state is not None else None,
            "homography": (
                np.asarray(self._homography.matrix, dtype=float).tolist()
                if self._homography is not None
                else None
            ),
            "metrics": dataclasses.asdict(self._metrics) if self._metrics is not None else None,
            "corner_marks": {k: [v.x_px, v.y_px] for k, v in self._corner_marks.items()},
            "points": [
                {
                    "reference_id": p.reference_id,
                    "video": [p.video.x_px, p.video.y_px] if p.video is not None else None,
                }
                for p in self._points.values()
            ],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        config: SessionConfig | None = None,
    ) -> "CalibrationSession":
        if not isinstance(data, dict):
            raise SessionError(f"Session data must be a JSON object, got {type(data).__name__}")
        version = data.get("version", _FORMAT_VERSION)
        if version != _FORMAT_VERSION:
            raise SessionError(f"Unsupported session format version: {version}")

        session = cls(config)
        try:
            vp = data.get("viewport")
            if vp is not None:
                session._viewport = Viewport(int(vp["width_px"]), int(vp["height_px"]))
                session._viewport.validate()
            if data.get("state") is not None:
                session._state = CalibrationState(
                    **{k: float(data["state"][k]) for k in _STATE_FIELDS}
                )
            if data.get("homography") is not None:
                session._homography = homography_from_matrix(
                    np.asarray(data["homography"], dtype=float),
                    session._cfg.homography,
                )
                session._estimated_version = session._correspondence_version
            if data.get("metrics") is not None:
                session._metrics = ValidationMetrics(**data["metrics"])
            for corner_id, (x_px, y_px) in data.get("corner_marks", {}).items():
                if corner_id not in CORNER_IDS:
                    raise SessionError(f"Not a pitch corner: {corner_id!r}")
                session._corner_marks[corner_id] = VideoCoord(float(x_px), float(y_px))
            for item in data.get("points", []):
                ref_id = item["reference_id"]
                if ref_id not in REFERENCE_POINTS:
                    raise SessionError(f"Unknown reference point: {ref_id!r}")
                video = item.get("video")
                session._points[ref_id] = CalibrationPoint(
                    reference_id=ref_id,
                    video=VideoCoord(float(video[0]), float(video[1])) if video else None,
                )
            session._phase = SessionPhase(data.get("phase", SessionPhase.UNCALIBRATED.value))
            workflow = data.get("workflow")
            session._workflow = SessionPhase(workflow) if workflow is not None else None
        except (AttributeError, KeyError, TypeError, ValueError, GeometryError) as exc:
            raise SessionError(f"Malformed session data: {exc}") from exc
        except CalibrationError as exc:
            raise SessionError(f"Stored homography is unusable: {exc}") from exc

        session._invalidate()
        return session
