import json
import logging
import math
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType

from pitchcal.geometry.types import CalibrationState

from .types import SessionError

logger = logging.getLogger(__name__)

BUILTIN_PRESETS: MappingProxyType[str, CalibrationState] = MappingProxyType(
    {
        "broadcast": CalibrationState(
            camera_x=0.0,
            camera_y=45.0,
            camera_z=70.0,
            rotation_x_rad=-0.4,
            rotation_y_rad=0.0,
            rotation_z_rad=0.0,
            fov_deg=50.0,
        ),
        "tactical": CalibrationState(
            camera_x=0.0,
            camera_y=80.0,
            camera_z=50.0,
            rotation_x_rad=-0.8,
            rotation_y_rad=0.0,
            rotation_z_rad=0.0,
            fov_deg=60.0,
        ),
        "sideline": CalibrationState(
            camera_x=-60.0,
            camera_y=20.0,
            camera_z=40.0,
            rotation_x_rad=-0.2,
            rotation_y_rad=0.5,
            rotation_z_rad=0.0,
            fov_deg=45.0,
        ),
        "behind_goal": CalibrationState(
            camera_x=0.0,
            camera_y=25.0,
            camera_z=-70.0,
            rotation_x_rad=-0.3,
            rotation_y_rad=math.pi,
            rotation_z_rad=0.0,
            fov_deg=55.0,
        ),
    }
)


def get_builtin_preset(name: str) -> CalibrationState:
    try:
        return BUILTIN_PRESETS[name]
    except KeyError as exc:
        raise SessionError(f"Unknown preset: {name!r}") from exc


@dataclass(frozen=True, slots=True)
class UserPreset:
    id: str
    name: str
    state: CalibrationState
    # Pitch mesh scale (width, height) saved alongside the camera
    pitch_scale: tuple[float, float] = (1.0, 1.0)
    created_at: str = ""


def _preset_to_dict(preset: UserPreset) -> dict:
    return {
        "id": preset.id,
        "name": preset.name,
        "state": asdict(preset.state),
        "pitch_scale": list(preset.pitch_scale),
        "created_at": preset.created_at,
    }


def _preset_from_dict(data: dict) -> UserPreset:
    scale = data.get("pitch_scale", (1.0, 1.0))
    return UserPreset(
        id=str(data["id"]),
        name=str(data["name"]),
        state=CalibrationState(**{k: float(v) for k, v in data["state"].items()}),
        pitch_scale=(float(scale[0]), float(scale[1])),
        created_at=str(data.get("created_at", "")),
    )


class PresetStore:
    """
    User-named calibration presets, optionally backed by a JSON file.

    Every mutation is written through to the file immediately.
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path is not None else None
        self._presets: list[UserPreset] = []
        if self._path is not None and self._path.exists():
            self._presets = self._load(self._path)

    @staticmethod
    def _load(path: Path) -> list[UserPreset]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [_preset_from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise SessionError(f"Failed to parse calibration presets in {path}: {exc}") from exc

    def _save(self) -> None:
        if self._path is None:
            return
        data = [_preset_to_dict(p) for p in self._presets]
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    @property
    def presets(self) -> tuple[UserPreset, ...]:
        return tuple(self._presets)

    def get(self, preset_id: str) -> UserPreset:
        for preset in self._presets:
            if preset.id == preset_id:
                return preset
        raise SessionError(f"Unknown user preset: {preset_id!r}")

    def add(
        self,
        name: str,
        state: CalibrationState,
        pitch_scale: tuple[float, float] = (1.0, 1.0),
    ) -> UserPreset:
        preset = UserPreset(
            id=f"preset-{uuid.uuid4().hex[:12]}",
            name=name,
            state=state,
            pitch_scale=pitch_scale,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._presets.append(preset)
        self._save()
        logger.debug("Preset added: id=%s, name=%s", preset.id, name)
        return preset

    def delete(self, preset_id: str) -> None:
        self.get(preset_id)
        self._presets = [p for p in self._presets if p.id != preset_id]
        self._save()

    def rename(self, preset_id: str, name: str) -> UserPreset:
        return self._replace(preset_id, name=name)

    def update(
        self,
        preset_id: str,
        state: CalibrationState,
        pitch_scale: tuple[float, float] = (1.0, 1.0),
    ) -> UserPreset:
        return self._replace(preset_id, state=state, pitch_scale=pitch_scale)

    def _replace(self, preset_id: str, **changes) -> UserPreset:
        updated = replace(self.get(preset_id), **changes)
        self._presets = [updated if p.id == preset_id else p for p in self._presets]
        self._save()
        return updated
