"""YAML schema validation and config loading.

Provides centralized validation for all configuration files using pydantic:
    - Generation schema (generation.v1.yaml): the GenerationConfig parameter set
    - Preset schema (presets.v1.yaml): named, complete GenerationConfig bundles
    - Scene schema (scene.v1.yaml): overlay image paths and mock widgets for the CLI

Every pipeline run starts from a validated GenerationConfig, so out-of-range
values (e.g. a contrast that would reach the 259 singularity of the contrast
curve) are rejected here, before any pixel is touched.

Ranges:
    - grain_intensity: [0, 50]          - grain_size: integer [1, 5]
    - vignette_strength: [0.0, 1.0]     - tint_strength: [0.0, 1.0]
    - blur_radius: [0.0, 5.0] px        - brightness/contrast/saturation: [-50, 50]
    - canvas_size: 1024 | 2048 | 4096   - colors: "#RRGGBB"

Usage:
    from bgenerator.utils import validators

    cfg = validators.load_generation_config("configs/generation.v1.yaml")
    catalog = validators.load_preset_catalog()
    cfg = catalog.get("warm").config
    cfg = cfg.replace(canvas_size=4096, export_format="webp")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import color as color_utils

CANVAS_SIZES = (1024, 2048, 4096)

# Shipped configs live next to the package: <repo>/configs/
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"
DEFAULT_PRESETS_PATH = DEFAULT_CONFIG_DIR / "presets.v1.yaml"


class ConfigError(ValueError):
    """Raised when a configuration value or file fails validation."""

    pass


class NoiseType(str, Enum):
    """Distribution of the per-group grain value."""

    UNIFORM = "uniform"
    GAUSSIAN = "gaussian"


class ExportFormat(str, Enum):
    """Encoded output format; the value doubles as the file extension."""

    PNG = "png"
    JPEG = "jpg"
    WEBP = "webp"


class WidgetKind(str, Enum):
    """Mock UI widget archetypes."""

    BUTTON = "button"
    CARD = "card"
    INPUT = "input"
    NAVBAR = "navbar"
    BADGE = "badge"
    AVATAR = "avatar"


def _format_validation_error(e: ValidationError) -> str:
    """Flatten a pydantic error into "field: message; field: message"."""
    parts = []
    for err in e.errors():
        loc = '.'.join(str(p) for p in err['loc']) or '<root>'
        parts.append(f"{loc}: {err['msg']}")
    return '; '.join(parts)


# ============================================================================
# GENERATION CONFIG
# ============================================================================

class GenerationConfig(BaseModel):
    """Complete parameter set for one background render.

    Immutable: use :meth:`replace` to derive a modified (re-validated) copy.
    Defaults reproduce the "Paper" look at 2048 px.
    """

    model_config = ConfigDict(frozen=True, extra='forbid', use_enum_values=False)

    grain_intensity: float = Field(15.0, ge=0.0, le=50.0, description="Noise amplitude (levels)")
    grain_size: int = Field(1, ge=1, le=5, description="Pixels sharing one noise sample")
    noise_type: NoiseType = Field(NoiseType.UNIFORM, description="Noise distribution")
    vignette_strength: float = Field(0.3, ge=0.0, le=1.0, description="Edge darkening alpha")
    base_color: str = Field("#FAFAFA", description="Fill color")
    tint_color: str = Field("#F0F0F0", description="Tint color blended over the fill")
    tint_strength: float = Field(0.2, ge=0.0, le=1.0, description="Tint alpha")
    blur_radius: float = Field(0.0, ge=0.0, le=5.0, description="Gaussian blur sigma (px)")
    brightness: float = Field(0.0, ge=-50.0, le=50.0)
    contrast: float = Field(0.0, ge=-50.0, le=50.0)
    saturation: float = Field(0.0, ge=-50.0, le=50.0)
    canvas_size: int = Field(2048, description="Square canvas edge (px)")
    export_format: ExportFormat = Field(ExportFormat.PNG)

    @field_validator('base_color', 'tint_color')
    @classmethod
    def validate_hex(cls, v: str) -> str:
        return color_utils.normalize_hex(v)

    @field_validator('canvas_size')
    @classmethod
    def validate_canvas_size(cls, v: int) -> int:
        if v not in CANVAS_SIZES:
            raise ValueError(f"canvas_size must be one of {CANVAS_SIZES}, got {v}")
        return v

    @property
    def base_rgb(self) -> Tuple[int, int, int]:
        return color_utils.parse_hex(self.base_color)

    @property
    def tint_rgb(self) -> Tuple[int, int, int]:
        return color_utils.parse_hex(self.tint_color)

    @property
    def tone_active(self) -> bool:
        """True when any of brightness/contrast/saturation is non-zero."""
        return self.brightness != 0 or self.contrast != 0 or self.saturation != 0

    def replace(self, **changes: Any) -> 'GenerationConfig':
        """Return a validated copy with ``changes`` applied.

        Raises
        ------
        ConfigError
            If the merged parameter set is invalid (self is unchanged)
        """
        return build_generation_config({**self.model_dump(), **changes})

    def to_yaml_dict(self) -> Dict[str, Any]:
        """Plain-types dict suitable for fs.atomic_yaml_dump."""
        return self.model_dump(mode='json')


def build_generation_config(data: Optional[Dict[str, Any]] = None) -> GenerationConfig:
    """Validate a mapping into a GenerationConfig.

    Raises
    ------
    ConfigError
        With every offending field listed
    """
    try:
        return GenerationConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid generation config: {_format_validation_error(e)}") from e


class GenerationFileV1(BaseModel):
    """generation.v1.yaml: a single parameter set."""

    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field("generation.v1", alias="schema")
    config: GenerationConfig = Field(default_factory=GenerationConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "generation.v1":
            raise ValueError(f"Expected schema 'generation.v1', got '{v}'")
        return v


# ============================================================================
# PRESETS
# ============================================================================

class Preset(BaseModel):
    """Named, complete parameter bundle; applying one replaces the config wholesale."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    config: GenerationConfig = Field(default_factory=GenerationConfig)


class PresetCatalog(BaseModel):
    """presets.v1.yaml: ordered preset list with unique ids."""

    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field("presets.v1", alias="schema")
    default: Optional[str] = Field(None, description="Preset selected at startup")
    presets: List[Preset] = Field(..., min_length=1)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "presets.v1":
            raise ValueError(f"Expected schema 'presets.v1', got '{v}'")
        return v

    @field_validator('presets')
    @classmethod
    def validate_unique_ids(cls, v: List[Preset]) -> List[Preset]:
        ids = [p.id for p in v]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"Duplicate preset ids: {dupes}")
        return v

    def ids(self) -> List[str]:
        return [p.id for p in self.presets]

    def get(self, preset_id: str) -> Preset:
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        raise ConfigError(f"Unknown preset '{preset_id}'. Available: {self.ids()}")


# ============================================================================
# SCENE (CLI overlays + widgets)
# ============================================================================

class SceneOverlay(BaseModel):
    """Overlay bitmap reference; placement is clamped when the overlay is built."""

    model_config = ConfigDict(extra='forbid')

    path: str
    opacity: float = 100.0
    scale: float = 100.0
    x: float = 50.0
    y: float = 50.0


class SceneWidget(BaseModel):
    """Mock widget entry; placement is clamped when the widget is built."""

    model_config = ConfigDict(extra='forbid')

    kind: WidgetKind
    x: float = 50.0
    y: float = 50.0
    scale: float = 100.0
    text: Optional[str] = None
    variant: Optional[str] = None


class SceneV1(BaseModel):
    """scene.v1.yaml: optional preset + overrides, overlays and widgets."""

    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    schema_version: str = Field("scene.v1", alias="schema")
    preset: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict, description="GenerationConfig overrides")
    overlays: List[SceneOverlay] = Field(default_factory=list, max_length=10)
    widgets: List[SceneWidget] = Field(default_factory=list)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "scene.v1":
            raise ValueError(f"Expected schema 'scene.v1', got '{v}'")
        return v


# ============================================================================
# LOADERS
# ============================================================================

def _load_model(path: Union[str, Path], model: type, label: str):
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{label} not found: {path}")

    data = fs.load_yaml(path)
    try:
        return model(**data)
    except ValidationError as e:
        raise ConfigError(
            f"{label} validation failed at {path}: {_format_validation_error(e)}"
        ) from e


def load_generation_config(path: Union[str, Path]) -> GenerationConfig:
    """Load and validate a generation.v1.yaml file.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigError
        If validation fails (with the offending keys)
    """
    return _load_model(path, GenerationFileV1, "Generation config").config


def load_preset_catalog(path: Union[str, Path, None] = None) -> PresetCatalog:
    """Load the preset catalog (defaults to the shipped configs/presets.v1.yaml)."""
    return _load_model(path or DEFAULT_PRESETS_PATH, PresetCatalog, "Preset catalog")


def load_scene(path: Union[str, Path]) -> SceneV1:
    """Load and validate a scene.v1.yaml file."""
    return _load_model(path, SceneV1, "Scene")
