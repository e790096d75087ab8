"""
Car setup parameters and the rules that keep them consistent.

Front wing angle, downforce and drag are linked: editing any one of them
re-derives the other two. Optimal ranges depend on the selected track's
downforce demand.
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, Any, Optional, Tuple, Union

from .tracks import Track


# Wire name (oracle JSON / CSV) -> attribute name, in display order
PARAMETER_NAMES: Dict[str, str] = {
    "aeroDownforce": "aero_downforce",
    "aeroDrag": "aero_drag",
    "frontWingFlapAngle": "front_wing_flap_angle",
    "suspensionStiffness": "suspension_stiffness",
    "tyreCompound": "tyre_compound",
    "enginePowerICE": "engine_power_ice",
    "enginePowerMGU": "engine_power_mgu",
    "batteryEnergyDeployment": "battery_energy_deployment",
    "chassisWeightKg": "chassis_weight_kg",
}

_WIRE_NAMES: Dict[str, str] = {attr: wire for wire, attr in PARAMETER_NAMES.items()}

AERO_INDEX_MIN = 20.0
AERO_INDEX_MAX = 100.0
WING_ANGLE_MAX = 20.0


@dataclass(frozen=True)
class CarParameters:
    """Immutable snapshot of the car configuration."""
    aero_downforce: float = 60.0  # 20-100 index
    aero_drag: float = 55.0  # 20-100 index, inversely coupled to downforce
    front_wing_flap_angle: float = 10.0  # 0-20 degrees
    suspension_stiffness: float = 70.0  # 20-100
    tyre_compound: int = 2  # 1 (softest, C5) to 5 (hardest, C1)
    engine_power_ice: float = 530.0  # kW
    engine_power_mgu: float = 350.0  # kW
    battery_energy_deployment: float = 90.0  # percent
    chassis_weight_kg: float = 725.0

    def get(self, name: str) -> float:
        """Read a parameter by wire or attribute name."""
        return getattr(self, normalize_parameter_name(name))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using wire names, in display order."""
        return {wire: getattr(self, attr) for wire, attr in PARAMETER_NAMES.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CarParameters":
        """
        Build parameters from a dict keyed by wire or attribute names.

        Raises:
            ValueError: If a parameter is missing, unknown or not numeric.
        """
        values: Dict[str, Any] = {}
        for key, value in data.items():
            attr = normalize_parameter_name(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Parameter {key} must be numeric, got {value!r}")
            values[attr] = value

        missing = [wire for wire, attr in PARAMETER_NAMES.items() if attr not in values]
        if missing:
            raise ValueError(f"Missing parameters: {', '.join(missing)}")

        return cls(**values)


def normalize_parameter_name(name: str) -> str:
    """
    Map a wire or attribute name to the attribute name.

    Raises:
        ValueError: If the name is not one of the nine parameters.
    """
    if name in PARAMETER_NAMES:
        return PARAMETER_NAMES[name]
    if name in _WIRE_NAMES:
        return name
    raise ValueError(f"Unknown parameter: {name}")


def wire_name(name: str) -> str:
    """Map a wire or attribute name to the wire name."""
    return _WIRE_NAMES[normalize_parameter_name(name)]


# =============================================================================
# SLIDERS
# =============================================================================

@dataclass(frozen=True)
class ParameterSpec:
    """Slider definition for one parameter."""
    label: str
    minimum: float
    maximum: float
    step: float
    unit: str
    description: str


PARAMETER_SPECS: Dict[str, ParameterSpec] = {
    "frontWingFlapAngle": ParameterSpec("Front Wing Angle", 0, 20, 0.5, "°", "Front-end bite vs Balance"),
    "aeroDownforce": ParameterSpec("Downforce Index", 20, 100, 1, "", "Overall grip level"),
    "aeroDrag": ParameterSpec("Drag Coefficient", 20, 100, 1, "", "Air resistance"),
    "suspensionStiffness": ParameterSpec("Suspension Stiffness", 20, 100, 1, "", "Ride & Platform control"),
    "tyreCompound": ParameterSpec("Tyre Compound", 1, 5, 1, "", "Grip vs Durability"),
    "chassisWeightKg": ParameterSpec("Chassis Weight", 720, 760, 1, "kg", "Total mass"),
    "enginePowerICE": ParameterSpec("ICE Output", 500, 550, 1, "kW", "Combustion Engine"),
    "enginePowerMGU": ParameterSpec("MGU-K Output", 300, 350, 1, "kW", "Electric Motor"),
    "batteryEnergyDeployment": ParameterSpec("Deployment Mode", 50, 100, 1, "%", "Energy usage strategy"),
}


def clamp_to_slider(name: str, value: float) -> float:
    """
    Snap a raw value to a slider's range and step.

    The parameter model does not clamp edits itself; callers that take
    free-form input run it through here first.
    """
    spec = PARAMETER_SPECS[wire_name(name)]
    value = max(spec.minimum, min(spec.maximum, value))
    steps = _round_half_up((value - spec.minimum) / spec.step)
    snapped = spec.minimum + steps * spec.step
    snapped = min(spec.maximum, snapped)
    if spec.step >= 1:
        return int(snapped) if float(snapped).is_integer() else snapped
    return round(snapped, 1)


# =============================================================================
# TYRE COMPOUNDS
# =============================================================================

# 1 is the softest compound. Prompts and labels use this one scale only.
TYRE_COMPOUNDS: Dict[int, Tuple[str, str]] = {
    1: ("C5", "Softest"),
    2: ("C4", "Soft"),
    3: ("C3", "Medium"),
    4: ("C2", "Hard"),
    5: ("C1", "Hardest"),
}


def tyre_compound_label(value: float) -> str:
    """
    Label for a tyre compound slider value, e.g. "C5 (Softest)".

    Raises:
        ValueError: If the value is not one of 1-5.
    """
    key = int(value)
    if key != value or key not in TYRE_COMPOUNDS:
        raise ValueError(f"Invalid tyre compound: {value}")
    code, name = TYRE_COMPOUNDS[key]
    return f"{code} ({name})"


# =============================================================================
# AERO COUPLING
# =============================================================================

@dataclass(frozen=True)
class DownforceEdit:
    """User moved the downforce slider."""
    value: float


@dataclass(frozen=True)
class DragEdit:
    """User moved the drag slider."""
    value: float


@dataclass(frozen=True)
class WingAngleEdit:
    """User moved the front wing angle slider."""
    value: float


AeroEdit = Union[DownforceEdit, DragEdit, WingAngleEdit]

_AERO_EDITS = {
    "aero_downforce": DownforceEdit,
    "aero_drag": DragEdit,
    "front_wing_flap_angle": WingAngleEdit,
}


def _clamp_index(value: float) -> float:
    return max(AERO_INDEX_MIN, min(AERO_INDEX_MAX, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def drag_for_downforce(downforce: float) -> float:
    """Drag index implied by a downforce index."""
    return round(_clamp_index(110 - downforce * 0.9), 1)


def wing_angle_for_downforce(downforce: float) -> float:
    """Front wing angle implied by a downforce index."""
    return round((downforce - AERO_INDEX_MIN) / 80 * WING_ANGLE_MAX, 1)


def downforce_for_wing_angle(angle: float) -> float:
    """Downforce index implied by a front wing angle."""
    return round(_clamp_index(AERO_INDEX_MIN + (angle / WING_ANGLE_MAX) * 80), 1)


def downforce_for_drag(drag: float) -> float:
    """Downforce index implied by a drag index."""
    return round(_clamp_index((110 - drag) / 0.9), 1)


def resolve_aero_edit(params: CarParameters, edit: AeroEdit) -> CarParameters:
    """
    Apply one aero edit and re-derive the other two aero fields.

    Args:
        params: Current configuration.
        edit: The driving edit.

    Returns:
        New configuration with a consistent wing/downforce/drag triangle.
    """
    if isinstance(edit, DownforceEdit):
        downforce = edit.value
        return replace(
            params,
            aero_downforce=downforce,
            front_wing_flap_angle=wing_angle_for_downforce(downforce),
            aero_drag=drag_for_downforce(downforce),
        )
    if isinstance(edit, WingAngleEdit):
        downforce = downforce_for_wing_angle(edit.value)
        return replace(
            params,
            front_wing_flap_angle=edit.value,
            aero_downforce=downforce,
            aero_drag=drag_for_downforce(downforce),
        )
    if isinstance(edit, DragEdit):
        downforce = downforce_for_drag(edit.value)
        return replace(
            params,
            aero_drag=edit.value,
            aero_downforce=downforce,
            front_wing_flap_angle=wing_angle_for_downforce(downforce),
        )
    raise TypeError(f"Unsupported aero edit: {edit!r}")


def set_parameter(params: CarParameters, name: str, value: float) -> CarParameters:
    """
    Set one parameter, re-deriving coupled aero fields when needed.

    Args:
        params: Current configuration (not modified).
        name: Wire or attribute name of the parameter.
        value: New value, already clamped to the slider range by the caller.

    Returns:
        New configuration snapshot.
    """
    attr = normalize_parameter_name(name)
    edit_type = _AERO_EDITS.get(attr)
    if edit_type is not None:
        return resolve_aero_edit(params, edit_type(value))
    return replace(params, **{attr: value})


# =============================================================================
# OPTIMAL RANGES
# =============================================================================

OptimalRangeTable = Dict[str, Tuple[float, float]]

# Track-independent targets
BASE_OPTIMAL_RANGES: OptimalRangeTable = {
    "enginePowerICE": (540, 550),
    "enginePowerMGU": (345, 350),
    "batteryEnergyDeployment": (90, 100),
    "chassisWeightKg": (720, 725),
}

# Targets keyed by track downforce level
TRACK_SETUP_RANGES: Dict[str, OptimalRangeTable] = {
    "max": {  # Monaco
        "aeroDownforce": (90, 100),
        "aeroDrag": (45, 60),
        "frontWingFlapAngle": (16, 20),
        "suspensionStiffness": (30, 50),
        "tyreCompound": (4, 5),
    },
    "high": {  # Barcelona, Silverstone
        "aeroDownforce": (70, 90),
        "aeroDrag": (30, 45),
        "frontWingFlapAngle": (12, 16),
        "suspensionStiffness": (60, 80),
        "tyreCompound": (2, 4),
    },
    "medium": {  # Spa
        "aeroDownforce": (50, 70),
        "aeroDrag": (25, 40),
        "frontWingFlapAngle": (8, 12),
        "suspensionStiffness": (65, 85),
        "tyreCompound": (2, 3),
    },
    "low": {  # Monza
        "aeroDownforce": (25, 45),
        "aeroDrag": (20, 30),
        "frontWingFlapAngle": (2, 8),
        "suspensionStiffness": (70, 90),
        "tyreCompound": (2, 3),
    },
}

DEFAULT_DOWNFORCE_LEVEL = "high"


def compute_optimal_ranges(track: Track) -> OptimalRangeTable:
    """
    Optimal parameter ranges for a track.

    Unrecognized downforce levels use the "high" table.
    """
    track_ranges = TRACK_SETUP_RANGES.get(
        track.downforce_level, TRACK_SETUP_RANGES[DEFAULT_DOWNFORCE_LEVEL]
    )
    ranges = dict(BASE_OPTIMAL_RANGES)
    ranges.update(track_ranges)
    return ranges


def _optimal_midpoint(attr: str, minimum: float, maximum: float) -> float:
    """Range midpoint, rounded to the slider's natural resolution."""
    mid = (minimum + maximum) / 2
    if attr == "front_wing_flap_angle":
        return _round_half_up(mid * 2) / 2  # nearest 0.5
    return _round_half_up(mid)


def auto_optimize(
    current: CarParameters,
    ranges: OptimalRangeTable,
) -> CarParameters:
    """
    Move every ranged parameter to the middle of its optimal range.

    Drag and wing angle are re-derived from the resulting downforce
    afterwards, so the aero triangle stays consistent even though the
    three midpoints are computed independently.

    Args:
        current: Current configuration.
        ranges: Optimal ranges keyed by wire name.

    Returns:
        Optimized configuration.
    """
    values: Dict[str, float] = {}
    for name, (minimum, maximum) in ranges.items():
        attr = normalize_parameter_name(name)
        values[attr] = _optimal_midpoint(attr, minimum, maximum)

    optimized = replace(current, **values)
    return resolve_aero_edit(optimized, DownforceEdit(optimized.aero_downforce))


def in_optimal_range(
    params: CarParameters,
    ranges: OptimalRangeTable,
) -> Dict[str, bool]:
    """Whether each ranged parameter currently sits inside its target zone."""
    return {
        name: minimum <= params.get(name) <= maximum
        for name, (minimum, maximum) in ranges.items()
    }


def format_parameter_value(value: Optional[float]) -> str:
    """Render a parameter value without a trailing ".0" for whole numbers."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
