"""JSON checkpoint format for optimizer states.

A state is converted to a plain dictionary of JSON types and back. The
format is versioned and self-contained:

    {
        "version": "optistate-state-1.0",
        "method": {"name": <tag>, "options": {...}},
        "memory": {<field>: <value>, ...},
        "config": {<option>: <number or null>, ...},
        "dim": <integer>,
        "nf": <integer>, "ng": <integer>, "iteration": <integer>,
        "f": <float or null>, "g": [<float>, ...] or null,
        ...
        "termination": {"status": <str>, "reason": <str or null>,
                        "iteration": <integer or null>},
        "error": <string or null>
    }

Arrays are stored as ``{"ndarray": [...]}`` and tuples of arrays as
``{"tuple": [...]}`` so that method memories round-trip exactly.
"""

from __future__ import annotations

import json
from dataclasses import MISSING, fields
from typing import Any, Dict

import numpy as np

from .core import (
    OptimizerConfig,
    OptimizerState,
    Status,
    Termination,
    TerminationReason,
)
from .registry import METHODS, make_method

VERSION = "optistate-state-1.0"

_REQUIRED = {
    "version": str,
    "method": dict,
    "memory": dict,
    "config": dict,
    "dim": int,
    "nf": int,
    "ng": int,
    "iteration": int,
    "termination": dict,
}

_OPTIONAL_FLOATS = ("f", "f_check", "alpha", "slope", "best_f", "best_g2n")
_OPTIONAL_ARRAYS = ("g", "best_par")


def _encode(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return {"ndarray": value.tolist()}
    if isinstance(value, tuple):
        return {"tuple": [_encode(v) for v in value]}
    if isinstance(value, np.generic):
        return value.item()
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if "ndarray" in value:
            return np.array(value["ndarray"], dtype=float)
        if "tuple" in value:
            return tuple(_decode(v) for v in value["tuple"])
        raise ValueError(f"Unrecognized encoded value: {sorted(value)}")
    return value


def _array_or_none(value: Any) -> Any:
    return None if value is None else np.asarray(value, dtype=float).tolist()


def state_to_dict(state: OptimizerState) -> Dict[str, Any]:
    """Convert an optimizer state to a JSON-compatible dictionary."""
    memory = {f.name: _encode(getattr(state.memory, f.name)) for f in fields(state.memory)}
    result: Dict[str, Any] = {
        "version": VERSION,
        "method": {"name": state.method.name, "options": state.method.options()},
        "memory": memory,
        "config": state.config.as_dict(),
        "dim": state.dim,
        "nf": state.nf,
        "ng": state.ng,
        "iteration": state.iteration,
        "mu": float(state.mu),
        "restart": bool(state.restart),
        "termination": {
            "status": state.termination.status.value,
            "reason": (
                state.termination.reason.value
                if state.termination.reason is not None
                else None
            ),
            "iteration": state.termination.iteration,
        },
        "error": state.error,
    }
    for name in _OPTIONAL_FLOATS:
        value = getattr(state, name)
        result[name] = None if value is None else float(value)
    for name in _OPTIONAL_ARRAYS:
        result[name] = _array_or_none(getattr(state, name))
    return result


def validate_state_dict(obj: Any) -> None:
    """
    Check the structure of a serialized state.

    Raises
    ------
    ValueError
        If a field is missing or has the wrong type, the version is not
        supported, the method tag is unknown, or the memory or config
        records carry keys the current types do not define.
    """
    if not isinstance(obj, dict):
        raise ValueError("Serialized state must be a dictionary.")
    for key, kind in _REQUIRED.items():
        if key not in obj:
            raise ValueError(f"Serialized state is missing field '{key}'.")
        if not isinstance(obj[key], kind) or (kind is int and isinstance(obj[key], bool)):
            raise ValueError(f"Field '{key}' must be of type {kind.__name__}.")
    if obj["version"] != VERSION:
        raise ValueError(f"Unsupported state version '{obj['version']}'.")
    name = obj["method"].get("name")
    if name not in METHODS:
        raise ValueError(f"Unknown method '{name}' in serialized state.")
    if obj["dim"] < 1:
        raise ValueError("Field 'dim' must be positive.")
    _check_keys("memory", obj["memory"], METHODS[name].memory_type)
    _check_keys("config", obj["config"], OptimizerConfig)
    for name in _OPTIONAL_ARRAYS:
        value = obj.get(name)
        if value is not None and len(value) != obj["dim"]:
            raise ValueError(f"Field '{name}' must have length {obj['dim']}.")
    termination = obj["termination"]
    try:
        Status(termination.get("status"))
        if termination.get("reason") is not None:
            TerminationReason(termination["reason"])
    except ValueError as exc:
        raise ValueError(f"Invalid termination record: {exc}") from exc


def _check_keys(field_name: str, value: Dict[str, Any], cls: type) -> None:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ValueError(f"Field '{field_name}' has unknown keys {unknown}.")
    required = {
        f.name for f in fields(cls)
        if f.default is MISSING and f.default_factory is MISSING
    }
    missing = sorted(required - set(value))
    if missing:
        raise ValueError(f"Field '{field_name}' is missing keys {missing}.")


def state_from_dict(obj: Dict[str, Any]) -> OptimizerState:
    """Rebuild an optimizer state from :func:`state_to_dict` output."""
    validate_state_dict(obj)
    method = make_method(obj["method"]["name"], **obj["method"].get("options", {}))
    memory_type = method.memory_type
    memory = memory_type(**{k: _decode(v) for k, v in obj["memory"].items()})
    termination = obj["termination"]
    reason = termination.get("reason")
    kwargs: Dict[str, Any] = {
        name: obj.get(name) for name in _OPTIONAL_FLOATS
    }
    for name in _OPTIONAL_ARRAYS:
        value = obj.get(name)
        kwargs[name] = None if value is None else np.array(value, dtype=float)
    return OptimizerState(
        method=method,
        memory=memory,
        config=OptimizerConfig(**obj["config"]),
        dim=obj["dim"],
        nf=obj["nf"],
        ng=obj["ng"],
        iteration=obj["iteration"],
        mu=float(obj.get("mu", 0.0)),
        restart=bool(obj.get("restart", False)),
        termination=Termination(
            status=Status(termination["status"]),
            reason=TerminationReason(reason) if reason is not None else None,
            iteration=termination.get("iteration"),
        ),
        error=obj.get("error"),
        **kwargs,
    )


def state_to_json(state: OptimizerState, **kwargs: Any) -> str:
    """Serialize a state to a JSON string. Extra arguments go to ``json.dumps``."""
    return json.dumps(state_to_dict(state), **kwargs)


def state_from_json(text: str) -> OptimizerState:
    """Deserialize a state produced by :func:`state_to_json`."""
    return state_from_dict(json.loads(text))


__all__ = [
    "VERSION",
    "state_from_dict",
    "state_from_json",
    "state_to_dict",
    "state_to_json",
    "validate_state_dict",
]
