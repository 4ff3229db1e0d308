"""YAML configuration for a synchronization session.

Example::

    description: urdf/omni.urdf
    mesh_dir: meshes
    base_link: base
    tip_link: stylus
    correction: lps_to_ras
    node_prefix: "omni/"
    link_names:
      base: base
      torso: torso
      stylus: stylus

Relative paths are resolved against the directory of the config file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ConfigError

_REQUIRED_KEYS = ("description", "base_link", "tip_link")
_BOOL_KEYS = ("require_geometry",)


@dataclass(frozen=True)
class SyncConfig:
    description: str
    base_link: str
    tip_link: str
    link_names: Dict[str, Optional[str]] = field(default_factory=dict)
    mesh_dir: Optional[str] = None
    correction: str = "lps_to_ras"
    node_prefix: str = ""
    attach_to: Optional[str] = None
    require_geometry: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base_dir: Union[str, Path, None] = None) -> "SyncConfig":
        """Build a config from a plain mapping, resolving relative paths against `base_dir`."""
        if not isinstance(data, Mapping):
            raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")
        missing = [key for key in _REQUIRED_KEYS if not data.get(key)]
        if missing:
            raise ConfigError(f"Missing required configuration keys: {', '.join(missing)}")
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        link_names = data.get("link_names") or {}
        if not isinstance(link_names, Mapping):
            raise ConfigError("'link_names' must map link names to geometry node names")
        for key in _BOOL_KEYS:
            if key in data and not isinstance(data[key], bool):
                raise ConfigError(f"'{key}' must be true or false, got {data[key]!r}")

        values = dict(data)
        values["description"] = _resolve_path(base_dir, data["description"])
        values["mesh_dir"] = _resolve_path(base_dir, data.get("mesh_dir"))
        values["link_names"] = {str(k): (None if v is None else str(v)) for k, v in link_names.items()}
        return cls(**values)


def load_config(path: Union[str, Path]) -> SyncConfig:
    """Read a YAML session configuration file."""
    cfg_path = Path(path)
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Could not read configuration '{cfg_path}': {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse configuration '{cfg_path}': {e}") from e
    return SyncConfig.from_dict(data, base_dir=cfg_path.parent.resolve())


def _resolve_path(base_dir: Path, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    p = Path(value).expanduser()
    if not p.is_absolute():
        p = (base_dir / p).resolve()
    return str(p)
