import logging
import os
import tomllib
from importlib import import_module
from typing import Any, Dict, List, Optional

from core.types import RuleModule

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "config.toml"

# Evaluation order of the threshold table
DEFAULT_MODULES = ("vitamin_d", "lipids", "glycemia", "iron", "b12", "thyroid")


def config_path() -> str:
    return os.environ.get("RECEITUARIO_CONFIG", DEFAULT_CONFIG)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    path = path or config_path()
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        logger.warning("config file %s not found; using built-in defaults", path)
        return {}


def _import(name: str) -> RuleModule:
    return import_module(f"modules.{name}.{name}")


def default_modules() -> List[RuleModule]:
    return [_import(name) for name in DEFAULT_MODULES]


def load_enabled_modules(cfg: Optional[Dict[str, Any]] = None) -> List[RuleModule]:
    cfg = load_config() if cfg is None else cfg
    mod_cfg = cfg.get("modules", {})
    if not mod_cfg:
        return default_modules()
    ordered = sorted(((m, v.get("order", 999)) for m, v in mod_cfg.items() if v.get("enabled", True)), key=lambda x: x[1])
    mods = []
    for name, _ in ordered:
        mods.append(_import(name))
    logger.debug("enabled rule modules: %s", [m.id for m in mods])
    return mods


def template_settings(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    cfg = load_config() if cfg is None else cfg
    return dict(cfg.get("template", {}))


def suggest_settings(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    cfg = load_config() if cfg is None else cfg
    out = {
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4o-mini",
        "fallback_model": "",
        "timeout": 60,
        "cache_ttl_seconds": None,
    }
    out.update(cfg.get("suggest", {}))
    out["api_key"] = os.environ.get("OPENAI_API_KEY", "")
    return out
