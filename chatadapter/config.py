"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags < per-session overrides
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class APIConfig:
    base_url: str = "https://api.z.ai/api/coding/paas/v4"
    api_key_env: str = "ZAI_API_KEY"
    timeout_seconds: int = 120
    user_agent: str = ""

    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "").strip()


@dataclass
class ChatConfig:
    enable_thinking: bool = True
    default_model: str = "glm-4.7"
    default_max_tokens: int = 4_096
    default_temperature: float = 0.7
    max_tool_result_chars: int = 20_000


@dataclass
class VisionConfig:
    fallback_model: str = "glm-4.6v"
    caption_base_url: str = "https://api.z.ai/api/paas/v4"
    caption_model: str = "glm-4v-plus"
    caption_max_tokens: int = 2_000


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class AdapterConfig:
    api: APIConfig = field(default_factory=APIConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    models: list[dict[str, Any]] = field(default_factory=list)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    # ----- per-session overrides (applied last) ----
    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, dotpath: str, value: Any) -> None:
        """Set a per-session override using dot notation (e.g. 'chat.enable_thinking')."""
        self._overrides[dotpath] = value
        _apply_dotpath(self, dotpath, value)

    def get_override(self, dotpath: str) -> Any | None:
        return self._overrides.get(dotpath)

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("_overrides", None)
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in (raw or {}).items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "CHATADAPTER_BASE_URL":            ("api.base_url", str),
    "CHATADAPTER_API_KEY_ENV":         ("api.api_key_env", str),
    "CHATADAPTER_TIMEOUT":             ("api.timeout_seconds", int),
    "CHATADAPTER_USER_AGENT":          ("api.user_agent", str),
    "CHATADAPTER_ENABLE_THINKING":     ("chat.enable_thinking", bool),
    "CHATADAPTER_MODEL":               ("chat.default_model", str),
    "CHATADAPTER_MAX_TOKENS":          ("chat.default_max_tokens", int),
    "CHATADAPTER_TEMPERATURE":         ("chat.default_temperature", float),
    "CHATADAPTER_MAX_TOOL_RESULT":     ("chat.max_tool_result_chars", int),
    "CHATADAPTER_VISION_FALLBACK":     ("vision.fallback_model", str),
    "CHATADAPTER_CAPTION_BASE_URL":    ("vision.caption_base_url", str),
    "CHATADAPTER_CAPTION_MODEL":       ("vision.caption_model", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AdapterConfig:
    """
    Build an AdapterConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile and "profiles" in raw:
        profile_data = raw.get("profiles", {}).get(profile, {})
        if profile_data:
            raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = AdapterConfig(
        api=_build_section(APIConfig, raw.get("api", {})),
        chat=_build_section(ChatConfig, raw.get("chat", {})),
        vision=_build_section(VisionConfig, raw.get("vision", {})),
        models=list(raw.get("models") or []),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg


def build_provider(cfg: AdapterConfig, **kwargs: Any):
    """Construct an ``OpenAICompatProvider`` (and its captioner) from *cfg*."""
    from chatadapter import __version__
    from chatadapter.llm.models import DEFAULT_MODELS, ModelCatalog, ModelInfo
    from chatadapter.llm.providers.openai_compat import OpenAICompatProvider
    from chatadapter.llm.vision import VisionCaptioner

    api_key = cfg.api.api_key()
    models = [ModelInfo.from_dict(m) for m in cfg.models] or list(DEFAULT_MODELS)
    catalog = ModelCatalog(models, preferred_vision_model=cfg.vision.fallback_model)
    captioner = VisionCaptioner(
        url=cfg.vision.caption_base_url,
        api_key=api_key,
        model=cfg.vision.caption_model,
        max_tokens=cfg.vision.caption_max_tokens,
        timeout=float(cfg.api.timeout_seconds),
    )
    return OpenAICompatProvider(
        url=cfg.api.base_url,
        api_key=api_key,
        catalog=catalog,
        show_reasoning=cfg.chat.enable_thinking,
        captioner=captioner,
        user_agent=cfg.api.user_agent or f"chatadapter/{__version__}",
        timeout=float(cfg.api.timeout_seconds),
        default_max_tokens=cfg.chat.default_max_tokens,
        default_temperature=cfg.chat.default_temperature,
        max_tool_result_chars=cfg.chat.max_tool_result_chars,
        **kwargs,
    )
