"""Config loader from env + yaml."""

from __future__ import annotations

from pathlib import Path
import os
from typing import Any, Callable, get_args, get_origin

import yaml
from pydantic import BaseModel, Field, ValidationError

from phish_url_detection_engine.core.errors import ConfigError
from phish_url_detection_engine.orchestrator.ensemble import EnsemblePolicy
from phish_url_detection_engine.orchestrator.policy import TierThresholds
from phish_url_detection_engine.orchestrator.retry import RetryPolicy
from phish_url_detection_engine.tools.intel.pattern_matcher import KNOWN_SAFE_DOMAINS, PatternMatcherPolicy

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "config" / "defaults.yaml"
ENV_PREFIX = "PHISH_URL_ENGINE_"


class AppConfig(BaseModel):

    profile: str = Field(default="default")
    log_level: str = Field(default="INFO")
    confidence_high: float = Field(default=0.90, ge=0.0, le=1.0)
    confidence_medium: float = Field(default=0.70, ge=0.0, le=1.0)
    ml_weight: float = Field(default=0.70, ge=0.0, le=1.0)
    pattern_weight: float = Field(default=0.30, ge=0.0, le=1.0)
    ml_confidence_floor: float = Field(default=0.70, ge=0.0, le=1.0)
    pattern_confidence_floor: float = Field(default=0.50, ge=0.0, le=1.0)
    backend_weights: dict[str, float] = Field(
        default_factory=lambda: {"lexical": 1.0, "hf_api": 1.0, "transformer": 1.5}
    )
    fast_timeout_s: float = Field(default=5.0, gt=0.0)
    transformer_timeout_s: float = Field(default=30.0, gt=0.0)
    reasoning_limit: int = Field(default=12, ge=1)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_s: float = Field(default=1.0, ge=0.0)
    retry_max_delay_s: float = Field(default=10.0, ge=0.0)
    api_base_url: str | None = Field(default=None)
    hybrid_path: str = Field(default="/scanner/hybrid")
    deep_path: str = Field(default="/scanner/deep")
    legacy_deep_url: str | None = Field(default=None)
    api_token_env: str = Field(default="PHISH_URL_ENGINE_API_TOKEN")
    remote_timeout_s: float = Field(default=30.0, gt=0.0)
    vocab_path: str | None = Field(default=None)
    max_sequence_length: int = Field(default=128, ge=2)
    enabled_backends: list[str] = Field(default_factory=lambda: ["lexical"])
    hf_api_model: str = Field(default="ealvaradob/bert-finetuned-phishing")
    hf_api_token_env: str = Field(default="HF_API_TOKEN")
    transformer_model: str = Field(default="")
    known_safe_domains: list[str] = Field(default_factory=lambda: list(KNOWN_SAFE_DOMAINS))
    result_cache_enabled: bool = Field(default=True)
    result_cache_ttl_s: float = Field(default=300.0, ge=0.0)
    result_cache_max_entries: int = Field(default=1024, ge=1)
    default_config_path: str = Field(default=str(DEFAULT_CONFIG_PATH))

    def tier_thresholds(self) -> TierThresholds:
        return TierThresholds(high=self.confidence_high, medium=self.confidence_medium)

    def ensemble_policy(self) -> EnsemblePolicy:
        return EnsemblePolicy(
            ml_weight=self.ml_weight,
            pattern_weight=self.pattern_weight,
            ml_confidence_floor=self.ml_confidence_floor,
            pattern_confidence_floor=self.pattern_confidence_floor,
            fast_timeout_s=self.fast_timeout_s,
            transformer_timeout_s=self.transformer_timeout_s,
            reasoning_limit=self.reasoning_limit,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_s=self.retry_base_delay_s,
            max_delay_s=self.retry_max_delay_s,
        )

    def pattern_policy(self) -> PatternMatcherPolicy:
        return PatternMatcherPolicy(known_safe_domains=tuple(self.known_safe_domains))


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid yaml in {p}: {exc}") from exc
    return payload if isinstance(payload, dict) else {}


def _pick_env(name: str, fallback: Any) -> Any:
    value = os.getenv(name)
    return value if value not in (None, "") else fallback


def _parse_list(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return list(dict.fromkeys(item.strip() for item in raw.split(",") if item.strip()))
    if isinstance(raw, (list, tuple)):
        return list(dict.fromkeys(str(item).strip() for item in raw if str(item).strip()))
    return []


def _parse_int(raw: Any, fallback: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value >= 0 else fallback


def _parse_float(raw: Any, fallback: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return fallback
    return value if value >= 0 else fallback


def _parse_bool(raw: Any, fallback: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return fallback
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_str(raw: Any, fallback: str) -> str:
    value = str(raw if raw is not None else "").strip()
    return value or fallback


def _parse_optional_str(raw: Any, fallback: str | None) -> str | None:
    value = str(raw if raw is not None else "").strip()
    return value or fallback


def _parse_weights(raw: Any, fallback: dict[str, float]) -> dict[str, float]:
    """Accept a mapping or ``name=weight,name=weight``."""

    items: list[tuple[Any, Any]] = []
    if isinstance(raw, dict):
        items = list(raw.items())
    elif isinstance(raw, str):
        items = [tuple(part.split("=", 1)) for part in raw.split(",") if "=" in part]
    weights: dict[str, float] = {}
    for name, value in items:
        clean = str(name).strip()
        parsed = _parse_float(value, -1.0)
        if clean and parsed >= 0:
            weights[clean] = parsed
    return weights or dict(fallback)


_Parser = Callable[[Any, Any], Any]


def _field_parsers() -> dict[str, _Parser]:
    parsers: dict[str, _Parser] = {}
    for name, info in AppConfig.model_fields.items():
        annotation = info.annotation
        if name == "backend_weights":
            parsers[name] = _parse_weights
        elif annotation is bool:
            parsers[name] = _parse_bool
        elif annotation is int:
            parsers[name] = _parse_int
        elif annotation is float:
            parsers[name] = _parse_float
        elif get_origin(annotation) is list:
            parsers[name] = lambda raw, fallback: _parse_list(raw) or list(fallback)
        elif type(None) in get_args(annotation):
            parsers[name] = _parse_optional_str
        else:
            parsers[name] = _parse_str
    return parsers


def _resolve_default_config_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_default_path = os.getenv(f"{ENV_PREFIX}DEFAULT_CONFIG_PATH")
    if env_default_path:
        return Path(env_default_path)
    return DEFAULT_CONFIG_PATH


def load_config(
    path: str | Path | None = None,
    *,
    profile_override: str | None = None,
) -> tuple[AppConfig, dict[str, Any]]:
    """Merge defaults.yaml, the selected profile section and env overrides.

    Precedence (highest first): ``PHISH_URL_ENGINE_<FIELD>`` env vars, the
    active ``profiles.<name>`` section, top-level yaml keys, model defaults.
    Unparseable values fall back to the next source instead of failing.
    """

    default_path = _resolve_default_config_path(path)
    merged = load_yaml(default_path)
    profiles = merged.get("profiles")
    profile_map = profiles if isinstance(profiles, dict) else {}

    active_profile = str(profile_override or _pick_env(f"{ENV_PREFIX}PROFILE", merged.get("profile", "default")))
    selected_profile = profile_map.get(active_profile, {})
    selected = selected_profile if isinstance(selected_profile, dict) else {}

    defaults = AppConfig()
    payload: dict[str, Any] = {"profile": active_profile}
    for name, parse in _field_parsers().items():
        if name in {"profile", "default_config_path"}:
            continue
        fallback = getattr(defaults, name)
        file_value = parse(selected.get(name, merged.get(name)), fallback)
        payload[name] = parse(_pick_env(f"{ENV_PREFIX}{name.upper()}", None), file_value)
    payload["default_config_path"] = str(default_path)

    if payload["confidence_medium"] > payload["confidence_high"]:
        raise ConfigError("confidence_medium must not exceed confidence_high")
    try:
        cfg = AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    return cfg, merged
