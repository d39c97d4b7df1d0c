"""Build and wire the scan service from configuration."""

from __future__ import annotations

from pathlib import Path

from phish_url_detection_engine.backends.registry import build_default_registry
from phish_url_detection_engine.config.settings import AppConfig, load_config
from phish_url_detection_engine.infra.cache import DictCache
from phish_url_detection_engine.infra.reputation import InMemoryReputationList, ReputationLookup
from phish_url_detection_engine.orchestrator.ensemble import EnsemblePredictor
from phish_url_detection_engine.orchestrator.fusion import EnsembleWeights
from phish_url_detection_engine.orchestrator.pipeline import ScanService
from phish_url_detection_engine.orchestrator.policy import ConfidenceRouter
from phish_url_detection_engine.providers.scanner_api import RemoteScanner, ScannerApiClient
from phish_url_detection_engine.tools.intel.pattern_matcher import PatternMatcher
from phish_url_detection_engine.tools.text.tokenizer import WordPieceTokenizer


def build_service(
    config: AppConfig,
    *,
    reputation: ReputationLookup | None = None,
    remote: RemoteScanner | None = None,
) -> ScanService:
    registry = build_default_registry(config)
    pattern_matcher = PatternMatcher(config.pattern_policy())
    predictor = EnsemblePredictor(
        registry,
        tokenizer=WordPieceTokenizer(config.vocab_path, max_length=config.max_sequence_length),
        pattern_matcher=pattern_matcher,
        policy=config.ensemble_policy(),
        weights=EnsembleWeights(weights=dict(config.backend_weights)),
    )
    if remote is None:
        remote = ScannerApiClient(
            config.api_base_url,
            hybrid_path=config.hybrid_path,
            deep_path=config.deep_path,
            legacy_deep_url=config.legacy_deep_url,
            api_token_env=config.api_token_env,
            timeout_s=config.remote_timeout_s,
        )
    cache = (
        DictCache(ttl_s=config.result_cache_ttl_s, max_entries=config.result_cache_max_entries)
        if config.result_cache_enabled
        else None
    )
    return ScanService(
        predictor,
        remote=remote,
        reputation=reputation if reputation is not None else InMemoryReputationList(),
        router=ConfidenceRouter(config.tier_thresholds()),
        retry_policy=config.retry_policy(),
        pattern_matcher=pattern_matcher,
        cache=cache,
    )


def create_service(
    *,
    config_path: str | Path | None = None,
    profile_override: str | None = None,
    reputation: ReputationLookup | None = None,
    remote: RemoteScanner | None = None,
) -> tuple[ScanService, dict[str, object]]:
    cfg, yaml_cfg = load_config(config_path, profile_override=profile_override)
    service = build_service(cfg, reputation=reputation, remote=remote)
    profiles = yaml_cfg.get("profiles")
    profile_map = profiles if isinstance(profiles, dict) else {}
    runtime: dict[str, object] = {
        "profile": cfg.profile,
        "profile_choices": [str(item) for item in profile_map if str(item).strip()],
        "backends": service.predictor.registry.export(),
        "remote_configured": bool(cfg.api_base_url or cfg.legacy_deep_url),
        "cache_enabled": cfg.result_cache_enabled,
        "log_level": cfg.log_level,
        "config_path": cfg.default_config_path,
    }
    return service, runtime
