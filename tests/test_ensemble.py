import pytest

from phish_url_detection_engine.domain.scan import ReputationHit
from phish_url_detection_engine.orchestrator.ensemble import ML_UNAVAILABLE_NOTE, EnsemblePolicy
from phish_url_detection_engine.tools.features.lexical import build_features


def test_whitelist_short_circuits_without_backend_calls(make_predictor, fake_backend):
    backend = fake_backend("model", probability=0.99, confidence=0.99)
    predictor = make_predictor(backend)
    hit = ReputationHit(is_whitelisted=True, source="corp-allowlist")
    prediction = predictor.predict(build_features("https://paypa1-secure-login.tk", reputation=hit))
    assert prediction.probability == 0.05
    assert prediction.confidence == 0.99
    assert prediction.reasoning == ["Reputation: WHITELISTED (source: corp-allowlist)"]
    assert backend.calls == 0


def test_blacklist_overrides_whitelist(make_predictor, fake_backend):
    backend = fake_backend("model", probability=0.01)
    predictor = make_predictor(backend)
    hit = ReputationHit(is_whitelisted=True, is_blacklisted=True, source="feed", severity="critical")
    prediction = predictor.predict(build_features("https://example.com", reputation=hit))
    assert prediction.probability == 0.95
    assert "severity: critical" in prediction.reasoning[0]
    assert backend.calls == 0


def test_pattern_only_when_no_backends(make_predictor):
    prediction = make_predictor().predict(build_features("https://paypa1-secure-login.tk/verify"))
    assert prediction.probability == 1.0
    assert prediction.confidence == 0.95
    assert prediction.reasoning[0] == ML_UNAVAILABLE_NOTE
    assert "typosquatting" in prediction.pattern_flags


def test_pattern_only_confidence_has_floor(make_predictor):
    prediction = make_predictor().predict(build_features("https://example.com/home"))
    assert prediction.confidence == 0.5


def test_all_backends_timing_out_degrades_to_patterns(make_predictor, fake_backend):
    policy = EnsemblePolicy(fast_timeout_s=0.05, transformer_timeout_s=0.05)
    slow = fake_backend("slow", delay_s=0.5)
    slower = fake_backend("slower", kind="transformer", delay_s=0.5)
    predictor = make_predictor(slow, slower, policy=policy)
    prediction = predictor.predict(build_features("https://www.google.com"))
    assert prediction.per_model == {}
    assert prediction.reasoning[0] == ML_UNAVAILABLE_NOTE
    assert "slow: timeout (deadline exceeded)" in prediction.reasoning
    assert prediction.probability == 0.0
    predictor.close()


def test_failing_backend_is_isolated(make_predictor, fake_backend):
    broken = fake_backend("broken", error=RuntimeError("model crashed"))
    healthy = fake_backend("healthy", probability=0.8, confidence=0.9)
    predictor = make_predictor(broken, healthy)
    features = build_features("https://example.com/home")
    outcomes = predictor.run_backends(predictor.tokenizer.encode(features.url), features)
    assert {item.name: item.status for item in outcomes} == {"broken": "error", "healthy": "success"}

    prediction = predictor.predict(features)
    assert set(prediction.per_model) == {"healthy"}
    assert prediction.reasoning[:3] == [
        "broken: error (RuntimeError: model crashed)",
        "healthy: 80.0% phishing risk",
        "ML ensemble: 80.0% phishing risk",
    ]


def test_blend_weights_ml_and_patterns(make_predictor, fake_backend):
    predictor = make_predictor(fake_backend("model", probability=0.1, confidence=0.99))
    prediction = predictor.predict(build_features("https://example.com/home"))
    # 0.7 * 0.1 + 0.3 * 0.0
    assert prediction.probability == pytest.approx(0.07)
    # 0.6 * (0.5 * 0.99 + 0.3 * 0.5 + 0.2 * 1.0) + 0.4 * 0.5
    assert prediction.confidence == pytest.approx(0.707)


def test_credential_stuffing_floor(make_predictor, fake_backend):
    predictor = make_predictor(fake_backend("model", probability=0.2, confidence=0.6))
    prediction = predictor.predict(build_features("http://paypal.com@evil-site.tk/login"))
    assert prediction.probability >= 0.95
    assert prediction.confidence >= 0.95


def test_reasoning_is_capped(make_predictor, fake_backend):
    policy = EnsemblePolicy(reasoning_limit=2)
    predictor = make_predictor(fake_backend("a"), fake_backend("b"), policy=policy)
    prediction = predictor.predict(build_features("http://paypa1-secure-login.tk/verify"))
    assert len(prediction.reasoning) == 2


def test_pattern_reasons_precede_backend_lines(make_predictor, fake_backend):
    predictor = make_predictor(fake_backend("model", probability=0.9, confidence=0.9))
    prediction = predictor.predict(build_features("https://metamask-airdrop.xyz/claim"))
    assert prediction.reasoning[0] == "CRYPTO pattern: metamask, claim, airdrop"
    assert prediction.reasoning.index("model: 90.0% phishing risk") < prediction.reasoning.index(
        "ML ensemble: 90.0% phishing risk"
    )


def test_hung_backend_does_not_starve_later_predictions(make_predictor, fake_backend):
    policy = EnsemblePolicy(fast_timeout_s=0.2)
    hung = fake_backend("hung", delay_s=1.0)
    fast = fake_backend("fast", probability=0.2, confidence=0.9)
    predictor = make_predictor(hung, fast, policy=policy)
    features = build_features("https://example.com/home")
    for _ in range(5):
        prediction = predictor.predict(features)
        assert set(prediction.per_model) == {"fast"}
        assert "hung: timeout (deadline exceeded)" in prediction.reasoning
    assert fast.calls == 5


def test_close_releases_backend_sessions(make_predictor):
    class _Closable:
        name = "closable"
        kind = "fast"
        closed = False

        def predict(self, encoded, features):
            raise NotImplementedError

        def close(self):
            self.closed = True

    backend = _Closable()
    make_predictor(backend).close()
    assert backend.closed is True
