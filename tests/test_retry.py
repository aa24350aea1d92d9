from __future__ import annotations

import logging

import pytest

from study_ingest_core.errors import CompletionError
from study_ingest_core.retry import (
    DEFAULT_RETRY,
    LLM_RETRY,
    Retrier,
    RetryConfig,
    matches_signature,
    retry_with_backoff,
    should_retry,
)


class _Flaky:
    def __init__(self, errors: list[BaseException], result: str = "ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_delay_is_exponential_and_capped() -> None:
    cfg = RetryConfig(initial_delay_s=1.0, max_delay_s=5.0, multiplier=2.0)
    assert [cfg.delay_for(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"initial_delay_s": -1}, {"max_delay_s": -1}, {"multiplier": 0.5}],
)
def test_config_rejects_invalid_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RetryConfig(**kwargs)


def test_signatures_are_lowercased() -> None:
    assert RetryConfig(retryable_signatures=("Rate_Limit", "")).retryable_signatures == ("rate_limit",)


def test_retries_then_succeeds() -> None:
    sleeps: list[float] = []
    op = _Flaky([CompletionError("busy", status=503), CompletionError("busy", status=503)])
    cfg = RetryConfig(max_attempts=3, initial_delay_s=2.0, max_delay_s=30.0, multiplier=2.0)

    assert Retrier(config=cfg, sleep=sleeps.append).call(op) == "ok"
    assert op.calls == 3
    assert sleeps == [2.0, 4.0]


def test_gives_up_after_max_attempts_with_original_error() -> None:
    sleeps: list[float] = []
    errors = [CompletionError(f"busy {i}", status=503) for i in range(3)]
    op = _Flaky(errors)

    with pytest.raises(CompletionError) as exc_info:
        retry_with_backoff(op, config=RetryConfig(max_attempts=3), sleep=sleeps.append)

    assert op.calls == 3
    assert str(exc_info.value) == "busy 2"
    assert sleeps == [1.0, 2.0]


def test_non_retryable_error_is_attempted_once() -> None:
    sleeps: list[float] = []
    err = CompletionError("bad key", status=401)
    op = _Flaky([err])

    with pytest.raises(CompletionError) as exc_info:
        Retrier(config=RetryConfig(max_attempts=5), sleep=sleeps.append).call(op)

    assert exc_info.value is err
    assert op.calls == 1
    assert sleeps == []


def test_signature_match_makes_unknown_error_retryable() -> None:
    sleeps: list[float] = []
    op = _Flaky([RuntimeError("upstream said FLAKY_BACKEND")])
    cfg = RetryConfig(max_attempts=2, retryable_signatures=("flaky_backend",))

    assert Retrier(config=cfg, sleep=sleeps.append).call(op) == "ok"
    assert op.calls == 2
    assert len(sleeps) == 1


def test_should_retry_uses_classifier_or_signatures() -> None:
    assert should_retry(TimeoutError(), RetryConfig()) is True
    assert should_retry(ValueError("odd"), RetryConfig()) is False
    assert should_retry(ValueError("odd"), RetryConfig(retryable_signatures=("odd",))) is True


def test_matches_signature_on_status() -> None:
    err = CompletionError("weird", status=504)
    assert matches_signature(err, LLM_RETRY.retryable_signatures)
    assert not matches_signature(ValueError("fine"), DEFAULT_RETRY.retryable_signatures)


def test_first_failure_is_logged_even_when_retry_succeeds(caplog: pytest.LogCaptureFixture) -> None:
    op = _Flaky([CompletionError("busy", status=503)])
    with caplog.at_level(logging.ERROR, logger="study_ingest_core.errors"):
        Retrier(config=RetryConfig(max_attempts=3), sleep=lambda _: None).call(
            op, context={"document_id": "doc-1"}
        )

    records = [r for r in caplog.records if hasattr(r, "structured_error")]
    assert len(records) == 1
    fields = records[0].structured_error
    assert fields["error_kind"] == "server_error"
    assert fields["document_id"] == "doc-1"
    assert fields["attempt"] == 1


def test_final_failure_is_logged_with_attempt_annotation(caplog: pytest.LogCaptureFixture) -> None:
    op = _Flaky([CompletionError("busy", status=503)] * 2)
    with caplog.at_level(logging.ERROR, logger="study_ingest_core.errors"):
        with pytest.raises(CompletionError):
            Retrier(config=RetryConfig(max_attempts=2), sleep=lambda _: None).call(op)

    records = [r for r in caplog.records if hasattr(r, "structured_error")]
    finals = [r for r in records if r.structured_error.get("final_attempt")]
    assert len(finals) == 1
    assert finals[0].structured_error["attempt"] == 2
    assert finals[0].structured_error["max_attempts"] == 2


def test_numeric_signatures_only_match_the_status() -> None:
    signatures = ("500", "timeout")
    assert not matches_signature(ValueError("key ends in 5003"), signatures)
    assert matches_signature(CompletionError("boom", status=500), signatures)
    assert matches_signature(ValueError("gateway timeout"), signatures)


@pytest.mark.parametrize(
    "error",
    [
        CompletionError("Incorrect API key provided: sk-****5003", status=401),
        CompletionError("quota exceeded, rate_limit tier", status=402),
    ],
)
def test_auth_and_quota_errors_ignore_signatures(error: CompletionError) -> None:
    cfg = RetryConfig(max_attempts=3, retryable_signatures=("500", "rate_limit", "sk-"))
    op = _Flaky([error])

    assert should_retry(error, cfg) is False
    with pytest.raises(CompletionError):
        Retrier(config=cfg, sleep=lambda _: None).call(op)
    assert op.calls == 1
