import asyncio
import random

import pytest

from loanledger.app.ledger.endpoints import EndpointPool, is_usable_url
from loanledger.app.ledger.errors import (
    ConfigurationError,
    LedgerRejectionError,
    OrderingConflictError,
    RateLimitError,
    RpcTimeoutError,
    TransientNetworkError,
    classify_rpc_error,
)
from loanledger.app.ledger.retry import RetryPolicy, run_with_retry, write_policy

from loanledger.tests._fake_ledger import RecordingSleeper, make_settings


def _pool(n=3):
    return EndpointPool([f"http://node-{i}.test" for i in range(n)], network="TEST")


class _Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestEndpointPool:
    def test_placeholders_and_duplicates_are_dropped(self):
        pool = EndpointPool(
            [
                "https://sepolia.infura.io/v3/YOUR_INFURA_KEY",
                "",
                None,
                "ws://node.test",
                "https://a.test",
                "https://a.test",
                "https://<host>/rpc",
                "https://b.test",
            ],
            network="SEPOLIA",
        )
        assert [e.url for e in pool.endpoints] == ["https://a.test", "https://b.test"]
        assert [e.position for e in pool.endpoints] == [0, 1]

    def test_empty_pool_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            EndpointPool(["", "https://x.test/YOUR_KEY"], network="SEPOLIA")

    def test_rotation_is_circular_and_notifies(self):
        pool = _pool(3)
        seen = []
        pool.subscribe(lambda endpoint: seen.append(endpoint.position))
        for _ in range(4):
            assert pool.rotate(reason="test") is True
        assert seen == [1, 2, 0, 1]
        assert pool.active.position == 1
        assert pool.rotations == 4

    def test_single_endpoint_never_rotates(self):
        pool = _pool(1)
        assert pool.rotate(reason="test") is False
        assert pool.rotations == 0

    def test_endpoint_str_hides_api_keys(self):
        pool = EndpointPool(["https://sepolia.infura.io/v3/0123456789abcdef0123"], network="SEPOLIA")
        assert "0123456789abcdef0123" not in str(pool.active)

    def test_is_usable_url(self):
        assert is_usable_url("http://127.0.0.1:7545")
        assert not is_usable_url("https://rpc.test/REPLACE_ME")
        assert not is_usable_url("file:///tmp/x")


class TestClassification:
    @pytest.mark.parametrize(
        "code,message,expected",
        [
            (429, "", RateLimitError),
            (-32005, "limit exceeded", RateLimitError),
            (-32000, "Too Many Requests", RateLimitError),
            (-32000, "nonce too low", OrderingConflictError),
            (-32000, "replacement transaction underpriced", OrderingConflictError),
            (-32000, "already known", OrderingConflictError),
            (3, "execution reverted: Not admin", LedgerRejectionError),
            (3, "execution reverted: quota 429 reached", LedgerRejectionError),
            (-32000, "execution reverted: loan 429 closed", LedgerRejectionError),
            (-32000, "HTTP 429 from upstream", RateLimitError),
        ],
    )
    def test_known_categories(self, code, message, expected):
        assert isinstance(classify_rpc_error(code, message), expected)

    def test_other_errors_are_not_transient(self):
        exc = classify_rpc_error(-32602, "invalid params")
        assert not isinstance(exc, TransientNetworkError)
        assert exc.code == -32602

    def test_429_inside_a_longer_number_is_not_a_rate_limit(self):
        exc = classify_rpc_error(-32602, "invalid params: unknown block 14295")
        assert not isinstance(exc, RateLimitError)
        assert exc.code == -32602


class TestRunWithRetry:
    def test_recovers_after_k_rate_limits_with_bounded_rotation(self):
        pool = _pool(3)
        sleeper = RecordingSleeper()
        k = 2
        op = _Flaky([RateLimitError("429") for _ in range(k)])
        result = asyncio.run(
            run_with_retry(op, policy=RetryPolicy(max_attempts=3), pool=pool, label="t", sleep=sleeper)
        )
        assert result == "ok"
        assert op.calls == k + 1
        assert pool.rotations <= k
        assert sleeper.delays == [1.0, 2.0]

    def test_backoff_is_capped(self):
        policy = RetryPolicy(backoff_seconds=1.0, backoff_cap_seconds=5.0)
        rng = random.Random(0)
        assert [policy.backoff(a, rng) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_rotation_limited_to_one_pool_cycle(self):
        pool = _pool(2)
        op = _Flaky([RateLimitError("429") for _ in range(10)])
        with pytest.raises(RateLimitError):
            asyncio.run(
                run_with_retry(
                    op,
                    policy=RetryPolicy(max_attempts=6, backoff_seconds=0),
                    pool=pool,
                    label="t",
                    sleep=RecordingSleeper(),
                )
            )
        assert op.calls == 6
        assert pool.rotations == 2

    def test_timeouts_not_retried_when_disabled(self):
        op = _Flaky([RpcTimeoutError("slow")])
        with pytest.raises(RpcTimeoutError):
            asyncio.run(
                run_with_retry(
                    op,
                    policy=RetryPolicy(retry_timeouts=False),
                    pool=_pool(),
                    label="t",
                    sleep=RecordingSleeper(),
                )
            )
        assert op.calls == 1

    def test_ordering_conflict_retried_once_with_jitter(self):
        sleeper = RecordingSleeper()
        seen = []
        op = _Flaky([OrderingConflictError("nonce too low")])
        result = asyncio.run(
            run_with_retry(
                op,
                policy=RetryPolicy(ordering_retries=1),
                pool=_pool(),
                label="t",
                sleep=sleeper,
                rng=random.Random(7),
                on_error=seen.append,
            )
        )
        assert result == "ok"
        assert len(seen) == 1
        assert len(sleeper.delays) == 1 and 1.0 <= sleeper.delays[0] <= 3.0

    def test_second_ordering_conflict_surfaces(self):
        op = _Flaky([OrderingConflictError("a"), OrderingConflictError("b")])
        with pytest.raises(OrderingConflictError):
            asyncio.run(
                run_with_retry(
                    op,
                    policy=RetryPolicy(ordering_retries=1),
                    pool=_pool(),
                    label="t",
                    sleep=RecordingSleeper(),
                )
            )
        assert op.calls == 2

    def test_rejection_is_never_retried(self):
        pool = _pool()
        op = _Flaky([LedgerRejectionError("reverted")])
        with pytest.raises(LedgerRejectionError):
            asyncio.run(run_with_retry(op, policy=RetryPolicy(), pool=pool, label="t", sleep=RecordingSleeper()))
        assert op.calls == 1
        assert pool.rotations == 0

    def test_rate_limit_only_ends_the_call_on_other_transient_errors(self):
        pool = _pool()
        sleeper = RecordingSleeper()
        op = _Flaky([TransientNetworkError("upstream HTTP 503")])
        with pytest.raises(TransientNetworkError):
            asyncio.run(
                run_with_retry(op, policy=RetryPolicy(rate_limit_only=True), pool=pool, label="t", sleep=sleeper)
            )
        assert op.calls == 1
        assert pool.rotations == 0
        assert sleeper.delays == []

    def test_rate_limit_only_still_retries_rate_limits(self):
        op = _Flaky([RateLimitError("429")])
        result = asyncio.run(
            run_with_retry(
                op,
                policy=RetryPolicy(rate_limit_only=True),
                pool=_pool(),
                label="t",
                sleep=RecordingSleeper(),
            )
        )
        assert result == "ok"
        assert op.calls == 2

    def test_write_policy_retries_only_rate_limits(self):
        policy = write_policy(make_settings())
        assert policy.rate_limit_only is True
        assert policy.retry_timeouts is False
