import asyncio
import logging

import pytest

from loanledger.app.config.settings import Settings, settings_public_summary, validate_for_env
from loanledger.app.ledger.context import PROBE_ATTEMPTS, LedgerContext
from loanledger.app.ledger.errors import ConfigurationError
from loanledger.app.ledger.service import LedgerService
from loanledger.app.observability import configure_logging

from loanledger.tests._fake_ledger import (
    FALLBACK_URLS,
    PRIMARY_URL,
    TEST_PRIVATE_KEY,
    FakeLedgerNode,
    RecordingSleeper,
    make_service,
    make_settings,
)


class TestSettings:
    def test_fallbacks_accept_csv_and_json(self):
        csv = make_settings(LEDGER_RPC_FALLBACK_URLS=" http://a.test , ,http://b.test")
        assert csv.rpc_fallback_urls == ["http://a.test", "http://b.test"]
        listed = make_settings(LEDGER_RPC_FALLBACK_URLS='["http://c.test", ""]')
        assert listed.rpc_fallback_urls == ["http://c.test"]

    def test_fallbacks_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_RPC_FALLBACK_URLS", "http://env-a.test,http://env-b.test")
        monkeypatch.setenv("BLOCKCHAIN_NETWORK", "local")
        settings = Settings(_env_file=None)
        assert settings.rpc_fallback_urls == ["http://env-a.test", "http://env-b.test"]
        assert settings.blockchain_network == "LOCAL"

    def test_attempts_and_delays_are_clamped(self):
        settings = make_settings(
            LEDGER_SUBMIT_MAX_ATTEMPTS=0,
            LEDGER_READ_MAX_ATTEMPTS=-3,
            LEDGER_READ_BACKOFF_SECONDS=-1,
            AUDIT_READ_DELAY_SECONDS=-0.5,
        )
        assert settings.submit_max_attempts == 1
        assert settings.read_max_attempts == 1
        assert settings.read_backoff_seconds == 0.0
        assert settings.audit_read_delay_seconds == 0.0

    def test_network_profiles_and_primary_url(self):
        sepolia = make_settings(BLOCKCHAIN_NETWORK="sepolia", SEPOLIA_RPC_URL="https://sepolia.example.test")
        assert sepolia.network_profile.chain_id == 11155111
        assert sepolia.primary_rpc_url == "https://sepolia.example.test"

        local = make_settings(LOCAL_RPC_URL=None)
        assert local.primary_rpc_url == "http://127.0.0.1:7545"

        unknown = make_settings(BLOCKCHAIN_NETWORK="nowhere")
        assert unknown.network_profile.name == "SEPOLIA"

    def test_validate_for_env_lists_issues(self):
        report = validate_for_env(
            make_settings(
                APP_ENV="prod",
                BLOCKCHAIN_PRIVATE_KEY="",
                PINATA_JWT="",
                CREDIT_REGISTRY_CONTRACT_ADDRESS="",
            )
        )
        issues = report["issues"]
        assert any("BLOCKCHAIN_PRIVATE_KEY" in i for i in issues)
        assert any("CreditRegistry" in i for i in issues)
        assert any("LOCAL in prod" in i for i in issues)
        assert any("PINATA_JWT" in i for i in issues)

    def test_complete_settings_have_no_issues(self):
        assert validate_for_env(make_settings())["issues"] == []

    def test_public_summary_hides_secrets(self):
        summary = settings_public_summary(make_settings())
        text = repr(summary)
        assert TEST_PRIVATE_KEY not in text
        assert TEST_PRIVATE_KEY[2:] not in text
        assert "test-jwt" not in text
        assert summary["signer_configured"] is True
        assert summary["pinata_configured"] is True


class TestContextConstruction:
    def test_malformed_key_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError) as excinfo:
            LedgerContext.from_settings(make_settings(BLOCKCHAIN_PRIVATE_KEY="0x1234"))
        assert "0x1234" not in str(excinfo.value)

    def test_malformed_address_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            LedgerContext.from_settings(make_settings(LOAN_CORE_CONTRACT_ADDRESS="0xnot-an-address"))

    def test_placeholder_only_endpoints_are_rejected(self):
        with pytest.raises(ConfigurationError):
            LedgerContext.from_settings(
                make_settings(LOCAL_RPC_URL="http://YOUR_NODE", LEDGER_RPC_FALLBACK_URLS="")
            )

    def test_pool_orders_primary_then_fallbacks(self):
        node = FakeLedgerNode()
        context = make_service(node, make_settings()).context
        assert [e.url for e in context.pool.endpoints] == [PRIMARY_URL, *FALLBACK_URLS]
        assert context.can_write
        assert node.requests == []

    def test_missing_key_disables_writes_only(self):
        node = FakeLedgerNode()
        context = make_service(node, make_settings(BLOCKCHAIN_PRIVATE_KEY=None)).context
        assert context.can_write is False
        assert context.loans.can_write is False
        assert context.loans.can_read is True


class TestInitialize:
    def test_connects_and_checks_admin(self):
        node = FakeLedgerNode()
        service = make_service(node, make_settings())

        async def run():
            try:
                return await service.initialize()
            finally:
                await service.aclose()

        assert asyncio.run(run()) is True
        assert service.context.connected is True
        assert node.rpc_methods[:2] == ["eth_blockNumber", "eth_chainId"]
        assert node.count("eth_call") == 1

    def test_connect_rotates_past_a_dead_endpoint(self):
        node = FakeLedgerNode()
        node.down_urls.add(PRIMARY_URL)
        sleeper = RecordingSleeper()
        service = make_service(node, make_settings(), sleeper)

        async def run():
            try:
                return await service.initialize()
            finally:
                await service.aclose()

        assert asyncio.run(run()) is True
        assert service.context.pool.active.url == FALLBACK_URLS[0]
        assert sleeper.delays[0] == 1.0

    def test_unreachable_ledger_is_reported_not_raised(self):
        node = FakeLedgerNode()
        node.down_urls.update([PRIMARY_URL, *FALLBACK_URLS])
        sleeper = RecordingSleeper()
        service = make_service(node, make_settings(), sleeper)

        async def run():
            try:
                return await service.initialize()
            finally:
                await service.aclose()

        assert asyncio.run(run()) is False
        assert service.context.connected is False
        assert node.count("eth_blockNumber") == PROBE_ATTEMPTS
        assert sleeper.delays == [1.0] * (PROBE_ATTEMPTS - 1)

    def test_non_admin_signer_only_warns(self, caplog):
        node = FakeLedgerNode(chain_id=5)
        node.admins.clear()
        service = make_service(node, make_settings())

        async def run():
            try:
                return await service.initialize()
            finally:
                await service.aclose()

        with caplog.at_level(logging.WARNING, logger="loanledger.app.ledger.context"):
            assert asyncio.run(run()) is True
        messages = [r.getMessage() for r in caplog.records]
        assert any("not an admin" in m for m in messages)
        assert any("chain id" in m for m in messages)


def test_service_from_settings_applies_log_level():
    package_logger = logging.getLogger("loanledger")
    previous = package_logger.level
    node = FakeLedgerNode()
    try:
        service = LedgerService.from_settings(make_settings(LOG_LEVEL="warning"), client=node.client())
        assert package_logger.level == logging.WARNING
        assert service.context.can_write
        assert configure_logging("chatty") == logging.INFO
    finally:
        package_logger.setLevel(previous)
