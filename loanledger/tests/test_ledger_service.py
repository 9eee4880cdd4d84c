import asyncio
import re

from loanledger.app.ledger.errors import FailureType
from loanledger.app.ledger.hashing import hash_identifier, to_bytes32
from loanledger.app.ledger.reader import UNAVAILABLE
from loanledger.app.ledger.records import (
    ChatTurn,
    CreditScore,
    Disbursement,
    DocumentVerification,
    EmiPayment,
    LoanApplication,
)

from loanledger.tests._fake_ledger import (
    FALLBACK_URLS,
    PRIMARY_URL,
    FakeLedgerNode,
    RecordingSleeper,
    make_service,
    make_settings,
)

USER = "+91-555-0100"
TX_HASH = re.compile(r"^0x[0-9a-f]{64}$")


def _application(**overrides):
    values = dict(
        application_id="APP-1",
        user_id=USER,
        loan_amount=500000,
        interest_rate=11.75,
        approval_score=780,
        status="offered",
        customer_name="Asha",
    )
    values.update(overrides)
    return LoanApplication(**values)


def _run(service, scenario):
    async def run():
        try:
            return await scenario()
        finally:
            await service.aclose()

    return asyncio.run(run())


def test_loan_application_is_stored_hashed_and_read_back(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))

    async def scenario():
        submitted = await service.submit_loan_application(_application())
        queried = await service.query_loans(USER)
        return submitted, queried

    submitted, queried = _run(service, scenario)

    assert submitted.accepted
    assert TX_HASH.match(submitted.transaction_hash)
    assert submitted.hashes["userIdHash"] == hash_identifier(USER)
    assert submitted.hashes["loanIdHash"] == hash_identifier("APP-1")

    stored = node.loans[to_bytes32(hash_identifier(USER))][0]
    assert stored[2] == 500000 * 10**18
    assert stored[3] == 1175
    assert stored[4] == 780
    assert stored[6] == 1

    assert queried.available
    [record] = queried.records
    assert record.amount == "500000"
    assert record.interest_rate == "11.75"
    assert record.status == "offered"
    assert record.user_id_hash == hash_identifier(USER)
    assert record.as_dict()["interestRate"] == "11.75%"
    assert record.timestamp.endswith("Z")


def test_cleartext_identifiers_never_reach_the_node(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))
    _run(service, lambda: service.submit_loan_application(_application()))

    stored = node.loans[to_bytes32(hash_identifier(USER))][0]
    flattened = b"".join(v for v in stored if isinstance(v, bytes))
    assert USER.encode() not in flattened
    assert b"Asha" not in flattened


def test_every_category_round_trips(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))

    async def scenario():
        writes = [
            await service.submit_loan_application(_application()),
            await service.submit_chat_turn(
                ChatTurn(
                    session_id="S-1",
                    user_id=USER,
                    message="can you do 11%?",
                    state="negotiating",
                    negotiation_count=2,
                    final_rate="11.25",
                )
            ),
            await service.submit_document_verification(
                DocumentVerification(
                    document_id="DOC-1",
                    user_id=USER,
                    document_type="bankStatement",
                    verified=True,
                    extracted_data={"averageBalance": 42000},
                )
            ),
            await service.submit_credit_score(CreditScore(user_id=USER, score=742, pre_approved_limit=750000)),
            await service.submit_disbursement(
                Disbursement(
                    loan_id="APP-1",
                    user_id=USER,
                    amount=500000,
                    recipient_account="001122334455",
                    transaction_id="NEFT-9",
                )
            ),
            await service.submit_emi_payment(
                EmiPayment(
                    loan_id="APP-1",
                    user_id=USER,
                    emi_number=1,
                    amount="16607.50",
                    principal_paid="11711.67",
                    interest_paid="4895.83",
                    status="paid",
                )
            ),
        ]
        reads = {
            "chats": await service.query_chat_logs(USER),
            "documents": await service.query_documents(USER),
            "credits": await service.query_credit_history(USER),
            "latest": await service.latest_credit_score(USER),
            "disbursements": await service.query_disbursements(USER),
            "emis": await service.query_emis(USER),
            "master": await service.master_ledger(USER),
        }
        return writes, reads

    writes, reads = _run(service, scenario)

    assert all(w.accepted for w in writes)
    assert len({w.transaction_hash for w in writes}) == len(writes)
    assert all(r.available for r in reads.values())

    [chat] = reads["chats"].records
    assert chat.state == "negotiating"
    assert chat.negotiation_count == 2
    assert chat.final_rate == "11.25"
    assert chat.message_hash == hash_identifier("can you do 11%?")

    [document] = reads["documents"].records
    assert document.document_type == "bankStatement"
    assert document.verified is True

    [credit] = reads["credits"].records
    assert credit.score == 742
    assert credit.grade == "A"
    assert credit.limit == "750000"
    assert [c.score for c in reads["latest"].records] == [742]

    [disbursement] = reads["disbursements"].records
    assert disbursement.amount == "500000"
    assert disbursement.account_hash == hash_identifier("001122334455")

    [emi] = reads["emis"].records
    assert emi.emi_number == 1
    assert emi.amount == "16607.5"
    assert emi.status == "paid"

    assert reads["master"].records == [
        hash_identifier("APP-1"),
        hash_identifier("S-1"),
        hash_identifier("DOC-1"),
    ]


def test_latest_credit_is_empty_for_unknown_subject(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))
    result = _run(service, lambda: service.latest_credit_score("nobody"))
    assert result.available
    assert result.records == []


def test_reads_recover_from_k_rate_limits(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))
    k = 3
    node.inject("rate_limit_rpc", times=k, method="eth_call")

    result = _run(service, lambda: service.query_loans(USER))

    assert result.available
    assert result.records == []
    assert node.count("eth_call") == k + 1
    assert service.context.pool.rotations <= k


def test_always_rate_limited_reads_report_unavailable(tmp_path):
    node = FakeLedgerNode()
    sleeper = RecordingSleeper()
    service = make_service(node, make_settings(str(tmp_path)), sleeper)
    node.down_urls.update([PRIMARY_URL, *FALLBACK_URLS])
    binding = service.context.loans.binding

    async def scenario():
        raw = await service.context.reader.call(binding, "getLoans", hash_identifier(USER))
        queried = await service.query_loans(USER)
        return raw, queried

    raw, queried = _run(service, scenario)

    assert raw is UNAVAILABLE
    assert queried.available is False
    assert queried.failure is FailureType.TRANSIENT
    # one pool cycle per call, never more
    assert service.context.pool.rotations == 6
    assert all(delay <= 15.5 for delay in sleeper.delays)


def test_write_is_accepted_after_rotation_to_a_healthy_endpoint(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))
    node.down_urls.add(PRIMARY_URL)

    result = _run(service, lambda: service.submit_loan_application(_application()))

    assert result.accepted
    assert service.context.pool.active.url == FALLBACK_URLS[0]
    assert node.sent_nonces == [0]


def test_missing_contract_address_disables_only_that_facade(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path), PAYMENT_LEDGER_CONTRACT_ADDRESS=""))

    async def scenario():
        disbursed = await service.submit_disbursement(
            Disbursement(loan_id="L", user_id=USER, amount=1, recipient_account="a", transaction_id="t")
        )
        emis = await service.query_emis(USER)
        loan = await service.submit_loan_application(_application())
        return disbursed, emis, loan

    disbursed, emis, loan = _run(service, scenario)

    assert disbursed.accepted is False
    assert disbursed.failure is FailureType.NOT_AVAILABLE
    assert emis.available is False
    assert emis.failure is FailureType.NOT_AVAILABLE
    assert loan.accepted is True
    assert node.count("eth_call") == 0


def test_results_serialize_for_callers(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))

    async def scenario():
        submitted = await service.submit_loan_application(_application())
        queried = await service.query_loans(USER)
        return submitted, queried

    submitted, queried = _run(service, scenario)

    payload = submitted.as_dict()
    assert payload["accepted"] is True
    assert payload["transactionHash"] == submitted.transaction_hash
    assert payload["loanIdHash"] == hash_identifier("APP-1")

    listed = queried.as_dict()
    assert listed["available"] is True
    assert listed["records"][0]["amount"] == "500000"


def test_access_control_reads_and_admin_grant(tmp_path):
    node = FakeLedgerNode()
    service = make_service(node, make_settings(str(tmp_path)))
    access = service.context.access
    newcomer = "0x" + "55" * 20

    async def scenario():
        before = await access.is_admin(newcomer)
        granted = await access.add_admin(newcomer)
        after = await access.is_admin(newcomer)
        owner = await access.owner()
        return before, granted, after, owner

    before, granted, after, owner = _run(service, scenario)

    assert before is False
    assert granted.accepted
    assert after is True
    assert owner == node.owner


def test_admin_check_is_unknown_when_ledger_unreachable(tmp_path):
    node = FakeLedgerNode()
    node.down_urls.update([PRIMARY_URL, *FALLBACK_URLS])
    service = make_service(node, make_settings(str(tmp_path)))

    assert _run(service, lambda: service.context.access.is_admin(node.owner)) is None
