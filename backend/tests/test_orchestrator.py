"""
编排器集成测试 — 使用内存链替身驱动，不依赖真实节点。

验证项：
  - 账户注册 / 解析 / 任选
  - 开局前查询：同 ID 游戏已存在返回哨兵，不提交
  - 夜晚行动：目标被守护返回哨兵，只尝试一次
  - 阶段状态机：开局 → 夜 → 昼 → 夜
  - 两人端到端流程
  - 参考剧本完整执行 / 致命错误中止
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chain.base import LedgerError, TransactionOptions
from chain.contract import ContractInterfaceError
from game.accounts import AccountRegistry, AccountNotFound, NoAccountsAvailable
from game.errors import GAME_EXISTS, TARGET_PROTECTED
from game.orchestrator import GameOrchestrator
from game.retry import RetryExecutor
from game.scenario import RoleRoster, build_reference_scenario, run_scenario
from models.game_models import (
    Confirmed, Failed, Sentinel, Phase, Vote,
)
from fake_ledger import FakeLedger, make_contract, CONTRACT_ADDRESS

ALICE = "0x0a11ce"
BOB = "0x0b0b"


async def _no_sleep(seconds: float) -> None:
    pass


def make_orchestrator(*addresses: str) -> tuple[GameOrchestrator, FakeLedger]:
    ledger = FakeLedger()
    accounts = AccountRegistry()
    for i, address in enumerate(addresses or (ALICE, BOB)):
        accounts.register(address, f"0xkey{i}")
    orchestrator = GameOrchestrator(
        ledger,
        accounts,
        make_contract(),
        executor=RetryExecutor(backoff_ms=0, sleep=_no_sleep),
    )
    return orchestrator, ledger


# ========== 账户注册表 ==========

def test_register_then_resolve():
    registry = AccountRegistry()
    registry.register(ALICE, "0xsecret")
    identity = registry.resolve(ALICE)
    assert identity.address == ALICE
    assert identity.signing_key == "0xsecret"
    # 私钥不出现在 repr 中
    assert "0xsecret" not in repr(identity)
    print("  ✅ 注册后可解析")


def test_register_overwrites():
    registry = AccountRegistry()
    registry.register(ALICE, "0xold")
    registry.register(ALICE, "0xnew")
    assert registry.resolve(ALICE).signing_key == "0xnew"
    assert len(registry) == 1


def test_resolve_unregistered_raises():
    registry = AccountRegistry()
    with pytest.raises(AccountNotFound) as exc:
        registry.resolve(BOB)
    assert exc.value.address == BOB


def test_any_returns_first_registered():
    registry = AccountRegistry()
    with pytest.raises(NoAccountsAvailable):
        registry.any()
    registry.register(BOB, "0x2")
    registry.register(ALICE, "0x1")
    assert registry.any().address == BOB
    assert registry.addresses() == [BOB, ALICE]


# ========== 编排器 ==========

def test_constructor_requires_all_entrypoints():
    contract = make_contract()
    del contract.functions["end_voting"]
    with pytest.raises(ContractInterfaceError, match="end_voting"):
        GameOrchestrator(FakeLedger(), AccountRegistry(), contract)


def test_start_game_existing_returns_sentinel_without_submit():
    orchestrator, ledger = make_orchestrator()
    ledger.existing_games[42] = ["0x1", "0x2"]

    outcome = asyncio.run(orchestrator.start_game(42, [ALICE, BOB], ALICE))

    assert isinstance(outcome, Sentinel)
    assert outcome.reason == GAME_EXISTS
    assert ledger.submissions == []
    assert ledger.queries == [(CONTRACT_ADDRESS, "get_game_state", [42])]
    assert orchestrator.phase(42) == Phase.LOBBY
    print("  ✅ 同 ID 游戏已存在时不提交")


def test_start_game_new_submits_and_enters_night():
    orchestrator, ledger = make_orchestrator()

    outcome = asyncio.run(orchestrator.start_game(1, [ALICE, BOB], ALICE))

    assert isinstance(outcome, Confirmed)
    assert ledger.entrypoints() == ["start_game"]
    submission = ledger.submissions[0]
    assert submission["sender"] == ALICE
    assert submission["contract_address"] == CONTRACT_ADDRESS
    assert submission["calldata"] == [1, 2, ALICE, BOB]
    assert submission["version"] == "0x3"
    assert ledger.confirmations == [outcome.handle]
    assert orchestrator.phase(1) == Phase.NIGHT
    assert orchestrator.progress(1).round == 1


def test_start_game_rejected_by_contract_is_sentinel():
    orchestrator, ledger = make_orchestrator()
    ledger.fail_submit("start_game", LedgerError("Transaction execution error: 'Game started'", code=41))

    outcome = asyncio.run(orchestrator.start_game(3, [ALICE, BOB], ALICE))

    assert isinstance(outcome, Sentinel)
    assert outcome.reason == GAME_EXISTS
    assert len(ledger.submissions) == 1


def test_night_action_target_protected_single_attempt():
    orchestrator, ledger = make_orchestrator()
    ledger.fail_submit(
        "night_action",
        LedgerError("Transaction execution error: Failure reason: 'Target protected'", code=41),
        LedgerError("Target protected"),
    )

    outcome = asyncio.run(orchestrator.night_action(7, BOB, ALICE))

    assert isinstance(outcome, Sentinel)
    assert outcome.reason == TARGET_PROTECTED
    assert outcome.attempts == 1
    assert len(ledger.submissions) == 1
    print("  ✅ 目标被守护：哨兵结果，只尝试一次")


def test_night_action_protected_during_confirmation():
    """回滚原因在等待确认阶段才出现，同样识别为哨兵"""
    orchestrator, ledger = make_orchestrator()
    ledger.fail_confirmation(LedgerError("Target protected"))

    outcome = asyncio.run(orchestrator.night_action(7, BOB, ALICE))

    assert isinstance(outcome, Sentinel)
    assert outcome.reason == TARGET_PROTECTED


def test_night_action_never_retries_transient():
    orchestrator, ledger = make_orchestrator()
    ledger.fail_submit("night_action", LedgerError("timed out"), LedgerError("timed out"))

    outcome = asyncio.run(orchestrator.night_action(7, BOB, ALICE))

    assert isinstance(outcome, Failed)
    assert len(ledger.submissions) == 1


def test_vote_retries_transient_errors():
    orchestrator, ledger = make_orchestrator()
    ledger.fail_submit("vote", LedgerError("Invalid transaction nonce", code=52), LedgerError("Node unavailable"))

    outcome = asyncio.run(orchestrator.vote(1, BOB, ALICE))

    assert isinstance(outcome, Confirmed)
    assert outcome.attempts == 3
    assert ledger.entrypoints() == ["vote"] * 3


def test_retry_budget_overridable_per_call():
    orchestrator, ledger = make_orchestrator()
    ledger.fail_submit("vote", *[LedgerError("timed out")] * 10)

    outcome = asyncio.run(orchestrator.execute(Vote(game_id=1, target=BOB, actor=ALICE), max_attempts=3))

    assert isinstance(outcome, Failed)
    assert outcome.attempts == 3
    assert len(ledger.submissions) == 3


def test_unknown_actor_propagates_without_submit():
    orchestrator, ledger = make_orchestrator()

    with pytest.raises(AccountNotFound):
        asyncio.run(orchestrator.vote(1, BOB, "0xdead"))

    assert ledger.submissions == []


def test_phase_transition_without_accounts_raises():
    ledger = FakeLedger()
    orchestrator = GameOrchestrator(ledger, AccountRegistry(), make_contract())

    with pytest.raises(NoAccountsAvailable):
        asyncio.run(orchestrator.end_voting(1))


def test_phase_transition_defaults_to_first_account():
    orchestrator, ledger = make_orchestrator(BOB, ALICE)

    asyncio.run(orchestrator.pass_night(1))
    asyncio.run(orchestrator.pass_day(1, actor=ALICE))

    assert [s["sender"] for s in ledger.submissions] == [BOB, ALICE]


def test_fatal_error_returned_as_failed():
    orchestrator, ledger = make_orchestrator()
    error = LedgerError("Caller is not the hunter", code=40)
    ledger.fail_submit("hunter_action", error)

    outcome = asyncio.run(orchestrator.hunter_action(1, BOB, ALICE))

    assert isinstance(outcome, Failed)
    assert outcome.error is error
    assert len(ledger.submissions) == 1


def test_failed_transition_keeps_phase():
    orchestrator, ledger = make_orchestrator()
    asyncio.run(orchestrator.start_game(1, [ALICE, BOB], ALICE))
    ledger.fail_submit("pass_night", LedgerError("Not night phase", code=40))

    outcome = asyncio.run(orchestrator.pass_night(1))

    assert isinstance(outcome, Failed)
    assert orchestrator.phase(1) == Phase.NIGHT


def test_action_calldata():
    orchestrator, ledger = make_orchestrator()

    async def run():
        await orchestrator.cupid_action(5, ALICE, BOB, ALICE)
        await orchestrator.witch_action(5, BOB, True, False, ALICE)
        await orchestrator.hunter_action(5, ALICE, BOB)
        await orchestrator.end_voting(5)

    asyncio.run(run())

    assert [(s["entrypoint"], s["calldata"]) for s in ledger.submissions] == [
        ("cupid_action", [5, ALICE, BOB]),
        ("witch_action", [5, BOB, 1, 0]),
        ("hunter_action", [5, ALICE]),
        ("end_voting", [5]),
    ]


def test_custom_transaction_version():
    ledger = FakeLedger()
    accounts = AccountRegistry()
    accounts.register(ALICE, "0x1")
    orchestrator = GameOrchestrator(ledger, accounts, make_contract(), options=TransactionOptions(version="0x1"))

    asyncio.run(orchestrator.vote(1, BOB, ALICE))

    assert ledger.submissions[0]["version"] == "0x1"


# ========== 阶段状态机 ==========

def test_phase_transitions():
    orchestrator, _ = make_orchestrator()

    async def run():
        assert orchestrator.phase(9) == Phase.LOBBY
        await orchestrator.start_game(9, [ALICE, BOB], ALICE)
        assert orchestrator.phase(9) == Phase.NIGHT
        await orchestrator.night_action(9, BOB, ALICE)
        assert orchestrator.phase(9) == Phase.NIGHT
        await orchestrator.pass_night(9)
        assert orchestrator.phase(9) == Phase.DAY
        await orchestrator.vote(9, BOB, ALICE)
        await orchestrator.vote(9, ALICE, BOB)
        assert orchestrator.phase(9) == Phase.DAY
        await orchestrator.end_voting(9)
        assert orchestrator.phase(9) == Phase.DAY
        assert orchestrator.progress(9).voting_closed
        await orchestrator.pass_day(9)
        assert orchestrator.phase(9) == Phase.NIGHT
        assert orchestrator.progress(9).round == 2
        assert not orchestrator.progress(9).voting_closed

    asyncio.run(run())
    print("  ✅ 阶段状态机")


def test_games_tracked_independently():
    orchestrator, _ = make_orchestrator()

    async def run():
        await orchestrator.start_game(1, [ALICE, BOB], ALICE)
        await orchestrator.pass_night(1)
        await orchestrator.start_game(2, [ALICE, BOB], BOB)

    asyncio.run(run())

    assert orchestrator.phase(1) == Phase.DAY
    assert orchestrator.phase(2) == Phase.NIGHT


def test_mark_ended():
    orchestrator, _ = make_orchestrator()
    orchestrator.mark_ended(4)
    assert orchestrator.phase(4) == Phase.ENDED
    assert orchestrator.progress(4).to_dict()["phase"] == "ENDED"


def test_lookup_does_not_register_unknown_games():
    orchestrator, _ = make_orchestrator()

    assert orchestrator.peek(404).phase == Phase.LOBBY
    assert orchestrator.phase(405) == Phase.LOBBY
    assert orchestrator._games == {}

    asyncio.run(orchestrator.start_game(1, [ALICE, BOB], ALICE))
    assert orchestrator.peek(1) is orchestrator.progress(1)
    assert list(orchestrator._games) == [1]


def test_two_player_end_to_end():
    orchestrator, ledger = make_orchestrator(ALICE, BOB)

    async def run():
        outcome = await orchestrator.start_game(1, [ALICE, BOB], ALICE)
        assert isinstance(outcome, Confirmed)
        assert orchestrator.phase(1) == Phase.NIGHT

        assert isinstance(await orchestrator.pass_night(1), Confirmed)
        assert orchestrator.phase(1) == Phase.DAY

        assert isinstance(await orchestrator.vote(1, BOB, ALICE), Confirmed)
        assert isinstance(await orchestrator.end_voting(1), Confirmed)

        assert isinstance(await orchestrator.pass_day(1), Confirmed)
        assert orchestrator.phase(1) == Phase.NIGHT

    asyncio.run(run())
    assert ledger.entrypoints() == ["start_game", "pass_night", "vote", "end_voting", "pass_day"]
    print("  ✅ 两人端到端流程")


# ========== 参考剧本 ==========

PLAYERS = [f"0x{i + 1:02x}" for i in range(8)]


def test_roster_requires_eight_players():
    with pytest.raises(ValueError):
        RoleRoster.from_addresses(PLAYERS[:7])
    roster = RoleRoster.from_addresses(PLAYERS)
    assert roster.werewolf == PLAYERS[0]
    assert roster.villager2 == PLAYERS[7]
    assert roster.roles()[PLAYERS[5]].value == "cupid"


def test_reference_scenario_completes():
    orchestrator, ledger = make_orchestrator(*PLAYERS)
    roster = RoleRoster.from_addresses(PLAYERS)
    # 第一次夜晚行动被合约以目标受保护拒绝
    ledger.fail_submit("night_action", LedgerError("Target protected"))
    sleeps: list[float] = []

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    steps = build_reference_scenario(77, roster, short_delay_ms=10, phase_delay_ms=20)
    report = asyncio.run(run_scenario(orchestrator, steps, sleep=record_sleep))

    assert report.completed
    assert len(report.outcomes) == len(steps)
    assert isinstance(report.outcomes[2][1], Sentinel)
    assert orchestrator.phase(77) == Phase.DAY
    assert orchestrator.progress(77).round == 4
    assert ledger.entrypoints().count("pass_night") == 4
    assert ledger.entrypoints().count("vote") == 11
    assert sleeps[0] == 0.01
    print("  ✅ 参考剧本完整执行")


def test_scenario_aborts_on_failure():
    orchestrator, ledger = make_orchestrator(*PLAYERS)
    roster = RoleRoster.from_addresses(PLAYERS)
    ledger.fail_submit("cupid_action", LedgerError("Not cupid", code=40))

    steps = build_reference_scenario(78, roster, short_delay_ms=0, phase_delay_ms=0)
    report = asyncio.run(run_scenario(orchestrator, steps, sleep=_no_sleep))

    assert report.aborted
    assert str(report.error) == "Not cupid"
    assert len(report.outcomes) == 2
    assert ledger.entrypoints() == ["start_game", "cupid_action"]


def test_scenario_aborts_on_missing_account():
    orchestrator, ledger = make_orchestrator(*PLAYERS[:6])
    roster = RoleRoster.from_addresses(PLAYERS)

    steps = build_reference_scenario(79, roster, short_delay_ms=0, phase_delay_ms=0)
    report = asyncio.run(run_scenario(orchestrator, steps, sleep=_no_sleep))

    # 第二天村民1投票时才需要其账户
    assert report.aborted
    assert isinstance(report.error, AccountNotFound)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
