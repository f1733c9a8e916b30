"""参考剧本执行脚本：从环境变量读取 8 个玩家账户，在链上跑完一局"""

import asyncio
import logging
import os
import random
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import get_settings
from ledger import build_accounts, build_orchestrator
from game.scenario import RoleRoster, build_reference_scenario, run_scenario


async def main() -> bool:
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    accounts = build_accounts(settings)
    orchestrator = build_orchestrator(settings, accounts=accounts)
    roster = RoleRoster.from_addresses(accounts.addresses())
    for address, role in roster.roles().items():
        print(f"  {role.value:<10} {address}")

    game_id = random.randint(0, 9999)
    print(f"🐺 开始链上对局，game_id={game_id}，合约 {settings.contract_address}")

    steps = build_reference_scenario(
        game_id, roster,
        short_delay_ms=settings.short_delay_ms,
        phase_delay_ms=settings.phase_delay_ms,
    )
    report = await run_scenario(orchestrator, steps)

    if report.completed:
        print(f"🎉 对局完成，共 {len(report.outcomes)} 个动作，最终阶段 {orchestrator.phase(game_id).value}")
    else:
        print(f"❌ 对局中止: {report.error}")
    return report.completed


if __name__ == "__main__":
    success = asyncio.run(main())
    sys.exit(0 if success else 1)
