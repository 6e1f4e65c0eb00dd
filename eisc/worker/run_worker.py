"""Run ARQ worker. Usage: python -m eisc.worker.run_worker"""

import asyncio

from arq import Worker
from arq.cron import cron

from eisc.core.config import get_settings
from eisc.core.logging import configure_logging
from eisc.worker.tasks import award_monthly_bonuses, get_redis_settings, shutdown, startup


async def main():
    configure_logging(debug=get_settings().debug)
    worker = Worker(
        functions=[],
        redis_settings=get_redis_settings(),
        cron_jobs=[
            cron(award_monthly_bonuses, hour=3, minute=0, second=0),  # daily at 03:00 UTC
        ],
        on_startup=startup,
        on_shutdown=shutdown,
    )
    await worker.async_run()


if __name__ == "__main__":
    asyncio.run(main())
