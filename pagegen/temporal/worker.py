from __future__ import annotations

import asyncio
import concurrent.futures

from temporalio.worker import Worker

from pagegen.config import settings
from pagegen.db import init_db
from pagegen.observability import initialize_langfuse, shutdown_langfuse
from pagegen.temporal.client import get_temporal_client
from pagegen.temporal.activities.product_job_activities import (
    generate_product_copy_activity,
    record_job_result_activity,
    scrape_product_activity,
)
from pagegen.temporal.workflows.product_jobs import GenerateProductCopyWorkflow, ScrapeProductWorkflow


async def main() -> None:
    init_db()
    initialize_langfuse()
    client = await get_temporal_client()
    try:
        with concurrent.futures.ThreadPoolExecutor(max_workers=5) as activity_executor:
            worker = Worker(
                client,
                task_queue=settings.TEMPORAL_TASK_QUEUE,
                workflows=[ScrapeProductWorkflow, GenerateProductCopyWorkflow],
                activities=[
                    scrape_product_activity,
                    generate_product_copy_activity,
                    record_job_result_activity,
                ],
                activity_executor=activity_executor,
            )
            await worker.run()
    finally:
        shutdown_langfuse()


if __name__ == "__main__":
    asyncio.run(main())
