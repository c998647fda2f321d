import asyncio
import logging

from app.core.database import AsyncSessionLocal
from app.schemas.notification import NotifyExistingUsersResponse
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


async def notify_existing_users() -> NotifyExistingUsersResponse:
    """Email every user without a phone number asking them to opt in to SMS"""
    async with AsyncSessionLocal() as db:
        notification_service = NotificationService()
        result = await notification_service.notify_users_without_phone(db)

        failed = [item for item in result.results if not item.success]
        logger.info(f"Phone prompt emails sent: {result.total_users - len(failed)}/{result.total_users}")
        for item in failed:
            logger.warning(f"Phone prompt email to {item.email} failed: {item.error}")
        return result


def notify_existing_users_task():
    """Synchronous wrapper for cron or a one-off run"""
    return asyncio.run(notify_existing_users())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    notify_existing_users_task()
