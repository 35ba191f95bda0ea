"""Repository for the IRC notification outbox table."""


class NotificationRepository:
    """Writes notification rows picked up by the IRC relay bot."""

    def __init__(self, pool):
        self._pool = pool

    async def insert(self, notification_type: int, text: str) -> None:
        query = "INSERT INTO notification (type, text) VALUES ($1, $2)"
        async with self._pool.acquire() as conn:
            await conn.execute(query, notification_type, text)
