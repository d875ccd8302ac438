# /riotbot/services/matrix_service.py

import httpx
import itertools
import logging
import time
import tenacity
from typing import Optional
from urllib.parse import quote

from riotbot.models.flow import StepType

logger = logging.getLogger(__name__)

MSGTYPES = {
    StepType.TEXT: "m.text",
    StepType.NOTICE: "m.notice",
    StepType.IMAGE: "m.image",
}


class MatrixSendError(Exception):
    """Raised when a room message could not be delivered to the homeserver."""

    def __init__(self, room_id: str, message: str, status_code: Optional[int] = None):
        self.room_id = room_id
        self.status_code = status_code
        super().__init__(f"Failed to send to {room_id}: {message}")


class MatrixService:
    def __init__(
        self,
        homeserver_url: str,
        access_token: Optional[str],
        user_id: Optional[str] = None,
        timeout: float = 15.0,
        max_attempts: int = 3,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.homeserver_url = homeserver_url.rstrip("/")
        self.access_token = access_token
        self.user_id = user_id
        self.max_attempts = max_attempts
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._txn_counter = itertools.count()

    async def resilient_api_call(self, func, *args, **kwargs):
        """Retries transport-level failures; HTTP error statuses are returned to the caller."""
        async for attempt in tenacity.AsyncRetrying(
            retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
            stop=tenacity.stop_after_attempt(self.max_attempts),
            wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await func(*args, **kwargs)

    @staticmethod
    def build_message_content(kind: StepType, body: str, url: Optional[str] = None) -> dict:
        content = {"msgtype": MSGTYPES.get(kind, "m.text"), "body": body}
        if kind == StepType.IMAGE and url is not None:
            content["url"] = url
        return content

    def _next_txn_id(self) -> str:
        return f"riotbot{int(time.time() * 1000)}.{next(self._txn_counter)}"

    async def send_message(self, room_id: str, kind: StepType, body: str, url: Optional[str] = None) -> Optional[str]:
        """
        Sends an m.room.message event and returns its event ID.
        Raises MatrixSendError if the homeserver rejects it or cannot be reached.
        """
        content = self.build_message_content(kind, body, url)
        endpoint = (
            f"{self.homeserver_url}/_matrix/client/r0/rooms/{quote(room_id, safe='')}"
            f"/send/m.room.message/{self._next_txn_id()}"
        )
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}

        try:
            response = await self.resilient_api_call(self.http_client.put, endpoint, json=content, headers=headers)
        except httpx.HTTPError as e:
            raise MatrixSendError(room_id, f"transport error: {e}") from e

        if response.status_code == 200:
            event_id = response.json().get("event_id")
            logger.info(f"Matrix {content['msgtype']} sent to {room_id}, event_id: {event_id}")
            return event_id

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        errcode = error_data.get("errcode", "M_UNKNOWN")
        error_message = error_data.get("error", response.text)
        if response.status_code in (401, 403):
            logger.error(f"matrix_auth_failed for {self.user_id or 'bot user'}: {errcode}")
        raise MatrixSendError(room_id, f"{response.status_code} {errcode} - {error_message}", response.status_code)

    async def aclose(self):
        await self.http_client.aclose()
