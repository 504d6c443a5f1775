"""
Client-side polling of workflow registration status.

The server keeps no state between polls: each `GET /workflows?filename=`
is independent. The poller repeats it on a fixed interval until the run
reaches a terminal state or the wall-clock budget runs out. Cancelling the
awaiting task stops polling immediately.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

import httpx

from src.models.schemas.responses import WorkflowStatusResponse
from src.models.schemas.workflow import RegistrationState
from src.utils.logging import get_logger

logger = get_logger(__name__)

POLL_INTERVAL_SECONDS = 3.0
POLL_TIMEOUT_SECONDS = 300.0
TIMEOUT_MESSAGE = "Registration status check timed out. Please check manually."


class RegistrationTimeoutError(Exception):
    def __init__(self, file_name: str, timeout_seconds: float):
        self.file_name = file_name
        self.timeout_seconds = timeout_seconds
        super().__init__(TIMEOUT_MESSAGE)


class RegistrationPoller:
    def __init__(
        self,
        base_url: str,
        cookies: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        interval_seconds: float = POLL_INTERVAL_SECONDS,
        timeout_seconds: float = POLL_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.cookies = cookies or {}
        self.headers = headers or {}
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    async def fetch_status(self, file_name: str) -> Optional[WorkflowStatusResponse]:
        """
        One status request.

        Returns:
            The reported status, or None while the run is not listed yet (404)

        Raises:
            httpx.HTTPStatusError: For any other error response
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            cookies=self.cookies,
            headers=self.headers,
            transport=self._transport,
        ) as client:
            response = await client.get("/workflows", params={"filename": file_name})

        if response.status_code == 404:
            return None
        response.raise_for_status()
        return WorkflowStatusResponse(**response.json())

    async def wait_for_completion(
        self,
        file_name: str,
        on_update: Optional[Callable[[WorkflowStatusResponse], None]] = None,
    ) -> WorkflowStatusResponse:
        """
        Poll until the registration run succeeds or fails.

        Args:
            file_name: Uploaded workflow file name
            on_update: Called with every status received

        Returns:
            The terminal status (success or failed)

        Raises:
            RegistrationTimeoutError: If no terminal status arrives in time
        """
        deadline = self._clock() + self.timeout_seconds

        while True:
            status = await self.fetch_status(file_name)
            if status is not None:
                if on_update:
                    on_update(status)
                if RegistrationState(status.status).is_terminal:
                    logger.info(f"Registration of {file_name} finished: {status.status}")
                    return status
            else:
                logger.debug(f"Registration run for {file_name} not found yet")

            if self._clock() >= deadline:
                logger.warning(f"Gave up polling registration of {file_name} after {self.timeout_seconds}s")
                raise RegistrationTimeoutError(file_name, self.timeout_seconds)

            await self._sleep(self.interval_seconds)
