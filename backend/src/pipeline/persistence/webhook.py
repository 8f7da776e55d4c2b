"""Webhook report sink: POSTs each report as JSON."""
import logging
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from ... import settings
from ...recovery import RetryOptions, create_api_error, create_network_error, with_retry
from ..types import PipelineReport
from .base import BaseReportSink

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class WebhookReportSink(BaseReportSink):
    """
    Sends the report to an HTTP endpoint.

    Connection failures and 5xx/429 responses are retried with backoff;
    any other 4xx response fails immediately.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        retry_options: Optional[RetryOptions] = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.url = url or settings.REPORT_WEBHOOK_URL
        if not self.url:
            raise ValueError("WebhookReportSink requires a url")
        self.retry_options = retry_options or RetryOptions()
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _post(self, payload: dict) -> None:
        session = await self._get_session()
        try:
            async with session.post(self.url, json=payload) as response:
                response.raise_for_status()
        except aiohttp.ClientResponseError as e:
            raise create_api_error(
                f"Webhook responded with {e.status}: {e.message}",
                status_code=e.status,
                metadata={"url": self.url},
            ) from e
        except (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError) as e:
            raise create_network_error(
                f"Webhook unreachable: {e}",
                metadata={"url": self.url},
            ) from e

    async def save(self, report: PipelineReport) -> None:
        payload = report.to_dict()
        await with_retry(lambda: self._post(payload), self.retry_options, sleep=self._sleep)
        logger.info(f"Pipeline report {report.run_id} sent to webhook")

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
