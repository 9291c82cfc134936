import logging
from typing import Any, Callable, Dict, Optional

import httpx

from config import settings
from consumer import EstimationState, StreamConsumer
from exceptions import ClientRequestError
from payload import SalaryEstimate

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return fallback


class JobAnalysisClient:
    """Talks to the salary API the way the browser client does."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.SALARY_API_BASE_URL).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout or settings.CLIENT_TIMEOUT))

    async def __aenter__(self) -> "JobAnalysisClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _post_json(self, path: str, body: Dict[str, Any], fallback_error: str) -> Dict[str, Any]:
        try:
            resp = await self.client.post(f"{self.base_url}{path}", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Request to {path} failed: {e}")
            raise ClientRequestError(str(e) or type(e).__name__) from e
        if not resp.is_success:
            raise ClientRequestError(_error_message(resp, fallback_error), resp.status_code)
        try:
            result = resp.json()
        except ValueError as e:
            raise ClientRequestError(f"{fallback_error}: invalid response body", resp.status_code) from e
        if not isinstance(result, dict):
            raise ClientRequestError(f"{fallback_error}: invalid response body", resp.status_code)
        return result

    async def extract_job_data(self, url: str) -> Dict[str, Any]:
        result = await self._post_json("/extract-job-data", {"url": url}, "Failed to extract job data")
        return result.get("data") or {}

    async def estimate_salary(self, job_data: Dict[str, Any]) -> SalaryEstimate:
        result = await self._post_json("/estimate-salary", {"jobData": job_data}, "Failed to estimate salary")
        return SalaryEstimate.model_validate(result.get("data") or {})

    async def stream_salary_estimate(
        self,
        job_data: Dict[str, Any],
        on_update: Optional[Callable[[EstimationState], None]] = None,
    ) -> EstimationState:
        """Stream an estimate, calling ``on_update`` after every chunk.

        Request and transport failures never raise; they come back as a
        state with ``error`` set so the caller's render loop keeps working.
        """
        consumer = StreamConsumer(on_update=on_update)
        try:
            async with self.client.stream(
                "POST", f"{self.base_url}/estimate-salary-stream", json={"jobData": job_data}
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                    return consumer.fail(_error_message(resp, "Failed to estimate salary"))
                return await consumer.consume(resp.aiter_bytes())
        except httpx.HTTPError as e:
            logger.error(f"Salary stream request failed: {e}")
            return consumer.fail(str(e) or type(e).__name__)
