"""Job posting extraction through the Firecrawl scrape API.

The page is scraped server-side and converted to JSON matching
:data:`JOB_SCHEMA`. The result is treated as an opaque job record by the
rest of the service.
"""
import logging
from typing import Any, Dict

import httpx

from config import Settings
from exceptions import ConfigurationError, ExtractionError, UpstreamRejectedError

logger = logging.getLogger(__name__)

SERVICE_NAME = "Firecrawl"

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

JOB_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Job Posting Schema",
    "description": "Schema for standardized job posting data",
    "type": "object",
    "required": ["title", "company", "location", "description"],
    "properties": {
        "id": {"type": "string", "description": "Unique identifier for the job posting"},
        "title": {"type": "string", "description": "Job title"},
        "company": {"type": "string", "description": "Company offering the position"},
        "location": {
            "type": "object",
            "description": "Job location details",
            "properties": {
                "city": {"type": "string"},
                "state": {"type": "string"},
                "country": {"type": "string"},
                "postalCode": {"type": "string"},
                "remote": {"type": "boolean"},
                "hybrid": {"type": "boolean"},
            },
        },
        "description": {"type": "string", "description": "Full job description"},
        "employmentType": {
            "type": "string",
            "enum": ["FULL_TIME", "PART_TIME", "CONTRACT", "TEMPORARY", "INTERNSHIP", "VOLUNTEER"],
            "description": "Type of employment",
        },
        "salary": {
            "type": "object",
            "properties": {
                "minimum": {"type": "number"},
                "maximum": {"type": "number"},
                "currency": {"type": "string", "default": "USD"},
                "period": {"type": "string", "enum": ["HOUR", "DAY", "WEEK", "MONTH", "YEAR"]},
                "isEstimate": {"type": "boolean"},
            },
        },
        "requirements": {
            "type": "object",
            "properties": {
                "education": _STRING_LIST,
                "experience": _STRING_LIST,
                "skills": _STRING_LIST,
                "certifications": _STRING_LIST,
                "languages": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "language": {"type": "string"},
                            "proficiency": {"type": "string"},
                        },
                    },
                },
            },
        },
        "benefits": {**_STRING_LIST, "description": "List of benefits offered"},
        "applicationDetails": {
            "type": "object",
            "properties": {
                "deadline": {"type": "string", "format": "date-time"},
                "instructions": {"type": "string"},
                "url": {"type": "string", "format": "uri"},
                "email": {"type": "string", "format": "email"},
                "phone": {"type": "string"},
            },
        },
        "postedDate": {"type": "string", "format": "date-time", "description": "When the job was posted"},
        "validThrough": {"type": "string", "format": "date-time", "description": "Expiration date of the job posting"},
        "department": {"type": "string", "description": "Department or team within the company"},
        "hiringManager": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "title": {"type": "string"},
                "email": {"type": "string", "format": "email"},
            },
        },
        "industry": {**_STRING_LIST, "description": "Industries associated with the job"},
        "jobFunction": {**_STRING_LIST, "description": "Job functions or categories"},
        "source": {
            "type": "object",
            "properties": {
                "site": {"type": "string"},
                "url": {"type": "string", "format": "uri"},
                "scrapedDate": {"type": "string", "format": "date-time"},
            },
            "description": "Source of the job posting data",
        },
    },
}


class JobDataExtractor:
    def __init__(
        self,
        api_key: str,
        *,
        client: httpx.AsyncClient,
        api_url: str = "https://api.firecrawl.dev/v1/scrape",
        timeout: float = 120.0,
    ):
        if not (api_key or "").strip():
            raise ConfigurationError("FIRECRAWL_API_KEY")
        self.api_key = api_key
        self.client = client
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> "JobDataExtractor":
        return cls(
            settings.FIRECRAWL_API_KEY,
            client=client,
            api_url=settings.FIRECRAWL_API_URL,
            timeout=settings.FIRECRAWL_TIMEOUT,
        )

    async def extract(self, url: str) -> Dict[str, Any]:
        """Scrape ``url`` and return the structured job record."""
        payload = {
            "url": url,
            "formats": ["json"],
            "onlyMainContent": True,
            "jsonOptions": {"schema": JOB_SCHEMA},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        logger.info(f"Extracting job data from {url}")
        try:
            resp = await self.client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
            if not resp.is_success:
                raise UpstreamRejectedError(SERVICE_NAME, resp.status_code, resp.text)
            body = resp.json()
        except (httpx.HTTPError, UpstreamRejectedError, ValueError) as e:
            logger.error(f"Job extraction failed for {url}: {e}")
            raise ExtractionError(str(e) or type(e).__name__) from e

        data = body.get("data") if isinstance(body, dict) else None
        record = data.get("json") if isinstance(data, dict) else None
        if not record:
            raise ExtractionError(f"{SERVICE_NAME} response did not contain structured job data")
        return record
