"""Streaming discovery of potential customers for a company.

Setup asks the LLM (with web search) for the company's target customer
profile, its address and its name. Then a series of browser-automation tasks
each pick one nearby business on Google Maps. Tasks run one after another so
every task can be told which businesses were already found.
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional
from urllib.parse import quote, urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import config
from ..integrations.browser_use import BrowserUseClient
from ..integrations.llm import LLMClient
from ..models import LeadStatus, get_db_session
from ..store.leads import LeadStore
from ..utils.dedup import normalize_dedup_key
from ..utils.lead_scoring import ScoringFeatures
from .lead_scorer import LeadScorer


logger = logging.getLogger(__name__)

SETUP_MODEL = "gpt-4o"
PROVIDER_NAME = "browseruse"

CUSTOMER_PROFILE_PROMPT = (
    "Visit the website {company_url} and analyze the customer category this "
    "business would sell to in a B2B context. Also get the address of the "
    "business. Response in a concise manner."
)
BUSINESS_NAME_PROMPT = (
    "Visit the website {company_url} and extract the name of the business. "
    "Respond with just the name, no other text."
)
MAPS_SEARCH_URL = "https://google.com/maps/search/{business_name}/"

LEAD_TASK_TEMPLATE = """
New task:
1. You are given a business on google maps. Find 1 potential customer nearby that matches the target customer profile, click on the result in row number {row} and use the extract structured data to get the name, address and phone number of the business. Do not leave google maps, only use the information provided there.
2. Return the results as a JSON object with the fields name, address and phoneNumber. Return the phone number with country code, no spaces or dashes or parentheses.
{exclusions}
NOTE: Make sure you only return one business, and your goal is to be fast. Return as soon as you have valid data. Think as little as possible.

===CONTEXT===
{customer_profile}
"""

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class CustomerLead(BaseModel):
    """One potential customer returned by a browser task."""

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    phoneNumber: str = Field(min_length=1)


CUSTOMER_LEAD_SCHEMA = CustomerLead.model_json_schema()


class CompanyLeadsRequest(BaseModel):
    """Request body for company-lead discovery."""

    companyUrl: str
    businessId: Optional[str] = None

    @field_validator("companyUrl")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        value = value.strip()
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("companyUrl must be an absolute http(s) URL")
        return value


class DiscoverySetupError(Exception):
    """Raised when the company profile or name cannot be determined."""

    pass


@dataclass
class CompanyContext:
    """What the browser tasks need to know about the company."""

    company_url: str
    customer_profile: str
    business_name: str

    @property
    def start_url(self) -> str:
        return MAPS_SEARCH_URL.format(business_name=quote(self.business_name))


def build_lead_task(context: CompanyContext, row: int, excluded_names: List[str]) -> str:
    """Instructions for the browser task that picks result ``row``."""
    exclusions = ""
    if excluded_names:
        exclusions = (
            "3. Do not return any of these businesses, they were already found: "
            + "; ".join(excluded_names)
            + "\n"
        )
    return LEAD_TASK_TEMPLATE.format(
        row=row,
        exclusions=exclusions,
        customer_profile=context.customer_profile,
    )


class CompanyLeadFinder:
    """Finds potential customers for a company and optionally stores them.

    Args:
        llm_client: LLM client for the setup questions.
        browser_client: Browser-automation client for the lead tasks.
        iterations: Number of lead tasks. Defaults to DISCOVERY_ITERATIONS.
        scorer: Scorer for stored leads.
        session_scope: Transaction factory used when storing leads.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        browser_client: Optional[BrowserUseClient] = None,
        iterations: Optional[int] = None,
        scorer: Optional[LeadScorer] = None,
        session_scope: SessionScope = get_db_session,
    ):
        self.llm_client = llm_client or LLMClient()
        self.browser_client = browser_client or BrowserUseClient()
        self.iterations = iterations if iterations is not None else config.DISCOVERY_ITERATIONS
        self.scorer = scorer or LeadScorer(llm_client=self.llm_client)
        self.session_scope = session_scope

    async def prepare(self, company_url: str) -> CompanyContext:
        """Ask for the company's customer profile and name.

        Raises:
            DiscoverySetupError: If either question fails.
        """
        profile = await self.llm_client.web_search(
            CUSTOMER_PROFILE_PROMPT.format(company_url=company_url), model=SETUP_MODEL
        )
        if not profile.success:
            raise DiscoverySetupError(f"Customer profile lookup failed: {profile.error}")

        name = await self.llm_client.web_search(
            BUSINESS_NAME_PROMPT.format(company_url=company_url), model=SETUP_MODEL
        )
        if not name.success:
            raise DiscoverySetupError(f"Business name lookup failed: {name.error}")

        return CompanyContext(
            company_url=company_url,
            customer_profile=profile.text,
            business_name=name.text,
        )

    async def find_leads(
        self, context: CompanyContext, business_id: Optional[str] = None
    ) -> AsyncIterator[CustomerLead]:
        """Yield each valid lead as soon as its task finishes.

        Failed or invalid task results are logged and skipped. Leads whose
        name or dedup key was already found in this run are skipped too.
        """
        found_names: List[str] = []
        seen_keys: set[str] = set()
        for row in range(self.iterations):
            result = await self.browser_client.run_task(
                build_lead_task(context, row, found_names),
                start_url=context.start_url,
                schema=CUSTOMER_LEAD_SCHEMA,
            )
            if not result.success or result.parsed_output is None:
                logger.warning("Lead task %d failed: %s", row, result.error)
                continue

            try:
                lead = CustomerLead.model_validate(result.parsed_output)
            except ValidationError as e:
                logger.warning("Lead task %d returned an invalid lead: %s", row, e)
                continue

            dedup_key = normalize_dedup_key(
                phone=lead.phoneNumber, name=lead.name, address=lead.address
            )
            if dedup_key in seen_keys or lead.name.lower() in (n.lower() for n in found_names):
                logger.info("Lead task %d returned duplicate %s", row, lead.name)
                continue
            seen_keys.add(dedup_key)
            found_names.append(lead.name)

            if business_id:
                await self._store(business_id, dedup_key, lead)
            logger.info("Completed lead task %d", row)
            yield lead

    async def _store(
        self, business_id: str, dedup_key: str, lead: CustomerLead
    ) -> Optional[str]:
        """Upsert a streamed lead by dedup key. Failures are logged, not raised."""
        score = await self.scorer.score(ScoringFeatures(has_phone=True))
        try:
            async with self.session_scope() as session:
                return await LeadStore(session).upsert(
                    business_id,
                    dedup_key,
                    status=LeadStatus.NEW,
                    provider=PROVIDER_NAME,
                    name=lead.name,
                    address=lead.address,
                    phone=lead.phoneNumber,
                    score=score.score,
                )
        except Exception:
            logger.exception("Failed to store lead %s", lead.name)
            return None
