"""Shared service objects and FastAPI dependencies.

Vendor clients are built once per process in the application lifespan and
kept on ``app.state.services``; routes reach them through the dependencies
below. Tests build the container from fakes and pass it to
``create_app``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..integrations.browser_use import BrowserUseClient
from ..integrations.llm import LLMClient
from ..integrations.vapi import VapiClient
from ..models import get_db
from ..services.company_leads import CompanyLeadFinder
from ..services.lead_scorer import LeadScorer
from ..services.outcome_classifier import CallOutcomeClassifier
from ..services.webhook_dispatcher import WebhookDispatcher


@dataclass
class Services:
    """Process-wide vendor clients and the services built on them."""

    llm: LLMClient
    vapi: VapiClient
    browser: BrowserUseClient
    scorer: LeadScorer
    dispatcher: WebhookDispatcher
    lead_finder: CompanyLeadFinder

    @classmethod
    def from_config(cls, llm: Optional[LLMClient] = None) -> "Services":
        llm = llm or LLMClient()
        browser = BrowserUseClient()
        scorer = LeadScorer(llm_client=llm)
        return cls(
            llm=llm,
            vapi=VapiClient(),
            browser=browser,
            scorer=scorer,
            dispatcher=WebhookDispatcher(classifier=CallOutcomeClassifier(llm_client=llm)),
            lead_finder=CompanyLeadFinder(llm_client=llm, browser_client=browser, scorer=scorer),
        )

    async def close(self) -> None:
        await self.llm.close()
        await self.vapi.close()
        await self.browser.close()


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_llm_client(request: Request) -> LLMClient:
    return get_services(request).llm


def get_vapi_client(request: Request) -> VapiClient:
    return get_services(request).vapi


def get_browser_client(request: Request) -> BrowserUseClient:
    return get_services(request).browser


def get_lead_scorer(request: Request) -> LeadScorer:
    return get_services(request).scorer


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return get_services(request).dispatcher


def get_lead_finder(request: Request) -> CompanyLeadFinder:
    return get_services(request).lead_finder


__all__ = [
    "Services",
    "get_db",
    "get_services",
    "get_llm_client",
    "get_vapi_client",
    "get_browser_client",
    "get_lead_scorer",
    "get_webhook_dispatcher",
    "get_lead_finder",
]
