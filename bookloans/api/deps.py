from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bookloans.core.config import Settings
from bookloans.services.accounts import AccountService
from bookloans.services.catalog import CatalogService
from bookloans.services.identity import Identity, RequestContext
from bookloans.services.ledger import LoanLedger
from bookloans.services.policy import AvailabilityPolicy
from bookloans.services.queries import LoanQueries
from bookloans.services.reviews import ReviewService
from bookloans.store.base import DocumentStore

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    ledger: LoanLedger
    queries: LoanQueries
    catalog: CatalogService
    accounts: AccountService
    reviews: ReviewService

    @classmethod
    def build(cls, store: DocumentStore, settings: Settings) -> "Services":
        policy = AvailabilityPolicy.from_days(settings.loan_days)
        return cls(
            settings=settings,
            store=store,
            ledger=LoanLedger(
                store,
                policy=policy,
                max_retries=settings.conflict_retries,
                backoff=settings.retry_backoff,
            ),
            queries=LoanQueries(store, policy=policy),
            catalog=CatalogService(store),
            accounts=AccountService(store),
            reviews=ReviewService(store),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> Optional[Identity]:
    """Resolve ``Authorization: Bearer <token>``; None when absent or unknown."""
    if credentials is None:
        return None
    return services.accounts.identity_for_token(credentials.credentials)


def request_context(
    identity: Optional[Identity] = Depends(current_identity),
    services: Services = Depends(get_services),
) -> RequestContext:
    return RequestContext.with_timeout(identity, services.settings.request_timeout)
