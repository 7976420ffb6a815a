from fastapi import HTTPException, Request, status

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount

logger = get_logger(__name__)


@trace_span
async def get_current_account(request: Request) -> AuthenticatedAccount:
    """
    Get the account established by the upstream auth middleware.

    Token verification happens before requests reach this service; it leaves
    the verified account id on request.state.
    """
    account_id = getattr(request.state, "account_id", None)
    if account_id is None:
        logger.debug(f"Rejecting unauthenticated request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthenticatedAccount(account_id=int(account_id))
