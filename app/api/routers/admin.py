from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_auth_service, get_client_context
from app.schema.account import AccountCreate, AccountPublic, ProvisionedAccount
from app.services.audit import ClientContext
from app.services.auth import AuthService
from app.services.outcomes import ProvisionRejected
from app.services.tokens import AccessClaims
from app.utils.logger import log
from app.utils.security import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/users", response_model=ProvisionedAccount, status_code=status.HTTP_201_CREATED
)
def provision_account(
    body: AccountCreate,
    claims: AccessClaims = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
    client: ClientContext = Depends(get_client_context),
):
    outcome = service.provision_account(
        email=body.email,
        role=body.role,
        admin_account_id=claims.account_id,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        client=client,
    )
    if isinstance(outcome, ProvisionRejected):
        log.warn(f"Account provisioning refused for {body.email}: {outcome.reason.value}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )
    log.info(f"Provisioned account {outcome.account.id} with role {outcome.account.role.value}")
    return ProvisionedAccount(
        account=AccountPublic.model_validate(outcome.account),
        temporary_password=outcome.temporary_password,
        notified=outcome.notified,
    )
