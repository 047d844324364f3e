"""AI credits endpoint.

Lets clients show how many generations a user has left before they ask for
one.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.logger import get_logger
from database.deps import get_db_read
from schemas import CreditsResponse
from services.quota_ledger import QuotaLedger

logger = get_logger("api.credits")
router = APIRouter(prefix="/api/ai", tags=["credits"])


@router.get("/credits/{user_id}", response_model=CreditsResponse, response_model_by_alias=True)
def get_credits(user_id: str, db: Session = Depends(get_db_read)):
    """Return the quota state of a user.

    Raises:
        InvalidProfileError: If the user has no profile row.
    """
    usage = QuotaLedger(db).usage(user_id)
    logger.info("Credits for user %s: remaining=%s unlimited=%s", user_id, usage["remaining"], usage["is_unlimited"])
    return CreditsResponse(**usage)
