from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.auth.dependencies import TokenClaims, require_role
from backend.core.errors import LoginRequired
from backend.database import get_db
from backend.models.user import STUDENT_ROLE
from backend.schemas import StudentResponse
from backend.services import credential_store

router = APIRouter(tags=['student'])


@router.get('/profile', response_model=StudentResponse)
def profile(current_user: TokenClaims = Depends(require_role(STUDENT_ROLE)), db: Session = Depends(get_db)):
    student = credential_store.find_user_by_id(db, current_user.id)
    if student is None:
        # Account deleted after the token was issued.
        raise LoginRequired(clear_cookie=True)
    return student
