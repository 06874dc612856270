import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.core.security import verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/admin/login")
def admin_login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    user = session.exec(
        select(AdminUser).where(AdminUser.email == form_data.username)
    ).first()

    if not user or not verify_password(form_data.password, user.password_hash):
        logger.warning("Failed admin login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou senha inválidos",
        )

    access_token = create_access_token(
        data={"sub": user.email, "kind": "admin"}
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "barbershop_id": user.barbershop_id,
        "role": user.role,
    }
