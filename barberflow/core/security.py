from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from barberflow.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from barberflow.core.exceptions import ForbiddenException
from barberflow.database import get_session
from barberflow.models.admin_user import AdminUser
from barberflow.models.customer import Customer


# =========================
# HASH DE SENHA
# =========================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# =========================
# TOKEN JWT
# =========================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/admin/login")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Não foi possível validar as credenciais",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(token: str, kind: str) -> str:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _credentials_exception()

    subject = payload.get("sub")
    if subject is None or payload.get("kind") != kind:
        raise _credentials_exception()
    return subject


# =========================
# ADMIN / BARBEIRO DA BARBEARIA
# =========================

def get_current_admin(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> AdminUser:
    email = _decode(token, "admin")

    user = session.exec(
        select(AdminUser).where(AdminUser.email == email)
    ).first()

    if user is None:
        raise _credentials_exception()

    return user


def require_shop_access(user: AdminUser, shop_id: int) -> None:
    if user.barbershop_id != shop_id:
        raise ForbiddenException("Sem permissão para acessar esta barbearia")


def require_admin_role(user: AdminUser) -> None:
    if user.role != "admin":
        raise ForbiddenException("Apenas administradores podem realizar esta ação")


# =========================
# CLIENTE
# =========================

def get_current_customer(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> Customer:
    phone = _decode(token, "customer")

    customer = session.exec(
        select(Customer).where(Customer.phone == phone)
    ).first()

    if customer is None:
        raise _credentials_exception()

    return customer
