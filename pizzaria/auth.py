from datetime import timedelta
from typing import Optional

import jwt
from jwt import InvalidTokenError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlmodel import Session, select

from pizzaria.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, engine
from pizzaria.models import User, Customer, brazilian_now

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")

TOKEN_ADMIN = "admin"
TOKEN_CLIENTE = "cliente"


def credentials_exception():
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Não foi possível validar as credenciais",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_session():
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_token(data: dict, expires_delta: timedelta = None) -> str:
    to_encode = data.copy()
    expire = brazilian_now() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, tipo: str) -> str:
    """Retorna o 'sub' do token, exigindo o tipo informado"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except InvalidTokenError:
        raise credentials_exception()

    sub = payload.get("sub")
    if sub is None or payload.get("tipo") != tipo:
        raise credentials_exception()
    return sub


def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> User:
    email = decode_token(token, TOKEN_ADMIN)
    user = session.exec(select(User).where(User.email == email)).first()
    if user is None or not user.ativo:
        raise credentials_exception()
    return user


def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Apenas admins podem acessar")
    return user


def get_current_cliente(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> Customer:
    cliente_id = decode_token(token, TOKEN_CLIENTE)
    cliente = session.get(Customer, int(cliente_id))
    if cliente is None or not cliente.ativo:
        raise credentials_exception()
    return cliente
