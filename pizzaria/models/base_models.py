from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
import pytz

BRAZIL_TZ = pytz.timezone("America/Sao_Paulo")


def brazilian_now() -> datetime:
    """Data/hora atual no fuso de Brasília"""
    return datetime.now(BRAZIL_TZ)


class User(SQLModel, table=True):
    """Usuário do painel administrativo (admin ou operador)"""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: str
    password_hash: str
    role: str = Field(default="operador")  # admin | operador
    ativo: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
