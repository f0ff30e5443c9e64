import os
from sqlmodel import create_engine
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

# Database - Railway compatible (PostgreSQL preferred for production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pizzaria.db")

# Handle Railway PostgreSQL URL format
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
    # sqlite em memória precisa de uma única conexão compartilhada
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args, poolclass=StaticPool)
    else:
        engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8000").split(",")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Integrações externas
VIACEP_API_URL = os.getenv("VIACEP_API_URL", "https://viacep.com.br/ws")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))

# Regras de negócio
TAXA_ENTREGA_PDV = float(os.getenv("TAXA_ENTREGA_PDV", "5.00"))
REALTIME_DEBOUNCE_SECONDS = float(os.getenv("REALTIME_DEBOUNCE_SECONDS", "0.3"))

# Usuário admin criado na primeira subida
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@pizzaria.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")
