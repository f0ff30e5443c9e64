"""
Fixtures compartilhadas: banco SQLite em memória, cardápio, cliente e tokens
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REALTIME_DEBOUNCE_SECONDS", "0.01")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from pizzaria.auth import TOKEN_ADMIN, TOKEN_CLIENTE, create_token, hash_password
from pizzaria.cart import ItemCarrinho
from pizzaria.config import engine
from pizzaria.main import app
from pizzaria.models import User, Customer, Product, DeliveryFeeZone


@pytest.fixture(autouse=True)
def banco():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def produtos(session):
    calabresa = Product(nome="Calabresa", categoria="pizza", preco=45.0, preco_broto=30.0)
    refri = Product(nome="Refrigerante 2L", categoria="bebida", tipo="bebida", preco=12.0)
    session.add(calabresa)
    session.add(refri)
    session.commit()
    session.refresh(calabresa)
    session.refresh(refri)
    return {"calabresa": calabresa, "refri": refri}


@pytest.fixture
def zona(session):
    zona = DeliveryFeeZone(bairro="Centro", cep_inicial="01000000", cep_final="01999999", taxa=7.5)
    session.add(zona)
    session.commit()
    session.refresh(zona)
    return zona


@pytest.fixture
def cliente(session):
    cliente = Customer(
        nome="Maria Silva",
        email="maria@email.com",
        telefone="11987654321",
        senha_hash=hash_password("senha123"),
    )
    session.add(cliente)
    session.commit()
    session.refresh(cliente)
    return cliente


@pytest.fixture
def admin(session):
    user = User(email="admin@pizzaria.com", name="Admin", password_hash=hash_password("senha123"), role="admin")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_headers(admin):
    token = create_token({"sub": admin.email, "tipo": TOKEN_ADMIN})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cliente_headers(cliente):
    token = create_token({"sub": str(cliente.id), "tipo": TOKEN_CLIENTE})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def endereco():
    return {
        "rua": "Rua das Flores",
        "numero": "100",
        "bairro": "Centro",
        "cidade": "São Paulo",
        "estado": "SP",
        "cep": "01310-100",
    }


def item(produto: Product, quantidade: int = 1, **extra) -> ItemCarrinho:
    return ItemCarrinho(produto_id=str(produto.id), nome=produto.nome, quantidade=quantidade, **extra)
