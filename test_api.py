"""
Rotas HTTP: autenticação, checkout, acompanhamento e painel de pedidos
"""

import httpx
import pytest
from fastapi import WebSocketDisconnect

from pizzaria.auth import TOKEN_ADMIN, TOKEN_CLIENTE, create_token, hash_password
from pizzaria.main import get_http_transport
from pizzaria.models import Customer, User
from pizzaria.services import FiscalService


def checkout_payload(produtos, endereco=None, quantidade=2):
    payload = {
        "tipo_entrega": "delivery" if endereco else "balcao",
        "forma_pagamento": "pix",
        "itens": [{"produto_id": str(produtos["calabresa"].id), "nome": "Calabresa", "quantidade": quantidade}],
    }
    if endereco:
        payload["endereco"] = endereco
    return payload


@pytest.fixture
def pedido_api(client, cliente_headers, produtos, zona, endereco):
    response = client.post("/pedidos", json=checkout_payload(produtos, endereco), headers=cliente_headers)
    assert response.status_code == 201
    return response.json()


# ===== AUTENTICAÇÃO =====

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_login_admin(client, admin):
    response = client.post("/login", data={"username": "admin@pizzaria.com", "password": "senha123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "admin@pizzaria.com"

    errado = client.post("/login", data={"username": "admin@pizzaria.com", "password": "errada"})
    assert errado.status_code == 401


def test_rotas_protegidas(client, cliente_headers, session):
    assert client.get("/admin/pedidos").status_code == 401
    # token de cliente não vale no painel
    assert client.get("/admin/pedidos", headers=cliente_headers).status_code == 401

    operador = User(email="op@pizzaria.com", name="Op", password_hash=hash_password("senha123"), role="operador")
    session.add(operador)
    session.commit()
    headers = {"Authorization": f"Bearer {create_token({'sub': operador.email, 'tipo': TOKEN_ADMIN})}"}
    assert client.get("/admin/pedidos", headers=headers).status_code == 200
    assert client.get("/admin/notificacoes/config", headers=headers).status_code == 403


def test_cadastro_e_login_cliente(client):
    response = client.post("/clientes/cadastro", json={
        "nome": "João Souza", "email": "joao@email.com", "telefone": "(11) 91234-5678", "senha": "senha123",
    })
    assert response.status_code == 201
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    perfil = client.get("/clientes/me", headers=headers).json()
    assert perfil["telefone"] == "11912345678"
    assert "senha_hash" not in perfil

    repetido = client.post("/clientes/cadastro", json={
        "nome": "João Souza", "email": "joao@email.com", "telefone": "11912345678", "senha": "senha123",
    })
    assert repetido.status_code == 400

    login = client.post("/clientes/login", json={"email": "joao@email.com", "senha": "senha123"})
    assert login.status_code == 200
    assert client.post("/clientes/login", json={"email": "joao@email.com", "senha": "x"}).status_code == 401


# ===== CARRINHO =====

def test_acoes_do_carrinho(client):
    acao = {"type": "ADD_ITEM", "payload": {"produto_id": "1", "nome": "Calabresa", "preco_base": 45, "quantidade": 2}}
    estado = client.post("/carrinho/acoes", json={"acao": acao}).json()
    assert estado["total"] == 90.0
    assert estado["quantidade_itens"] == 2

    estado = client.post("/carrinho/acoes", json={"estado": estado, "acao": acao}).json()
    assert len(estado["items"]) == 1
    assert estado["total"] == 180.0

    linha_id = estado["items"][0]["linha_id"]
    vazio = client.post("/carrinho/acoes", json={
        "estado": estado, "acao": {"type": "UPDATE_QUANTITY", "payload": {"linha_id": linha_id, "quantidade": 0}},
    }).json()
    assert vazio["items"] == []
    assert vazio["total"] == 0

    invalida = client.post("/carrinho/acoes", json={"estado": estado, "acao": {"type": "UPDATE_QUANTITY", "payload": {}}})
    assert invalida.status_code == 400


# ===== PEDIDOS DO CLIENTE =====

def test_checkout_delivery(pedido_api):
    assert pedido_api["status"] == "pendente"
    assert pedido_api["subtotal"] == 90.0
    assert pedido_api["taxa_entrega"] == 7.5
    assert pedido_api["total"] == 97.5
    assert pedido_api["endereco"]["cep"] == "01310100"


def test_checkout_fora_da_area(client, cliente_headers, produtos, endereco):
    response = client.post("/pedidos", json=checkout_payload(produtos, {**endereco, "bairro": "Longe", "cep": "09000-000"}),
                           headers=cliente_headers)
    assert response.status_code == 400


def test_detalhe_do_pedido(client, cliente_headers, pedido_api, session):
    detalhe = client.get(f"/pedidos/{pedido_api['id']}", headers=cliente_headers).json()
    assert [h["status_novo"] for h in detalhe["timeline"]] == ["pendente"]
    assert detalhe["avaliacao"] is None
    assert len(detalhe["itens"]) == 1

    outro = Customer(nome="João", email="joao@email.com", telefone="11911112222")
    session.add(outro)
    session.commit()
    headers = {"Authorization": f"Bearer {create_token({'sub': str(outro.id), 'tipo': TOKEN_CLIENTE})}"}
    assert client.get(f"/pedidos/{pedido_api['id']}", headers=headers).status_code == 404

    assert [p["id"] for p in client.get("/pedidos", headers=cliente_headers).json()] == [pedido_api["id"]]


# ===== TAXAS E CEP =====

def test_taxa_por_cep(client, zona):
    response = client.get("/taxas/cep/01310-100")
    assert response.status_code == 200
    assert response.json()["taxa"] == 7.5
    assert response.json()["faixa_cep"] == "01000-000 a 01999-999"

    assert client.get("/taxas/cep/09000000").status_code == 404
    assert client.get("/taxas/bairro/centro").json()["bairro"] == "Centro"


def test_endereco_por_cep(client):
    client.app.dependency_overrides[get_http_transport] = lambda: httpx.MockTransport(
        lambda request: httpx.Response(200, json={
            "logradouro": "Avenida Paulista", "bairro": "Bela Vista", "localidade": "São Paulo", "uf": "SP",
        })
    )
    assert client.get("/cep/01310100").json()["logradouro"] == "Avenida Paulista"
    assert client.get("/cep/123").status_code == 404


# ===== PAINEL =====

def test_kanban(client, admin_headers, pedido_api):
    colunas = client.get("/admin/kanban/colunas", headers=admin_headers).json()
    assert [c["id"] for c in colunas] == ["pendente", "em_preparo", "saiu_entrega", "finalizado", "cancelado"]

    quadro = client.get("/admin/pedidos", headers=admin_headers).json()
    assert [p["id"] for p in quadro["pendente"]] == [pedido_api["id"]]
    assert quadro["em_preparo"] == []

    filtrado = client.get("/admin/pedidos", params={"tipo_entrega": "balcao"}, headers=admin_headers).json()
    assert filtrado["pendente"] == []

    desconhecido = client.get("/admin/pedidos", params={"tipo_entrega": "foo"}, headers=admin_headers)
    assert desconhecido.status_code == 422


def test_mudanca_de_status(client, admin_headers, pedido_api):
    url = f"/admin/pedidos/{pedido_api['id']}"

    invalida = client.patch(f"{url}/status", json={"status": "finalizado"}, headers=admin_headers)
    assert invalida.status_code == 400
    assert "'Pendente'" in invalida.json()["detail"]
    assert "'Finalizado'" in invalida.json()["detail"]

    response = client.patch(f"{url}/status", json={"status": "em_preparo"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "em_preparo"

    avancado = client.post(f"{url}/avancar", headers=admin_headers).json()
    assert avancado["status"] == "saiu_entrega"

    detalhe = client.get(url, headers=admin_headers).json()
    assert detalhe["proximo_status"] == "finalizado"
    assert [h["status_novo"] for h in detalhe["timeline"]] == ["pendente", "em_preparo", "saiu_entrega"]

    assert client.patch("/admin/pedidos/999/status", json={"status": "em_preparo"},
                        headers=admin_headers).status_code == 404


def test_cancelamento(client, admin_headers, pedido_api):
    url = f"/admin/pedidos/{pedido_api['id']}/cancelar"
    assert client.post(url, json={"motivo": "x"}, headers=admin_headers).status_code == 422

    cancelado = client.post(url, json={"motivo": "Cliente desistiu"}, headers=admin_headers).json()
    assert cancelado["status"] == "cancelado"
    assert cancelado["motivo_cancelamento"] == "Cliente desistiu"
    assert client.post(url, json={"motivo": "De novo"}, headers=admin_headers).status_code == 400


def test_venda_pdv(client, admin_headers, produtos):
    response = client.post("/admin/pdv/vendas", json={
        "itens": [{"produto_id": str(produtos["refri"].id), "nome": "Refrigerante 2L", "quantidade": 2}],
        "tipo_entrega": "mesa",
        "mesa_numero": "7",
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["origem"] == "pdv"
    assert response.json()["total"] == 24.0


def test_caixa_com_valor_digitado(client, admin_headers):
    aberto = client.post("/admin/caixa/abrir", json={"saldo_inicial": "R$ 100,00"}, headers=admin_headers)
    assert aberto.status_code == 201
    assert aberto.json()["resumo"]["saldo_atual"] == 100.0

    lancamento = client.post("/admin/caixa/lancamentos", json={"tipo": "saida", "valor": "25,50"}, headers=admin_headers)
    assert lancamento.status_code == 201
    assert lancamento.json()["valor"] == 25.5
    invalido = client.post("/admin/caixa/lancamentos", json={"tipo": "saida", "valor": "abc"}, headers=admin_headers)
    assert invalido.status_code == 400


def test_emitir_cupom_pela_api(client, admin_headers, pedido_api, session):
    FiscalService(session).update_config(api_url="https://nfce.local/emitir", api_token="token", ativo=True)
    app = client.app
    app.dependency_overrides[get_http_transport] = lambda: httpx.MockTransport(
        lambda request: httpx.Response(200, json={"numero": 77})
    )

    response = client.post(f"/admin/pedidos/{pedido_api['id']}/cupom-fiscal", headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["status"] == "emitido"
    assert response.json()["numero"] == "77"

    repetido = client.post(f"/admin/pedidos/{pedido_api['id']}/cupom-fiscal", headers=admin_headers)
    assert repetido.status_code == 400


def test_relatorio_csv(client, admin_headers):
    response = client.get("/admin/relatorios/csv", params={"periodo": 30}, headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert client.get("/admin/relatorios", params={"periodo": 3}, headers=admin_headers).status_code == 400


# ===== WEBSOCKETS =====

def test_websocket_exige_token_valido(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/pedidos?token=invalido"):
            pass


def test_websocket_do_pedido_so_para_o_dono(client, pedido_api, cliente_headers, session):
    token = cliente_headers["Authorization"].split(" ")[1]
    with client.websocket_connect(f"/ws/pedidos/{pedido_api['id']}?token={token}"):
        pass

    outro = Customer(nome="João", email="joao@email.com", telefone="11911112222")
    session.add(outro)
    session.commit()
    token_outro = create_token({"sub": str(outro.id), "tipo": TOKEN_CLIENTE})
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/pedidos/{pedido_api['id']}?token={token_outro}"):
            pass
