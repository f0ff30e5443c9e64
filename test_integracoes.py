"""
Integrações HTTP: WhatsApp, NFC-e e ViaCEP (com httpx.MockTransport)
"""

import asyncio
import json

import httpx
import pytest

from conftest import item
from pizzaria.models import Order, StatusCupom, StatusNotificacao, StatusPedido, TipoEntrega
from pizzaria.services import FiscalService, NotificationService, OrderService
from pizzaria.services.fee_service import buscar_endereco_por_cep
from pizzaria.services.fiscal_service import CupomInvalido
from pizzaria.services.notification_service import montar_mensagem, tipo_para_status


class Capturar:
    """Handler do MockTransport que guarda as requisições"""

    def __init__(self, status_code=200, resposta=None):
        self.status_code = status_code
        self.resposta = resposta if resposta is not None else {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.resposta)


@pytest.fixture
def pedido(session, cliente, produtos):
    return OrderService(session).criar_pedido(cliente, "balcao", [item(produtos["calabresa"])], "pix")


def ativar_whatsapp(session, **flags):
    return NotificationService(session).update_config(
        api_url="https://whatsapp.local/", api_key="chave", ativo=True, **flags
    )


# ===== NOTIFICAÇÕES =====

@pytest.mark.parametrize("status,tipo_entrega,esperado", [
    (StatusPedido.PENDENTE, TipoEntrega.DELIVERY, "novo_pedido"),
    (StatusPedido.EM_PREPARO, TipoEntrega.DELIVERY, None),
    (StatusPedido.SAIU_ENTREGA, TipoEntrega.DELIVERY, "saiu_entrega"),
    (StatusPedido.FINALIZADO, TipoEntrega.DELIVERY, "entregue"),
    (StatusPedido.FINALIZADO, TipoEntrega.BALCAO, "pedido_pronto"),
    (StatusPedido.FINALIZADO, TipoEntrega.MESA, "pedido_pronto"),
    (StatusPedido.CANCELADO, TipoEntrega.BALCAO, None),
])
def test_tipo_de_notificacao_por_status(status, tipo_entrega, esperado):
    pedido = Order(numero_pedido="1", nome_cliente="Maria", status=status, tipo_entrega=tipo_entrega)
    assert tipo_para_status(pedido) == esperado


def test_mensagem_usa_primeiro_nome_e_valor():
    pedido = Order(numero_pedido="20260101-0001", nome_cliente="Maria Silva", total=97.5)
    mensagem = montar_mensagem("novo_pedido", pedido)
    assert mensagem.startswith("Olá Maria!")
    assert "#20260101-0001" in mensagem
    assert "R$ 97,50" in mensagem
    with pytest.raises(ValueError):
        montar_mensagem("outro", pedido)


def test_envio_sem_api_configurada(session):
    historico = asyncio.run(NotificationService(session).enviar("11987654321", "Oi", "teste"))
    assert historico.status == StatusNotificacao.FALHA
    assert historico.erro == "API de WhatsApp não configurada"


def test_ativar_sem_url(session):
    with pytest.raises(ValueError):
        NotificationService(session).update_config(ativo=True)


def test_notificar_pedido(session, pedido):
    ativar_whatsapp(session)
    handler = Capturar(resposta={"key": {"id": "abc"}})
    service = NotificationService(session, transport=httpx.MockTransport(handler))

    historico = asyncio.run(service.notificar_pedido(pedido.id))

    assert historico.status == StatusNotificacao.ENVIADA
    assert historico.tipo == "novo_pedido"
    assert historico.pedido_id == pedido.id

    request = handler.requests[0]
    assert str(request.url) == "https://whatsapp.local/message/sendText/pizzaria"
    assert request.headers["apikey"] == "chave"
    corpo = json.loads(request.content)
    assert corpo["number"] == "5511987654321"
    assert "Recebemos seu pedido" in corpo["text"]


def test_notificacao_desligada_por_evento(session, pedido):
    ativar_whatsapp(session, notificar_novo_pedido=False)
    handler = Capturar()
    service = NotificationService(session, transport=httpx.MockTransport(handler))

    assert asyncio.run(service.notificar_pedido(pedido.id)) is None
    assert handler.requests == []


def test_falha_da_api_fica_no_historico(session, pedido):
    ativar_whatsapp(session)
    service = NotificationService(session, transport=httpx.MockTransport(Capturar(status_code=500)))

    historico = asyncio.run(service.notificar_pedido(pedido.id))

    assert historico.status == StatusNotificacao.FALHA
    assert "500" in historico.erro
    assert service.estatisticas() == {"total": 1, "enviadas": 0, "falhas": 1}
    assert len(service.historico(status="falha")) == 1


def test_mensagem_de_teste(session):
    ativar_whatsapp(session)
    service = NotificationService(session, transport=httpx.MockTransport(Capturar()))
    with pytest.raises(ValueError):
        asyncio.run(service.enviar_teste("", "Oi"))
    historico = asyncio.run(service.enviar_teste("11987654321", "Teste de envio"))
    assert historico.status == StatusNotificacao.ENVIADA
    assert historico.tipo == "teste"


# ===== CUPOM FISCAL =====

def ativar_nfce(session):
    return FiscalService(session).update_config(
        api_url="https://nfce.local/emitir", api_token="token", cnpj="12345678000199", ativo=True
    )


def test_config_nfce_invalida(session):
    service = FiscalService(session)
    with pytest.raises(CupomInvalido):
        service.update_config(ambiente="teste")
    with pytest.raises(CupomInvalido):
        service.update_config(ativo=True)


def test_emitir_sem_configuracao(session, pedido):
    with pytest.raises(CupomInvalido):
        asyncio.run(FiscalService(session).emitir(pedido.id))
    assert asyncio.run(FiscalService(session).emitir(999)) is None


def test_emitir_cupom(session, pedido):
    ativar_nfce(session)
    handler = Capturar(resposta={"numero": 123, "chave_acesso": "3526...", "url_danfe": "https://nfce.local/123"})
    service = FiscalService(session, transport=httpx.MockTransport(handler))

    cupom = asyncio.run(service.emitir(pedido.id))

    assert cupom.status == StatusCupom.EMITIDO
    assert cupom.numero == "123"
    assert cupom.valor_total == 45.0
    request = handler.requests[0]
    assert request.headers["Authorization"] == "Bearer token"
    payload = json.loads(request.content)
    assert payload["referencia"] == pedido.numero_pedido
    assert payload["itens"][0]["descricao"] == "Calabresa"

    with pytest.raises(CupomInvalido):
        asyncio.run(service.emitir(pedido.id))


def test_erro_na_emissao(session, pedido):
    ativar_nfce(session)
    service = FiscalService(session, transport=httpx.MockTransport(Capturar(status_code=422)))

    cupom = asyncio.run(service.emitir(pedido.id))

    assert cupom.status == StatusCupom.ERRO
    assert cupom.mensagem_erro
    assert len(service.list_by_order(pedido.id)) == 1


def test_nao_emite_para_cancelado(session, pedido):
    ativar_nfce(session)
    OrderService(session).cancelar(pedido.id, "Desistência")
    with pytest.raises(CupomInvalido):
        asyncio.run(FiscalService(session).emitir(pedido.id))


# ===== VIACEP =====

def test_viacep():
    handler = Capturar(resposta={
        "cep": "01310-100", "logradouro": "Avenida Paulista", "bairro": "Bela Vista",
        "localidade": "São Paulo", "uf": "SP",
    })
    endereco = asyncio.run(buscar_endereco_por_cep("01310-100", httpx.MockTransport(handler)))
    assert endereco == {
        "logradouro": "Avenida Paulista", "bairro": "Bela Vista", "localidade": "São Paulo", "uf": "SP",
    }
    assert handler.requests[0].url.path.endswith("/01310100/json/")


def test_viacep_cep_inexistente_ou_invalido():
    handler = Capturar(resposta={"erro": True})
    assert asyncio.run(buscar_endereco_por_cep("99999-999", httpx.MockTransport(handler))) is None
    assert asyncio.run(buscar_endereco_por_cep("123", httpx.MockTransport(handler))) is None
    assert len(handler.requests) == 1

    falha = httpx.MockTransport(Capturar(status_code=503))
    assert asyncio.run(buscar_endereco_por_cep("01310-100", falha)) is None
