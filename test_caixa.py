"""
Caixa: abertura, lançamentos e fechamento
"""

import pytest

from pizzaria.models import CategoriaLancamento, Order, StatusCaixa, TipoLancamento
from pizzaria.services import CashRegisterService
from pizzaria.services.cash_register_service import CaixaInvalido


def test_um_caixa_aberto_por_vez(session):
    service = CashRegisterService(session)
    caixa = service.abrir(100.0, aberto_por="Ana")
    assert caixa.status == StatusCaixa.ABERTO
    assert service.get_aberto().id == caixa.id

    with pytest.raises(CaixaInvalido):
        service.abrir(50.0)
    with pytest.raises(CaixaInvalido):
        CashRegisterService(session).abrir(-1)


def test_lancamento_sem_caixa(session):
    with pytest.raises(CaixaInvalido) as exc:
        CashRegisterService(session).lancar(TipoLancamento.ENTRADA, 10.0)
    assert str(exc.value) == "Nenhum caixa aberto"


def test_valores_invalidos(session):
    service = CashRegisterService(session)
    service.abrir(0)
    with pytest.raises(CaixaInvalido):
        service.lancar(TipoLancamento.ENTRADA, 0)
    with pytest.raises(CaixaInvalido):
        service.lancar(TipoLancamento.SAIDA, 1_000_000)


def test_venda_separa_taxa_de_entrega(session):
    pedido = Order(numero_pedido="20260101-0001", nome_cliente="Maria", subtotal=50.0, taxa_entrega=5.0, total=55.0)
    session.add(pedido)
    session.commit()

    service = CashRegisterService(session)
    service.abrir(100.0)
    venda, taxa = service.lancar_venda(pedido)

    assert (venda.categoria, venda.valor) == (CategoriaLancamento.VENDA, 50.0)
    assert (taxa.categoria, taxa.valor) == (CategoriaLancamento.TAXA_ENTREGA, 5.0)
    assert taxa.pedido_id == pedido.id


def test_resumo_e_fechamento(session):
    service = CashRegisterService(session)
    caixa = service.abrir(100.0)
    service.lancar(TipoLancamento.ENTRADA, 45.5, CategoriaLancamento.VENDA, "Pedido balcão")
    service.lancar(TipoLancamento.SAIDA, 20.0, CategoriaLancamento.SANGRIA)
    service.lancar("entrada", 10.0, "suprimento")

    assert service.resumo(caixa) == {"entradas": 55.5, "saidas": 20.0, "saldo_atual": 135.5}
    assert len(service.lancamentos(caixa.id)) == 3

    fechado = service.fechar("Sem divergências")
    assert fechado.status == StatusCaixa.FECHADO
    assert fechado.saldo_final == 135.5
    assert fechado.data_fechamento is not None
    assert service.get_aberto() is None

    with pytest.raises(CaixaInvalido):
        service.fechar()


def test_valores_digitados_no_caixa(session):
    service = CashRegisterService(session)
    caixa = service.abrir("R$ 150,00")
    assert caixa.saldo_inicial == 150.0

    lancamento = service.lancar(TipoLancamento.ENTRADA, "R$ 1.234,56", CategoriaLancamento.SUPRIMENTO)
    assert lancamento.valor == 1234.56

    with pytest.raises(CaixaInvalido) as exc:
        service.lancar(TipoLancamento.SAIDA, "10")
    assert str(exc.value) == "Valor inválido. Use formato: 10,00"
    with pytest.raises(CaixaInvalido):
        service.lancar(TipoLancamento.SAIDA, "0,00")
