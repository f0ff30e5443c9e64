"""
Pedidos: checkout, PDV e mudanças de status com histórico
"""

from datetime import datetime

import pytest
from pydantic import ValidationError
from sqlmodel import select

from conftest import item
from pizzaria.cart import AdicionalSabor, BordaRecheada, ItemAdicional
from pizzaria.kanban import TransicaoInvalida
from pizzaria.models import (
    Address, Courier, Delivery, LoyaltyCustomer, StatusEntrega, StatusMotoboy, StatusPedido, TipoEntrega,
)
from pizzaria.services import LoyaltyService, OrderService
from pizzaria.services.order_service import CLIENTE_BALCAO, PedidoInvalido, pedido_to_dict


def criar_delivery(session, cliente, produtos, endereco, quantidade=2):
    return OrderService(session).criar_pedido(
        cliente, TipoEntrega.DELIVERY, [item(produtos["calabresa"], quantidade)], "pix", endereco=endereco
    )


def criar_balcao(session, cliente, produtos):
    return OrderService(session).criar_pedido(
        cliente, "balcao", [item(produtos["calabresa"])], "credito"
    )


# ===== CRIAÇÃO =====

def test_checkout_delivery_calcula_taxa_e_total(session, cliente, produtos, zona, endereco):
    pedido = criar_delivery(session, cliente, produtos, endereco)

    assert pedido.subtotal == 90.0
    assert pedido.taxa_entrega == 7.5
    assert pedido.total == 97.5
    assert pedido.status == StatusPedido.PENDENTE
    assert pedido.endereco_cep == "01310100"
    assert pedido.numero_pedido == f"{datetime.now():%Y%m%d}-0001"
    assert len(pedido.itens) == 1
    assert pedido.itens[0].preco_unitario == 45.0

    timeline = OrderService(session).timeline(pedido.id)
    assert len(timeline) == 1
    assert timeline[0].status_anterior is None
    assert timeline[0].status_novo == "pendente"
    assert timeline[0].observacao == "Pedido criado"


def test_numero_sequencial_no_dia(session, cliente, produtos):
    primeiro = criar_balcao(session, cliente, produtos)
    segundo = criar_balcao(session, cliente, produtos)
    assert primeiro.numero_pedido.endswith("-0001")
    assert segundo.numero_pedido.endswith("-0002")


def test_preco_enviado_pelo_cliente_e_ignorado(session, cliente, produtos):
    linha = item(produtos["calabresa"], 1, preco=1.0, preco_base=1.0)
    pedido = OrderService(session).criar_pedido(cliente, "balcao", [linha], "pix")
    assert pedido.total == 45.0


def test_tamanho_adicionais_e_borda(session, cliente, produtos):
    linha = item(
        produtos["calabresa"], 2,
        tamanho="broto",
        adicionais=[AdicionalSabor(sabor="Calabresa", itens=[ItemAdicional(nome="Bacon", preco=5.0)])],
        borda_recheada=BordaRecheada(id="cat", nome="Catupiry", preco=8.0),
        observacoes_sabores={"Calabresa": "sem cebola"},
    )
    pedido = OrderService(session).criar_pedido(cliente, "balcao", [linha], "pix")

    registro = pedido.itens[0]
    assert registro.preco_unitario == 43.0
    assert registro.preco_total == 86.0
    assert registro.borda_recheada["nome"] == "Catupiry"
    assert registro.observacoes == "Calabresa: sem cebola"
    assert pedido.total == 86.0

    dados = pedido_to_dict(pedido, com_itens=True)["itens"][0]
    assert dados["adicionais_display"] == "Calabresa: Bacon"


def test_adicional_e_borda_com_preco_negativo(session, cliente, produtos):
    with pytest.raises(ValidationError):
        item(produtos["calabresa"], adicionais=[{"sabor": "Geral", "itens": [{"nome": "Desconto", "preco": -44}]}])
    with pytest.raises(ValidationError):
        item(produtos["calabresa"], borda_recheada={"id": "x", "nome": "x", "preco": -1})

    # linha montada sem validação chega ao checkout e é recusada
    adicional = AdicionalSabor.model_construct(
        sabor="Geral", itens=[ItemAdicional.model_construct(nome="Desconto", preco=-44.0)]
    )
    linha = item(produtos["calabresa"]).model_copy(update={"adicionais": [adicional]})
    with pytest.raises(PedidoInvalido) as exc:
        OrderService(session).criar_pedido(cliente, "balcao", [linha], "pix")
    assert exc.value.errors == ["Adicionais inválidos para Calabresa"]

    borda = BordaRecheada.model_construct(id="x", nome="Cheddar", preco=-1.0)
    linha = item(produtos["calabresa"]).model_copy(update={"borda_recheada": borda})
    with pytest.raises(PedidoInvalido):
        OrderService(session).criar_pedido(cliente, "balcao", [linha], "pix")


def test_linhas_iguais_sao_somadas(session, cliente, produtos):
    itens = [item(produtos["calabresa"], 1), item(produtos["calabresa"], 2), item(produtos["refri"], 1)]
    pedido = OrderService(session).criar_pedido(cliente, "balcao", itens, "pix")
    assert sorted((i.nome_produto, i.quantidade) for i in pedido.itens) == [
        ("Calabresa", 3), ("Refrigerante 2L", 1),
    ]
    assert pedido.total == 147.0


def test_cep_nao_atendido(session, cliente, produtos, zona, endereco):
    endereco.update(cep="20000-000", bairro="Copacabana")
    with pytest.raises(PedidoInvalido) as exc:
        criar_delivery(session, cliente, produtos, endereco)
    assert "não entregamos neste CEP" in str(exc.value)


def test_bairro_atendido_quando_cep_fora_da_faixa(session, cliente, produtos, zona, endereco):
    endereco.update(cep="20000-000", bairro="centro")
    pedido = criar_delivery(session, cliente, produtos, endereco)
    assert pedido.taxa_entrega == 7.5


@pytest.mark.parametrize("tipo,itens_vazios,endereco_ok", [
    ("mesa", False, True),
    ("balcao", True, True),
    ("delivery", False, False),
])
def test_pedido_online_invalido(session, cliente, produtos, zona, endereco, tipo, itens_vazios, endereco_ok):
    itens = [] if itens_vazios else [item(produtos["calabresa"])]
    with pytest.raises(PedidoInvalido):
        OrderService(session).criar_pedido(
            cliente, tipo, itens, "pix", endereco=endereco if endereco_ok and tipo == "delivery" else None
        )
    assert OrderService(session).get_by_customer(cliente.id) == []


def test_produto_indisponivel(session, cliente, produtos):
    produtos["refri"].disponivel = False
    session.add(produtos["refri"])
    session.commit()
    with pytest.raises(PedidoInvalido) as exc:
        OrderService(session).criar_pedido(cliente, "balcao", [item(produtos["refri"])], "pix")
    assert exc.value.errors == ["Produto indisponível: Refrigerante 2L"]


def test_troco_menor_que_total(session, cliente, produtos):
    with pytest.raises(PedidoInvalido):
        OrderService(session).criar_pedido(
            cliente, "balcao", [item(produtos["calabresa"])], "dinheiro", troco_para=20.0
        )
    pedido = OrderService(session).criar_pedido(
        cliente, "balcao", [item(produtos["calabresa"])], "dinheiro", troco_para=50.0
    )
    assert pedido.troco_para == 50.0


# ===== PDV =====

def test_venda_balcao_sem_cliente(session, produtos):
    pedido = OrderService(session).criar_venda_pdv([item(produtos["refri"], 2)], alterado_por="Caixa")
    assert pedido.nome_cliente == CLIENTE_BALCAO
    assert pedido.origem.value == "pdv"
    assert pedido.total == 24.0
    assert OrderService(session).timeline(pedido.id)[0].alterado_por == "Caixa"


def test_venda_pdv_delivery_taxa_fixa_e_endereco_principal(session, cliente, produtos):
    session.add(Address(
        cliente_id=cliente.id, apelido="Casa", cep="01310100", logradouro="Av. Paulista",
        numero="1000", bairro="Bela Vista", cidade="São Paulo", estado="SP", principal=True,
    ))
    session.commit()

    pedido = OrderService(session).criar_venda_pdv(
        [item(produtos["calabresa"])], tipo_entrega="delivery", cliente_id=cliente.id
    )
    assert pedido.taxa_entrega == 5.0
    assert pedido.total == 50.0
    assert pedido.endereco_rua == "Av. Paulista"
    assert pedido_to_dict(pedido)["endereco"]["bairro"] == "Bela Vista"


def test_venda_pdv_validacoes(session, produtos):
    service = OrderService(session)
    with pytest.raises(PedidoInvalido) as exc:
        service.criar_venda_pdv([item(produtos["calabresa"])], tipo_entrega="delivery")
    assert "Selecione o cliente para delivery" in exc.value.errors

    with pytest.raises(PedidoInvalido):
        service.criar_venda_pdv([item(produtos["calabresa"])], tipo_entrega="mesa", mesa_numero="  ")

    pedido = service.criar_venda_pdv([item(produtos["calabresa"])], tipo_entrega="mesa", mesa_numero=" 12 ")
    assert pedido.mesa_numero == "12"
    assert pedido_to_dict(pedido)["endereco"] is None


# ===== STATUS =====

def test_fluxo_completo_delivery(session, cliente, produtos, zona, endereco):
    pedido = criar_delivery(session, cliente, produtos, endereco)
    service = OrderService(session)

    service.atualizar_status(pedido.id, "em_preparo", alterado_por="Ana")
    service.atualizar_status(pedido.id, StatusPedido.SAIU_ENTREGA, alterado_por="Ana")

    entrega = session.exec(select(Delivery).where(Delivery.pedido_id == pedido.id)).one()
    assert entrega.status == StatusEntrega.PENDENTE

    pedido = service.atualizar_status(pedido.id, "finalizado", alterado_por="Ana")
    assert pedido.status == StatusPedido.FINALIZADO
    assert pedido.status_anterior == StatusPedido.SAIU_ENTREGA

    session.refresh(entrega)
    assert entrega.status == StatusEntrega.ENTREGUE
    assert entrega.entregue_em is not None

    timeline = service.timeline(pedido.id)
    assert [h.status_novo for h in timeline] == ["pendente", "em_preparo", "saiu_entrega", "finalizado"]
    assert timeline[-1].alterado_por == "Ana"

    # fidelidade conta só os produtos, sem a taxa de entrega
    fidelidade = LoyaltyService(session).get_cliente(cliente.id)
    assert fidelidade.pontos_atuais == 90
    assert fidelidade.pontos_totais == 90


def test_transicao_invalida_nao_grava(session, cliente, produtos):
    pedido = criar_balcao(session, cliente, produtos)
    with pytest.raises(TransicaoInvalida):
        OrderService(session).atualizar_status(pedido.id, "finalizado")

    session.expire_all()
    assert OrderService(session).get_by_id(pedido.id).status == StatusPedido.PENDENTE
    assert len(OrderService(session).timeline(pedido.id)) == 1


def test_pedido_inexistente(session):
    assert OrderService(session).atualizar_status(999, "em_preparo") is None
    assert OrderService(session).avancar(999) is None


def test_falha_nos_efeitos_desfaz_tudo(session, cliente, produtos, monkeypatch):
    pedido = criar_balcao(session, cliente, produtos)
    service = OrderService(session)
    service.atualizar_status(pedido.id, "em_preparo")

    def falhar(self, pedido, commit=True):
        raise RuntimeError("falha ao creditar pontos")

    monkeypatch.setattr(LoyaltyService, "creditar_pedido", falhar)

    with pytest.raises(RuntimeError):
        service.atualizar_status(pedido.id, "finalizado")

    session.expire_all()
    pedido = service.get_by_id(pedido.id)
    assert pedido.status == StatusPedido.EM_PREPARO
    assert [h.status_novo for h in service.timeline(pedido.id)] == ["pendente", "em_preparo"]
    assert session.exec(select(LoyaltyCustomer)).all() == []


def test_avancar_balcao_pula_saida_para_entrega(session, cliente, produtos):
    pedido = criar_balcao(session, cliente, produtos)
    service = OrderService(session)

    assert service.avancar(pedido.id).status == StatusPedido.EM_PREPARO
    assert service.avancar(pedido.id).status == StatusPedido.FINALIZADO
    with pytest.raises(TransicaoInvalida):
        service.avancar(pedido.id)


def test_cancelar_guarda_motivo_e_e_terminal(session, cliente, produtos):
    pedido = criar_balcao(session, cliente, produtos)
    service = OrderService(session)

    pedido = service.cancelar(pedido.id, "Cliente desistiu", alterado_por="Ana")
    assert pedido.status == StatusPedido.CANCELADO
    assert pedido.motivo_cancelamento == "Cliente desistiu"
    assert service.timeline(pedido.id)[-1].observacao == "Cliente desistiu"

    with pytest.raises(TransicaoInvalida):
        service.atualizar_status(pedido.id, "em_preparo")


def test_cancelar_libera_motoboy(session, cliente, produtos, zona, endereco):
    pedido = criar_delivery(session, cliente, produtos, endereco)
    motoboy = Courier(nome="João", telefone="11999998888", status=StatusMotoboy.OCUPADO)
    session.add(motoboy)
    session.commit()
    session.add(Delivery(pedido_id=pedido.id, motoboy_id=motoboy.id))
    session.commit()

    OrderService(session).cancelar(pedido.id, "Endereço não encontrado")
    session.refresh(motoboy)
    assert motoboy.status == StatusMotoboy.DISPONIVEL


def test_kanban_filtros_e_busca(session, cliente, produtos, zona, endereco):
    service = OrderService(session)
    delivery = criar_delivery(session, cliente, produtos, endereco)
    balcao = criar_balcao(session, cliente, produtos)
    service.atualizar_status(balcao.id, "em_preparo")

    assert [p.id for p in service.listar_kanban(status=["em_preparo"])] == [balcao.id]
    assert [p.id for p in service.listar_kanban(tipo_entrega=["delivery"])] == [delivery.id]
    assert len(service.listar_kanban(busca="maria")) == 2
    assert service.listar_kanban(busca="inexistente") == []

    colunas = service.quadro().colunas()
    assert [p.id for p in colunas["pendente"]] == [delivery.id]
    stats = {s["status"]: s["total_pedidos"] for s in service.estatisticas()}
    assert stats == {"pendente": 1, "em_preparo": 1, "saiu_entrega": 0, "finalizado": 0, "cancelado": 0}


def test_reordenar_persiste(session, cliente, produtos):
    pedidos = [criar_balcao(session, cliente, produtos) for _ in range(3)]
    service = OrderService(session)

    coluna = service.reordenar(pedidos[2].id, 0)
    assert [p.id for p in coluna] == [pedidos[2].id, pedidos[0].id, pedidos[1].id]

    session.expire_all()
    assert [p.id for p in service.quadro().coluna("pendente")] == [pedidos[2].id, pedidos[0].id, pedidos[1].id]
    assert service.reordenar(999, 0) is None
