"""
Fidelidade (pontos, níveis e resgates) e avaliações de pedidos
"""

import pytest

from conftest import item
from pizzaria.models import Customer, NivelFidelidade
from pizzaria.services import LoyaltyService, OrderService, ReviewService
from pizzaria.services.loyalty_service import ResgateInvalido
from pizzaria.services.review_service import AvaliacaoInvalida


def pedido_finalizado(session, cliente, produtos, quantidade=1):
    service = OrderService(session)
    pedido = service.criar_pedido(cliente, "balcao", [item(produtos["calabresa"], quantidade)], "pix")
    service.avancar(pedido.id)
    return service.avancar(pedido.id)


# ===== FIDELIDADE =====

def test_nivel_por_pontos_totais(session):
    config = LoyaltyService(session).get_config()
    assert LoyaltyService.calcular_nivel(0, config) == NivelFidelidade.BRONZE
    assert LoyaltyService.calcular_nivel(100, config) == NivelFidelidade.PRATA
    assert LoyaltyService.calcular_nivel(500, config) == NivelFidelidade.OURO


def test_configuracao_invalida(session):
    service = LoyaltyService(session)
    with pytest.raises(ValueError):
        service.update_config(pontos_por_real=0)
    with pytest.raises(ValueError):
        service.update_config(nivel_prata_min=1000, nivel_ouro_min=500)


def test_pontos_e_nivel_apos_pedidos(session, cliente, produtos):
    LoyaltyService(session).update_config(pontos_por_real=2)
    pedido_finalizado(session, cliente, produtos, quantidade=1)
    fidelidade = LoyaltyService(session).get_cliente(cliente.id)
    assert fidelidade.pontos_totais == 90
    assert fidelidade.nivel == NivelFidelidade.BRONZE

    pedido_finalizado(session, cliente, produtos, quantidade=1)
    session.refresh(fidelidade)
    assert fidelidade.pontos_totais == 180
    assert fidelidade.nivel == NivelFidelidade.PRATA


def test_programa_desativado_nao_credita(session, cliente, produtos):
    LoyaltyService(session).update_config(ativo=False)
    pedido_finalizado(session, cliente, produtos)
    assert LoyaltyService(session).get_cliente(cliente.id) is None


def test_resgate(session, cliente, produtos):
    service = LoyaltyService(session)
    recompensa = service.create_reward(nome="Refrigerante grátis", pontos_necessarios=40, estoque=1)

    with pytest.raises(ResgateInvalido) as exc:
        service.resgatar(cliente.id, recompensa.id)
    assert str(exc.value) == "Pontos insuficientes"

    pedido_finalizado(session, cliente, produtos, quantidade=2)
    resgate = service.resgatar(cliente.id, recompensa.id)
    assert resgate.pontos_utilizados == 40

    fidelidade = service.get_cliente(cliente.id)
    assert fidelidade.pontos_atuais == 50
    assert fidelidade.pontos_totais == 90
    session.refresh(recompensa)
    assert recompensa.estoque == 0

    with pytest.raises(ResgateInvalido) as exc:
        service.resgatar(cliente.id, recompensa.id)
    assert str(exc.value) == "Recompensa sem estoque"

    assert service.estatisticas() == {"total_clientes": 1, "total_pontos": 50, "resgates_realizados": 1}


def test_recompensa_invalida(session):
    service = LoyaltyService(session)
    with pytest.raises(ValueError):
        service.create_reward(nome="Brinde", pontos_necessarios=0)
    assert service.update_reward(999, nome="x") is None
    assert not service.delete_reward(999)


# ===== AVALIAÇÕES =====

def test_avaliar_pedido_finalizado(session, cliente, produtos):
    pedido = pedido_finalizado(session, cliente, produtos)
    service = ReviewService(session)

    avaliacao = service.avaliar(cliente.id, pedido.id, 5, "  Muito boa!  ")
    assert avaliacao.comentario == "Muito boa!"

    with pytest.raises(AvaliacaoInvalida):
        service.avaliar(cliente.id, pedido.id, 4)


@pytest.mark.parametrize("nota", [0, 6])
def test_nota_fora_da_escala(session, cliente, produtos, nota):
    pedido = pedido_finalizado(session, cliente, produtos)
    with pytest.raises(AvaliacaoInvalida):
        ReviewService(session).avaliar(cliente.id, pedido.id, nota)


def test_so_pedidos_proprios_e_finalizados(session, cliente, produtos):
    outro = Customer(nome="João", email="joao@email.com", telefone="11911112222")
    session.add(outro)
    session.commit()

    pedido = pedido_finalizado(session, cliente, produtos)
    with pytest.raises(AvaliacaoInvalida) as exc:
        ReviewService(session).avaliar(outro.id, pedido.id, 5)
    assert str(exc.value) == "Pedido não encontrado"

    pendente = OrderService(session).criar_pedido(cliente, "balcao", [item(produtos["refri"])], "pix")
    with pytest.raises(AvaliacaoInvalida):
        ReviewService(session).avaliar(cliente.id, pendente.id, 5)


def test_resposta_e_estatisticas(session, cliente, produtos):
    service = ReviewService(session)
    primeira = service.avaliar(cliente.id, pedido_finalizado(session, cliente, produtos).id, 5)
    service.avaliar(cliente.id, pedido_finalizado(session, cliente, produtos).id, 4)
    service.avaliar(cliente.id, pedido_finalizado(session, cliente, produtos).id, 4)

    with pytest.raises(AvaliacaoInvalida):
        service.responder(primeira.id, "   ")
    respondida = service.responder(primeira.id, "Obrigado!")
    assert respondida.respondido_em is not None

    stats = service.estatisticas()
    assert stats["total"] == 3
    assert stats["media"] == 4.3
    assert stats["distribuicao"] == {1: 0, 2: 0, 3: 0, 4: 2, 5: 1}
    assert stats["sem_resposta"] == 2
    assert len(service.list_all(sem_resposta=True)) == 2
    assert len(service.list_all(nota=5)) == 1
