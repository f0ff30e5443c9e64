"""
Delivery Service - Gerenciamento de Entregas
"""

import logging
from sqlmodel import Session, select
from typing import Optional, List
from datetime import datetime

from pizzaria.kanban import validar_transicao
from pizzaria.models import (
    Delivery, Order, Courier, StatusEntrega, StatusMotoboy, StatusPedido, TipoEntrega,
)
from pizzaria.services.order_service import OrderService

logger = logging.getLogger(__name__)


class EntregaInvalida(ValueError):
    pass


class DeliveryService:
    """Serviço para gerenciar entregas"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, entrega_id: int) -> Optional[Delivery]:
        return self.session.get(Delivery, entrega_id)

    def get_by_order(self, pedido_id: int) -> Optional[Delivery]:
        """Busca entrega pelo pedido"""
        return self.session.exec(
            select(Delivery).where(Delivery.pedido_id == pedido_id)
        ).first()

    def list_all(self, status: Optional[StatusEntrega] = None) -> List[Delivery]:
        query = select(Delivery)
        if status:
            query = query.where(Delivery.status == StatusEntrega(status))
        return list(self.session.exec(query.order_by(Delivery.created_at.desc())).all())

    def estatisticas(self) -> dict:
        entregas = self.list_all()
        return {
            "pendentes": sum(1 for e in entregas if e.status == StatusEntrega.PENDENTE),
            "em_rota": sum(1 for e in entregas if e.status == StatusEntrega.EM_ROTA),
            "entregues": sum(1 for e in entregas if e.status == StatusEntrega.ENTREGUE),
        }

    def get_active_by_courier(self, motoboy_id: int) -> List[Delivery]:
        """Lista entregas ativas de um motoboy"""
        return list(self.session.exec(
            select(Delivery)
            .where(Delivery.motoboy_id == motoboy_id)
            .where(Delivery.status != StatusEntrega.ENTREGUE)
        ).all())

    def criar_para_pedido(self, pedido_id: int) -> Optional[Delivery]:
        """Cria a entrega de um pedido delivery (ou devolve a existente)"""
        pedido = self.session.get(Order, pedido_id)
        if not pedido:
            return None
        if pedido.tipo_entrega != TipoEntrega.DELIVERY:
            raise EntregaInvalida("Pedido não é para entrega")
        if pedido.status == StatusPedido.CANCELADO:
            raise EntregaInvalida("Pedido cancelado")

        entrega = self.get_by_order(pedido_id)
        if entrega:
            return entrega

        entrega = Delivery(pedido_id=pedido_id)
        self.session.add(entrega)
        self.session.commit()
        self.session.refresh(entrega)
        return entrega

    def _pedido_ativo(self, entrega: Delivery) -> Optional[Order]:
        pedido = self.session.get(Order, entrega.pedido_id)
        if pedido and pedido.status == StatusPedido.CANCELADO:
            raise EntregaInvalida("Pedido cancelado")
        return pedido

    def assign_courier(self, entrega_id: int, motoboy_id: int) -> Optional[Delivery]:
        """Atribui motoboy à entrega pendente"""
        entrega = self.get_by_id(entrega_id)
        motoboy = self.session.get(Courier, motoboy_id)
        if not entrega or not motoboy:
            return None

        if entrega.status != StatusEntrega.PENDENTE:
            raise EntregaInvalida("Só é possível atribuir motoboy a entregas pendentes")
        self._pedido_ativo(entrega)
        if not motoboy.ativo or motoboy.status != StatusMotoboy.DISPONIVEL:
            raise EntregaInvalida("Motoboy não está disponível")

        # troca de motoboy libera o anterior
        if entrega.motoboy_id and entrega.motoboy_id != motoboy_id:
            anterior = self.session.get(Courier, entrega.motoboy_id)
            if anterior and anterior.status == StatusMotoboy.OCUPADO:
                anterior.status = StatusMotoboy.DISPONIVEL
                self.session.add(anterior)

        entrega.motoboy_id = motoboy_id
        motoboy.status = StatusMotoboy.OCUPADO
        self.session.add(entrega)
        self.session.add(motoboy)
        self.session.commit()
        self.session.refresh(entrega)

        logger.info(f"Entrega {entrega.id}: motoboy {motoboy.nome} atribuído")
        return entrega

    def start_delivery(self, entrega_id: int, alterado_por: Optional[str] = None) -> Optional[Delivery]:
        """Marca que o motoboy saiu para entrega"""
        entrega = self.get_by_id(entrega_id)
        if not entrega:
            return None
        if entrega.status != StatusEntrega.PENDENTE or not entrega.motoboy_id:
            raise EntregaInvalida("A entrega precisa estar pendente e com motoboy atribuído")

        pedido = self._pedido_ativo(entrega)
        if pedido and validar_transicao(pedido.status, StatusPedido.SAIU_ENTREGA):
            # a mudança de status do pedido coloca a entrega em rota
            OrderService(self.session).atualizar_status(
                pedido.id, StatusPedido.SAIU_ENTREGA, alterado_por=alterado_por
            )
            self.session.refresh(entrega)
        else:
            entrega.status = StatusEntrega.EM_ROTA
            entrega.saiu_em = datetime.now()
            self.session.add(entrega)
            self.session.commit()
            self.session.refresh(entrega)
        return entrega

    def complete_delivery(
        self,
        entrega_id: int,
        observacoes: Optional[str] = None,
        alterado_por: Optional[str] = None,
    ) -> Optional[Delivery]:
        """Marca entrega como concluída e finaliza o pedido"""
        entrega = self.get_by_id(entrega_id)
        if not entrega:
            return None
        if entrega.status != StatusEntrega.EM_ROTA:
            raise EntregaInvalida("Só é possível concluir entregas em rota")
        pedido = self._pedido_ativo(entrega)

        if observacoes:
            entrega.observacoes = observacoes
            self.session.add(entrega)

        if pedido and validar_transicao(pedido.status, StatusPedido.FINALIZADO):
            # finalizar o pedido conclui a entrega e libera o motoboy
            OrderService(self.session).atualizar_status(
                pedido.id, StatusPedido.FINALIZADO, alterado_por=alterado_por, observacao="Entrega concluída"
            )
            self.session.refresh(entrega)
        else:
            entrega.status = StatusEntrega.ENTREGUE
            entrega.entregue_em = datetime.now()
            if entrega.motoboy_id:
                motoboy = self.session.get(Courier, entrega.motoboy_id)
                if motoboy and motoboy.status == StatusMotoboy.OCUPADO:
                    motoboy.status = StatusMotoboy.DISPONIVEL
                    self.session.add(motoboy)
            self.session.add(entrega)
            self.session.commit()
            self.session.refresh(entrega)
        return entrega


def entrega_to_dict(entrega: Delivery) -> dict:
    pedido = entrega.pedido
    return {
        "id": entrega.id,
        "pedido_id": entrega.pedido_id,
        "numero_pedido": pedido.numero_pedido if pedido else None,
        "nome_cliente": pedido.nome_cliente if pedido else None,
        "endereco_bairro": pedido.endereco_bairro if pedido else None,
        "motoboy_id": entrega.motoboy_id,
        "motoboy_nome": entrega.motoboy.nome if entrega.motoboy else None,
        "status": entrega.status.value,
        "created_at": entrega.created_at.isoformat(),
        "saiu_em": entrega.saiu_em.isoformat() if entrega.saiu_em else None,
        "entregue_em": entrega.entregue_em.isoformat() if entrega.entregue_em else None,
        "observacoes": entrega.observacoes,
    }
