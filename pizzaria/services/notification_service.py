"""
Notification Service - Notificações de pedido por WhatsApp
"""

import logging
from datetime import datetime
from typing import Optional, List

import httpx
from sqlmodel import Session, select

from pizzaria.currency import format_currency
from pizzaria.models import (
    NotificationConfig, NotificationHistory, Order, StatusNotificacao, StatusPedido, TipoEntrega,
)
from pizzaria.whatsapp_service import WhatsAppService

logger = logging.getLogger(__name__)

TIPO_NOVO_PEDIDO = "novo_pedido"
TIPO_PEDIDO_PRONTO = "pedido_pronto"
TIPO_SAIU_ENTREGA = "saiu_entrega"
TIPO_ENTREGUE = "entregue"
TIPO_TESTE = "teste"

TIPO_LABELS = {
    TIPO_NOVO_PEDIDO: "Novo Pedido",
    TIPO_PEDIDO_PRONTO: "Pedido Pronto",
    TIPO_SAIU_ENTREGA: "Saiu para Entrega",
    TIPO_ENTREGUE: "Entregue",
    TIPO_TESTE: "Teste",
}

# flag da configuração que liga cada tipo de mensagem
FLAG_POR_TIPO = {
    TIPO_NOVO_PEDIDO: "notificar_novo_pedido",
    TIPO_PEDIDO_PRONTO: "notificar_pedido_pronto",
    TIPO_SAIU_ENTREGA: "notificar_saiu_entrega",
    TIPO_ENTREGUE: "notificar_entregue",
}


def tipo_para_status(pedido: Order) -> Optional[str]:
    """Tipo de notificação disparado pelo status atual do pedido"""
    if pedido.status == StatusPedido.PENDENTE:
        return TIPO_NOVO_PEDIDO
    if pedido.status == StatusPedido.SAIU_ENTREGA:
        return TIPO_SAIU_ENTREGA
    if pedido.status == StatusPedido.FINALIZADO:
        if pedido.tipo_entrega == TipoEntrega.DELIVERY:
            return TIPO_ENTREGUE
        return TIPO_PEDIDO_PRONTO
    return None


def montar_mensagem(tipo: str, pedido: Order) -> str:
    nome = pedido.nome_cliente.split(" ")[0] if pedido.nome_cliente else ""
    numero = pedido.numero_pedido
    if tipo == TIPO_NOVO_PEDIDO:
        return (
            f"Olá {nome}! 🍕 Recebemos seu pedido #{numero} "
            f"no valor de {format_currency(pedido.total)}. Já já ele entra em preparo!"
        )
    if tipo == TIPO_PEDIDO_PRONTO:
        return f"Olá {nome}! Seu pedido #{numero} está pronto para retirada. 😋"
    if tipo == TIPO_SAIU_ENTREGA:
        return f"Olá {nome}! Seu pedido #{numero} saiu para entrega. 🛵"
    if tipo == TIPO_ENTREGUE:
        return f"Olá {nome}! Seu pedido #{numero} foi entregue. Bom apetite e obrigado pela preferência!"
    raise ValueError(f"Tipo de notificação inválido: {tipo}")


class NotificationService:
    """Serviço de notificações"""

    def __init__(self, session: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session
        self.transport = transport

    def get_config(self) -> NotificationConfig:
        config = self.session.exec(select(NotificationConfig)).first()
        if not config:
            config = NotificationConfig()
            self.session.add(config)
            self.session.commit()
            self.session.refresh(config)
        return config

    def update_config(self, **dados) -> NotificationConfig:
        config = self.get_config()
        for key, value in dados.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)
        if config.ativo and not config.api_url:
            raise ValueError("Informe a URL da API para ativar as notificações")
        config.updated_at = datetime.now()
        self.session.add(config)
        self.session.commit()
        self.session.refresh(config)
        return config

    def _whatsapp(self, config: NotificationConfig) -> WhatsAppService:
        return WhatsAppService(
            base_url=config.api_url,
            api_key=config.api_key,
            instance_name=config.instancia,
            transport=self.transport,
        )

    def _registrar(
        self, telefone: str, mensagem: str, tipo: str, status: StatusNotificacao,
        pedido_id: Optional[int] = None, erro: Optional[str] = None,
    ) -> NotificationHistory:
        historico = NotificationHistory(
            telefone=telefone,
            mensagem=mensagem,
            tipo=tipo,
            status=status,
            pedido_id=pedido_id,
            erro=erro,
        )
        self.session.add(historico)
        self.session.commit()
        self.session.refresh(historico)
        return historico

    async def enviar(
        self, telefone: str, mensagem: str, tipo: str, pedido_id: Optional[int] = None
    ) -> NotificationHistory:
        """Envia a mensagem e registra no histórico (enviada ou falha)"""
        config = self.get_config()
        if not config.api_url:
            return self._registrar(
                telefone, mensagem, tipo, StatusNotificacao.FALHA, pedido_id, "API de WhatsApp não configurada"
            )

        try:
            await self._whatsapp(config).send_text_message(telefone, mensagem)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Falha ao enviar WhatsApp para {telefone}: {e}")
            return self._registrar(telefone, mensagem, tipo, StatusNotificacao.FALHA, pedido_id, str(e))

        return self._registrar(telefone, mensagem, tipo, StatusNotificacao.ENVIADA, pedido_id)

    async def notificar_pedido(self, pedido_id: int) -> Optional[NotificationHistory]:
        """Notifica o cliente sobre o status atual do pedido, conforme a configuração"""
        pedido = self.session.get(Order, pedido_id)
        if not pedido or not pedido.telefone_cliente:
            return None

        tipo = tipo_para_status(pedido)
        if tipo is None:
            return None

        config = self.get_config()
        if not config.ativo or not getattr(config, FLAG_POR_TIPO[tipo]):
            logger.debug(f"Notificação {tipo} desativada; pedido {pedido.numero_pedido} não notificado")
            return None

        return await self.enviar(pedido.telefone_cliente, montar_mensagem(tipo, pedido), tipo, pedido.id)

    async def enviar_teste(self, telefone: str, mensagem: str) -> NotificationHistory:
        if not (telefone or "").strip() or not (mensagem or "").strip():
            raise ValueError("Preencha telefone e mensagem")
        return await self.enviar(telefone, mensagem, TIPO_TESTE)

    def historico(self, limite: int = 100, status: Optional[StatusNotificacao] = None) -> List[NotificationHistory]:
        query = select(NotificationHistory)
        if status:
            query = query.where(NotificationHistory.status == StatusNotificacao(status))
        return list(self.session.exec(
            query.order_by(NotificationHistory.criado_em.desc()).limit(limite)
        ).all())

    def estatisticas(self) -> dict:
        historico = list(self.session.exec(select(NotificationHistory)).all())
        return {
            "total": len(historico),
            "enviadas": sum(1 for n in historico if n.status == StatusNotificacao.ENVIADA),
            "falhas": sum(1 for n in historico if n.status == StatusNotificacao.FALHA),
        }
