"""
Fiscal Service - Emissão de NFC-e pela API configurada no painel
"""

import logging
from datetime import datetime
from typing import Optional, List

import httpx
from sqlmodel import Session, select

from pizzaria.config import HTTP_TIMEOUT
from pizzaria.models import (
    FiscalReceiptConfig, FiscalReceipt, Order, StatusCupom, StatusPedido, brazilian_now,
)

logger = logging.getLogger(__name__)

AMBIENTES = ("homologacao", "producao")


class CupomInvalido(ValueError):
    pass


class FiscalService:
    """Serviço de cupom fiscal (NFC-e)"""

    def __init__(self, session: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session
        self.transport = transport

    def get_config(self) -> FiscalReceiptConfig:
        config = self.session.exec(select(FiscalReceiptConfig)).first()
        if not config:
            config = FiscalReceiptConfig()
            self.session.add(config)
            self.session.commit()
            self.session.refresh(config)
        return config

    def update_config(self, **dados) -> FiscalReceiptConfig:
        config = self.get_config()
        if dados.get("ambiente") is not None and dados["ambiente"] not in AMBIENTES:
            raise CupomInvalido("Ambiente deve ser homologacao ou producao")
        for key, value in dados.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)
        if config.ativo and not (config.api_url and config.api_token):
            raise CupomInvalido("Informe URL e token da API para ativar a emissão")
        config.updated_at = datetime.now()
        self.session.add(config)
        self.session.commit()
        self.session.refresh(config)
        return config

    def list_by_order(self, pedido_id: int) -> List[FiscalReceipt]:
        return list(self.session.exec(
            select(FiscalReceipt).where(FiscalReceipt.pedido_id == pedido_id).order_by(FiscalReceipt.criado_em)
        ).all())

    def list_all(self, limite: int = 100) -> List[FiscalReceipt]:
        return list(self.session.exec(
            select(FiscalReceipt).order_by(FiscalReceipt.criado_em.desc()).limit(limite)
        ).all())

    @staticmethod
    def montar_payload(pedido: Order, config: FiscalReceiptConfig) -> dict:
        return {
            "ambiente": config.ambiente,
            "emitente": {"cnpj": config.cnpj, "razao_social": config.razao_social},
            "referencia": pedido.numero_pedido,
            "data_emissao": brazilian_now().isoformat(),
            "consumidor": {"nome": pedido.nome_cliente, "telefone": pedido.telefone_cliente},
            "itens": [
                {
                    "descricao": item.nome_produto,
                    "quantidade": item.quantidade,
                    "valor_unitario": item.preco_unitario,
                    "valor_total": item.preco_total,
                }
                for item in pedido.itens
            ],
            "taxa_entrega": pedido.taxa_entrega,
            "desconto": pedido.desconto,
            "valor_total": pedido.total,
            "forma_pagamento": pedido.forma_pagamento.value,
        }

    async def emitir(self, pedido_id: int) -> Optional[FiscalReceipt]:
        """
        Envia o pedido para a API de NFC-e e registra o cupom.

        Falhas da API não levantam exceção: o cupom fica com status 'erro'
        e a mensagem recebida.
        """
        pedido = self.session.get(Order, pedido_id)
        if not pedido:
            return None
        if pedido.status == StatusPedido.CANCELADO:
            raise CupomInvalido("Não é possível emitir cupom de pedido cancelado")
        if any(c.status == StatusCupom.EMITIDO for c in self.list_by_order(pedido_id)):
            raise CupomInvalido("Cupom já emitido para este pedido")

        config = self.get_config()
        if not config.ativo or not config.api_url:
            raise CupomInvalido("Emissão de cupom fiscal não está configurada")

        cupom = FiscalReceipt(pedido_id=pedido_id, valor_total=pedido.total)
        headers = {"Authorization": f"Bearer {config.api_token}"}

        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self.transport) as client:
                response = await client.post(config.api_url, json=self.montar_payload(pedido, config), headers=headers)
                response.raise_for_status()
                data = response.json()
            cupom.status = StatusCupom.EMITIDO
            cupom.numero = str(data.get("numero")) if data.get("numero") is not None else None
            cupom.chave_acesso = data.get("chave_acesso")
            cupom.url_danfe = data.get("url_danfe")
            cupom.resposta = data
            logger.info(f"NFC-e emitida para pedido {pedido.numero_pedido}: {cupom.numero}")
        except (httpx.HTTPError, ValueError) as e:
            cupom.status = StatusCupom.ERRO
            cupom.mensagem_erro = str(e)
            logger.error(f"Erro ao emitir NFC-e do pedido {pedido.numero_pedido}: {e}")

        self.session.add(cupom)
        self.session.commit()
        self.session.refresh(cupom)
        return cupom
