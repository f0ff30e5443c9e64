"""
Cash Register Service - Caixa e lançamentos
"""

import logging
from datetime import datetime
from typing import Optional, List, Union

from sqlmodel import Session, select

from pizzaria.cart import round_money
from pizzaria.models import (
    CashRegister, CashEntry, StatusCaixa, TipoLancamento, CategoriaLancamento, Order,
)
from pizzaria.validators import VALOR_MAXIMO, validate_money

logger = logging.getLogger(__name__)

CATEGORIA_LABELS = {
    CategoriaLancamento.VENDA: "Venda",
    CategoriaLancamento.TAXA_ENTREGA: "Taxa de Entrega",
    CategoriaLancamento.SANGRIA: "Sangria",
    CategoriaLancamento.SUPRIMENTO: "Suprimento",
    CategoriaLancamento.DESPESA: "Despesa",
    CategoriaLancamento.OUTROS: "Outros",
}


class CaixaInvalido(ValueError):
    pass


def parse_valor(valor: Union[float, str, None]) -> Optional[float]:
    """Aceita número ou valor digitado no caixa ('10,00', 'R$ 1.234,56')"""
    if not isinstance(valor, str):
        return valor
    result = validate_money(valor)
    if not result.valid:
        raise CaixaInvalido(result.error)
    return result.cleaned


class CashRegisterService:
    """Serviço de caixa: um caixa aberto por vez"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, caixa_id: int) -> Optional[CashRegister]:
        return self.session.get(CashRegister, caixa_id)

    def get_aberto(self) -> Optional[CashRegister]:
        """Caixa aberto no momento, se houver"""
        return self.session.exec(
            select(CashRegister).where(CashRegister.status == StatusCaixa.ABERTO)
        ).first()

    def list_all(self, limite: int = 30) -> List[CashRegister]:
        return list(self.session.exec(
            select(CashRegister).order_by(CashRegister.data_abertura.desc()).limit(limite)
        ).all())

    def abrir(self, saldo_inicial: Union[float, str], aberto_por: Optional[str] = None) -> CashRegister:
        saldo_inicial = parse_valor(saldo_inicial)
        if saldo_inicial is None or saldo_inicial < 0:
            raise CaixaInvalido("Informe um saldo inicial válido")
        if self.get_aberto():
            raise CaixaInvalido("Já existe um caixa aberto")

        caixa = CashRegister(saldo_inicial=round_money(saldo_inicial), aberto_por=aberto_por)
        self.session.add(caixa)
        self.session.commit()
        self.session.refresh(caixa)
        logger.info(f"Caixa {caixa.id} aberto por {aberto_por} com R$ {caixa.saldo_inicial}")
        return caixa

    def lancar(
        self,
        tipo: TipoLancamento,
        valor: Union[float, str],
        categoria: CategoriaLancamento = CategoriaLancamento.OUTROS,
        descricao: Optional[str] = None,
        pedido_id: Optional[int] = None,
    ) -> CashEntry:
        """Registra entrada ou saída no caixa aberto"""
        caixa = self.get_aberto()
        if not caixa:
            raise CaixaInvalido("Nenhum caixa aberto")
        valor = parse_valor(valor)
        if valor is None or valor <= 0:
            raise CaixaInvalido("Valor deve ser maior que zero")
        if valor > VALOR_MAXIMO:
            raise CaixaInvalido("Valor muito alto (máximo: R$ 999.999,99)")

        lancamento = CashEntry(
            caixa_id=caixa.id,
            tipo=TipoLancamento(tipo),
            categoria=CategoriaLancamento(categoria),
            valor=round_money(valor),
            descricao=descricao,
            pedido_id=pedido_id,
        )
        self.session.add(lancamento)
        self.session.commit()
        self.session.refresh(lancamento)
        return lancamento

    def lancar_venda(self, pedido: Order) -> List[CashEntry]:
        """Entrada da venda (e da taxa de entrega, separada) no caixa aberto"""
        lancamentos = [self.lancar(
            TipoLancamento.ENTRADA,
            round_money(pedido.total - pedido.taxa_entrega),
            CategoriaLancamento.VENDA,
            f"Pedido {pedido.numero_pedido}",
            pedido.id,
        )]
        if pedido.taxa_entrega > 0:
            lancamentos.append(self.lancar(
                TipoLancamento.ENTRADA,
                pedido.taxa_entrega,
                CategoriaLancamento.TAXA_ENTREGA,
                f"Taxa de entrega - Pedido {pedido.numero_pedido}",
                pedido.id,
            ))
        return lancamentos

    def lancamentos(self, caixa_id: int) -> List[CashEntry]:
        return list(self.session.exec(
            select(CashEntry).where(CashEntry.caixa_id == caixa_id).order_by(CashEntry.criado_em.desc())
        ).all())

    def resumo(self, caixa: CashRegister) -> dict:
        lancamentos = self.lancamentos(caixa.id)
        entradas = round_money(sum(l.valor for l in lancamentos if l.tipo == TipoLancamento.ENTRADA))
        saidas = round_money(sum(l.valor for l in lancamentos if l.tipo == TipoLancamento.SAIDA))
        return {
            "entradas": entradas,
            "saidas": saidas,
            "saldo_atual": round_money(caixa.saldo_inicial + entradas - saidas),
        }

    def fechar(self, observacoes: Optional[str] = None) -> CashRegister:
        """Fecha o caixa aberto calculando o saldo final"""
        caixa = self.get_aberto()
        if not caixa:
            raise CaixaInvalido("Nenhum caixa aberto")

        caixa.saldo_final = self.resumo(caixa)["saldo_atual"]
        caixa.data_fechamento = datetime.now()
        caixa.status = StatusCaixa.FECHADO
        caixa.observacoes = observacoes
        self.session.add(caixa)
        self.session.commit()
        self.session.refresh(caixa)
        logger.info(f"Caixa {caixa.id} fechado com saldo final R$ {caixa.saldo_final}")
        return caixa
