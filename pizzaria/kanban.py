"""
Kanban de Pedidos - máquina de status e quadro de colunas
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from pizzaria.models.delivery_models import Order, OrderStatusHistory, StatusPedido

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColunaKanban:
    id: StatusPedido
    titulo: str
    ordem: int


COLUNAS_KANBAN: List[ColunaKanban] = [
    ColunaKanban(StatusPedido.PENDENTE, "Pendente", 1),
    ColunaKanban(StatusPedido.EM_PREPARO, "Em Preparo", 2),
    ColunaKanban(StatusPedido.SAIU_ENTREGA, "Saiu para Entrega", 3),
    ColunaKanban(StatusPedido.FINALIZADO, "Finalizado", 4),
    ColunaKanban(StatusPedido.CANCELADO, "Cancelado", 5),
]

# Transições de status permitidas
TRANSICOES_PERMITIDAS: Dict[StatusPedido, List[StatusPedido]] = {
    StatusPedido.PENDENTE: [StatusPedido.EM_PREPARO, StatusPedido.CANCELADO],
    StatusPedido.EM_PREPARO: [StatusPedido.SAIU_ENTREGA, StatusPedido.FINALIZADO, StatusPedido.CANCELADO],
    StatusPedido.SAIU_ENTREGA: [StatusPedido.FINALIZADO, StatusPedido.CANCELADO],
    StatusPedido.FINALIZADO: [],
    StatusPedido.CANCELADO: [],
}

PROXIMO_STATUS: Dict[StatusPedido, Optional[StatusPedido]] = {
    StatusPedido.PENDENTE: StatusPedido.EM_PREPARO,
    StatusPedido.EM_PREPARO: StatusPedido.SAIU_ENTREGA,
    StatusPedido.SAIU_ENTREGA: StatusPedido.FINALIZADO,
    StatusPedido.FINALIZADO: None,
    StatusPedido.CANCELADO: None,
}

STATUS_LABELS: Dict[StatusPedido, str] = {coluna.id: coluna.titulo for coluna in COLUNAS_KANBAN}

StatusLike = Union[StatusPedido, str]


class TransicaoInvalida(ValueError):
    """Transição de status recusada; a mensagem é exibida ao operador"""

    def __init__(self, status_atual: StatusLike, novo_status: StatusLike):
        self.status_atual = status_atual
        self.novo_status = novo_status
        super().__init__(
            f"Não é possível mover o pedido de '{get_status_label(status_atual)}' "
            f"para '{get_status_label(novo_status)}'"
        )


def parse_status(status: StatusLike) -> Optional[StatusPedido]:
    """Converte string em StatusPedido; None se desconhecido"""
    try:
        return StatusPedido(status)
    except ValueError:
        return None


def validar_transicao(status_atual: StatusLike, novo_status: StatusLike) -> bool:
    """True somente para arestas da tabela de transições"""
    atual = parse_status(status_atual)
    novo = parse_status(novo_status)
    if atual is None or novo is None or atual == novo:
        return False
    return novo in TRANSICOES_PERMITIDAS[atual]


def get_status_label(status: StatusLike) -> str:
    """Retorna o label amigável de um status"""
    parsed = parse_status(status)
    if parsed is None:
        return str(status)
    return STATUS_LABELS[parsed]


def get_proximo_status(status_atual: StatusLike) -> Optional[StatusPedido]:
    """Próximo status do botão 'avançar'; None para status terminais"""
    parsed = parse_status(status_atual)
    if parsed is None:
        return None
    return PROXIMO_STATUS[parsed]


def is_terminal(status: StatusLike) -> bool:
    parsed = parse_status(status)
    return parsed is not None and not TRANSICOES_PERMITIDAS[parsed]


@dataclass
class MudancaStatus:
    """
    Comando de mudança de status com aplicar/desfazer.

    aplicar() valida a transição, guarda o estado anterior do pedido e
    devolve a linha de histórico a ser persistida junto com o pedido.
    desfazer() restaura o pedido em memória se a persistência falhar.
    A linha de histórico fica também em `historico` para quem persiste.
    """
    novo_status: StatusPedido
    alterado_por: Optional[str] = None
    observacao: Optional[str] = None
    motivo_cancelamento: Optional[str] = None
    historico: Optional[OrderStatusHistory] = field(default=None, init=False, repr=False)
    _snapshot: Optional[dict] = field(default=None, init=False, repr=False)

    CAMPOS = ("status", "status_anterior", "alterado_por", "motivo_cancelamento", "updated_at")

    def aplicar(self, pedido: Order) -> OrderStatusHistory:
        if not validar_transicao(pedido.status, self.novo_status):
            raise TransicaoInvalida(pedido.status, self.novo_status)

        self._snapshot = {campo: getattr(pedido, campo) for campo in self.CAMPOS}
        anterior = StatusPedido(pedido.status)

        pedido.status_anterior = anterior
        pedido.status = StatusPedido(self.novo_status)
        pedido.alterado_por = self.alterado_por
        pedido.updated_at = datetime.now()
        if pedido.status == StatusPedido.CANCELADO:
            pedido.motivo_cancelamento = self.motivo_cancelamento

        self.historico = OrderStatusHistory(
            pedido_id=pedido.id,
            status_anterior=anterior.value,
            status_novo=pedido.status.value,
            alterado_por=self.alterado_por,
            observacao=self.observacao or self.motivo_cancelamento,
        )
        return self.historico

    def desfazer(self, pedido: Order):
        if self._snapshot is None:
            return
        for campo, valor in self._snapshot.items():
            setattr(pedido, campo, valor)
        self._snapshot = None
        self.historico = None


class QuadroKanban:
    """Pedidos agrupados nas cinco colunas do Kanban"""

    def __init__(self, pedidos: Optional[List[Order]] = None):
        self.pedidos: Dict[int, Order] = {p.id: p for p in (pedidos or [])}

    def coluna(self, status: StatusLike) -> List[Order]:
        parsed = parse_status(status)
        itens = [p for p in self.pedidos.values() if p.status == parsed]
        return sorted(itens, key=lambda p: (p.ordem_kanban, p.created_at))

    def colunas(self) -> Dict[str, List[Order]]:
        return {coluna.id.value: self.coluna(coluna.id) for coluna in COLUNAS_KANBAN}

    def mover(
        self,
        pedido_id: int,
        novo_status: StatusLike,
        persistir: Callable[[Order, MudancaStatus], None],
        alterado_por: Optional[str] = None,
        motivo_cancelamento: Optional[str] = None,
        observacao: Optional[str] = None,
    ) -> Order:
        """
        Move o cartão de coluna de forma otimista: aplica a mudança,
        chama persistir() e desfaz se ela falhar (a exceção é propagada).
        """
        pedido = self.pedidos.get(pedido_id)
        if pedido is None:
            raise KeyError(pedido_id)

        novo = parse_status(novo_status)
        if novo is None:
            raise TransicaoInvalida(pedido.status, novo_status)

        comando = MudancaStatus(
            novo,
            alterado_por=alterado_por,
            observacao=observacao,
            motivo_cancelamento=motivo_cancelamento,
        )
        comando.aplicar(pedido)
        try:
            persistir(pedido, comando)
        except Exception:
            logger.warning(f"Falha ao persistir pedido {pedido_id}; revertendo para {pedido.status_anterior}")
            comando.desfazer(pedido)
            raise
        return pedido

    def reordenar(self, pedido_id: int, nova_posicao: int) -> List[Order]:
        """Reposiciona o cartão dentro da coluna e renumera ordem_kanban"""
        pedido = self.pedidos.get(pedido_id)
        if pedido is None:
            raise KeyError(pedido_id)

        coluna = [p for p in self.coluna(pedido.status) if p.id != pedido_id]
        nova_posicao = max(0, min(nova_posicao, len(coluna)))
        coluna.insert(nova_posicao, pedido)
        for posicao, item in enumerate(coluna):
            item.ordem_kanban = posicao
        return coluna

    def estatisticas(self) -> List[dict]:
        stats = []
        for coluna in COLUNAS_KANBAN:
            itens = self.coluna(coluna.id)
            stats.append({
                "status": coluna.id.value,
                "total_pedidos": len(itens),
                "valor_total": round(sum(p.total for p in itens), 2),
            })
        return stats
