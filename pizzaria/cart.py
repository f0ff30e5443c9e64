"""
Carrinho - cálculo de preços das linhas e do total

Todas as operações são puras: recebem um EstadoCarrinho e devolvem um novo,
com o total re-derivado e arredondado em duas casas.
"""

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Quantidade máxima por linha do carrinho
MAX_QUANTIDADE_ITEM = 50

Tamanho = Literal["broto", "tradicional"]


def round_money(value: float) -> float:
    """Arredonda valores monetários (half-up) para evitar erro de ponto flutuante"""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ItemAdicional(BaseModel):
    nome: str
    preco: float = Field(default=0, ge=0)


class AdicionalSabor(BaseModel):
    """Adicionais escolhidos para um sabor (ou 'Geral')"""
    sabor: str = ""
    itens: List[ItemAdicional] = Field(default_factory=list)


class BordaRecheada(BaseModel):
    id: str
    nome: str
    preco: float = Field(default=0, ge=0)


class ChaveItem(BaseModel, frozen=True):
    """Identidade composta da linha; linhas com a mesma chave são somadas"""
    produto_id: str
    tamanho: str
    sabores: Tuple[str, ...]
    adicionais: Tuple[Tuple[str, Tuple[Tuple[str, float], ...]], ...]
    borda: Optional[Tuple[str, str, float]] = None


class ItemCarrinho(BaseModel):
    linha_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    produto_id: str
    nome: str
    tamanho: Tamanho = "tradicional"
    sabores: List[str] = Field(default_factory=list)
    preco_base: float = 0  # sem adicionais e borda
    preco: float = 0  # preço unitário calculado
    quantidade: int = 1
    tipo: str = "pizza"
    adicionais: List[AdicionalSabor] = Field(default_factory=list)
    borda_recheada: Optional[BordaRecheada] = None
    observacoes: Optional[str] = None
    observacoes_sabores: Dict[str, str] = Field(default_factory=dict)

    def chave(self) -> ChaveItem:
        adicionais = tuple(sorted(
            (grupo.sabor, tuple(sorted((i.nome, round_money(i.preco)) for i in grupo.itens)))
            for grupo in self.adicionais
            if grupo.itens
        ))
        borda = None
        if self.borda_recheada is not None:
            borda = (self.borda_recheada.id, self.borda_recheada.nome, round_money(self.borda_recheada.preco))
        return ChaveItem(
            produto_id=self.produto_id,
            tamanho=self.tamanho,
            sabores=tuple(sorted(self.sabores)),
            adicionais=adicionais,
            borda=borda,
        )

    @property
    def preco_adicionais(self) -> float:
        return sum(i.preco for grupo in self.adicionais for i in grupo.itens)

    @property
    def preco_borda(self) -> float:
        return self.borda_recheada.preco if self.borda_recheada else 0

    @property
    def preco_total(self) -> float:
        return round_money(self.preco * self.quantidade)

    def recalcular(self) -> "ItemCarrinho":
        """Preço unitário = base + adicionais + borda"""
        return self.model_copy(update={
            "preco": round_money(self.preco_base + self.preco_adicionais + self.preco_borda)
        })


class EstadoCarrinho(BaseModel):
    items: List[ItemCarrinho] = Field(default_factory=list)
    total: float = 0

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EstadoCarrinho":
        if not data:
            return cls()
        estado = cls.model_validate(data)
        # o total nunca é confiado ao cliente
        return _com_total(estado.items)

    @property
    def quantidade_itens(self) -> int:
        return sum(item.quantidade for item in self.items)


def calcular_total(items: List[ItemCarrinho]) -> float:
    return round_money(sum(item.preco * item.quantidade for item in items))


def _com_total(items: List[ItemCarrinho]) -> EstadoCarrinho:
    return EstadoCarrinho(items=items, total=calcular_total(items))


def _limitar(quantidade: int) -> int:
    if quantidade > MAX_QUANTIDADE_ITEM:
        logger.warning(f"Quantidade máxima atingida: {MAX_QUANTIDADE_ITEM}")
        return MAX_QUANTIDADE_ITEM
    return quantidade


def _atualizar_linha(estado: EstadoCarrinho, linha_id: str, **update) -> List[ItemCarrinho]:
    return [
        item.model_copy(update=update) if item.linha_id == linha_id else item
        for item in estado.items
    ]


# ===== OPERAÇÕES =====

def adicionar_item(estado: EstadoCarrinho, item: ItemCarrinho, quantidade: int = 1) -> EstadoCarrinho:
    """Soma à linha de mesma configuração ou acrescenta uma nova linha"""
    if quantidade <= 0:
        return estado

    if not item.preco_base:
        # sem preço base, 'preco' já vem com adicionais e borda embutidos
        base = round_money(item.preco - item.preco_adicionais - item.preco_borda)
        item = item.model_copy(update={"preco_base": base})
    item = item.recalcular()

    chave = item.chave()
    for existente in estado.items:
        if existente.chave() == chave:
            nova_quantidade = _limitar(existente.quantidade + quantidade)
            return _com_total(_atualizar_linha(estado, existente.linha_id, quantidade=nova_quantidade))

    novo = item.model_copy(update={"quantidade": _limitar(quantidade)})
    return _com_total([*estado.items, novo])


def remover_item(estado: EstadoCarrinho, linha_id: str) -> EstadoCarrinho:
    return _com_total([item for item in estado.items if item.linha_id != linha_id])


def atualizar_quantidade(estado: EstadoCarrinho, linha_id: str, quantidade: int) -> EstadoCarrinho:
    """Limita a quantidade a [1, MAX]; zero ou negativo remove a linha"""
    if quantidade <= 0:
        return remover_item(estado, linha_id)
    return _com_total(_atualizar_linha(estado, linha_id, quantidade=_limitar(quantidade)))


def atualizar_adicionais(
    estado: EstadoCarrinho, linha_id: str, adicionais: List[AdicionalSabor]
) -> EstadoCarrinho:
    items = [
        item.model_copy(update={"adicionais": list(adicionais)}).recalcular()
        if item.linha_id == linha_id else item
        for item in estado.items
    ]
    return _com_total(items)


def atualizar_borda(
    estado: EstadoCarrinho, linha_id: str, borda: Optional[BordaRecheada]
) -> EstadoCarrinho:
    items = [
        item.model_copy(update={"borda_recheada": borda}).recalcular()
        if item.linha_id == linha_id else item
        for item in estado.items
    ]
    return _com_total(items)


def atualizar_tamanho(
    estado: EstadoCarrinho, linha_id: str, tamanho: Tamanho, novo_preco_base: float
) -> EstadoCarrinho:
    """Troca o tamanho (e o preço base); se colidir com outra linha, as duas são somadas"""
    alvo = next((item for item in estado.items if item.linha_id == linha_id), None)
    if alvo is None:
        return estado

    atualizado = alvo.model_copy(update={"tamanho": tamanho, "preco_base": novo_preco_base}).recalcular()
    chave = atualizado.chave()

    items: List[ItemCarrinho] = []
    for item in estado.items:
        if item.linha_id == linha_id:
            continue
        if item.chave() == chave:
            item = item.model_copy(update={"quantidade": _limitar(item.quantidade + atualizado.quantidade)})
            atualizado = None
            chave = None
        items.append(item)

    if atualizado is not None:
        posicao = estado.items.index(alvo)
        items.insert(posicao, atualizado)
    return _com_total(items)


def atualizar_observacoes(
    estado: EstadoCarrinho, linha_id: str, observacoes: str, sabor: Optional[str] = None
) -> EstadoCarrinho:
    """Observação da linha inteira ou de um sabor; não altera preço"""
    items = []
    for item in estado.items:
        if item.linha_id == linha_id:
            if sabor:
                por_sabor = {**item.observacoes_sabores, sabor: observacoes}
                item = item.model_copy(update={"observacoes_sabores": por_sabor})
            else:
                item = item.model_copy(update={"observacoes": observacoes})
        items.append(item)
    return EstadoCarrinho(items=items, total=estado.total)


def limpar() -> EstadoCarrinho:
    return EstadoCarrinho()


def reduzir(estado: EstadoCarrinho, acao: dict) -> EstadoCarrinho:
    """Aplica uma ação {'type': ..., 'payload': ...} ao carrinho"""
    tipo = acao.get("type")
    payload = acao.get("payload") or {}

    if tipo == "ADD_ITEM":
        item = ItemCarrinho.model_validate(payload)
        return adicionar_item(estado, item, payload.get("quantidade", 1))
    if tipo == "REMOVE_ITEM":
        linha_id = payload if isinstance(payload, str) else payload.get("linha_id")
        return remover_item(estado, linha_id)
    if tipo == "UPDATE_QUANTITY":
        return atualizar_quantidade(estado, payload["linha_id"], int(payload["quantidade"]))
    if tipo == "UPDATE_ADICIONAIS":
        adicionais = [AdicionalSabor.model_validate(a) for a in payload.get("adicionais", [])]
        return atualizar_adicionais(estado, payload["linha_id"], adicionais)
    if tipo == "UPDATE_BORDA":
        borda = payload.get("borda_recheada")
        return atualizar_borda(
            estado, payload["linha_id"], BordaRecheada.model_validate(borda) if borda else None
        )
    if tipo == "UPDATE_TAMANHO":
        return atualizar_tamanho(estado, payload["linha_id"], payload["tamanho"], float(payload["novo_preco"]))
    if tipo == "UPDATE_OBSERVACOES":
        return atualizar_observacoes(
            estado, payload["linha_id"], payload.get("observacoes", ""), payload.get("sabor")
        )
    if tipo == "CLEAR_CART":
        return limpar()

    logger.warning(f"Ação de carrinho desconhecida: {tipo}")
    return estado
