"""
Models do fluxo de pedidos da pizzaria: clientes, cardápio, pedidos e entregas
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ===== ENUMS =====

class StatusPedido(str, Enum):
    """Colunas do Kanban de pedidos"""
    PENDENTE = "pendente"
    EM_PREPARO = "em_preparo"
    SAIU_ENTREGA = "saiu_entrega"
    FINALIZADO = "finalizado"
    CANCELADO = "cancelado"


class TipoEntrega(str, Enum):
    DELIVERY = "delivery"
    BALCAO = "balcao"
    MESA = "mesa"


class FormaPagamento(str, Enum):
    DINHEIRO = "dinheiro"
    PIX = "pix"
    CREDITO = "credito"
    DEBITO = "debito"


class OrigemPedido(str, Enum):
    ONLINE = "online"
    PDV = "pdv"


class StatusMotoboy(str, Enum):
    """Status do entregador"""
    DISPONIVEL = "disponivel"
    OCUPADO = "ocupado"
    OFFLINE = "offline"


class StatusEntrega(str, Enum):
    PENDENTE = "pendente"
    EM_ROTA = "em_rota"
    ENTREGUE = "entregue"


# ===== MODELS =====

class Customer(SQLModel, table=True):
    """Cliente da loja online"""
    __tablename__ = "clientes"

    id: Optional[int] = Field(default=None, primary_key=True)
    nome: str = Field(index=True)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    telefone: str = Field(index=True)
    senha_hash: Optional[str] = None

    ativo: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    # Relacionamentos
    enderecos: List["Address"] = Relationship(
        back_populates="cliente", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    pedidos: List["Order"] = Relationship(back_populates="cliente")


class Address(SQLModel, table=True):
    """Endereço de entrega salvo pelo cliente"""
    __tablename__ = "enderecos"

    id: Optional[int] = Field(default=None, primary_key=True)
    cliente_id: int = Field(foreign_key="clientes.id", index=True)
    cliente: Optional[Customer] = Relationship(back_populates="enderecos")

    apelido: str  # Casa, Trabalho...
    cep: str
    logradouro: str
    numero: str
    complemento: Optional[str] = None
    bairro: str
    cidade: str
    estado: str
    ponto_referencia: Optional[str] = None
    principal: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.now)


class Product(SQLModel, table=True):
    """Produto do cardápio"""
    __tablename__ = "produtos"

    id: Optional[int] = Field(default=None, primary_key=True)
    nome: str = Field(index=True)
    descricao: Optional[str] = None
    categoria: str = Field(default="pizza", index=True)
    tipo: str = Field(default="pizza")

    # Preço do tamanho tradicional; broto é opcional
    preco: float
    preco_broto: Optional[float] = None

    disponivel: bool = Field(default=True)
    destaque: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.now)


class Order(SQLModel, table=True):
    """Pedido"""
    __tablename__ = "pedidos"

    id: Optional[int] = Field(default=None, primary_key=True)
    numero_pedido: str = Field(unique=True, index=True)

    # Cliente (opcional no PDV)
    cliente_id: Optional[int] = Field(default=None, foreign_key="clientes.id", index=True)
    cliente: Optional[Customer] = Relationship(back_populates="pedidos")
    nome_cliente: str
    telefone_cliente: Optional[str] = None

    tipo_entrega: TipoEntrega = Field(default=TipoEntrega.DELIVERY)
    origem: OrigemPedido = Field(default=OrigemPedido.ONLINE)
    mesa_numero: Optional[str] = None

    # Endereço de entrega (cópia do endereço no momento do pedido)
    endereco_rua: Optional[str] = None
    endereco_numero: Optional[str] = None
    endereco_bairro: Optional[str] = None
    endereco_cidade: Optional[str] = None
    endereco_estado: Optional[str] = None
    endereco_cep: Optional[str] = None
    endereco_complemento: Optional[str] = None

    # Status e controle do Kanban
    status: StatusPedido = Field(default=StatusPedido.PENDENTE, index=True)
    status_anterior: Optional[StatusPedido] = None
    ordem_kanban: int = Field(default=0)
    alterado_por: Optional[str] = None

    # Valores
    subtotal: float = Field(default=0)
    taxa_entrega: float = Field(default=0)
    desconto: float = Field(default=0)
    total: float = Field(default=0)
    forma_pagamento: FormaPagamento = Field(default=FormaPagamento.DINHEIRO)
    troco_para: Optional[float] = None

    observacoes: Optional[str] = None
    motivo_cancelamento: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now, index=True)
    updated_at: datetime = Field(default_factory=datetime.now)

    # Relacionamentos
    itens: List["OrderItem"] = Relationship(
        back_populates="pedido", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    historico: List["OrderStatusHistory"] = Relationship(
        back_populates="pedido", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    entrega: Optional["Delivery"] = Relationship(
        back_populates="pedido", sa_relationship_kwargs={"uselist": False}
    )


class OrderItem(SQLModel, table=True):
    """Item do pedido"""
    __tablename__ = "pedido_itens"

    id: Optional[int] = Field(default=None, primary_key=True)

    pedido_id: int = Field(foreign_key="pedidos.id", index=True)
    pedido: Optional[Order] = Relationship(back_populates="itens")

    produto_id: Optional[int] = Field(default=None, foreign_key="produtos.id")
    nome_produto: str
    quantidade: int = Field(default=1)
    tamanho: Optional[str] = None

    sabores: Optional[list] = Field(default=None, sa_column=Column(JSON))
    adicionais: Optional[list] = Field(default=None, sa_column=Column(JSON))
    borda_recheada: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    preco_unitario: float  # Preço no momento do pedido
    preco_total: float
    observacoes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)


class OrderStatusHistory(SQLModel, table=True):
    """Histórico de mudança de status do pedido"""
    __tablename__ = "pedido_historico"

    id: Optional[int] = Field(default=None, primary_key=True)

    pedido_id: int = Field(foreign_key="pedidos.id", index=True)
    pedido: Optional[Order] = Relationship(back_populates="historico")

    status_anterior: Optional[str] = None
    status_novo: str
    alterado_por: Optional[str] = None
    observacao: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class Courier(SQLModel, table=True):
    """Motoboy"""
    __tablename__ = "motoboys"

    id: Optional[int] = Field(default=None, primary_key=True)
    nome: str
    telefone: str = Field(unique=True)
    cpf: Optional[str] = None
    placa_moto: Optional[str] = None

    status: StatusMotoboy = Field(default=StatusMotoboy.DISPONIVEL)
    ativo: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)

    entregas: List["Delivery"] = Relationship(back_populates="motoboy")


class Delivery(SQLModel, table=True):
    """Entrega - vincula pedido ao motoboy"""
    __tablename__ = "entregas"

    id: Optional[int] = Field(default=None, primary_key=True)

    pedido_id: int = Field(foreign_key="pedidos.id", unique=True)
    pedido: Optional[Order] = Relationship(back_populates="entrega")

    motoboy_id: Optional[int] = Field(default=None, foreign_key="motoboys.id")
    motoboy: Optional[Courier] = Relationship(back_populates="entregas")

    status: StatusEntrega = Field(default=StatusEntrega.PENDENTE)

    created_at: datetime = Field(default_factory=datetime.now)
    saiu_em: Optional[datetime] = None
    entregue_em: Optional[datetime] = None

    observacoes: Optional[str] = None


class DeliveryFeeZone(SQLModel, table=True):
    """Taxa de entrega por bairro / faixa de CEP"""
    __tablename__ = "taxas_entrega"

    id: Optional[int] = Field(default=None, primary_key=True)
    bairro: str = Field(index=True)
    cep_inicial: Optional[str] = None
    cep_final: Optional[str] = None
    taxa: float
    tempo_estimado_min: int = Field(default=30)
    tempo_estimado_max: int = Field(default=60)
    ativo: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
