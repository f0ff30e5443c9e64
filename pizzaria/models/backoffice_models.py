"""
Models do back-office: caixa, fidelidade, avaliações, cupom fiscal e notificações
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ===== ENUMS =====

class StatusCaixa(str, Enum):
    ABERTO = "aberto"
    FECHADO = "fechado"


class TipoLancamento(str, Enum):
    ENTRADA = "entrada"
    SAIDA = "saida"


class CategoriaLancamento(str, Enum):
    VENDA = "venda"
    TAXA_ENTREGA = "taxa_entrega"
    SANGRIA = "sangria"
    SUPRIMENTO = "suprimento"
    DESPESA = "despesa"
    OUTROS = "outros"


class NivelFidelidade(str, Enum):
    BRONZE = "bronze"
    PRATA = "prata"
    OURO = "ouro"


class StatusCupom(str, Enum):
    PENDENTE = "pendente"
    EMITIDO = "emitido"
    ERRO = "erro"


class StatusNotificacao(str, Enum):
    ENVIADA = "enviada"
    FALHA = "falha"


# ===== CAIXA =====

class CashRegister(SQLModel, table=True):
    """Caixa - sessão de caixa com saldo de abertura e fechamento"""
    __tablename__ = "caixas"

    id: Optional[int] = Field(default=None, primary_key=True)
    data_abertura: datetime = Field(default_factory=datetime.now)
    data_fechamento: Optional[datetime] = None
    saldo_inicial: float
    saldo_final: Optional[float] = None
    status: StatusCaixa = Field(default=StatusCaixa.ABERTO, index=True)
    aberto_por: Optional[str] = None
    observacoes: Optional[str] = None

    lancamentos: List["CashEntry"] = Relationship(back_populates="caixa")


class CashEntry(SQLModel, table=True):
    """Lançamento de entrada ou saída no caixa"""
    __tablename__ = "lancamentos"

    id: Optional[int] = Field(default=None, primary_key=True)
    caixa_id: int = Field(foreign_key="caixas.id", index=True)
    caixa: Optional[CashRegister] = Relationship(back_populates="lancamentos")

    tipo: TipoLancamento
    categoria: CategoriaLancamento = Field(default=CategoriaLancamento.OUTROS)
    valor: float
    descricao: Optional[str] = None
    pedido_id: Optional[int] = Field(default=None, foreign_key="pedidos.id")
    criado_em: datetime = Field(default_factory=datetime.now)


# ===== FIDELIDADE =====

class LoyaltyConfig(SQLModel, table=True):
    """Configuração do programa de fidelidade (linha única)"""
    __tablename__ = "fidelidade_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    pontos_por_real: float = Field(default=1)
    ativo: bool = Field(default=True)
    nivel_bronze_min: int = Field(default=0)
    nivel_prata_min: int = Field(default=100)
    nivel_ouro_min: int = Field(default=500)
    updated_at: Optional[datetime] = None


class LoyaltyCustomer(SQLModel, table=True):
    """Saldo de pontos de um cliente"""
    __tablename__ = "clientes_fidelidade"

    id: Optional[int] = Field(default=None, primary_key=True)
    cliente_id: int = Field(foreign_key="clientes.id", unique=True)
    pontos_atuais: int = Field(default=0)
    pontos_totais: int = Field(default=0)
    nivel: NivelFidelidade = Field(default=NivelFidelidade.BRONZE)
    updated_at: datetime = Field(default_factory=datetime.now)


class Reward(SQLModel, table=True):
    """Recompensa resgatável com pontos"""
    __tablename__ = "recompensas"

    id: Optional[int] = Field(default=None, primary_key=True)
    nome: str
    descricao: Optional[str] = None
    pontos_necessarios: int
    ativo: bool = Field(default=True)
    estoque: Optional[int] = None  # None = ilimitado
    created_at: datetime = Field(default_factory=datetime.now)


class RewardRedemption(SQLModel, table=True):
    """Resgate de recompensa por um cliente"""
    __tablename__ = "resgates"

    id: Optional[int] = Field(default=None, primary_key=True)
    cliente_id: int = Field(foreign_key="clientes.id", index=True)
    recompensa_id: int = Field(foreign_key="recompensas.id")
    pontos_utilizados: int
    criado_em: datetime = Field(default_factory=datetime.now)


# ===== AVALIAÇÕES =====

class Review(SQLModel, table=True):
    """Avaliação de um pedido finalizado"""
    __tablename__ = "avaliacoes"

    id: Optional[int] = Field(default=None, primary_key=True)
    pedido_id: int = Field(foreign_key="pedidos.id", unique=True)
    cliente_id: int = Field(foreign_key="clientes.id", index=True)
    nota: int
    comentario: Optional[str] = None
    resposta_admin: Optional[str] = None
    criado_em: datetime = Field(default_factory=datetime.now)
    respondido_em: Optional[datetime] = None


# ===== CUPOM FISCAL =====

class FiscalReceiptConfig(SQLModel, table=True):
    """Credenciais da API de emissão de NFC-e"""
    __tablename__ = "cupom_fiscal_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    cnpj: Optional[str] = None
    razao_social: Optional[str] = None
    ambiente: str = Field(default="homologacao")  # homologacao | producao
    ativo: bool = Field(default=False)
    updated_at: Optional[datetime] = None


class FiscalReceipt(SQLModel, table=True):
    """NFC-e emitida para um pedido"""
    __tablename__ = "cupons_fiscais"

    id: Optional[int] = Field(default=None, primary_key=True)
    pedido_id: int = Field(foreign_key="pedidos.id", index=True)
    status: StatusCupom = Field(default=StatusCupom.PENDENTE)
    numero: Optional[str] = None
    chave_acesso: Optional[str] = None
    url_danfe: Optional[str] = None
    valor_total: float = Field(default=0)
    mensagem_erro: Optional[str] = None
    resposta: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    criado_em: datetime = Field(default_factory=datetime.now)


# ===== NOTIFICAÇÕES =====

class NotificationConfig(SQLModel, table=True):
    """Configuração da API de WhatsApp e dos eventos notificados"""
    __tablename__ = "notificacoes_config"

    id: Optional[int] = Field(default=None, primary_key=True)
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    instancia: Optional[str] = None
    ativo: bool = Field(default=False)
    notificar_novo_pedido: bool = Field(default=True)
    notificar_pedido_pronto: bool = Field(default=True)
    notificar_saiu_entrega: bool = Field(default=True)
    notificar_entregue: bool = Field(default=True)
    updated_at: Optional[datetime] = None


class NotificationHistory(SQLModel, table=True):
    """Histórico de mensagens enviadas"""
    __tablename__ = "notificacoes_historico"

    id: Optional[int] = Field(default=None, primary_key=True)
    telefone: str
    mensagem: str
    tipo: str
    status: StatusNotificacao
    pedido_id: Optional[int] = Field(default=None, foreign_key="pedidos.id")
    erro: Optional[str] = None
    criado_em: datetime = Field(default_factory=datetime.now)
