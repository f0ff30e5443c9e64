"""
Payloads das rotas (pydantic)
"""

from typing import Optional, List, Union

from pydantic import BaseModel, Field

from pizzaria.cart import ItemCarrinho
from pizzaria.models import (
    StatusPedido, TipoEntrega, FormaPagamento, StatusMotoboy, TipoLancamento, CategoriaLancamento,
)


# ===== CLIENTES =====

class CadastroPayload(BaseModel):
    nome: str
    email: str
    telefone: str
    senha: str


class LoginClientePayload(BaseModel):
    email: str
    senha: str


class PerfilPayload(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[str] = None


class ClienteAdminPayload(BaseModel):
    nome: str
    telefone: str
    email: Optional[str] = None


class ClienteUpdatePayload(PerfilPayload):
    ativo: Optional[bool] = None


class EnderecoPayload(BaseModel):
    apelido: str
    cep: str
    logradouro: str
    numero: str
    complemento: Optional[str] = None
    bairro: str
    cidade: str
    estado: str
    ponto_referencia: Optional[str] = None
    principal: bool = False


class EnderecoUpdatePayload(BaseModel):
    apelido: Optional[str] = None
    cep: Optional[str] = None
    logradouro: Optional[str] = None
    numero: Optional[str] = None
    complemento: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    ponto_referencia: Optional[str] = None
    principal: Optional[bool] = None


# ===== CARRINHO E PEDIDOS =====

class CarrinhoAcaoPayload(BaseModel):
    estado: Optional[dict] = None
    acao: dict


class EnderecoEntrega(BaseModel):
    rua: str
    numero: str
    bairro: str
    cidade: str
    estado: str
    cep: str
    complemento: Optional[str] = None


class CheckoutPayload(BaseModel):
    tipo_entrega: TipoEntrega
    forma_pagamento: FormaPagamento
    itens: List[ItemCarrinho]
    endereco: Optional[EnderecoEntrega] = None
    endereco_id: Optional[int] = None
    troco_para: Optional[float] = None
    observacoes: Optional[str] = None


class VendaPdvPayload(BaseModel):
    itens: List[ItemCarrinho]
    tipo_entrega: TipoEntrega = TipoEntrega.BALCAO
    forma_pagamento: FormaPagamento = FormaPagamento.DINHEIRO
    cliente_id: Optional[int] = None
    mesa_numero: Optional[str] = None
    troco_para: Optional[float] = None
    observacoes: Optional[str] = None


class StatusPayload(BaseModel):
    status: StatusPedido
    observacao: Optional[str] = None


class CancelamentoPayload(BaseModel):
    motivo: str = Field(min_length=3)


class ReordenarPayload(BaseModel):
    posicao: int = Field(ge=0)


# ===== PRODUTOS =====

class ProdutoPayload(BaseModel):
    nome: str
    descricao: Optional[str] = None
    categoria: str = "pizza"
    tipo: str = "pizza"
    preco: float = Field(ge=0)
    preco_broto: Optional[float] = Field(default=None, ge=0)
    disponivel: bool = True
    destaque: bool = False


class ProdutoUpdatePayload(BaseModel):
    nome: Optional[str] = None
    descricao: Optional[str] = None
    categoria: Optional[str] = None
    preco: Optional[float] = Field(default=None, ge=0)
    preco_broto: Optional[float] = Field(default=None, ge=0)
    disponivel: Optional[bool] = None
    destaque: Optional[bool] = None


# ===== ENTREGAS E MOTOBOYS =====

class MotoboyPayload(BaseModel):
    nome: str
    telefone: str
    cpf: Optional[str] = None
    placa_moto: Optional[str] = None


class MotoboyUpdatePayload(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    cpf: Optional[str] = None
    placa_moto: Optional[str] = None
    ativo: Optional[bool] = None


class MotoboyStatusPayload(BaseModel):
    status: StatusMotoboy


class AtribuirMotoboyPayload(BaseModel):
    motoboy_id: int


class ConcluirEntregaPayload(BaseModel):
    observacoes: Optional[str] = None


class TaxaPayload(BaseModel):
    bairro: str
    taxa: float
    cep_inicial: Optional[str] = None
    cep_final: Optional[str] = None
    tempo_estimado_min: int = 30
    tempo_estimado_max: int = 60
    ativo: bool = True


class TaxaUpdatePayload(BaseModel):
    bairro: Optional[str] = None
    taxa: Optional[float] = None
    cep_inicial: Optional[str] = None
    cep_final: Optional[str] = None
    tempo_estimado_min: Optional[int] = None
    tempo_estimado_max: Optional[int] = None
    ativo: Optional[bool] = None


# ===== CAIXA =====

class AbrirCaixaPayload(BaseModel):
    saldo_inicial: Union[float, str]


class LancamentoPayload(BaseModel):
    tipo: TipoLancamento
    valor: Union[float, str]  # número ou "10,00"
    categoria: CategoriaLancamento = CategoriaLancamento.OUTROS
    descricao: Optional[str] = None
    pedido_id: Optional[int] = None


class FecharCaixaPayload(BaseModel):
    observacoes: Optional[str] = None


# ===== FIDELIDADE E AVALIAÇÕES =====

class FidelidadeConfigPayload(BaseModel):
    pontos_por_real: Optional[float] = None
    ativo: Optional[bool] = None
    nivel_bronze_min: Optional[int] = None
    nivel_prata_min: Optional[int] = None
    nivel_ouro_min: Optional[int] = None


class RecompensaPayload(BaseModel):
    nome: str
    descricao: Optional[str] = None
    pontos_necessarios: int
    ativo: bool = True
    estoque: Optional[int] = Field(default=None, ge=0)


class RecompensaUpdatePayload(BaseModel):
    nome: Optional[str] = None
    descricao: Optional[str] = None
    pontos_necessarios: Optional[int] = None
    ativo: Optional[bool] = None
    estoque: Optional[int] = Field(default=None, ge=0)


class AvaliacaoPayload(BaseModel):
    nota: int
    comentario: Optional[str] = None


class RespostaAvaliacaoPayload(BaseModel):
    resposta: str


# ===== INTEGRAÇÕES =====

class CupomFiscalConfigPayload(BaseModel):
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    cnpj: Optional[str] = None
    razao_social: Optional[str] = None
    ambiente: Optional[str] = None
    ativo: Optional[bool] = None


class NotificacaoConfigPayload(BaseModel):
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    instancia: Optional[str] = None
    ativo: Optional[bool] = None
    notificar_novo_pedido: Optional[bool] = None
    notificar_pedido_pronto: Optional[bool] = None
    notificar_saiu_entrega: Optional[bool] = None
    notificar_entregue: Optional[bool] = None


class NotificacaoTestePayload(BaseModel):
    telefone: str
    mensagem: str
