from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional, List
import logging
import uuid

import httpx
from fastapi import (
    FastAPI, WebSocket, WebSocketDisconnect, Depends, HTTPException, Request, Query, BackgroundTasks,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import SQLModel, Session, select

from pizzaria import __version__
from pizzaria.auth import (
    TOKEN_ADMIN, TOKEN_CLIENTE, get_session, hash_password, verify_password, create_token, decode_token,
    get_current_user, get_current_admin, get_current_cliente,
)
from pizzaria.cart import EstadoCarrinho, reduzir
from pizzaria.config import ALLOWED_ORIGINS, DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, engine
from pizzaria.kanban import COLUNAS_KANBAN, TransicaoInvalida, get_proximo_status
from pizzaria.logger import setup_logging, log_error
from pizzaria.models import User, Customer, Order, StatusPedido, StatusEntrega, StatusNotificacao, TipoEntrega
from pizzaria.realtime import manager, CANAL_PEDIDOS_ADMIN, CANAL_ENTREGAS, canal_pedido
from pizzaria.schemas import (
    CadastroPayload, LoginClientePayload, PerfilPayload, ClienteAdminPayload, ClienteUpdatePayload,
    EnderecoPayload, EnderecoUpdatePayload, CarrinhoAcaoPayload, CheckoutPayload, VendaPdvPayload,
    StatusPayload, CancelamentoPayload, ReordenarPayload, ProdutoPayload, ProdutoUpdatePayload,
    MotoboyPayload, MotoboyUpdatePayload, MotoboyStatusPayload, AtribuirMotoboyPayload,
    ConcluirEntregaPayload, TaxaPayload, TaxaUpdatePayload, AbrirCaixaPayload, LancamentoPayload,
    FecharCaixaPayload, FidelidadeConfigPayload, RecompensaPayload, RecompensaUpdatePayload,
    AvaliacaoPayload, RespostaAvaliacaoPayload, CupomFiscalConfigPayload, NotificacaoConfigPayload,
    NotificacaoTestePayload,
)
from pizzaria.services import (
    CustomerService, ProductService, FeeService, LoyaltyService, OrderService, CourierService,
    DeliveryService, CashRegisterService, ReviewService, FiscalService, NotificationService, ReportService,
)
from pizzaria.services.cash_register_service import CaixaInvalido, CATEGORIA_LABELS
from pizzaria.services.courier_service import MotoboyInvalido
from pizzaria.services.customer_service import CadastroInvalido
from pizzaria.services.delivery_service import EntregaInvalida, entrega_to_dict
from pizzaria.services.fee_service import TaxaInvalida, taxa_to_dict, buscar_endereco_por_cep
from pizzaria.services.fiscal_service import CupomInvalido
from pizzaria.services.loyalty_service import ResgateInvalido
from pizzaria.services.order_service import PedidoInvalido, pedido_to_dict
from pizzaria.services.review_service import AvaliacaoInvalida

logger = logging.getLogger(__name__)


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def seed_defaults(session: Session):
    """Admin padrão, cardápio e configurações iniciais"""
    if DEFAULT_ADMIN_PASSWORD and not session.exec(select(User).where(User.email == DEFAULT_ADMIN_EMAIL)).first():
        session.add(User(
            email=DEFAULT_ADMIN_EMAIL,
            name="Administrador",
            password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
            role="admin",
        ))
        session.commit()
        logger.info(f"Usuário admin criado: {DEFAULT_ADMIN_EMAIL}")

    ProductService(session).create_default_products()
    LoyaltyService(session).get_config()
    NotificationService(session).get_config()
    FiscalService(session).get_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_db_and_tables()
    with Session(engine) as session:
        seed_defaults(session)
    logger.info(f"Pizzaria API {__version__} iniciada")
    yield
    manager.recarregar_admin.cancelar()


app = FastAPI(title="Pizzaria API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    error_id = uuid.uuid4().hex[:8]
    log_error(logger, f"Erro não tratado [{error_id}] em {request.method} {request.url.path}", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Erro interno do servidor", "error_id": error_id},
    )


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport das integrações HTTP (substituído nos testes)"""
    return None


# ===== TEMPO REAL E NOTIFICAÇÕES (background) =====

async def publicar_pedido(evento: str, pedido: dict):
    try:
        await manager.publicar_pedido(evento, pedido)
    except Exception as e:
        log_error(logger, f"Erro ao publicar pedido {pedido.get('id')}", e)


async def publicar_entrega(evento: str, entrega: dict):
    try:
        await manager.publicar_entrega(evento, entrega)
    except Exception as e:
        log_error(logger, f"Erro ao publicar entrega {entrega.get('id')}", e)


async def notificar_cliente(pedido_id: int, transport: Optional[httpx.AsyncBaseTransport] = None):
    """Roda depois da resposta, com sessão própria"""
    try:
        with Session(engine) as session:
            await NotificationService(session, transport).notificar_pedido(pedido_id)
    except Exception as e:
        log_error(logger, f"Erro ao notificar pedido {pedido_id}", e)


def agendar_efeitos(background_tasks: BackgroundTasks, evento: str, pedido: Order, transport=None):
    background_tasks.add_task(publicar_pedido, evento, pedido_to_dict(pedido))
    background_tasks.add_task(notificar_cliente, pedido.id, transport)


# ===== ROTAS GERAIS =====

@app.get("/health")
def health():
    return {"status": "healthy", "version": __version__, "timestamp": datetime.now().isoformat()}


@app.post("/login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == form_data.username)).first()
    if not user or not user.ativo or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Credenciais inválidas")
    token = create_token({"sub": user.email, "tipo": TOKEN_ADMIN})
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@app.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


@app.post("/admin/usuarios")
def criar_usuario(
    email: str = Query(...),
    name: str = Query(...),
    password: str = Query(..., min_length=6),
    role: str = Query("operador", pattern="^(admin|operador)$"),
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin),
):
    if session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=400, detail="Usuário já existe com este email")
    user = User(email=email, name=name, password_hash=hash_password(password), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


# ===== CARDÁPIO =====

@app.get("/produtos")
def listar_produtos(categoria: Optional[str] = None, session: Session = Depends(get_session)):
    return ProductService(session).list_available(categoria)


@app.get("/produtos/{produto_id}")
def obter_produto(produto_id: int, session: Session = Depends(get_session)):
    produto = ProductService(session).get_by_id(produto_id)
    if not produto:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return produto


@app.get("/admin/produtos")
def admin_listar_produtos(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return ProductService(session).list_all()


@app.post("/admin/produtos", status_code=201)
def criar_produto(payload: ProdutoPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return ProductService(session).create(**payload.model_dump())


@app.put("/admin/produtos/{produto_id}")
def atualizar_produto(
    produto_id: int, payload: ProdutoUpdatePayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    produto = ProductService(session).update(produto_id, **payload.model_dump())
    if not produto:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return produto


@app.delete("/admin/produtos/{produto_id}", status_code=204)
def excluir_produto(produto_id: int, session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    if not ProductService(session).delete(produto_id):
        raise HTTPException(status_code=404, detail="Produto não encontrado")


# ===== CARRINHO =====

@app.post("/carrinho/acoes")
def aplicar_acao_carrinho(payload: CarrinhoAcaoPayload):
    """Aplica uma ação ao carrinho serializado e devolve o novo estado"""
    try:
        estado = EstadoCarrinho.from_dict(payload.estado)
        novo = reduzir(estado, payload.acao)
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Ação de carrinho inválida: {e}")
    return {**novo.to_dict(), "quantidade_itens": novo.quantidade_itens}


# ===== TAXAS DE ENTREGA =====

@app.get("/taxas/cep/{cep}")
def taxa_por_cep(cep: str, session: Session = Depends(get_session)):
    zona = FeeService(session).buscar_por_cep(cep)
    if not zona:
        raise HTTPException(status_code=404, detail="Desculpe, não entregamos neste CEP")
    return taxa_to_dict(zona)


@app.get("/taxas/bairro/{bairro}")
def taxa_por_bairro(bairro: str, session: Session = Depends(get_session)):
    zona = FeeService(session).buscar_por_bairro(bairro)
    if not zona:
        raise HTTPException(status_code=404, detail="Bairro não atendido")
    return taxa_to_dict(zona)


@app.get("/cep/{cep}")
async def endereco_por_cep(cep: str, transport=Depends(get_http_transport)):
    endereco = await buscar_endereco_por_cep(cep, transport)
    if not endereco:
        raise HTTPException(status_code=404, detail="CEP não encontrado")
    return endereco


@app.get("/admin/taxas")
def listar_taxas(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return FeeService(session).list_all()


@app.post("/admin/taxas", status_code=201)
def criar_taxa(payload: TaxaPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return FeeService(session).create(**payload.model_dump())
    except TaxaInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/admin/taxas/{zona_id}")
def atualizar_taxa(
    zona_id: int, payload: TaxaUpdatePayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    try:
        zona = FeeService(session).update(zona_id, **payload.model_dump())
    except TaxaInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not zona:
        raise HTTPException(status_code=404, detail="Taxa não encontrada")
    return zona


@app.patch("/admin/taxas/{zona_id}/ativo")
def alternar_taxa(zona_id: int, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    zona = FeeService(session).toggle(zona_id)
    if not zona:
        raise HTTPException(status_code=404, detail="Taxa não encontrada")
    return zona


@app.delete("/admin/taxas/{zona_id}", status_code=204)
def excluir_taxa(zona_id: int, session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    if not FeeService(session).delete(zona_id):
        raise HTTPException(status_code=404, detail="Taxa não encontrada")


# ===== CLIENTES (LOJA) =====

@app.post("/clientes/cadastro", status_code=201)
def cadastro_cliente(payload: CadastroPayload, session: Session = Depends(get_session)):
    try:
        cliente = CustomerService(session).create(
            payload.nome, payload.email, payload.telefone, hash_password(payload.senha), payload.senha
        )
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    token = create_token({"sub": str(cliente.id), "tipo": TOKEN_CLIENTE})
    return {"access_token": token, "token_type": "bearer", "cliente_id": cliente.id}


@app.post("/clientes/login")
def login_cliente(payload: LoginClientePayload, session: Session = Depends(get_session)):
    cliente = CustomerService(session).get_by_email(payload.email)
    if not cliente or not cliente.ativo or not verify_password(payload.senha, cliente.senha_hash):
        raise HTTPException(status_code=401, detail="Email ou senha inválidos")
    token = create_token({"sub": str(cliente.id), "tipo": TOKEN_CLIENTE})
    return {"access_token": token, "token_type": "bearer", "cliente_id": cliente.id}


@app.get("/clientes/me")
def perfil(cliente: Customer = Depends(get_current_cliente)):
    return cliente.model_dump(exclude={"senha_hash"})


@app.put("/clientes/me")
def atualizar_perfil(
    payload: PerfilPayload, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    try:
        atualizado = CustomerService(session).update(cliente.id, **payload.model_dump())
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    return atualizado.model_dump(exclude={"senha_hash"})


@app.get("/clientes/me/enderecos")
def listar_enderecos(session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente)):
    return CustomerService(session).list_addresses(cliente.id)


@app.post("/clientes/me/enderecos", status_code=201)
def adicionar_endereco(
    payload: EnderecoPayload, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    try:
        return CustomerService(session).add_address(cliente.id, **payload.model_dump())
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/clientes/me/enderecos/{endereco_id}")
def atualizar_endereco(
    endereco_id: int, payload: EnderecoUpdatePayload,
    session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    try:
        endereco = CustomerService(session).update_address(cliente.id, endereco_id, **payload.model_dump())
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not endereco:
        raise HTTPException(status_code=404, detail="Endereço não encontrado")
    return endereco


@app.post("/clientes/me/enderecos/{endereco_id}/principal")
def definir_endereco_principal(
    endereco_id: int, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    service = CustomerService(session)
    if not service.get_address(cliente.id, endereco_id):
        raise HTTPException(status_code=404, detail="Endereço não encontrado")
    return service.set_principal(cliente.id, endereco_id)


@app.delete("/clientes/me/enderecos/{endereco_id}", status_code=204)
def excluir_endereco(
    endereco_id: int, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    if not CustomerService(session).delete_address(cliente.id, endereco_id):
        raise HTTPException(status_code=404, detail="Endereço não encontrado")


# ===== PEDIDOS (LOJA) =====

@app.post("/pedidos", status_code=201)
def checkout(
    payload: CheckoutPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    cliente: Customer = Depends(get_current_cliente),
    transport=Depends(get_http_transport),
):
    endereco = payload.endereco.model_dump() if payload.endereco else None
    if endereco is None and payload.endereco_id:
        salvo = CustomerService(session).get_address(cliente.id, payload.endereco_id)
        if not salvo:
            raise HTTPException(status_code=404, detail="Endereço não encontrado")
        endereco = {
            "rua": salvo.logradouro, "numero": salvo.numero, "bairro": salvo.bairro, "cidade": salvo.cidade,
            "estado": salvo.estado, "cep": salvo.cep, "complemento": salvo.complemento,
        }

    try:
        pedido = OrderService(session).criar_pedido(
            cliente,
            payload.tipo_entrega,
            payload.itens,
            payload.forma_pagamento,
            endereco=endereco,
            troco_para=payload.troco_para,
            observacoes=payload.observacoes,
        )
    except PedidoInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))

    agendar_efeitos(background_tasks, "novo_pedido", pedido, transport)
    return pedido_to_dict(pedido, com_itens=True)


@app.get("/pedidos")
def meus_pedidos(
    apenas_ativos: bool = False,
    session: Session = Depends(get_session),
    cliente: Customer = Depends(get_current_cliente),
):
    return [pedido_to_dict(p) for p in OrderService(session).get_by_customer(cliente.id, apenas_ativos)]


def _pedido_do_cliente(session: Session, pedido_id: int, cliente: Customer) -> Order:
    pedido = OrderService(session).get_by_id(pedido_id)
    if not pedido or pedido.cliente_id != cliente.id:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    return pedido


@app.get("/pedidos/{pedido_id}")
def detalhe_pedido(pedido_id: int, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente)):
    pedido = _pedido_do_cliente(session, pedido_id, cliente)
    return {
        **pedido_to_dict(pedido, com_itens=True),
        "timeline": OrderService(session).timeline(pedido.id),
        "avaliacao": ReviewService(session).get_by_order(pedido.id),
    }


@app.post("/pedidos/{pedido_id}/avaliacao", status_code=201)
def avaliar_pedido(
    pedido_id: int, payload: AvaliacaoPayload,
    session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    try:
        return ReviewService(session).avaliar(cliente.id, pedido_id, payload.nota, payload.comentario)
    except AvaliacaoInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/clientes/me/fidelidade")
def minha_fidelidade(session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente)):
    service = LoyaltyService(session)
    fidelidade = service.get_cliente(cliente.id)
    return {
        "pontos_atuais": fidelidade.pontos_atuais if fidelidade else 0,
        "pontos_totais": fidelidade.pontos_totais if fidelidade else 0,
        "nivel": fidelidade.nivel.value if fidelidade else "bronze",
        "recompensas": service.list_rewards(apenas_ativos=True),
    }


@app.post("/clientes/me/resgates/{recompensa_id}", status_code=201)
def resgatar_recompensa(
    recompensa_id: int, session: Session = Depends(get_session), cliente: Customer = Depends(get_current_cliente),
):
    try:
        return LoyaltyService(session).resgatar(cliente.id, recompensa_id)
    except ResgateInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


# ===== KANBAN DE PEDIDOS (ADMIN) =====

@app.get("/admin/kanban/colunas")
def colunas_kanban(user: User = Depends(get_current_user)):
    return [{"id": c.id.value, "titulo": c.titulo, "ordem": c.ordem} for c in COLUNAS_KANBAN]


@app.get("/admin/pedidos")
def listar_pedidos_kanban(
    status: Optional[List[StatusPedido]] = Query(None),
    tipo_entrega: Optional[List[TipoEntrega]] = Query(None),
    data_inicio: Optional[datetime] = None,
    data_fim: Optional[datetime] = None,
    busca: Optional[str] = None,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    quadro = OrderService(session).quadro(
        status=status, tipo_entrega=tipo_entrega, data_inicio=data_inicio, data_fim=data_fim, busca=busca,
    )
    return {
        status_coluna: [pedido_to_dict(p) for p in pedidos]
        for status_coluna, pedidos in quadro.colunas().items()
    }


@app.get("/admin/pedidos/estatisticas")
def estatisticas_pedidos(
    data_inicio: Optional[datetime] = None,
    data_fim: Optional[datetime] = None,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return OrderService(session).estatisticas(data_inicio=data_inicio, data_fim=data_fim)


@app.get("/admin/pedidos/{pedido_id}")
def admin_detalhe_pedido(pedido_id: int, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    service = OrderService(session)
    pedido = service.get_by_id(pedido_id)
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    proximo = get_proximo_status(pedido.status)
    return {
        **pedido_to_dict(pedido, com_itens=True),
        "timeline": service.timeline(pedido.id),
        "proximo_status": proximo.value if proximo else None,
        "entrega": entrega_to_dict(pedido.entrega) if pedido.entrega else None,
    }


@app.patch("/admin/pedidos/{pedido_id}/status")
def atualizar_status_pedido(
    pedido_id: int,
    payload: StatusPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        pedido = OrderService(session).atualizar_status(
            pedido_id, payload.status, alterado_por=user.name, observacao=payload.observacao
        )
    except TransicaoInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")

    agendar_efeitos(background_tasks, "status_alterado", pedido, transport)
    return pedido_to_dict(pedido)


@app.post("/admin/pedidos/{pedido_id}/avancar")
def avancar_pedido(
    pedido_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        pedido = OrderService(session).avancar(pedido_id, alterado_por=user.name)
    except TransicaoInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")

    agendar_efeitos(background_tasks, "status_alterado", pedido, transport)
    return pedido_to_dict(pedido)


@app.post("/admin/pedidos/{pedido_id}/cancelar")
def cancelar_pedido(
    pedido_id: int,
    payload: CancelamentoPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    try:
        pedido = OrderService(session).cancelar(pedido_id, payload.motivo, alterado_por=user.name)
    except TransicaoInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")

    background_tasks.add_task(publicar_pedido, "status_alterado", pedido_to_dict(pedido))
    return pedido_to_dict(pedido)


@app.patch("/admin/pedidos/{pedido_id}/ordem")
def reordenar_pedido(
    pedido_id: int,
    payload: ReordenarPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    coluna = OrderService(session).reordenar(pedido_id, payload.posicao)
    if coluna is None:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    background_tasks.add_task(manager.recarregar_admin.agendar)
    return [{"id": p.id, "ordem_kanban": p.ordem_kanban} for p in coluna]


# ===== PDV =====

@app.post("/admin/pdv/vendas", status_code=201)
def venda_pdv(
    payload: VendaPdvPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    try:
        pedido = OrderService(session).criar_venda_pdv(
            payload.itens,
            tipo_entrega=payload.tipo_entrega,
            forma_pagamento=payload.forma_pagamento,
            cliente_id=payload.cliente_id,
            mesa_numero=payload.mesa_numero,
            troco_para=payload.troco_para,
            observacoes=payload.observacoes,
            alterado_por=user.name,
        )
    except PedidoInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(publicar_pedido, "novo_pedido", pedido_to_dict(pedido))
    return pedido_to_dict(pedido, com_itens=True)


# ===== ENTREGAS =====

@app.get("/admin/entregas")
def listar_entregas(
    status: Optional[StatusEntrega] = None,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return [entrega_to_dict(e) for e in DeliveryService(session).list_all(status)]


@app.get("/admin/entregas/estatisticas")
def estatisticas_entregas(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return DeliveryService(session).estatisticas()


@app.post("/admin/pedidos/{pedido_id}/entrega", status_code=201)
def criar_entrega(
    pedido_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    try:
        entrega = DeliveryService(session).criar_para_pedido(pedido_id)
    except EntregaInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not entrega:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    background_tasks.add_task(publicar_entrega, "entrega_criada", entrega_to_dict(entrega))
    return entrega_to_dict(entrega)


@app.post("/admin/entregas/{entrega_id}/motoboy")
def atribuir_motoboy(
    entrega_id: int,
    payload: AtribuirMotoboyPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    try:
        entrega = DeliveryService(session).assign_courier(entrega_id, payload.motoboy_id)
    except EntregaInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not entrega:
        raise HTTPException(status_code=404, detail="Entrega ou motoboy não encontrado")
    background_tasks.add_task(publicar_entrega, "motoboy_atribuido", entrega_to_dict(entrega))
    return entrega_to_dict(entrega)


@app.post("/admin/entregas/{entrega_id}/iniciar")
def iniciar_entrega(
    entrega_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        entrega = DeliveryService(session).start_delivery(entrega_id, alterado_por=user.name)
    except (EntregaInvalida, TransicaoInvalida) as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not entrega:
        raise HTTPException(status_code=404, detail="Entrega não encontrada")

    background_tasks.add_task(publicar_entrega, "saiu_entrega", entrega_to_dict(entrega))
    agendar_efeitos(background_tasks, "status_alterado", entrega.pedido, transport)
    return entrega_to_dict(entrega)


@app.post("/admin/entregas/{entrega_id}/concluir")
def concluir_entrega(
    entrega_id: int,
    payload: ConcluirEntregaPayload,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        entrega = DeliveryService(session).complete_delivery(
            entrega_id, observacoes=payload.observacoes, alterado_por=user.name
        )
    except (EntregaInvalida, TransicaoInvalida) as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not entrega:
        raise HTTPException(status_code=404, detail="Entrega não encontrada")

    background_tasks.add_task(publicar_entrega, "entregue", entrega_to_dict(entrega))
    agendar_efeitos(background_tasks, "status_alterado", entrega.pedido, transport)
    return entrega_to_dict(entrega)


# ===== MOTOBOYS =====

@app.get("/admin/motoboys")
def listar_motoboys(
    apenas_ativos: bool = True, session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    return CourierService(session).list_all(apenas_ativos)


@app.get("/admin/motoboys/disponiveis")
def motoboys_disponiveis(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return CourierService(session).list_available()


@app.post("/admin/motoboys", status_code=201)
def criar_motoboy(payload: MotoboyPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return CourierService(session).create(**payload.model_dump())
    except MotoboyInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/admin/motoboys/{motoboy_id}")
def atualizar_motoboy(
    motoboy_id: int, payload: MotoboyUpdatePayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    try:
        motoboy = CourierService(session).update(motoboy_id, **payload.model_dump())
    except MotoboyInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not motoboy:
        raise HTTPException(status_code=404, detail="Motoboy não encontrado")
    return motoboy


@app.patch("/admin/motoboys/{motoboy_id}/status")
def status_motoboy(
    motoboy_id: int, payload: MotoboyStatusPayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    motoboy = CourierService(session).update_status(motoboy_id, payload.status)
    if not motoboy:
        raise HTTPException(status_code=404, detail="Motoboy não encontrado")
    return motoboy


@app.delete("/admin/motoboys/{motoboy_id}", status_code=204)
def excluir_motoboy(motoboy_id: int, session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    if not CourierService(session).delete(motoboy_id):
        raise HTTPException(status_code=404, detail="Motoboy não encontrado")


# ===== CAIXA =====

def _caixa_com_resumo(service: CashRegisterService, caixa) -> dict:
    return {
        "caixa": caixa,
        "resumo": service.resumo(caixa),
        "lancamentos": [
            {**l.model_dump(), "categoria_label": CATEGORIA_LABELS[l.categoria]}
            for l in service.lancamentos(caixa.id)
        ],
    }


@app.get("/admin/caixa")
def caixa_atual(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    service = CashRegisterService(session)
    caixa = service.get_aberto()
    if not caixa:
        return {"caixa": None, "resumo": {"entradas": 0, "saidas": 0, "saldo_atual": 0}, "lancamentos": []}
    return _caixa_com_resumo(service, caixa)


@app.get("/admin/caixa/historico")
def historico_caixas(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return CashRegisterService(session).list_all()


@app.post("/admin/caixa/abrir", status_code=201)
def abrir_caixa(payload: AbrirCaixaPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    service = CashRegisterService(session)
    try:
        caixa = service.abrir(payload.saldo_inicial, aberto_por=user.name)
    except CaixaInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _caixa_com_resumo(service, caixa)


@app.post("/admin/caixa/lancamentos", status_code=201)
def lancar_no_caixa(payload: LancamentoPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return CashRegisterService(session).lancar(**payload.model_dump())
    except CaixaInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/admin/caixa/vendas/{pedido_id}", status_code=201)
def lancar_venda_no_caixa(pedido_id: int, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    pedido = OrderService(session).get_by_id(pedido_id)
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    if pedido.status == StatusPedido.CANCELADO:
        raise HTTPException(status_code=400, detail="Pedido cancelado")
    try:
        return CashRegisterService(session).lancar_venda(pedido)
    except CaixaInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/admin/caixa/fechar")
def fechar_caixa(payload: FecharCaixaPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return CashRegisterService(session).fechar(payload.observacoes)
    except CaixaInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


# ===== FIDELIDADE =====

@app.get("/recompensas")
def recompensas_ativas(session: Session = Depends(get_session)):
    return LoyaltyService(session).list_rewards(apenas_ativos=True)


@app.get("/admin/fidelidade/config")
def config_fidelidade(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return LoyaltyService(session).get_config()


@app.put("/admin/fidelidade/config")
def atualizar_config_fidelidade(
    payload: FidelidadeConfigPayload, session: Session = Depends(get_session), admin: User = Depends(get_current_admin),
):
    try:
        return LoyaltyService(session).update_config(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/admin/fidelidade/ranking")
def ranking_fidelidade(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return LoyaltyService(session).ranking()


@app.get("/admin/fidelidade/estatisticas")
def estatisticas_fidelidade(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return LoyaltyService(session).estatisticas()


@app.get("/admin/recompensas")
def listar_recompensas(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return LoyaltyService(session).list_rewards()


@app.post("/admin/recompensas", status_code=201)
def criar_recompensa(payload: RecompensaPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return LoyaltyService(session).create_reward(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/admin/recompensas/{recompensa_id}")
def atualizar_recompensa(
    recompensa_id: int, payload: RecompensaUpdatePayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    try:
        recompensa = LoyaltyService(session).update_reward(recompensa_id, **payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not recompensa:
        raise HTTPException(status_code=404, detail="Recompensa não encontrada")
    return recompensa


@app.delete("/admin/recompensas/{recompensa_id}", status_code=204)
def excluir_recompensa(recompensa_id: int, session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    if not LoyaltyService(session).delete_reward(recompensa_id):
        raise HTTPException(status_code=404, detail="Recompensa não encontrada")


# ===== AVALIAÇÕES =====

@app.get("/admin/avaliacoes")
def listar_avaliacoes(
    nota: Optional[int] = None,
    sem_resposta: bool = False,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    service = ReviewService(session)
    return {"avaliacoes": service.list_all(nota, sem_resposta), "estatisticas": service.estatisticas()}


@app.post("/admin/avaliacoes/{avaliacao_id}/resposta")
def responder_avaliacao(
    avaliacao_id: int, payload: RespostaAvaliacaoPayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    try:
        avaliacao = ReviewService(session).responder(avaliacao_id, payload.resposta)
    except AvaliacaoInvalida as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not avaliacao:
        raise HTTPException(status_code=404, detail="Avaliação não encontrada")
    return avaliacao


# ===== CUPOM FISCAL =====

@app.get("/admin/cupom-fiscal/config")
def config_cupom_fiscal(session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    return FiscalService(session).get_config()


@app.put("/admin/cupom-fiscal/config")
def atualizar_config_cupom_fiscal(
    payload: CupomFiscalConfigPayload, session: Session = Depends(get_session), admin: User = Depends(get_current_admin),
):
    try:
        return FiscalService(session).update_config(**payload.model_dump())
    except CupomInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/admin/cupom-fiscal")
def listar_cupons(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return FiscalService(session).list_all()


@app.post("/admin/pedidos/{pedido_id}/cupom-fiscal", status_code=201)
async def emitir_cupom_fiscal(
    pedido_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        cupom = await FiscalService(session, transport).emitir(pedido_id)
    except CupomInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not cupom:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    return cupom


# ===== NOTIFICAÇÕES =====

@app.get("/admin/notificacoes/config")
def config_notificacoes(session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    return NotificationService(session).get_config()


@app.put("/admin/notificacoes/config")
def atualizar_config_notificacoes(
    payload: NotificacaoConfigPayload, session: Session = Depends(get_session), admin: User = Depends(get_current_admin),
):
    try:
        return NotificationService(session).update_config(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/admin/notificacoes/teste")
async def notificacao_teste(
    payload: NotificacaoTestePayload,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    transport=Depends(get_http_transport),
):
    try:
        return await NotificationService(session, transport).enviar_teste(payload.telefone, payload.mensagem)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/admin/notificacoes/historico")
def historico_notificacoes(
    status: Optional[StatusNotificacao] = None,
    limite: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return NotificationService(session).historico(limite, status)


@app.get("/admin/notificacoes/estatisticas")
def estatisticas_notificacoes(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return NotificationService(session).estatisticas()


# ===== CLIENTES (ADMIN) =====

@app.get("/admin/clientes")
def listar_clientes(
    busca: Optional[str] = None, session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    return [c.model_dump(exclude={"senha_hash"}) for c in CustomerService(session).search(busca)]


@app.post("/admin/clientes", status_code=201)
def criar_cliente(payload: ClienteAdminPayload, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        cliente = CustomerService(session).create_by_admin(payload.nome, payload.telefone, payload.email)
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    return cliente.model_dump(exclude={"senha_hash"})


@app.put("/admin/clientes/{cliente_id}")
def atualizar_cliente(
    cliente_id: int, payload: ClienteUpdatePayload,
    session: Session = Depends(get_session), user: User = Depends(get_current_user),
):
    try:
        cliente = CustomerService(session).update(cliente_id, **payload.model_dump())
    except CadastroInvalido as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not cliente:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return cliente.model_dump(exclude={"senha_hash"})


@app.delete("/admin/clientes/{cliente_id}", status_code=204)
def excluir_cliente(cliente_id: int, session: Session = Depends(get_session), admin: User = Depends(get_current_admin)):
    if not CustomerService(session).delete(cliente_id):
        raise HTTPException(status_code=404, detail="Cliente não encontrado")


@app.get("/admin/clientes/{cliente_id}/historico")
def historico_cliente(cliente_id: int, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    service = CustomerService(session)
    if not service.get_by_id(cliente_id):
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    historico = service.historico(cliente_id)
    historico["pedidos"] = [pedido_to_dict(p) for p in historico["pedidos"]]
    return historico


# ===== RELATÓRIOS =====

@app.get("/admin/relatorios")
def relatorio_vendas(periodo: int = 7, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return ReportService(session).relatorio(periodo)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/admin/relatorios/csv")
def exportar_relatorio(periodo: int = 7, session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        conteudo = ReportService(session).exportar_csv(periodo)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    nome = f"relatorio_vendas_{datetime.now().strftime('%d-%m-%Y')}.csv"
    return Response(
        content=conteudo,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{nome}"'},
    )


# ===== WEBSOCKETS =====

def _token_valido(token: str, tipo: str) -> Optional[str]:
    try:
        return decode_token(token, tipo)
    except HTTPException:
        return None


async def _manter_conexao(websocket: WebSocket, canal: str):
    await manager.connect(websocket, canal)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, canal)


@app.websocket("/ws/pedidos")
async def ws_pedidos_admin(websocket: WebSocket, token: str = Query(...)):
    if not _token_valido(token, TOKEN_ADMIN):
        await websocket.close(code=1008)
        return
    await _manter_conexao(websocket, CANAL_PEDIDOS_ADMIN)


@app.websocket("/ws/entregas")
async def ws_entregas(websocket: WebSocket, token: str = Query(...)):
    if not _token_valido(token, TOKEN_ADMIN):
        await websocket.close(code=1008)
        return
    await _manter_conexao(websocket, CANAL_ENTREGAS)


@app.websocket("/ws/pedidos/{pedido_id}")
async def ws_pedido(websocket: WebSocket, pedido_id: int, token: str = Query(...)):
    """Acompanhamento de um pedido: o cliente dono do pedido ou a equipe"""
    permitido = _token_valido(token, TOKEN_ADMIN) is not None
    if not permitido:
        cliente_id = _token_valido(token, TOKEN_CLIENTE)
        if cliente_id:
            with Session(engine) as session:
                pedido = session.get(Order, pedido_id)
                permitido = pedido is not None and str(pedido.cliente_id) == cliente_id
    if not permitido:
        await websocket.close(code=1008)
        return
    await _manter_conexao(websocket, canal_pedido(pedido_id))
