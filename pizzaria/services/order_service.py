"""
Order Service - Gerenciamento de Pedidos
"""

import logging
from sqlmodel import Session, select, or_, func
from typing import Optional, List
from datetime import datetime

from pizzaria.cart import EstadoCarrinho, ItemCarrinho, adicionar_item, round_money
from pizzaria.config import TAXA_ENTREGA_PDV
from pizzaria.kanban import QuadroKanban, MudancaStatus, TransicaoInvalida, get_proximo_status
from pizzaria.models import (
    Order, OrderItem, OrderStatusHistory, Customer, Delivery, Courier,
    StatusPedido, TipoEntrega, FormaPagamento, OrigemPedido, StatusEntrega, StatusMotoboy,
)
from pizzaria.retry import query_with_retry
from pizzaria.services.fee_service import FeeService
from pizzaria.services.loyalty_service import LoyaltyService
from pizzaria.services.product_service import ProductService
from pizzaria.validators import (
    format_adicionais_display, format_sabores_display, only_digits, validate_adicionais,
    validate_borda_recheada, validate_sabores,
)

logger = logging.getLogger(__name__)

CLIENTE_BALCAO = "Cliente Balcão"


class PedidoInvalido(ValueError):
    """Pedido recusado antes de qualquer escrita"""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class OrderService:
    """Serviço para gerenciar pedidos"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, order_id: int) -> Optional[Order]:
        """Busca pedido pelo ID"""
        return self.session.get(Order, order_id)

    def get_by_numero(self, numero_pedido: str) -> Optional[Order]:
        return self.session.exec(
            select(Order).where(Order.numero_pedido == numero_pedido)
        ).first()

    def get_by_customer(self, cliente_id: int, apenas_ativos: bool = False) -> List[Order]:
        """Lista pedidos de um cliente"""
        query = select(Order).where(Order.cliente_id == cliente_id)
        if apenas_ativos:
            query = query.where(Order.status.not_in([StatusPedido.FINALIZADO, StatusPedido.CANCELADO]))
        return list(self.session.exec(query.order_by(Order.created_at.desc())).all())

    def timeline(self, pedido_id: int) -> List[OrderStatusHistory]:
        """Histórico de status do pedido em ordem cronológica"""
        return list(self.session.exec(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.pedido_id == pedido_id)
            .order_by(OrderStatusHistory.created_at, OrderStatusHistory.id)
        ).all())

    # ===== CRIAÇÃO =====

    def gerar_numero_pedido(self, data: Optional[datetime] = None) -> str:
        """AAAAMMDD-NNNN, sequencial dentro do dia"""
        prefixo = (data or datetime.now()).strftime("%Y%m%d")
        existentes = self.session.exec(
            select(func.count()).select_from(Order).where(Order.numero_pedido.like(f"{prefixo}-%"))
        ).one()
        return f"{prefixo}-{existentes + 1:04d}"

    def precificar_itens(self, linhas: List[ItemCarrinho]) -> EstadoCarrinho:
        """
        Recalcula o carrinho com preços do cardápio.

        O preço base vem do produto (por tamanho); adicionais e borda vêm da
        linha. Linhas com a mesma configuração são somadas.
        """
        errors = []
        estado = EstadoCarrinho()
        produtos = ProductService(self.session)

        for linha in linhas:
            try:
                produto = produtos.get_by_id(int(linha.produto_id))
            except ValueError:
                produto = None
            if not produto or not produto.disponivel:
                errors.append(f"Produto indisponível: {linha.nome}")
                continue
            if linha.quantidade <= 0:
                errors.append(f"Quantidade inválida para {produto.nome}")
                continue
            if not validate_sabores(linha.sabores):
                errors.append(f"Sabores inválidos para {produto.nome}")
                continue
            if not validate_adicionais([a.model_dump() for a in linha.adicionais]):
                errors.append(f"Adicionais inválidos para {produto.nome}")
                continue
            if linha.borda_recheada and not validate_borda_recheada(linha.borda_recheada.model_dump()):
                errors.append(f"Borda recheada inválida para {produto.nome}")
                continue

            base = ProductService.preco_por_tamanho(produto, linha.tamanho)
            linha = linha.model_copy(update={"nome": produto.nome, "preco_base": base})
            estado = adicionar_item(estado, linha, linha.quantidade)

        if errors:
            raise PedidoInvalido(errors)
        return estado

    def _itens_do_carrinho(self, estado: EstadoCarrinho) -> List[OrderItem]:
        itens = []
        for linha in estado.items:
            observacoes = linha.observacoes
            if linha.observacoes_sabores:
                por_sabor = "; ".join(f"{sabor}: {obs}" for sabor, obs in linha.observacoes_sabores.items())
                observacoes = f"{observacoes} | {por_sabor}" if observacoes else por_sabor
            itens.append(OrderItem(
                produto_id=int(linha.produto_id),
                nome_produto=linha.nome,
                quantidade=linha.quantidade,
                tamanho=linha.tamanho,
                sabores=linha.sabores or None,
                adicionais=[a.model_dump() for a in linha.adicionais] or None,
                borda_recheada=linha.borda_recheada.model_dump() if linha.borda_recheada else None,
                preco_unitario=linha.preco,
                preco_total=linha.preco_total,
                observacoes=observacoes,
            ))
        return itens

    def _salvar_novo_pedido(self, pedido: Order, itens: List[OrderItem], alterado_por: Optional[str]) -> Order:
        """Pedido, itens e histórico inicial em um único commit"""
        try:
            pedido.numero_pedido = self.gerar_numero_pedido()
            self.session.add(pedido)
            self.session.flush()
            for item in itens:
                item.pedido_id = pedido.id
                self.session.add(item)
            self.session.add(OrderStatusHistory(
                pedido_id=pedido.id,
                status_anterior=None,
                status_novo=StatusPedido.PENDENTE.value,
                alterado_por=alterado_por,
                observacao="Pedido criado",
            ))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(pedido)
        logger.info(f"Pedido {pedido.numero_pedido} criado ({pedido.origem.value}, total {pedido.total})")
        return pedido

    @staticmethod
    def _validar_troco(forma_pagamento: FormaPagamento, troco_para: Optional[float], total: float) -> List[str]:
        if forma_pagamento == FormaPagamento.DINHEIRO and troco_para is not None and troco_para < total:
            return ["O valor do troco deve ser maior que o total do pedido"]
        return []

    def criar_pedido(
        self,
        cliente: Customer,
        tipo_entrega: TipoEntrega,
        itens: List[ItemCarrinho],
        forma_pagamento: FormaPagamento,
        endereco: Optional[dict] = None,
        troco_para: Optional[float] = None,
        observacoes: Optional[str] = None,
    ) -> Order:
        """
        Cria pedido da loja online.

        Preços e taxa de entrega são calculados aqui; valores enviados pelo
        cliente não são usados.
        """
        tipo_entrega = TipoEntrega(tipo_entrega)
        forma_pagamento = FormaPagamento(forma_pagamento)

        if not itens:
            raise PedidoInvalido(["O pedido não tem itens"])
        if tipo_entrega == TipoEntrega.MESA:
            raise PedidoInvalido(["Pedidos online são para entrega ou retirada no balcão"])

        taxa_entrega = 0.0
        if tipo_entrega == TipoEntrega.DELIVERY:
            if not endereco or not endereco.get("cep") or not endereco.get("rua"):
                raise PedidoInvalido(["Endereço é obrigatório para delivery"])
            zona = FeeService(self.session).calcular_taxa(endereco["cep"], endereco.get("bairro"))
            if zona is None:
                raise PedidoInvalido(["Desculpe, não entregamos neste CEP"])
            taxa_entrega = zona.taxa

        estado = self.precificar_itens(itens)
        total = round_money(estado.total + taxa_entrega)

        errors = self._validar_troco(forma_pagamento, troco_para, total)
        if errors:
            raise PedidoInvalido(errors)

        pedido = Order(
            numero_pedido="",
            cliente_id=cliente.id,
            nome_cliente=cliente.nome,
            telefone_cliente=cliente.telefone,
            tipo_entrega=tipo_entrega,
            origem=OrigemPedido.ONLINE,
            subtotal=estado.total,
            taxa_entrega=taxa_entrega,
            total=total,
            forma_pagamento=forma_pagamento,
            troco_para=troco_para if forma_pagamento == FormaPagamento.DINHEIRO else None,
            observacoes=observacoes,
        )
        if tipo_entrega == TipoEntrega.DELIVERY:
            pedido.endereco_rua = endereco.get("rua")
            pedido.endereco_numero = endereco.get("numero")
            pedido.endereco_bairro = endereco.get("bairro")
            pedido.endereco_cidade = endereco.get("cidade")
            pedido.endereco_estado = endereco.get("estado")
            pedido.endereco_cep = only_digits(endereco.get("cep"))
            pedido.endereco_complemento = endereco.get("complemento")

        return self._salvar_novo_pedido(pedido, self._itens_do_carrinho(estado), alterado_por=cliente.nome)

    def criar_venda_pdv(
        self,
        itens: List[ItemCarrinho],
        tipo_entrega: TipoEntrega = TipoEntrega.BALCAO,
        forma_pagamento: FormaPagamento = FormaPagamento.DINHEIRO,
        cliente_id: Optional[int] = None,
        mesa_numero: Optional[str] = None,
        troco_para: Optional[float] = None,
        observacoes: Optional[str] = None,
        alterado_por: Optional[str] = None,
    ) -> Order:
        """Venda de balcão (PDV); delivery usa taxa fixa e exige cliente"""
        tipo_entrega = TipoEntrega(tipo_entrega)
        forma_pagamento = FormaPagamento(forma_pagamento)

        errors = []
        if not itens:
            errors.append("O pedido não tem itens")
        cliente = self.session.get(Customer, cliente_id) if cliente_id else None
        if cliente_id and not cliente:
            errors.append("Cliente não encontrado")
        if tipo_entrega == TipoEntrega.DELIVERY and not cliente:
            errors.append("Selecione o cliente para delivery")
        if tipo_entrega == TipoEntrega.MESA and not (mesa_numero or "").strip():
            errors.append("Informe o número da mesa")
        if errors:
            raise PedidoInvalido(errors)

        estado = self.precificar_itens(itens)
        taxa_entrega = TAXA_ENTREGA_PDV if tipo_entrega == TipoEntrega.DELIVERY else 0.0
        total = round_money(estado.total + taxa_entrega)

        errors = self._validar_troco(forma_pagamento, troco_para, total)
        if errors:
            raise PedidoInvalido(errors)

        pedido = Order(
            numero_pedido="",
            cliente_id=cliente.id if cliente else None,
            nome_cliente=cliente.nome if cliente else CLIENTE_BALCAO,
            telefone_cliente=cliente.telefone if cliente else None,
            tipo_entrega=tipo_entrega,
            origem=OrigemPedido.PDV,
            mesa_numero=mesa_numero.strip() if tipo_entrega == TipoEntrega.MESA else None,
            subtotal=estado.total,
            taxa_entrega=taxa_entrega,
            total=total,
            forma_pagamento=forma_pagamento,
            troco_para=troco_para if forma_pagamento == FormaPagamento.DINHEIRO else None,
            observacoes=observacoes,
        )
        if tipo_entrega == TipoEntrega.DELIVERY and cliente and cliente.enderecos:
            endereco = next((e for e in cliente.enderecos if e.principal), cliente.enderecos[0])
            pedido.endereco_rua = endereco.logradouro
            pedido.endereco_numero = endereco.numero
            pedido.endereco_bairro = endereco.bairro
            pedido.endereco_cidade = endereco.cidade
            pedido.endereco_estado = endereco.estado
            pedido.endereco_cep = endereco.cep
            pedido.endereco_complemento = endereco.complemento

        return self._salvar_novo_pedido(pedido, self._itens_do_carrinho(estado), alterado_por=alterado_por)

    # ===== KANBAN =====

    def listar_kanban(
        self,
        status: Optional[List[StatusPedido]] = None,
        tipo_entrega: Optional[List[TipoEntrega]] = None,
        data_inicio: Optional[datetime] = None,
        data_fim: Optional[datetime] = None,
        busca: Optional[str] = None,
    ) -> List[Order]:
        """Lista pedidos do Kanban aplicando os filtros do painel"""
        query = select(Order)
        if status:
            query = query.where(Order.status.in_([StatusPedido(s) for s in status]))
        if tipo_entrega:
            query = query.where(Order.tipo_entrega.in_([TipoEntrega(t) for t in tipo_entrega]))
        if data_inicio:
            query = query.where(Order.created_at >= data_inicio)
        if data_fim:
            query = query.where(Order.created_at <= data_fim)
        if busca:
            termo = f"%{busca.strip()}%"
            query = query.where(or_(
                Order.numero_pedido.ilike(termo),
                Order.nome_cliente.ilike(termo),
                Order.telefone_cliente.ilike(termo),
            ))
        query = query.order_by(Order.ordem_kanban, Order.created_at)

        return query_with_retry(
            lambda: list(self.session.exec(query).all()), delay=0.5, rollback=self.session.rollback
        )

    def quadro(self, **filtros) -> QuadroKanban:
        return QuadroKanban(self.listar_kanban(**filtros))

    def estatisticas(self, **filtros) -> List[dict]:
        """Quantidade e valor por coluna"""
        return self.quadro(**filtros).estatisticas()

    def atualizar_status(
        self,
        pedido_id: int,
        novo_status: StatusPedido,
        alterado_por: Optional[str] = None,
        observacao: Optional[str] = None,
        motivo_cancelamento: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Move o pedido de coluna.

        Status, histórico e efeitos (entrega, fidelidade) são gravados no
        mesmo commit; se algo falhar, nada é gravado e o pedido em memória
        volta ao status anterior. Transição fora da tabela levanta
        TransicaoInvalida.
        """
        pedido = self.get_by_id(pedido_id)
        if not pedido:
            return None

        quadro = QuadroKanban([pedido])
        quadro.mover(
            pedido_id,
            novo_status,
            persistir=self._persistir_mudanca,
            alterado_por=alterado_por,
            motivo_cancelamento=motivo_cancelamento,
            observacao=observacao,
        )
        self.session.refresh(pedido)
        logger.info(
            f"Pedido {pedido.numero_pedido}: {pedido.status_anterior.value} -> {pedido.status.value}"
            f" por {alterado_por or 'sistema'}"
        )
        return pedido

    def _persistir_mudanca(self, pedido: Order, comando: MudancaStatus):
        try:
            self.session.add(pedido)
            self.session.add(comando.historico)
            self._aplicar_efeitos(pedido)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _aplicar_efeitos(self, pedido: Order):
        """Efeitos da nova coluna, na mesma transação da mudança de status"""
        entrega = self.session.exec(select(Delivery).where(Delivery.pedido_id == pedido.id)).first()

        if pedido.status == StatusPedido.SAIU_ENTREGA and pedido.tipo_entrega == TipoEntrega.DELIVERY:
            if entrega is None:
                entrega = Delivery(pedido_id=pedido.id)
            if entrega.motoboy_id and entrega.status == StatusEntrega.PENDENTE:
                entrega.status = StatusEntrega.EM_ROTA
                entrega.saiu_em = datetime.now()
            self.session.add(entrega)

        elif pedido.status == StatusPedido.FINALIZADO:
            if entrega is not None and entrega.status != StatusEntrega.ENTREGUE:
                entrega.status = StatusEntrega.ENTREGUE
                entrega.entregue_em = datetime.now()
                self._liberar_motoboy(entrega)
                self.session.add(entrega)
            LoyaltyService(self.session).creditar_pedido(pedido, commit=False)

        elif pedido.status == StatusPedido.CANCELADO and entrega is not None:
            # entrega de pedido cancelado fica sem motoboy e não sai mais
            self._liberar_motoboy(entrega)
            entrega.motoboy_id = None
            self.session.add(entrega)

    def _liberar_motoboy(self, entrega: Delivery):
        if entrega.motoboy_id:
            motoboy = self.session.get(Courier, entrega.motoboy_id)
            if motoboy and motoboy.status == StatusMotoboy.OCUPADO:
                motoboy.status = StatusMotoboy.DISPONIVEL
                self.session.add(motoboy)

    def avancar(self, pedido_id: int, alterado_por: Optional[str] = None) -> Optional[Order]:
        """Botão 'avançar': próximo status do fluxo"""
        pedido = self.get_by_id(pedido_id)
        if not pedido:
            return None
        proximo = get_proximo_status(pedido.status)
        if proximo is None:
            raise TransicaoInvalida(pedido.status, pedido.status)
        # balcão e mesa não saem para entrega
        if proximo == StatusPedido.SAIU_ENTREGA and pedido.tipo_entrega != TipoEntrega.DELIVERY:
            proximo = StatusPedido.FINALIZADO
        return self.atualizar_status(pedido_id, proximo, alterado_por=alterado_por)

    def cancelar(self, pedido_id: int, motivo: str, alterado_por: Optional[str] = None) -> Optional[Order]:
        """Cancela pedido"""
        return self.atualizar_status(
            pedido_id, StatusPedido.CANCELADO, alterado_por=alterado_por, motivo_cancelamento=motivo
        )

    def reordenar(self, pedido_id: int, nova_posicao: int) -> Optional[List[Order]]:
        """Reposiciona o pedido dentro da coluna atual"""
        pedido = self.get_by_id(pedido_id)
        if not pedido:
            return None
        coluna = list(self.session.exec(select(Order).where(Order.status == pedido.status)).all())
        reordenados = QuadroKanban(coluna).reordenar(pedido_id, nova_posicao)
        for item in reordenados:
            self.session.add(item)
        self.session.commit()
        return reordenados

    def list_finalizados(self, desde: datetime) -> List[Order]:
        """Pedidos finalizados a partir de uma data (relatórios)"""
        return query_with_retry(lambda: list(self.session.exec(
            select(Order)
            .where(Order.status == StatusPedido.FINALIZADO)
            .where(Order.created_at >= desde)
            .order_by(Order.created_at)
        ).all()), delay=0.5, rollback=self.session.rollback)


def pedido_to_dict(pedido: Order, com_itens: bool = False) -> dict:
    """Representação usada nas respostas e nos eventos de tempo real"""
    data = {
        "id": pedido.id,
        "numero_pedido": pedido.numero_pedido,
        "cliente_id": pedido.cliente_id,
        "nome_cliente": pedido.nome_cliente,
        "telefone_cliente": pedido.telefone_cliente,
        "tipo_entrega": pedido.tipo_entrega.value,
        "origem": pedido.origem.value,
        "mesa_numero": pedido.mesa_numero,
        "status": pedido.status.value,
        "status_anterior": pedido.status_anterior.value if pedido.status_anterior else None,
        "ordem_kanban": pedido.ordem_kanban,
        "subtotal": pedido.subtotal,
        "taxa_entrega": pedido.taxa_entrega,
        "desconto": pedido.desconto,
        "total": pedido.total,
        "forma_pagamento": pedido.forma_pagamento.value,
        "troco_para": pedido.troco_para,
        "observacoes": pedido.observacoes,
        "motivo_cancelamento": pedido.motivo_cancelamento,
        "endereco": {
            "rua": pedido.endereco_rua,
            "numero": pedido.endereco_numero,
            "bairro": pedido.endereco_bairro,
            "cidade": pedido.endereco_cidade,
            "estado": pedido.endereco_estado,
            "cep": pedido.endereco_cep,
            "complemento": pedido.endereco_complemento,
        } if pedido.tipo_entrega == TipoEntrega.DELIVERY else None,
        "created_at": pedido.created_at.isoformat(),
        "updated_at": pedido.updated_at.isoformat() if pedido.updated_at else None,
    }
    if com_itens:
        data["itens"] = [
            {
                **item.model_dump(exclude={"created_at"}),
                "sabores_display": format_sabores_display(item.sabores),
                "adicionais_display": format_adicionais_display(item.adicionais),
            }
            for item in pedido.itens
        ]
    return data
