"""
Customer Service - Gerenciamento de Clientes e Endereços
"""

from sqlmodel import Session, select, or_
from typing import Optional, List
from datetime import datetime

from pizzaria.models import Customer, Address, Order, StatusPedido
from pizzaria.validators import (
    only_digits, validate_sign_up, validate_endereco, validate_telefone, validate_email, validate_nome,
)


class CadastroInvalido(ValueError):
    """Dados de cadastro recusados pela validação"""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class CustomerService:
    """Serviço para gerenciar clientes"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, cliente_id: int) -> Optional[Customer]:
        """Busca cliente pelo ID"""
        return self.session.get(Customer, cliente_id)

    def get_by_email(self, email: str) -> Optional[Customer]:
        return self.session.exec(
            select(Customer).where(Customer.email == email.strip().lower())
        ).first()

    def get_by_phone(self, telefone: str) -> Optional[Customer]:
        """Busca cliente pelo telefone"""
        return self.session.exec(
            select(Customer).where(Customer.telefone == only_digits(telefone))
        ).first()

    def create(self, nome: str, email: str, telefone: str, senha_hash: str, senha: str) -> Customer:
        """Cria novo cliente; senha em texto só é usada para validação"""
        report = validate_sign_up(nome, email, telefone, senha)
        if not report.valid:
            raise CadastroInvalido(report.errors)
        if self.get_by_email(email):
            raise CadastroInvalido(["Já existe um cliente com este email"])

        cliente = Customer(
            nome=nome.strip(),
            email=email.strip().lower(),
            telefone=only_digits(telefone),
            senha_hash=senha_hash,
        )
        self.session.add(cliente)
        self.session.commit()
        self.session.refresh(cliente)
        return cliente

    def create_by_admin(self, nome: str, telefone: str, email: Optional[str] = None) -> Customer:
        """Cadastro rápido pelo painel/PDV, sem senha"""
        errors = []
        for result in (validate_nome(nome), validate_telefone(telefone)):
            if not result.valid:
                errors.append(result.error)
        if email:
            result = validate_email(email)
            if not result.valid:
                errors.append(result.error)
        if errors:
            raise CadastroInvalido(errors)

        cliente = Customer(
            nome=nome.strip(),
            telefone=only_digits(telefone),
            email=email.strip().lower() if email else None,
        )
        self.session.add(cliente)
        self.session.commit()
        self.session.refresh(cliente)
        return cliente

    def update(self, cliente_id: int, **kwargs) -> Optional[Customer]:
        """Atualiza dados do cliente"""
        cliente = self.get_by_id(cliente_id)
        if not cliente:
            return None

        if kwargs.get("telefone") is not None:
            result = validate_telefone(kwargs["telefone"])
            if not result.valid:
                raise CadastroInvalido([result.error])
            kwargs["telefone"] = result.cleaned
        if kwargs.get("email") is not None:
            result = validate_email(kwargs["email"])
            if not result.valid:
                raise CadastroInvalido([result.error])
            kwargs["email"] = result.cleaned

        for key, value in kwargs.items():
            if hasattr(cliente, key) and value is not None:
                setattr(cliente, key, value)

        cliente.updated_at = datetime.now()
        self.session.add(cliente)
        self.session.commit()
        self.session.refresh(cliente)
        return cliente

    def delete(self, cliente_id: int) -> bool:
        cliente = self.get_by_id(cliente_id)
        if not cliente:
            return False
        self.session.delete(cliente)
        self.session.commit()
        return True

    def search(self, busca: Optional[str] = None, apenas_ativos: bool = False) -> List[Customer]:
        """Lista clientes, filtrando por nome, email ou telefone"""
        query = select(Customer)
        if apenas_ativos:
            query = query.where(Customer.ativo == True)
        if busca:
            termo = f"%{busca.strip()}%"
            query = query.where(or_(
                Customer.nome.ilike(termo),
                Customer.email.ilike(termo),
                Customer.telefone.ilike(f"%{only_digits(busca) or busca.strip()}%"),
            ))
        return list(self.session.exec(query.order_by(Customer.nome)).all())

    def historico(self, cliente_id: int) -> dict:
        """Pedidos do cliente com total gasto (pedidos finalizados)"""
        pedidos = list(self.session.exec(
            select(Order).where(Order.cliente_id == cliente_id).order_by(Order.created_at.desc())
        ).all())
        finalizados = [p for p in pedidos if p.status == StatusPedido.FINALIZADO]
        total_gasto = round(sum(p.total for p in finalizados), 2)
        return {
            "pedidos": pedidos,
            "total_pedidos": len(pedidos),
            "total_gasto": total_gasto,
            "ticket_medio": round(total_gasto / len(finalizados), 2) if finalizados else 0,
            "ultimo_pedido": pedidos[0].created_at if pedidos else None,
        }

    # ===== ENDEREÇOS =====

    def list_addresses(self, cliente_id: int) -> List[Address]:
        return list(self.session.exec(
            select(Address)
            .where(Address.cliente_id == cliente_id)
            .order_by(Address.principal.desc(), Address.created_at)
        ).all())

    def get_address(self, cliente_id: int, endereco_id: int) -> Optional[Address]:
        endereco = self.session.get(Address, endereco_id)
        if not endereco or endereco.cliente_id != cliente_id:
            return None
        return endereco

    def add_address(self, cliente_id: int, **dados) -> Address:
        report = validate_endereco(
            dados.get("apelido", ""), dados.get("cep", ""), dados.get("logradouro", ""),
            dados.get("numero", ""), dados.get("bairro", ""), dados.get("cidade", ""),
            dados.get("estado", ""),
        )
        if not report.valid:
            raise CadastroInvalido(report.errors)

        existentes = self.list_addresses(cliente_id)
        principal = dados.pop("principal", False) or not existentes

        endereco = Address(
            cliente_id=cliente_id,
            **{**dados, "cep": only_digits(dados["cep"]), "estado": dados["estado"].strip().upper()},
        )
        self.session.add(endereco)
        self.session.commit()
        self.session.refresh(endereco)

        if principal:
            return self.set_principal(cliente_id, endereco.id)
        return endereco

    def update_address(self, cliente_id: int, endereco_id: int, **dados) -> Optional[Address]:
        endereco = self.get_address(cliente_id, endereco_id)
        if not endereco:
            return None

        merged = {**endereco.model_dump(), **{k: v for k, v in dados.items() if v is not None}}
        report = validate_endereco(
            merged["apelido"], merged["cep"], merged["logradouro"], merged["numero"],
            merged["bairro"], merged["cidade"], merged["estado"],
        )
        if not report.valid:
            raise CadastroInvalido(report.errors)

        principal = dados.pop("principal", None)
        for key, value in dados.items():
            if value is not None and hasattr(endereco, key):
                setattr(endereco, key, value)
        endereco.cep = only_digits(endereco.cep)
        endereco.estado = endereco.estado.strip().upper()
        self.session.add(endereco)
        self.session.commit()
        self.session.refresh(endereco)

        if principal:
            return self.set_principal(cliente_id, endereco.id)
        return endereco

    def set_principal(self, cliente_id: int, endereco_id: int) -> Optional[Address]:
        """Marca um endereço como principal, desmarcando os demais"""
        alvo = None
        for endereco in self.list_addresses(cliente_id):
            endereco.principal = endereco.id == endereco_id
            if endereco.principal:
                alvo = endereco
            self.session.add(endereco)
        self.session.commit()
        if alvo:
            self.session.refresh(alvo)
        return alvo

    def delete_address(self, cliente_id: int, endereco_id: int) -> bool:
        endereco = self.get_address(cliente_id, endereco_id)
        if not endereco:
            return False
        era_principal = endereco.principal
        self.session.delete(endereco)
        self.session.commit()

        restantes = self.list_addresses(cliente_id)
        if era_principal and restantes:
            self.set_principal(cliente_id, restantes[0].id)
        return True
