"""
Courier Service - Gerenciamento de Motoboys
"""

from sqlmodel import Session, select
from typing import Optional, List
from pizzaria.models import Courier, StatusMotoboy
from pizzaria.validators import only_digits, validate_telefone, validate_nome, validate_cpf


class MotoboyInvalido(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def normalizar_placa(placa: Optional[str]) -> Optional[str]:
    """ABC1D23 / ABC-1234 -> maiúsculas sem hífen"""
    if not placa:
        return None
    return placa.replace("-", "").replace(" ", "").upper()


class CourierService:
    """Serviço para gerenciar motoboys"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, motoboy_id: int) -> Optional[Courier]:
        """Busca motoboy pelo ID"""
        return self.session.get(Courier, motoboy_id)

    def get_by_phone(self, telefone: str) -> Optional[Courier]:
        """Busca motoboy pelo telefone"""
        return self.session.exec(
            select(Courier).where(Courier.telefone == only_digits(telefone))
        ).first()

    def _validar(self, nome: str, telefone: str, cpf: Optional[str], motoboy_id: Optional[int] = None) -> None:
        errors = []
        for result in (validate_nome(nome), validate_telefone(telefone)):
            if not result.valid:
                errors.append(result.error)
        if cpf:
            result = validate_cpf(cpf)
            if not result.valid:
                errors.append(result.error)

        existente = self.get_by_phone(telefone)
        if existente and existente.id != motoboy_id:
            errors.append("Já existe um motoboy com este telefone")
        if errors:
            raise MotoboyInvalido(errors)

    def create(
        self,
        nome: str,
        telefone: str,
        cpf: Optional[str] = None,
        placa_moto: Optional[str] = None,
    ) -> Courier:
        """Cria novo motoboy"""
        self._validar(nome, telefone, cpf)
        motoboy = Courier(
            nome=nome.strip(),
            telefone=only_digits(telefone),
            cpf=only_digits(cpf) or None,
            placa_moto=normalizar_placa(placa_moto),
        )
        self.session.add(motoboy)
        self.session.commit()
        self.session.refresh(motoboy)
        return motoboy

    def update(self, motoboy_id: int, **dados) -> Optional[Courier]:
        motoboy = self.get_by_id(motoboy_id)
        if not motoboy:
            return None

        self._validar(
            dados.get("nome") or motoboy.nome,
            dados.get("telefone") or motoboy.telefone,
            dados.get("cpf"),
            motoboy_id=motoboy_id,
        )
        if dados.get("telefone"):
            dados["telefone"] = only_digits(dados["telefone"])
        if dados.get("cpf"):
            dados["cpf"] = only_digits(dados["cpf"])
        if dados.get("placa_moto"):
            dados["placa_moto"] = normalizar_placa(dados["placa_moto"])

        for key, value in dados.items():
            if value is not None and hasattr(motoboy, key):
                setattr(motoboy, key, value)
        self.session.add(motoboy)
        self.session.commit()
        self.session.refresh(motoboy)
        return motoboy

    def delete(self, motoboy_id: int) -> bool:
        motoboy = self.get_by_id(motoboy_id)
        if not motoboy:
            return False
        self.session.delete(motoboy)
        self.session.commit()
        return True

    def update_status(self, motoboy_id: int, status: StatusMotoboy) -> Optional[Courier]:
        """Atualiza status do motoboy"""
        motoboy = self.get_by_id(motoboy_id)
        if not motoboy:
            return None

        motoboy.status = StatusMotoboy(status)
        self.session.add(motoboy)
        self.session.commit()
        self.session.refresh(motoboy)
        return motoboy

    def list_available(self) -> List[Courier]:
        """Lista motoboys disponíveis"""
        return list(self.session.exec(
            select(Courier)
            .where(Courier.status == StatusMotoboy.DISPONIVEL)
            .where(Courier.ativo == True)
            .order_by(Courier.nome)
        ).all())

    def list_all(self, apenas_ativos: bool = True) -> List[Courier]:
        """Lista todos os motoboys"""
        query = select(Courier)
        if apenas_ativos:
            query = query.where(Courier.ativo == True)
        return list(self.session.exec(query.order_by(Courier.nome)).all())
