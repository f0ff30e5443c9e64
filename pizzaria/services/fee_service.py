"""
Fee Service - Taxas de entrega por bairro e faixa de CEP
"""

import logging
from typing import Optional, List

import httpx
from sqlmodel import Session, select

from pizzaria.config import VIACEP_API_URL, HTTP_TIMEOUT
from pizzaria.models import DeliveryFeeZone
from pizzaria.validators import only_digits, validate_cep

logger = logging.getLogger(__name__)

CEP_LENGTH = 8


class TaxaInvalida(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def formatar_cep(cep: str) -> str:
    """00000-000; devolve o valor original se não tiver 8 dígitos"""
    digits = only_digits(cep)
    if len(digits) != CEP_LENGTH:
        return cep
    return f"{digits[:5]}-{digits[5:]}"


def taxa_to_dict(zona: DeliveryFeeZone) -> dict:
    return {
        "taxa": zona.taxa,
        "bairro": zona.bairro,
        "tempo_min": zona.tempo_estimado_min,
        "tempo_max": zona.tempo_estimado_max,
        "faixa_cep": (
            f"{formatar_cep(zona.cep_inicial)} a {formatar_cep(zona.cep_final)}"
            if zona.cep_inicial and zona.cep_final else None
        ),
    }


class FeeService:
    """Serviço para gerenciar taxas de entrega"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, zona_id: int) -> Optional[DeliveryFeeZone]:
        return self.session.get(DeliveryFeeZone, zona_id)

    def list_all(self, apenas_ativos: bool = False) -> List[DeliveryFeeZone]:
        query = select(DeliveryFeeZone)
        if apenas_ativos:
            query = query.where(DeliveryFeeZone.ativo == True)
        return list(self.session.exec(query.order_by(DeliveryFeeZone.bairro)).all())

    def _validar(self, dados: dict) -> dict:
        errors = []
        if not (dados.get("bairro") or "").strip():
            errors.append("Bairro é obrigatório")
        if dados.get("taxa") is None or dados["taxa"] < 0:
            errors.append("Taxa deve ser maior ou igual a zero")

        cep_inicial = only_digits(dados.get("cep_inicial")) or None
        cep_final = only_digits(dados.get("cep_final")) or None
        for cep in filter(None, (cep_inicial, cep_final)):
            result = validate_cep(cep)
            if not result.valid:
                errors.append(result.error)
                break
        if cep_inicial and cep_final and cep_inicial > cep_final:
            errors.append("CEP inicial deve ser menor ou igual ao CEP final")

        minimo = dados.get("tempo_estimado_min", 30)
        maximo = dados.get("tempo_estimado_max", 60)
        if minimo is not None and maximo is not None and minimo > maximo:
            errors.append("Tempo mínimo deve ser menor ou igual ao máximo")

        if errors:
            raise TaxaInvalida(errors)
        return {**dados, "bairro": dados["bairro"].strip(), "cep_inicial": cep_inicial, "cep_final": cep_final}

    def create(self, **dados) -> DeliveryFeeZone:
        zona = DeliveryFeeZone(**self._validar(dados))
        self.session.add(zona)
        self.session.commit()
        self.session.refresh(zona)
        return zona

    def update(self, zona_id: int, **dados) -> Optional[DeliveryFeeZone]:
        zona = self.get_by_id(zona_id)
        if not zona:
            return None
        atual = zona.model_dump(exclude={"id", "created_at"})
        merged = self._validar({**atual, **{k: v for k, v in dados.items() if v is not None}})
        for key, value in merged.items():
            setattr(zona, key, value)
        self.session.add(zona)
        self.session.commit()
        self.session.refresh(zona)
        return zona

    def delete(self, zona_id: int) -> bool:
        zona = self.get_by_id(zona_id)
        if not zona:
            return False
        self.session.delete(zona)
        self.session.commit()
        return True

    def toggle(self, zona_id: int) -> Optional[DeliveryFeeZone]:
        zona = self.get_by_id(zona_id)
        if not zona:
            return None
        zona.ativo = not zona.ativo
        self.session.add(zona)
        self.session.commit()
        self.session.refresh(zona)
        return zona

    def buscar_por_cep(self, cep: str) -> Optional[DeliveryFeeZone]:
        """Zona ativa cuja faixa de CEP contém o CEP informado"""
        result = validate_cep(cep)
        if not result.valid:
            logger.info(f"CEP inválido para busca de taxa: {cep}")
            return None
        digits = result.cleaned
        zona = self.session.exec(
            select(DeliveryFeeZone)
            .where(DeliveryFeeZone.ativo == True)
            .where(DeliveryFeeZone.cep_inicial <= digits)
            .where(DeliveryFeeZone.cep_final >= digits)
            .order_by(DeliveryFeeZone.taxa)
        ).first()
        if not zona:
            logger.info(f"Nenhuma taxa encontrada para o CEP: {cep}")
        return zona

    def buscar_por_bairro(self, bairro: str) -> Optional[DeliveryFeeZone]:
        if not bairro:
            return None
        return self.session.exec(
            select(DeliveryFeeZone)
            .where(DeliveryFeeZone.ativo == True)
            .where(DeliveryFeeZone.bairro.ilike(bairro.strip()))
        ).first()

    def calcular_taxa(self, cep: Optional[str], bairro: Optional[str] = None) -> Optional[DeliveryFeeZone]:
        """CEP primeiro; bairro como alternativa"""
        zona = self.buscar_por_cep(cep) if cep else None
        if zona is None and bairro:
            zona = self.buscar_por_bairro(bairro)
        return zona


async def buscar_endereco_por_cep(cep: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Optional[dict]:
    """Consulta o ViaCEP; None para CEP inválido, inexistente ou falha de rede"""
    result = validate_cep(cep)
    if not result.valid:
        return None
    digits = result.cleaned

    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport) as client:
            response = await client.get(f"{VIACEP_API_URL}/{digits}/json/")
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Erro ao consultar ViaCEP para {digits}: {e}")
        return None

    if data.get("erro"):
        return None

    return {
        "logradouro": data.get("logradouro") or "",
        "bairro": data.get("bairro") or "",
        "localidade": data.get("localidade") or "",
        "uf": data.get("uf") or "",
    }
