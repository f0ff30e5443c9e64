"""
Loyalty Service - Programa de fidelidade (pontos, níveis e recompensas)
"""

import logging
from datetime import datetime
from typing import Optional, List

from sqlmodel import Session, select

from pizzaria.models import (
    LoyaltyConfig, LoyaltyCustomer, Reward, RewardRedemption, NivelFidelidade, Order,
)

logger = logging.getLogger(__name__)


class ResgateInvalido(ValueError):
    pass


class LoyaltyService:
    """Serviço do programa de fidelidade"""

    def __init__(self, session: Session):
        self.session = session

    # ===== CONFIGURAÇÃO =====

    def get_config(self) -> LoyaltyConfig:
        """Configuração única; criada com os valores padrão na primeira leitura"""
        config = self.session.exec(select(LoyaltyConfig)).first()
        if not config:
            config = LoyaltyConfig()
            self.session.add(config)
            self.session.commit()
            self.session.refresh(config)
        return config

    def update_config(self, **dados) -> LoyaltyConfig:
        config = self.get_config()
        merged = {**config.model_dump(), **{k: v for k, v in dados.items() if v is not None}}

        if merged["pontos_por_real"] <= 0:
            raise ValueError("Pontos por real deve ser maior que zero")
        if not merged["nivel_bronze_min"] <= merged["nivel_prata_min"] <= merged["nivel_ouro_min"]:
            raise ValueError("Os níveis devem estar em ordem crescente (bronze ≤ prata ≤ ouro)")

        for key, value in dados.items():
            if value is not None and hasattr(config, key):
                setattr(config, key, value)
        config.updated_at = datetime.now()
        self.session.add(config)
        self.session.commit()
        self.session.refresh(config)
        return config

    @staticmethod
    def calcular_nivel(pontos_totais: int, config: LoyaltyConfig) -> NivelFidelidade:
        if pontos_totais >= config.nivel_ouro_min:
            return NivelFidelidade.OURO
        if pontos_totais >= config.nivel_prata_min:
            return NivelFidelidade.PRATA
        return NivelFidelidade.BRONZE

    # ===== PONTOS =====

    def get_cliente(self, cliente_id: int) -> Optional[LoyaltyCustomer]:
        return self.session.exec(
            select(LoyaltyCustomer).where(LoyaltyCustomer.cliente_id == cliente_id)
        ).first()

    def _get_or_create_cliente(self, cliente_id: int) -> LoyaltyCustomer:
        fidelidade = self.get_cliente(cliente_id)
        if not fidelidade:
            fidelidade = LoyaltyCustomer(cliente_id=cliente_id)
        return fidelidade

    def creditar_pedido(self, pedido: Order, commit: bool = True) -> Optional[LoyaltyCustomer]:
        """Credita pontos do pedido finalizado (valor dos produtos, sem taxa de entrega)"""
        if pedido.cliente_id is None:
            return None
        # sem gravar a configuração padrão: pode rodar dentro da transação do pedido
        config = self.session.exec(select(LoyaltyConfig)).first() or LoyaltyConfig()
        if not config.ativo:
            return None

        pontos = int(pedido.subtotal * config.pontos_por_real)
        if pontos <= 0:
            return None

        fidelidade = self._get_or_create_cliente(pedido.cliente_id)
        fidelidade.pontos_atuais += pontos
        fidelidade.pontos_totais += pontos
        fidelidade.nivel = self.calcular_nivel(fidelidade.pontos_totais, config)
        fidelidade.updated_at = datetime.now()
        self.session.add(fidelidade)

        logger.info(f"Fidelidade: +{pontos} pontos para cliente {pedido.cliente_id} (pedido {pedido.numero_pedido})")
        if commit:
            self.session.commit()
            self.session.refresh(fidelidade)
        return fidelidade

    def ranking(self, limite: int = 50) -> List[LoyaltyCustomer]:
        return list(self.session.exec(
            select(LoyaltyCustomer).order_by(LoyaltyCustomer.pontos_atuais.desc()).limit(limite)
        ).all())

    def estatisticas(self) -> dict:
        clientes = list(self.session.exec(select(LoyaltyCustomer)).all())
        resgates = self.session.exec(select(RewardRedemption)).all()
        return {
            "total_clientes": len(clientes),
            "total_pontos": sum(c.pontos_atuais for c in clientes),
            "resgates_realizados": len(resgates),
        }

    # ===== RECOMPENSAS =====

    def list_rewards(self, apenas_ativos: bool = False) -> List[Reward]:
        query = select(Reward)
        if apenas_ativos:
            query = query.where(Reward.ativo == True)
        return list(self.session.exec(query.order_by(Reward.pontos_necessarios)).all())

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        return self.session.get(Reward, reward_id)

    def create_reward(self, **dados) -> Reward:
        if not (dados.get("nome") or "").strip():
            raise ValueError("Nome é obrigatório")
        if dados.get("pontos_necessarios", 0) <= 0:
            raise ValueError("Pontos necessários deve ser maior que zero")
        reward = Reward(**dados)
        self.session.add(reward)
        self.session.commit()
        self.session.refresh(reward)
        return reward

    def update_reward(self, reward_id: int, **dados) -> Optional[Reward]:
        reward = self.get_reward(reward_id)
        if not reward:
            return None
        if dados.get("pontos_necessarios") is not None and dados["pontos_necessarios"] <= 0:
            raise ValueError("Pontos necessários deve ser maior que zero")
        for key, value in dados.items():
            if value is not None and hasattr(reward, key):
                setattr(reward, key, value)
        self.session.add(reward)
        self.session.commit()
        self.session.refresh(reward)
        return reward

    def delete_reward(self, reward_id: int) -> bool:
        reward = self.get_reward(reward_id)
        if not reward:
            return False
        self.session.delete(reward)
        self.session.commit()
        return True

    def resgatar(self, cliente_id: int, reward_id: int) -> RewardRedemption:
        """Troca pontos por recompensa, validando saldo e estoque"""
        reward = self.get_reward(reward_id)
        if not reward or not reward.ativo:
            raise ResgateInvalido("Recompensa indisponível")
        if reward.estoque is not None and reward.estoque <= 0:
            raise ResgateInvalido("Recompensa sem estoque")

        fidelidade = self.get_cliente(cliente_id)
        if not fidelidade or fidelidade.pontos_atuais < reward.pontos_necessarios:
            raise ResgateInvalido("Pontos insuficientes")

        fidelidade.pontos_atuais -= reward.pontos_necessarios
        fidelidade.updated_at = datetime.now()
        if reward.estoque is not None:
            reward.estoque -= 1

        resgate = RewardRedemption(
            cliente_id=cliente_id,
            recompensa_id=reward.id,
            pontos_utilizados=reward.pontos_necessarios,
        )
        self.session.add(fidelidade)
        self.session.add(reward)
        self.session.add(resgate)
        self.session.commit()
        self.session.refresh(resgate)
        return resgate
