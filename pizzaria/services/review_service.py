"""
Review Service - Avaliações de pedidos
"""

from datetime import datetime
from typing import Optional, List

from sqlmodel import Session, select

from pizzaria.models import Review, Order, StatusPedido


class AvaliacaoInvalida(ValueError):
    pass


class ReviewService:
    """Serviço para avaliações de pedidos"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, avaliacao_id: int) -> Optional[Review]:
        return self.session.get(Review, avaliacao_id)

    def get_by_order(self, pedido_id: int) -> Optional[Review]:
        return self.session.exec(select(Review).where(Review.pedido_id == pedido_id)).first()

    def avaliar(self, cliente_id: int, pedido_id: int, nota: int, comentario: Optional[str] = None) -> Review:
        """Cliente avalia o próprio pedido finalizado, uma única vez"""
        if not 1 <= nota <= 5:
            raise AvaliacaoInvalida("A nota deve ser de 1 a 5")

        pedido = self.session.get(Order, pedido_id)
        if not pedido or pedido.cliente_id != cliente_id:
            raise AvaliacaoInvalida("Pedido não encontrado")
        if pedido.status != StatusPedido.FINALIZADO:
            raise AvaliacaoInvalida("Só é possível avaliar pedidos finalizados")
        if self.get_by_order(pedido_id):
            raise AvaliacaoInvalida("Este pedido já foi avaliado")

        avaliacao = Review(
            pedido_id=pedido_id,
            cliente_id=cliente_id,
            nota=nota,
            comentario=(comentario or "").strip() or None,
        )
        self.session.add(avaliacao)
        self.session.commit()
        self.session.refresh(avaliacao)
        return avaliacao

    def responder(self, avaliacao_id: int, resposta: str) -> Optional[Review]:
        avaliacao = self.get_by_id(avaliacao_id)
        if not avaliacao:
            return None
        if not (resposta or "").strip():
            raise AvaliacaoInvalida("Resposta é obrigatória")

        avaliacao.resposta_admin = resposta.strip()
        avaliacao.respondido_em = datetime.now()
        self.session.add(avaliacao)
        self.session.commit()
        self.session.refresh(avaliacao)
        return avaliacao

    def list_all(self, nota: Optional[int] = None, sem_resposta: bool = False) -> List[Review]:
        query = select(Review)
        if nota:
            query = query.where(Review.nota == nota)
        if sem_resposta:
            query = query.where(Review.resposta_admin == None)
        return list(self.session.exec(query.order_by(Review.criado_em.desc())).all())

    def estatisticas(self) -> dict:
        avaliacoes = self.list_all()
        total = len(avaliacoes)
        distribuicao = {nota: 0 for nota in range(1, 6)}
        for avaliacao in avaliacoes:
            distribuicao[avaliacao.nota] += 1
        return {
            "total": total,
            "media": round(sum(a.nota for a in avaliacoes) / total, 1) if total else 0,
            "distribuicao": distribuicao,
            "sem_resposta": sum(1 for a in avaliacoes if not a.resposta_admin),
        }
