"""
Product Service - Gerenciamento do Cardápio
"""

from sqlmodel import Session, select
from typing import Optional, List
from pizzaria.models import Product


class ProductService:
    """Serviço para gerenciar produtos"""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, product_id: int) -> Optional[Product]:
        """Busca produto pelo ID"""
        return self.session.get(Product, product_id)

    def get_by_name(self, nome: str) -> Optional[Product]:
        return self.session.exec(
            select(Product).where(Product.nome == nome)
        ).first()

    def list_available(self, categoria: Optional[str] = None) -> List[Product]:
        """Lista produtos disponíveis no cardápio"""
        query = select(Product).where(Product.disponivel == True)
        if categoria:
            query = query.where(Product.categoria == categoria)
        return list(self.session.exec(
            query.order_by(Product.destaque.desc(), Product.nome)
        ).all())

    def list_all(self) -> List[Product]:
        return list(self.session.exec(select(Product).order_by(Product.nome)).all())

    def create(self, **dados) -> Product:
        if dados.get("preco") is None or dados["preco"] < 0:
            raise ValueError("Preço inválido")
        product = Product(**dados)
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def update(self, product_id: int, **dados) -> Optional[Product]:
        product = self.get_by_id(product_id)
        if not product:
            return None
        for key, value in dados.items():
            if value is not None and hasattr(product, key):
                setattr(product, key, value)
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def delete(self, product_id: int) -> bool:
        product = self.get_by_id(product_id)
        if not product:
            return False
        self.session.delete(product)
        self.session.commit()
        return True

    @staticmethod
    def preco_por_tamanho(product: Product, tamanho: Optional[str]) -> float:
        """Preço base do produto no tamanho pedido (broto cai no tradicional se não houver)"""
        if tamanho == "broto" and product.preco_broto is not None:
            return product.preco_broto
        return product.preco

    def create_default_products(self):
        """Cria produtos padrão se não existirem"""
        defaults = [
            {"nome": "Mussarela", "descricao": "Molho, mussarela e orégano", "preco": 45.00, "preco_broto": 30.00},
            {"nome": "Calabresa", "descricao": "Calabresa fatiada e cebola", "preco": 48.00, "preco_broto": 32.00},
            {"nome": "Margherita", "descricao": "Mussarela, tomate e manjericão", "preco": 50.00, "preco_broto": 34.00, "destaque": True},
            {"nome": "Portuguesa", "descricao": "Presunto, ovo, cebola e azeitona", "preco": 52.00, "preco_broto": 35.00},
            {"nome": "Refrigerante 2L", "categoria": "bebida", "tipo": "bebida", "preco": 14.00},
        ]

        for data in defaults:
            existing = self.get_by_name(data["nome"])
            if not existing:
                self.session.add(Product(**data))

        self.session.commit()
