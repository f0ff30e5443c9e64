"""
Report Service - Relatórios de vendas
"""

import csv
import io
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session

from pizzaria.cart import round_money
from pizzaria.currency import format_currency
from pizzaria.services.order_service import OrderService

PERIODOS_VALIDOS = (7, 15, 30, 90)


class ReportService:
    """Relatórios dos pedidos finalizados nos últimos N dias"""

    def __init__(self, session: Session):
        self.session = session

    def relatorio(self, periodo: int = 7, agora: Optional[datetime] = None) -> dict:
        if periodo not in PERIODOS_VALIDOS:
            raise ValueError(f"Período inválido: use {', '.join(map(str, PERIODOS_VALIDOS))} dias")

        agora = agora or datetime.now()
        inicio = (agora - timedelta(days=periodo)).replace(hour=0, minute=0, second=0, microsecond=0)
        pedidos = [p for p in OrderService(self.session).list_finalizados(inicio) if p.created_at <= agora]

        total_vendas = round_money(sum(p.total for p in pedidos))
        total_pedidos = len(pedidos)

        produtos = {}
        for pedido in pedidos:
            for item in pedido.itens:
                chave = item.produto_id or item.nome_produto
                produto = produtos.setdefault(chave, {
                    "produto_id": item.produto_id,
                    "nome_produto": item.nome_produto,
                    "quantidade": 0,
                    "total": 0.0,
                })
                produto["quantidade"] += item.quantidade
                produto["total"] = round_money(produto["total"] + item.preco_total)
        mais_vendidos = sorted(produtos.values(), key=lambda p: p["quantidade"], reverse=True)[:10]

        # pedidos já vêm ordenados por data
        por_dia = OrderedDict()
        for pedido in pedidos:
            dia = por_dia.setdefault(pedido.created_at.date(), {
                "data": pedido.created_at.strftime("%d/%m"),
                "total_vendas": 0.0,
                "quantidade_pedidos": 0,
            })
            dia["total_vendas"] = round_money(dia["total_vendas"] + pedido.total)
            dia["quantidade_pedidos"] += 1

        por_hora = [0] * 24
        for pedido in pedidos:
            por_hora[pedido.created_at.hour] += 1

        return {
            "periodo": periodo,
            "total_vendas": total_vendas,
            "total_pedidos": total_pedidos,
            "ticket_medio": round_money(total_vendas / total_pedidos) if total_pedidos else 0,
            "produto_mais_vendido": mais_vendidos[0]["nome_produto"] if mais_vendidos else "N/A",
            "produtos_mais_vendidos": mais_vendidos,
            "vendas_por_dia": list(por_dia.values()),
            "vendas_por_horario": [
                {"hora": hora, "quantidade": quantidade}
                for hora, quantidade in enumerate(por_hora) if quantidade > 0
            ],
        }

    def exportar_csv(self, periodo: int = 7, agora: Optional[datetime] = None) -> str:
        dados = self.relatorio(periodo, agora)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["Relatório de Vendas"])
        writer.writerow([])
        writer.writerow([f"Período: Últimos {periodo} dias"])
        writer.writerow([])
        writer.writerow(["Total de Vendas", format_currency(dados["total_vendas"])])
        writer.writerow(["Total de Pedidos", dados["total_pedidos"]])
        writer.writerow(["Ticket Médio", format_currency(dados["ticket_medio"])])
        writer.writerow([])
        writer.writerow(["Produtos Mais Vendidos"])
        writer.writerow(["Produto", "Quantidade"])
        for produto in dados["produtos_mais_vendidos"]:
            writer.writerow([produto["nome_produto"], produto["quantidade"]])
        writer.writerow([])
        writer.writerow(["Vendas por Dia"])
        writer.writerow(["Data", "Pedidos", "Total"])
        for dia in dados["vendas_por_dia"]:
            writer.writerow([dia["data"], dia["quantidade_pedidos"], format_currency(dia["total_vendas"])])
        return buffer.getvalue()
