"""Pizzaria - loja online e painel administrativo"""

__version__ = "1.0.0"
