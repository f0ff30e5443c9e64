"""
Consultas com retry e backoff
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from pizzaria.retry import is_non_retryable_error, query_with_retry


class Falhas:
    def __init__(self, erros, resultado="ok"):
        self.erros = list(erros)
        self.resultado = resultado
        self.chamadas = 0

    def __call__(self):
        self.chamadas += 1
        if self.erros:
            raise self.erros.pop(0)
        return self.resultado


def test_sucesso_depois_de_falhas_com_backoff():
    esperas = []
    query = Falhas([ConnectionError("timeout"), ConnectionError("timeout")])

    assert query_with_retry(query, delay=1.0, sleep=esperas.append) == "ok"
    assert query.chamadas == 3
    assert esperas == [1.0, 2.0]


def test_erro_de_validacao_nao_repete():
    esperas = []
    query = Falhas([ValueError("Email inválido")])

    with pytest.raises(ValueError):
        query_with_retry(query, sleep=esperas.append)
    assert query.chamadas == 1
    assert esperas == []


def test_propaga_ultimo_erro():
    esperas = []
    erro = OperationalError("SELECT 1", {}, Exception("database is locked"))
    query = Falhas([ConnectionError("a"), ConnectionError("b"), erro])

    with pytest.raises(OperationalError):
        query_with_retry(query, delay=0.5, backoff_multiplier=3, sleep=esperas.append)
    assert query.chamadas == 3
    assert esperas == [0.5, 1.5]


def test_classificacao_de_erros():
    assert is_non_retryable_error(IntegrityError("INSERT", {}, Exception("unique")))
    assert is_non_retryable_error(PermissionError("negado"))
    assert is_non_retryable_error(ValueError("Campo obrigatório"))
    assert not is_non_retryable_error(ConnectionError("reset by peer"))


def test_rollback_antes_de_cada_nova_tentativa():
    eventos = []
    query = Falhas([ConnectionError("a"), ConnectionError("b")])

    assert query_with_retry(
        query, sleep=lambda s: eventos.append("espera"), rollback=lambda: eventos.append("rollback")
    ) == "ok"
    assert eventos == ["rollback", "espera", "rollback", "espera"]

    eventos.clear()
    with pytest.raises(ValueError):
        query_with_retry(Falhas([ValueError("formato")]), sleep=eventos.append, rollback=lambda: eventos.append("rollback"))
    assert eventos == []
