"""
Execução de consultas com retry e backoff exponencial
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, ProgrammingError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Mensagens que indicam erro de validação/autorização: não adianta repetir
NON_RETRYABLE_MESSAGES = ("invalid", "inválid", "required", "formato", "obrigatório")


def is_non_retryable_error(error: Exception) -> bool:
    if isinstance(error, (IntegrityError, ProgrammingError, PermissionError, LookupError)):
        return True
    message = str(error).lower()
    return any(trecho in message for trecho in NON_RETRYABLE_MESSAGES)


def query_with_retry(
    query_fn: Callable[[], T],
    max_retries: int = 3,
    delay: float = 1.0,
    backoff_multiplier: float = 2,
    sleep: Callable[[float], None] = time.sleep,
    rollback: Optional[Callable[[], None]] = None,
) -> T:
    """
    Executa query_fn com até max_retries tentativas.

    O intervalo entre tentativas cresce como delay * backoff_multiplier^(n-1).
    Erros não retryable são propagados imediatamente; após a última
    tentativa o último erro é propagado. rollback, se informado, é chamado
    antes de cada nova tentativa para descartar a transação com falha.
    """
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Tentativa {attempt}/{max_retries} de query")
            result = query_fn()
            if attempt > 1:
                logger.info(f"Query executada com sucesso na tentativa {attempt}")
            return result
        except Exception as e:
            if is_non_retryable_error(e):
                logger.debug("Erro não retryable, propagando imediatamente")
                raise
            last_error = e
            if attempt == max_retries:
                break
            current_delay = delay * (backoff_multiplier ** (attempt - 1))
            logger.warning(f"Erro na tentativa {attempt}, aguardando {current_delay}s: {e}")
            if rollback is not None:
                rollback()
            sleep(current_delay)

    logger.error(f"Query falhou após {max_retries} tentativas: {last_error}")
    raise last_error
