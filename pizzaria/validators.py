# validators.py
# Validações centralizadas para todo o sistema

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
ESTADO_REGEX = re.compile(r"^[A-Z]{2}$")
MONEY_REGEX = re.compile(r"^\d+\.\d{2}$")
NON_DIGITS = re.compile(r"\D")

VALOR_MAXIMO = 999999.99


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    cleaned: Any = None

    def as_dict(self) -> dict:
        return {"valid": self.valid, "error": self.error, "cleaned": self.cleaned}


@dataclass
class ValidationReport:
    """Resultado de validações compostas (cadastro, endereço)"""
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, result: ValidationResult, prefixo: str = ""):
        if not result.valid:
            self.errors.append(f"{prefixo}{result.error}")


def only_digits(value: Optional[str]) -> str:
    return NON_DIGITS.sub("", value or "")


def validate_cep(cep: str) -> ValidationResult:
    """Valida e limpa CEP brasileiro"""
    cleaned = only_digits(cep)
    if not cleaned:
        return ValidationResult(False, "CEP é obrigatório", "")
    if len(cleaned) != 8:
        return ValidationResult(False, "CEP deve ter 8 dígitos", "")
    logger.debug(f"CEP validado: {cleaned}")
    return ValidationResult(True, cleaned=cleaned)


def validate_email(email: str) -> ValidationResult:
    if not email or not email.strip():
        return ValidationResult(False, "Email é obrigatório")
    if not EMAIL_REGEX.match(email.strip()):
        return ValidationResult(False, "Email inválido")
    return ValidationResult(True, cleaned=email.strip().lower())


def validate_telefone(telefone: str) -> ValidationResult:
    """Telefone brasileiro com DDD: 10 ou 11 dígitos"""
    cleaned = only_digits(telefone)
    if not cleaned:
        return ValidationResult(False, "Telefone é obrigatório", "")
    if len(cleaned) < 10 or len(cleaned) > 11:
        return ValidationResult(False, "Telefone deve ter 10 ou 11 dígitos", "")
    logger.debug(f"Telefone validado: {cleaned}")
    return ValidationResult(True, cleaned=cleaned)


def validate_estado(estado: str) -> ValidationResult:
    if not estado or not estado.strip():
        return ValidationResult(False, "Estado é obrigatório")
    if not ESTADO_REGEX.match(estado.strip().upper()):
        return ValidationResult(False, "Estado deve ter 2 letras (ex: SP, RJ)")
    return ValidationResult(True, cleaned=estado.strip().upper())


def validate_nome(nome: str) -> ValidationResult:
    if not nome or not nome.strip():
        return ValidationResult(False, "Nome é obrigatório")
    if len(nome.strip()) < 2:
        return ValidationResult(False, "Nome deve ter pelo menos 2 caracteres")
    return ValidationResult(True, cleaned=nome.strip())


def validate_senha(senha: str) -> ValidationResult:
    if not senha:
        return ValidationResult(False, "Senha é obrigatória")
    if len(senha) < 6:
        return ValidationResult(False, "Senha deve ter pelo menos 6 caracteres")
    return ValidationResult(True)


def validate_money(value: str) -> ValidationResult:
    """Valor monetário digitado no formato 10,00 (troco, lançamentos)"""
    if not value or not value.strip():
        return ValidationResult(False, "Valor é obrigatório", 0)

    cleaned = re.sub(r"[^\d,]", "", value).replace(",", ".", 1)
    if not MONEY_REGEX.match(cleaned):
        return ValidationResult(False, "Valor inválido. Use formato: 10,00", 0)

    numeric = float(cleaned)
    if numeric > VALOR_MAXIMO:
        return ValidationResult(False, "Valor muito alto (máximo: R$ 999.999,99)", 0)

    logger.debug(f"Valor monetário validado: {numeric}")
    return ValidationResult(True, cleaned=numeric)


def validate_cpf(cpf: str) -> ValidationResult:
    """CPF com dígitos verificadores"""
    cleaned = only_digits(cpf)
    if len(cleaned) != 11 or cleaned == cleaned[0] * 11:
        return ValidationResult(False, "CPF inválido", "")

    for tamanho in (9, 10):
        soma = sum(int(cleaned[i]) * (tamanho + 1 - i) for i in range(tamanho))
        digito = (soma * 10) % 11 % 10
        if digito != int(cleaned[tamanho]):
            return ValidationResult(False, "CPF inválido", "")
    return ValidationResult(True, cleaned=cleaned)


def validate_sign_up(nome: str, email: str, telefone: str, senha: str) -> ValidationReport:
    """Validação completa para cadastro de cliente"""
    report = ValidationReport()
    report.add(validate_nome(nome))
    report.add(validate_email(email))
    report.add(validate_telefone(telefone))
    report.add(validate_senha(senha))
    return report


def validate_endereco(
    apelido: str,
    cep: str,
    logradouro: str,
    numero: str,
    bairro: str,
    cidade: str,
    estado: str,
) -> ValidationReport:
    """Validação completa para endereço"""
    report = ValidationReport()
    report.add(validate_nome(apelido), "Apelido: ")
    report.add(validate_cep(cep))
    report.add(validate_estado(estado))

    if not logradouro or len(logradouro.strip()) < 3:
        report.errors.append("Logradouro deve ter pelo menos 3 caracteres")
    if not numero or not numero.strip():
        report.errors.append("Número é obrigatório")
    if not bairro or len(bairro.strip()) < 2:
        report.errors.append("Bairro deve ter pelo menos 2 caracteres")
    if not cidade or len(cidade.strip()) < 2:
        report.errors.append("Cidade deve ter pelo menos 2 caracteres")
    return report


# ===== JSON DOS ITENS DO PEDIDO =====

def _preco_valido(preco: Any) -> bool:
    """Preço opcional; quando informado, número não negativo"""
    if preco is None:
        return True
    return isinstance(preco, (int, float)) and not isinstance(preco, bool) and preco >= 0


def validate_borda_recheada(borda: Any) -> bool:
    if not isinstance(borda, dict):
        return False
    nome = borda.get("nome")
    preco = borda.get("preco")
    return (
        isinstance(nome, str) and bool(nome.strip())
        and isinstance(borda.get("id"), (str, int))
        and _preco_valido(preco)
    )


def validate_adicionais(adicionais: Any) -> bool:
    if not isinstance(adicionais, list):
        return False
    for adicional in adicionais:
        if not isinstance(adicional, dict):
            return False
        sabor = adicional.get("sabor")
        if sabor and not isinstance(sabor, str):
            return False
        itens = adicional.get("itens")
        if not isinstance(itens, list):
            return False
        for item in itens:
            if not isinstance(item, dict) or not isinstance(item.get("nome"), str) or not item["nome"].strip():
                return False
            if not _preco_valido(item.get("preco")):
                return False
    return True


def validate_sabores(sabores: Any) -> bool:
    return isinstance(sabores, list) and all(isinstance(s, str) and s.strip() for s in sabores)


def format_adicionais_display(adicionais: Any) -> str:
    """'Calabresa: Bacon, Cheddar | Geral: Catupiry'"""
    if not validate_adicionais(adicionais):
        return ""
    partes = []
    for adicional in adicionais:
        sabor = adicional.get("sabor") or "Geral"
        itens = ", ".join(item["nome"] for item in adicional["itens"])
        partes.append(f"{sabor}: {itens}")
    return " | ".join(partes)


def format_sabores_display(sabores: Any) -> str:
    """Pizza meio a meio: '1/2 Calabresa + 1/2 Mussarela'"""
    if not validate_sabores(sabores) or not sabores:
        return ""
    if len(sabores) == 1:
        return sabores[0]
    return " + ".join(f"1/{len(sabores)} {sabor}" for sabor in sabores)
