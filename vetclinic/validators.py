# vetclinic/validators.py
import re
from datetime import date
from typing import Optional

BRAZILIAN_STATES = {
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
    "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
}


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def only_digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def _cpf_check_digit(digits: str) -> int:
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(cpf: Optional[str]) -> bool:
    """Check a Brazilian CPF number (formatted or bare digits) against its two check digits."""
    digits = only_digits(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False
    if _cpf_check_digit(digits[:9]) != int(digits[9]):
        return False
    return _cpf_check_digit(digits[:10]) == int(digits[10])


def format_cpf(cpf: str) -> str:
    digits = only_digits(cpf)
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def normalize_cep(cep: Optional[str]) -> Optional[str]:
    """Return the 8-digit postal code or None when it does not have 8 digits."""
    digits = only_digits(cep)
    return digits if len(digits) == 8 else None


def is_valid_state(uf: Optional[str]) -> bool:
    return bool(uf) and uf.upper() in BRAZILIAN_STATES


def format_registration(state: Optional[str], number: Optional[str]) -> str:
    """Render a CRMV registration as "CRMV-SP 12345" (bare number without a jurisdiction)."""
    if is_blank(number):
        return ""
    if is_blank(state):
        return number.strip()
    return f"CRMV-{state.strip().upper()} {number.strip()}"


def display_age(date_of_birth: Optional[date], fallback: Optional[str] = None, today: Optional[date] = None) -> Optional[str]:
    """Age in whole years, or in months when younger than one year, worded in Portuguese
    since it is printed on the documents.

    Falls back to the free-text age when no date of birth is known.
    """
    if date_of_birth is None:
        return fallback.strip() if fallback and fallback.strip() else None
    today = today or date.today()
    months = (today.year - date_of_birth.year) * 12 + (today.month - date_of_birth.month)
    if today.day < date_of_birth.day:
        months -= 1
    months = max(months, 0)
    if months < 12:
        return f"{months} mês" if months == 1 else f"{months} meses"
    years = months // 12
    return f"{years} ano" if years == 1 else f"{years} anos"
