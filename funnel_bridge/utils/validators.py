from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError

from funnel_bridge.exceptions import ValidationError

_email_adapter = TypeAdapter(EmailStr)

def validate_email(v: str) -> str:
    """Retourne l'email normalisé ou lève ValidationError."""
    v = (v or "").strip()
    if not v:
        raise ValidationError("Valid customer email required")
    try:
        return str(_email_adapter.validate_python(v))
    except PydanticValidationError:
        raise ValidationError("Valid customer email required")
