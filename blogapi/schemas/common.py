import json
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.errors import ValidationFailed


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(schema: type[BaseModel], obj: Any) -> dict:
    return schema.model_validate(obj).model_dump(by_alias=True, mode="json")


def dump_all(schema: type[BaseModel], items) -> list[dict]:
    return [dump(schema, item) for item in items]


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body: dict = {"status": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def parse_payload(schema: type[BaseModel], data: dict):
    """Validate a dict (e.g. collected form fields) and report failures as 400s."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
        raise ValidationFailed("Validation failed", errors)


def split_list(value: Any) -> Any:
    """Accept a JSON array string or a comma separated string for list fields."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [str(v) for v in parsed]
        return [part.strip() for part in text.split(",") if part.strip()]
    return value


def digits_only(v: str) -> str:
    if not (v.isascii() and v.isdigit()):
        raise ValueError("OTP must be 6 digits")
    return v


OtpCode = Annotated[str, Field(min_length=6, max_length=6), AfterValidator(digits_only)]
