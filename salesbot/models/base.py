from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

Model = TypeVar("Model", bound=BaseModel)

# Literal strings language models emit instead of omitting an optional field.
NULL_SENTINELS = frozenset({"null", "none", "undefined", "nil", ""})


class ResponseModel(BaseModel, Generic[Model]):
    status_code: int
    data: Model


class ListResponseModel(BaseModel, Generic[Model]):
    status_code: int
    data: list[Model]
    total_count: int


def is_null_sentinel(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip().lower() in NULL_SENTINELS


class ArgumentsModel(BaseModel):
    """
    Base for payloads produced by a language model.

    Fields are published in camelCase, snake_case is accepted too, unknown
    keys are ignored and null-like sentinel values are treated as absent
    before any field validation runs.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_sentinels(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: value
                for key, value in data.items()
                if not is_null_sentinel(value)
            }
        return data
