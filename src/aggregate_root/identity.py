from __future__ import annotations

from typing import Union
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from aggregate_root.abc import Identity


class Guid(BaseModel, Identity):
    """
    String-backed identity value.

    Accepts either a string or a `UUID`, which is stored in its canonical
    hyphenated form.

    Examples
    --------
    >>> Guid("mock-guid") == Guid("mock-guid")
    True
    >>> str(Guid(UUID("12345678-1234-5678-1234-567812345678")))
    '12345678-1234-5678-1234-567812345678'
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(min_length=1)

    def __init__(self, value: Union[str, UUID]):
        super().__init__(value=value)

    @field_validator("value", mode="before")
    @classmethod
    def uuid_to_str(cls, value):
        if isinstance(value, UUID):
            return str(value)
        return value

    def to_string(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.to_string()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Identity):
            return self.equals(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_string())
