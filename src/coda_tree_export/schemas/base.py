"""Base schema class for Coda API payloads."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CodaModel(BaseModel):
    """Base class for schemas parsed from Coda API responses.

    The API speaks camelCase; Python code uses snake_case field names.
    Unknown keys are ignored so new API fields never break parsing.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    @classmethod
    def from_api(cls, data: Any) -> Self:
        """
        Factory method to create a schema instance from a decoded JSON body.

        Args:
            data: Decoded JSON object

        Returns:
            Pydantic schema instance
        """
        return cls.model_validate(data)

    def to_api(self) -> dict[str, Any]:
        """Serialize back to the API's camelCase shape."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
