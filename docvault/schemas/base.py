from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docvault.core.passwords import check_password_length

NewPassword = Annotated[str, Field(min_length=6), AfterValidator(check_password_length)]


class CamelModel(BaseModel):
    """Serializes as camelCase; accepts camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
