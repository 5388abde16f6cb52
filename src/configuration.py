import logging
import re

from keboola.component.exceptions import UserException
from pydantic import BaseModel, Field, ValidationError, field_validator

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class IBMParameters(BaseModel):
    """IBM Cloud credentials and endpoints."""

    api_key: str = Field(alias="#api_key")
    account_id: str | None = None
    service_url: str = Field(default="https://billing.cloud.ibm.com")
    iam_url: str | None = None


class LoadingOptions(BaseModel):
    """Data loading configuration."""

    incremental_output: int = Field(default=0, ge=0, le=1)  # 0=Full Load, 1=Incremental

    @property
    def incremental_output_bool(self) -> bool:
        return self.incremental_output == 1


class Configuration(BaseModel):
    """Main component configuration."""

    ibm_parameters: IBMParameters
    month: str
    date_from: int | None = Field(default=None, ge=0)
    date_to: int | None = Field(default=None, ge=0)
    max_pages: int | None = Field(default=None, gt=0)
    loading_options: LoadingOptions = Field(default_factory=LoadingOptions)
    debug: bool = False

    @field_validator("month")
    @classmethod
    def validate_month(cls, value: str) -> str:
        if not MONTH_PATTERN.match(value):
            raise ValueError("month must be in YYYY-MM format")
        return value

    def __init__(self, /, **data):
        try:
            super().__init__(**data)
            if self.debug:
                logging.debug("Component will run in Debug mode")
        except ValidationError as e:
            error_messages = []
            for err in e.errors():
                if "loc" in err and err["loc"]:
                    location = ".".join(str(x) for x in err["loc"])
                else:
                    location = "unknown"
                error_messages.append(f"{location}: {err.get('msg', 'Validation error')}")
            raise UserException(f"Configuration validation error: {', '.join(error_messages)}")
