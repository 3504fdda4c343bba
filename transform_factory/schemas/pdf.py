from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional


class SplitRange(BaseModel):
    start: int = Field(..., ge=1)
    end: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_order(self):
        if self.start > self.end:
            raise ValueError(f"range start {self.start} is after end {self.end}")
        return self


class RedactionArea(BaseModel):
    """Rectangle to black out, in points from the page's top-left corner."""
    page: int = Field(..., ge=1)
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class FormField(BaseModel):
    """Interactive field placed at ``x``/``y`` from the page's top-left corner."""
    id: Optional[str] = None
    type: str = Field("text", pattern="^(text|checkbox|radio|dropdown)$")
    label: str = ""
    required: bool = False
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    width: float = Field(150, gt=0)
    height: float = Field(20, gt=0)
    options: List[str] = []
    page: int = Field(1, ge=1)

    @field_validator("options")
    def strip_options(cls, v):
        return [o.strip() for o in v if o and o.strip()]

    @model_validator(mode="after")
    def check_choices(self):
        if self.type in ("radio", "dropdown") and not self.options:
            raise ValueError(f"{self.type} field needs at least one option")
        return self
