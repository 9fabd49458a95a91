from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckResult(_CamelModel):
    id: str
    name: str
    ok: bool
    severity: int
    business_impact: str
    technical_summary: str
    panic_guide: str
    check_output: str = ""
    last_updated: str


class HealthResult(_CamelModel):
    schema_version: int = 1
    system_code: str
    name: str
    description: str
    checks: List[CheckResult] = Field(default_factory=list)
    ok: bool
    severity: Optional[int] = None
