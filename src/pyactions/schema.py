# schema.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# GitHub Actions workflow wire format. Field order here is key order in the
# emitted YAML.

Scalar = Union[str, int, float, bool]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class StepSchema(_WireModel):
    name: Optional[str] = None
    id: Optional[str] = None
    if_: Optional[str] = Field(default=None, alias="if")
    uses: Optional[str] = None
    with_: Optional[Dict[str, Scalar]] = Field(default=None, alias="with")
    run: Optional[str] = None
    working_directory: Optional[str] = Field(default=None, alias="working-directory")
    env: Optional[Dict[str, Scalar]] = None
    continue_on_error: Optional[Union[bool, str]] = Field(default=None, alias="continue-on-error")
    timeout_minutes: Optional[int] = Field(default=None, alias="timeout-minutes", ge=1)

    @model_validator(mode="after")
    def _run_or_uses(self) -> "StepSchema":
        if (self.run is None) == (self.uses is None):
            raise ValueError(f"step {self.name!r} must have exactly one of 'run' or 'uses'")
        if self.with_ and self.uses is None:
            raise ValueError(f"step {self.name!r}: 'with' requires 'uses'")
        return self


class JobSchema(_WireModel):
    runs_on: Union[str, List[str]] = Field(alias="runs-on")
    needs: Optional[List[str]] = None
    if_: Optional[str] = Field(default=None, alias="if")
    env: Optional[Dict[str, Scalar]] = None
    timeout_minutes: Optional[int] = Field(default=None, alias="timeout-minutes", ge=1)
    continue_on_error: Optional[Union[bool, str]] = Field(default=None, alias="continue-on-error")
    outputs: Optional[Dict[str, str]] = None
    steps: List[StepSchema] = Field(min_length=1)


class WorkflowSchema(_WireModel):
    name: str
    run_name: Optional[str] = Field(default=None, alias="run-name")
    on: Dict[str, Any]
    permissions: Optional[Dict[str, str]] = None
    env: Optional[Dict[str, Scalar]] = None
    jobs: Dict[str, JobSchema] = Field(min_length=1)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
