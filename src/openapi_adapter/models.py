"""Internal models for compiled endpoints and tool results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from .schema import Validator


PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


class FieldMapping(BaseModel):
    target: str
    transform: Optional[Literal["string", "number", "boolean", "array"]] = None


class ElicitationField(BaseModel):
    model_config = ConfigDict(extra="allow")

    required: bool = False
    message: Optional[str] = None
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    mapping: Optional[FieldMapping] = None


class ElicitationConfiguration(BaseModel):
    model_config = ConfigDict(extra="allow")

    enabled: bool = False
    fields: Dict[str, ElicitationField] = Field(default_factory=dict)


@dataclass(frozen=True)
class SecurityParameter:
    """One credential-bearing input of a security scheme."""

    name: str
    location: str
    type: str
    scheme: Optional[str] = None


@dataclass
class CompiledEndpoint:
    integration_id: str
    url: str
    path: str
    method: str
    title: str
    description: str = ""
    paths: Dict[str, Validator] = field(default_factory=dict)
    queries: Dict[str, Validator] = field(default_factory=dict)
    headers: Dict[str, Validator] = field(default_factory=dict)
    cookies: Dict[str, Validator] = field(default_factory=dict)
    body: Optional[Validator] = None
    security: List[SecurityParameter] = field(default_factory=list)
    elicitation: Optional[ElicitationConfiguration] = None
    operation: Dict[str, Any] = field(default_factory=dict)

    def argument_validators(self) -> Dict[str, Validator]:
        """All caller-facing validators, later groups overriding earlier ones."""
        merged: Dict[str, Validator] = {**self.paths, **self.queries}
        if self.body is not None:
            merged["body"] = self.body
        merged.update(self.headers)
        merged.update(self.cookies)
        return merged


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: List[TextContent]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def text(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)], is_error=True)

    @property
    def joined_text(self) -> str:
        return "\n".join(item.text for item in self.content)


@dataclass(frozen=True)
class AdapterTool:
    tool_name: str
    description: str
    endpoint: CompiledEndpoint
    input_model: Type[BaseModel]
