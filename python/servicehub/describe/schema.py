"""Interface description schema.

A description is accepted in one of three recognized shapes, forming a sum
type over versions:

    OpenAPI3Description     {"openapi": "3.x.y", "info": ..., "paths": ...}
    Swagger2Description     {"swagger": "2.0",   "info": ..., "paths": ...}
    UnversionedDescription  {"info": ..., "paths": ...}

Any other declared version, or a shape mismatch, is rejected up front by
parse_description() instead of failing later inside the invoker.

Path items may carry non-operation keys (``parameters``, ``summary``,
``servers``...); only HTTP method keys become operations.

Operation paths are joined onto the discovered address after a base path:
the path of the first OpenAPI 3 ``servers`` entry, or Swagger 2 ``basePath``.
The origin always comes from discovery, so absolute server hosts and the
Swagger 2 ``host``/``schemes`` keys are ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class DescriptionShapeError(ValueError):
    """The document does not match any recognized description shape."""


class OperationSpec(BaseModel):
    """One method entry under a path."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    operation_id: Optional[str] = Field(default=None, alias="operationId")
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    summary: Optional[str] = None


class InfoSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    description: str
    version: Optional[str] = None


class ServerVariableSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    default: str


class ServerSpec(BaseModel):
    """One OpenAPI 3 ``servers`` entry."""

    model_config = ConfigDict(extra="allow")

    url: str = "/"
    variables: Dict[str, ServerVariableSpec] = Field(default_factory=dict)

    def expanded(self) -> str:
        """The server URL with each ``{variable}`` replaced by its default."""
        url = self.url
        for name, variable in self.variables.items():
            url = url.replace("{" + name + "}", variable.default)
        return url


def _normalize_base_path(path: Optional[str]) -> str:
    path = (path or "").rstrip("/")
    if path and not path.startswith("/"):
        path = "/" + path
    return path


class _DescriptionBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    info: InfoSpec
    paths: Dict[str, Dict[str, OperationSpec]]

    @field_validator("paths", mode="before")
    @classmethod
    def keep_method_entries(cls, v: Any) -> Any:
        """Drop path-item keys that are not HTTP methods."""
        if not isinstance(v, Mapping):
            return v
        filtered: Dict[str, Any] = {}
        for path, item in v.items():
            if isinstance(item, Mapping):
                item = {
                    method.lower(): op
                    for method, op in item.items()
                    if isinstance(method, str) and method.lower() in HTTP_METHODS
                }
            filtered[path] = item
        return filtered

    def base_path(self) -> str:
        """Path prefix for every operation path; empty when none is declared."""
        return ""


class OpenAPI3Description(_DescriptionBase):
    kind: Literal["openapi3"] = "openapi3"
    openapi: str
    servers: List[ServerSpec] = Field(default_factory=list)

    @field_validator("openapi")
    @classmethod
    def validate_major_version(cls, v: str) -> str:
        if not v.startswith("3."):
            raise ValueError(f"unsupported OpenAPI version {v!r}")
        return v

    def base_path(self) -> str:
        # Only the first server is used, and only its path
        if not self.servers:
            return ""
        return _normalize_base_path(urlsplit(self.servers[0].expanded()).path)


class Swagger2Description(_DescriptionBase):
    kind: Literal["swagger2"] = "swagger2"
    swagger: Literal["2.0"]
    declared_base_path: Optional[str] = Field(default=None, alias="basePath")

    def base_path(self) -> str:
        return _normalize_base_path(self.declared_base_path)


class UnversionedDescription(_DescriptionBase):
    kind: Literal["unversioned"] = "unversioned"


InterfaceDescription = Union[OpenAPI3Description, Swagger2Description, UnversionedDescription]


def parse_description(document: Any) -> InterfaceDescription:
    """Validate a decoded JSON document into one of the recognized shapes.

    Raises:
        DescriptionShapeError: If the document matches no recognized shape.
    """
    if not isinstance(document, Mapping):
        raise DescriptionShapeError(
            f"description must be a JSON object, got {type(document).__name__}"
        )

    model: type
    if "openapi" in document:
        model = OpenAPI3Description
    elif "swagger" in document:
        model = Swagger2Description
    else:
        model = UnversionedDescription

    try:
        return model.model_validate(document)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise DescriptionShapeError(problems) from e


__all__ = [
    "HTTP_METHODS",
    "DescriptionShapeError",
    "OperationSpec",
    "InfoSpec",
    "ServerSpec",
    "OpenAPI3Description",
    "Swagger2Description",
    "UnversionedDescription",
    "InterfaceDescription",
    "parse_description",
]
