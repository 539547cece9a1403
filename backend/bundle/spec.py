"""
Bundle specification models.

A bundle image carries its own description as a base64-encoded YAML
document in an image label. These models are what that document parses
into. They are frozen: once a Spec is built nothing in the pipeline
changes it, the crawler only derives copies with model_copy(). Sequences
are stored as tuples and metadata as read-only mappings, so the contents
are fixed too.
"""

import base64
import binascii
import uuid
from types import MappingProxyType
from typing import Annotated, Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
)

# Label holding the base64-encoded spec document
SPEC_LABEL = "com.redhat.apb.spec"

# Optional label overriding the runtime declared in the document
RUNTIME_LABEL = "com.redhat.apb.runtime"

DEFAULT_RUNTIME = 1

ASYNC_MODES = ("required", "optional", "unsupported")


def _read_only(value: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value))


def _plain_dict(value: Mapping[str, Any]) -> Dict[str, Any]:
    return dict(value)


# Free-form metadata; serialized back to a plain dict
Metadata = Annotated[Mapping[str, Any], AfterValidator(_read_only), PlainSerializer(_plain_dict)]


class SpecParseError(Exception):
    """Raised when a spec document cannot be decoded or parsed"""
    pass


class ParameterDescriptor(BaseModel):
    """One input parameter of a plan"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    type: str = ""
    title: str = ""
    description: str = ""
    default: Any = None
    enum: Optional[Tuple[Any, ...]] = None
    pattern: str = ""
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    maxlength: Optional[int] = Field(
        None, validation_alias=AliasChoices("maxlength", "deprecated_maxlength")
    )
    required: bool = False
    updatable: bool = False
    display_type: str = ""
    display_group: str = ""

    @field_validator("maxlength", mode="before")
    @classmethod
    def coerce_maxlength(cls, v: Any) -> Any:
        # Empty YAML values come through as None, keep them that way
        if v == "":
            return None
        return v


class Plan(BaseModel):
    """One selectable deployment configuration of a spec"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    description: str = ""
    metadata: Metadata = Field(default_factory=lambda: MappingProxyType({}))
    free: bool = False
    bindable: bool = False
    parameters: Tuple[ParameterDescriptor, ...] = ()

    @field_validator("metadata", "parameters", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any, info) -> Any:
        if v is None:
            return {} if info.field_name == "metadata" else ()
        return v


class Spec(BaseModel):
    """
    Structured description of one deployable bundle.

    Field names follow the YAML document except for `fq_name` (document
    key `name`) and `async_` (document key `async`).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    version: str = ""
    runtime: int = DEFAULT_RUNTIME
    fq_name: str = Field("", alias="name")
    description: str = ""
    metadata: Metadata = Field(default_factory=lambda: MappingProxyType({}))
    image: str = ""
    tags: Tuple[str, ...] = ()
    bindable: bool = False
    async_: str = Field("optional", alias="async")
    plans: Tuple[Plan, ...] = ()

    @field_validator("version", "id", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """YAML reads `version: 1.0` as a float"""
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("runtime", mode="before")
    @classmethod
    def default_runtime(cls, v: Any) -> Any:
        if v is None or v == "":
            return DEFAULT_RUNTIME
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("tags", "plans", mode="before")
    @classmethod
    def default_list(cls, v: Any) -> Any:
        return () if v is None else v

    @field_validator("async_")
    @classmethod
    def validate_async(cls, v: str) -> str:
        if v not in ASYNC_MODES:
            raise ValueError(f"Invalid async mode '{v}'. Must be one of: {ASYNC_MODES}")
        return v


def spec_id_for(image: str) -> str:
    """Stable identifier for a spec that does not carry its own id"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, image))


def parse_spec(document: str) -> Spec:
    """
    Parse a YAML spec document into a Spec.

    Raises:
        SpecParseError: If the YAML is invalid or does not describe a spec
    """
    try:
        data = yaml.safe_load(document)
    except yaml.YAMLError as e:
        raise SpecParseError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise SpecParseError("Spec document must be a YAML object")

    try:
        return Spec.model_validate(data)
    except ValidationError as e:
        raise SpecParseError(f"Spec document failed validation: {e}")


def decode_spec_label(encoded: str) -> Spec:
    """
    Decode the base64 value of the spec label and parse it.

    Whitespace inside the value is ignored, some build tools wrap long
    label values.

    Raises:
        SpecParseError: If the value is not valid base64 or not a spec
    """
    compact = "".join(encoded.split())
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SpecParseError(f"Spec label is not valid base64: {e}")

    try:
        document = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SpecParseError(f"Spec label is not UTF-8 text: {e}")

    return parse_spec(document)
