"""Request body parsing: issuer node creation, asset creation and label updates.

Bodies arrive raw and are decoded here, after authorization has run.

Two issuer node payload shapes are accepted. The deprecated one predates multi-signature
policies::

    {"label": "A", "xpubs": ["x1", "x2"], "generate_key": true}

and the canonical one spells the policy out::

    {"label": "A", "keys": [{"external_key": "x1"}, {"generate": true}], "sigs_required": 1}

Any payload carrying ``xpubs`` or ``generate_key`` (whatever their value) is
read as deprecated. Everything else goes down the canonical path, which does
its own validation. Deprecated requests upgrade losslessly; there is no
reverse mapping.
"""

from __future__ import annotations

import json
from typing import Any, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError, model_validator

from ledgerhub.core.errors import InvalidRequest


DEPRECATED_FIELDS = frozenset({"generate_key", "xpubs"})

ModelT = TypeVar("ModelT", bound=BaseModel)


class KeySpec(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    external_key: StrictStr | None = None
    generate: StrictBool | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "KeySpec":
        has_external = bool(self.external_key)
        if has_external == bool(self.generate):
            raise ValueError("each key must set exactly one of external_key or generate")
        return self

    @property
    def is_generated(self) -> bool:
        return bool(self.generate)

    def to_payload(self) -> dict[str, Any]:
        if self.is_generated:
            return {"generate": True}
        return {"external_key": self.external_key}


class CanonicalCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    shape: Literal["canonical"] = "canonical"
    label: StrictStr = ""
    keys: list[KeySpec]
    sigs_required: StrictInt

    def to_payload(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "keys": [key.to_payload() for key in self.keys],
            "sigs_required": self.sigs_required,
        }


class DeprecatedCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    shape: Literal["deprecated"] = "deprecated"
    label: StrictStr = ""
    xpubs: list[StrictStr] | None = None
    generate_key: StrictBool | None = None

    def upgrade(self) -> CanonicalCreateRequest:
        keys = [KeySpec(external_key=xpub) for xpub in self.xpubs or []]
        if self.generate_key:
            keys.append(KeySpec(generate=True))
        # The deprecated shape never supported multi-signature policies.
        return CanonicalCreateRequest(label=self.label, keys=keys, sigs_required=1)


CreateRequest = Union[CanonicalCreateRequest, DeprecatedCreateRequest]


class _RawPayload(BaseModel):
    # Structural pass over the untyped body: an object with string keys.
    model_config = ConfigDict(extra="forbid")

    fields: dict[StrictStr, Any]


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "fields")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid node creation request"


def classify(fields: dict[str, Any]) -> Literal["canonical", "deprecated"]:
    # Presence alone decides, even for generate_key=false; existing clients depend on it.
    if DEPRECATED_FIELDS.intersection(fields):
        return "deprecated"
    return "canonical"


def decode_body(raw_payload: Any, what: str) -> dict[str, Any]:
    # Accepts the raw request body or an already-decoded JSON value.
    if isinstance(raw_payload, (bytes, bytearray, str)):
        try:
            raw_payload = json.loads(raw_payload)
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidRequest(f"invalid {what}: body is not valid JSON") from exc
    try:
        return _RawPayload(fields=raw_payload).fields
    except ValidationError as exc:
        raise InvalidRequest(f"invalid {what}: body must be a JSON object") from exc


def parse_create_request(raw_payload: Any) -> CreateRequest:
    """Validate ``raw_payload`` structurally and parse it into its declared shape.

    ``raw_payload`` is either an already-decoded JSON value or the raw body.
    """
    fields = decode_body(raw_payload, "node creation request")
    shape = classify(fields)
    model: type[BaseModel] = DeprecatedCreateRequest if shape == "deprecated" else CanonicalCreateRequest
    payload = {key: value for key, value in fields.items() if key != "shape"}
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequest(f"invalid node creation request: {_format_errors(exc)}") from exc


def validate_policy(request: CanonicalCreateRequest) -> CanonicalCreateRequest:
    if request.sigs_required < 1:
        raise InvalidRequest("invalid node creation request: sigs_required must be at least 1")
    if request.sigs_required > len(request.keys):
        raise InvalidRequest(
            "invalid node creation request: "
            f"sigs_required ({request.sigs_required}) exceeds number of keys ({len(request.keys)})"
        )
    return request


def normalize(raw_payload: Any) -> CanonicalCreateRequest:
    """Turn either accepted payload shape into one canonical creation request."""
    parsed = parse_create_request(raw_payload)
    if isinstance(parsed, DeprecatedCreateRequest):
        try:
            canonical = parsed.upgrade()
        except ValidationError as exc:
            raise InvalidRequest(f"invalid node creation request: {_format_errors(exc)}") from exc
    else:
        canonical = parsed
    return validate_policy(canonical)


class AssetCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    label: StrictStr
    definition: dict[StrictStr, Any] = Field(default_factory=dict)


class LabelUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # A null or absent label leaves the current one untouched.
    label: StrictStr | None = None


def _parse_body(model: type[ModelT], raw_payload: Any, what: str) -> ModelT:
    fields = decode_body(raw_payload, what)
    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        raise InvalidRequest(f"invalid {what}: {_format_errors(exc)}") from exc


def parse_asset_request(raw_payload: Any) -> AssetCreateRequest:
    return _parse_body(AssetCreateRequest, raw_payload, "asset creation request")


def parse_label_update(raw_payload: Any) -> LabelUpdateRequest:
    return _parse_body(LabelUpdateRequest, raw_payload, "label update")
