"""
Lifecycle of out-of-band human input requests.

At most one request is outstanding at a time. A request is correlated with
its answer by an opaque request id, so replies that arrive after the request
was answered, cancelled or superseded are recognised as stale and ignored.

    idle -> pending -> submitted | cancelled

``submitted`` and ``cancelled`` stay observable until the next request is
issued.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Callable,
    Dict,
    Literal,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from .errors import AlreadyPendingError, InvalidRequestError

logger = logging.getLogger(__name__)

InputType = Literal["text", "textarea", "number"]
FieldType = Literal["text", "textarea", "number", "checkbox", "select"]
InputStatus = Literal["idle", "pending", "submitted", "cancelled"]

INPUT_TYPES = ("text", "textarea", "number")
FIELD_TYPES = ("text", "textarea", "number", "checkbox", "select")


@dataclass(frozen=True)
class FieldSpec:
    """One field of a multi-field form."""

    key: str
    label: str
    type: FieldType = "text"
    placeholder: Optional[str] = None
    default_value: Any = None
    required: bool = False
    options: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldSpec":
        """Build a FieldSpec from its wire form (camelCase keys).

        Raises:
            InvalidRequestError: If the definition is missing a key or carries
                values of the wrong type.
        """
        if not isinstance(data, Mapping):
            raise InvalidRequestError(f"Form field must be an object, got {data!r}")
        key = data.get("key")
        if not isinstance(key, str) or not key:
            raise InvalidRequestError("Form field is missing a 'key'")
        field_type = data.get("type", "text")
        if field_type not in FIELD_TYPES:
            raise InvalidRequestError(
                f"Field '{key}' has unsupported type '{field_type}'"
            )

        label = data.get("label")
        if label is not None and not isinstance(label, str):
            raise InvalidRequestError(f"Field '{key}' label must be a string")
        placeholder = data.get("placeholder")
        if placeholder is not None and not isinstance(placeholder, str):
            raise InvalidRequestError(f"Field '{key}' placeholder must be a string")
        required = data.get("required", False)
        if not isinstance(required, bool):
            raise InvalidRequestError(f"Field '{key}' required must be true or false")

        options = data.get("options")
        if options is not None:
            if field_type != "select":
                raise InvalidRequestError(
                    f"Field '{key}' has options but is not a select field"
                )
            if not isinstance(options, (list, tuple)) or not all(
                isinstance(o, str) for o in options
            ):
                raise InvalidRequestError(
                    f"Field '{key}' options must be a list of strings"
                )

        return cls(
            key=key,
            label=label or key,
            type=field_type,
            placeholder=placeholder,
            default_value=data.get("defaultValue"),
            required=required,
            options=tuple(options) if options is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key, "label": self.label, "type": self.type}
        if self.placeholder is not None:
            data["placeholder"] = self.placeholder
        if self.default_value is not None:
            data["defaultValue"] = self.default_value
        if self.required:
            data["required"] = True
        if self.options is not None:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class SingleFieldRequest:
    """Ask the human for one value."""

    prompt: str
    input_type: InputType = "text"
    placeholder: Optional[str] = None
    default_value: Optional[str] = None
    content: Optional[str] = None
    request_id: Optional[str] = None
    kind: Literal["single"] = field(default="single", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind,
            "requestId": self.request_id,
            "prompt": self.prompt,
            "inputType": self.input_type,
        }
        if self.placeholder is not None:
            data["placeholder"] = self.placeholder
        if self.default_value is not None:
            data["defaultValue"] = self.default_value
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass(frozen=True)
class MultiFieldRequest:
    """Ask the human to fill in a form."""

    fields: Tuple[FieldSpec, ...]
    content: Optional[str] = None
    request_id: Optional[str] = None
    kind: Literal["multi"] = field(default="multi", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind,
            "requestId": self.request_id,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.content is not None:
            data["content"] = self.content
        return data


InputRequest = Union[SingleFieldRequest, MultiFieldRequest]
R = TypeVar("R", SingleFieldRequest, MultiFieldRequest)


@dataclass(frozen=True)
class InputRequestState:
    request: Optional[InputRequest] = None
    status: InputStatus = "idle"
    answer: Any = None

    @property
    def pending_id(self) -> Optional[str]:
        if self.status == "pending" and self.request is not None:
            return self.request.request_id
        return None


IDLE_STATE = InputRequestState()


def validate_request(request: InputRequest) -> None:
    """Raise InvalidRequestError if ``request`` cannot be shown to a human."""
    match request:
        case SingleFieldRequest(input_type=input_type):
            if input_type not in INPUT_TYPES:
                raise InvalidRequestError(f"Unsupported input type '{input_type}'")
        case MultiFieldRequest(fields=fields):
            if not fields:
                raise InvalidRequestError("A form needs at least one field")
            seen = set()
            for spec in fields:
                if spec.key in seen:
                    raise InvalidRequestError(f"Duplicate field key '{spec.key}'")
                seen.add(spec.key)
                if spec.type == "select" and not spec.options:
                    raise InvalidRequestError(
                        f"Select field '{spec.key}' needs at least one option"
                    )
                if spec.type != "select" and spec.options is not None:
                    raise InvalidRequestError(
                        f"Field '{spec.key}' has options but is not a select field"
                    )
        case _:
            raise InvalidRequestError(f"Unknown input request: {request!r}")


def _new_request_id() -> str:
    return uuid.uuid4().hex


class InputRequestManager:
    """Tracks the single outstanding input request and its answer."""

    def __init__(self, id_factory: Callable[[], str] = _new_request_id) -> None:
        self._id_factory = id_factory
        self._state = IDLE_STATE

    @property
    def state(self) -> InputRequestState:
        return self._state

    def issue(self, request: R) -> R:
        """Store ``request`` under a fresh request id and mark it pending.

        Raises:
            AlreadyPendingError: If another request is still pending. The pending
                request is left untouched.
            InvalidRequestError: If the request definition is malformed.
        """
        pending_id = self._state.pending_id
        if pending_id is not None:
            raise AlreadyPendingError(pending_id)
        validate_request(request)

        stored = replace(request, request_id=self._id_factory())
        self._state = InputRequestState(request=stored, status="pending")
        logger.info(f"Issued {stored.kind} input request {stored.request_id}")
        return stored

    def submit(self, request_id: str, value: Any) -> bool:
        """Record the answer to the pending request.

        Returns False (and leaves the state unchanged) when ``request_id`` does
        not name the pending request or the value does not fit the request.
        """
        if not self._matches(request_id, "submit"):
            return False

        if isinstance(self._state.request, MultiFieldRequest):
            if not isinstance(value, Mapping):
                logger.warning(
                    f"Ignoring submit for form {request_id}: expected field values"
                )
                return False
            answer: Any = dict(value)
        else:
            if isinstance(value, Mapping):
                logger.warning(
                    f"Ignoring submit for {request_id}: expected a single value"
                )
                return False
            answer = value

        self._state = replace(self._state, status="submitted", answer=answer)
        logger.info(f"Input request {request_id} submitted")
        return True

    def cancel(self, request_id: str) -> bool:
        """Cancel the pending request. Returns False if ``request_id`` is stale."""
        if not self._matches(request_id, "cancel"):
            return False
        self._state = replace(self._state, status="cancelled", answer=None)
        logger.info(f"Input request {request_id} cancelled")
        return True

    def reset(self) -> None:
        """Drop any request, pending or answered."""
        if self._state.pending_id is not None:
            logger.info(f"Input request {self._state.pending_id} superseded by reset")
        self._state = IDLE_STATE

    def _matches(self, request_id: str, verb: str) -> bool:
        pending_id = self._state.pending_id
        if pending_id is None:
            logger.warning(
                f"Ignoring {verb} for {request_id}: no input request is pending "
                f"(status={self._state.status})"
            )
            return False
        if request_id != pending_id:
            logger.warning(
                f"Ignoring {verb} for {request_id}: pending request is {pending_id}"
            )
            return False
        return True
