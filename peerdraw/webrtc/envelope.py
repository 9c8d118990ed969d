"""
Wire types exchanged over the signaling relay and the drawing data channel.
"""
import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.exceptions import MessageError

DESCRIPTION_KINDS = ("offer", "answer", "rollback")


def new_session_id() -> str:
    """Random identifier used as the collision tie-break key."""
    return uuid.uuid4().hex


def is_polite(local_id: str, remote_id: str) -> bool:
    """The peer whose id sorts first yields during an offer collision."""
    return remote_id > local_id


@dataclass(frozen=True)
class SessionDescription:
    kind: str
    payload: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionDescription":
        kind = data.get("kind")
        if kind not in DESCRIPTION_KINDS:
            raise MessageError("Unknown description kind", {"kind": kind})
        payload = data.get("payload", "")
        if not isinstance(payload, str):
            raise MessageError("Description payload must be a string")
        return cls(kind=kind, payload=payload)


@dataclass(frozen=True)
class IceCandidatePayload:
    payload: str
    media_id: Optional[str] = None
    line_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"payload": self.payload, "mediaId": self.media_id, "lineIndex": self.line_index}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IceCandidatePayload":
        payload = data.get("payload")
        if not isinstance(payload, str):
            raise MessageError("Candidate payload must be a string")
        line_index = data.get("lineIndex")
        if line_index is not None and not isinstance(line_index, int):
            raise MessageError("Candidate lineIndex must be an integer", {"lineIndex": line_index})
        return cls(payload=payload, media_id=data.get("mediaId"), line_index=line_index)


@dataclass(frozen=True)
class SignalingEnvelope:
    """A description or a candidate, always tagged with the sender's session id."""

    id: str
    description: Optional[SessionDescription] = None
    candidate: Optional[IceCandidatePayload] = None

    def to_json(self) -> str:
        message: Dict[str, Any] = {"id": self.id}
        if self.description is not None:
            message["description"] = self.description.to_dict()
        if self.candidate is not None:
            message["candidate"] = self.candidate.to_dict()
        return json.dumps(message)

    @classmethod
    def from_json(cls, text: str) -> "SignalingEnvelope":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise MessageError("Envelope is not valid JSON", {"error": str(e)}) from e

        if not isinstance(data, dict):
            raise MessageError("Envelope must be a JSON object")

        sender = data.get("id")
        if not isinstance(sender, str) or not sender:
            raise MessageError("Envelope missing sender id")

        description = data.get("description")
        candidate = data.get("candidate")
        if description is None and candidate is None:
            raise MessageError("Envelope carries neither description nor candidate", {"id": sender})

        return cls(
            id=sender,
            description=SessionDescription.from_dict(description) if description is not None else None,
            candidate=IceCandidatePayload.from_dict(candidate) if candidate is not None else None,
        )


@dataclass(frozen=True)
class DrawEvent:
    """One pointer sample of a stroke; end_line closes the current stroke."""

    offset_x: float
    offset_y: float
    end_line: bool = False

    def to_json(self) -> str:
        return json.dumps({"offsetX": self.offset_x, "offsetY": self.offset_y, "endLine": self.end_line})

    @classmethod
    def from_json(cls, text) -> "DrawEvent":
        try:
            if isinstance(text, bytes):
                text = text.decode("utf-8")
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise MessageError("Draw event is not valid JSON", {"error": str(e)}) from e

        if not isinstance(data, dict):
            raise MessageError("Draw event must be a JSON object")

        x, y = data.get("offsetX"), data.get("offsetY")
        for value in (x, y):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise MessageError("Draw event coordinates must be numbers", {"offsetX": x, "offsetY": y})

        end_line = data.get("endLine", False)
        if not isinstance(end_line, bool):
            raise MessageError("Draw event endLine must be a boolean", {"endLine": end_line})

        return cls(offset_x=x, offset_y=y, end_line=end_line)
