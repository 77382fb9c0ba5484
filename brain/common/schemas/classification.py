"""
Classification Schema

Transient result of interpreting a capture's text. The field bag is a
tagged union keyed by destination: one model per destination, decoded from
the classifier's ``extractedFields`` object.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .records import Destination


class _Fields(BaseModel):
    """Classifier output uses camelCase keys; accept both spellings"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PeopleFields(_Fields):
    name: Optional[str] = None
    context: Optional[str] = None
    follow_ups: Optional[List[str]] = Field(default=None, alias="followUps")

    @field_validator("follow_ups", mode="before")
    @classmethod
    def _coerce_follow_ups(cls, value):
        # Models sometimes answer with a single string
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value


class ProjectFields(_Fields):
    name: Optional[str] = None
    next_action: Optional[str] = Field(default=None, alias="nextAction")
    notes: Optional[str] = None


class IdeaFields(_Fields):
    title: Optional[str] = None
    one_liner: Optional[str] = Field(default=None, alias="oneLiner")
    notes: Optional[str] = None


class AdminFields(_Fields):
    task: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    notes: Optional[str] = None


class VocabularyFields(_Fields):
    word: Optional[str] = None
    definition: Optional[str] = None
    part_of_speech: Optional[str] = Field(default=None, alias="partOfSpeech")
    example: Optional[str] = None
    source: Optional[str] = None


FIELD_MODELS = {
    Destination.PEOPLE: PeopleFields,
    Destination.PROJECTS: ProjectFields,
    Destination.IDEAS: IdeaFields,
    Destination.ADMIN: AdminFields,
    Destination.VOCABULARY: VocabularyFields,
}

ExtractedFields = Union[PeopleFields, ProjectFields, IdeaFields, AdminFields, VocabularyFields]


class Classification(BaseModel):
    """Destination, confidence, title and destination-typed fields"""
    model_config = ConfigDict(populate_by_name=True)

    destination: Destination
    confidence: float = Field(ge=0.0, le=1.0)
    title: str = ""
    extracted_fields: ExtractedFields = Field(alias="extractedFields")

    @model_validator(mode="before")
    @classmethod
    def _decode_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw = None
        for key in ("extractedFields", "extracted_fields", "fields"):
            if key in data:
                raw = data.pop(key)
                break
        if raw is None:
            raw = {}
        try:
            destination = Destination(data.get("destination"))
        except ValueError:
            # Let field validation report the bad destination
            data["extractedFields"] = raw
            return data
        model = FIELD_MODELS[destination]
        data["extractedFields"] = raw if isinstance(raw, model) else model.model_validate(raw)
        return data

    @model_validator(mode="after")
    def _check_variant(self):
        expected = FIELD_MODELS[self.destination]
        if not isinstance(self.extracted_fields, expected):
            raise ValueError(
                f"fields of type {type(self.extracted_fields).__name__} do not match destination {self.destination.value}"
            )
        return self
