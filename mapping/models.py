from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Hard cap for any value written to a CRM text field
MAX_FIELD_LENGTH = 5000


class DataType(str, Enum):
    """Custom field data types, valued as the CRM spells them on the wire."""
    TEXT = "TEXT"
    LONG_TEXT = "LARGE_TEXT"
    NUMBER = "NUMERICAL"
    DATE = "DATE"
    CHECKBOX = "CHECKBOX"
    SINGLE_OPTION = "SINGLE_OPTIONS"
    MULTI_OPTION = "MULTIPLE_OPTIONS"


# Spellings seen in older field definitions and exports
_DATA_TYPE_ALIASES = {
    "NUMBER": DataType.NUMBER,
    "NUMERIC": DataType.NUMBER,
    "MONETORY": DataType.NUMBER,
    "TEXTAREA": DataType.LONG_TEXT,
    "LONG_TEXT": DataType.LONG_TEXT,
    "SINGLE_OPTION": DataType.SINGLE_OPTION,
    "RADIO": DataType.SINGLE_OPTION,
    "DROPDOWN": DataType.SINGLE_OPTION,
    "MULTIPLE_OPTION": DataType.MULTI_OPTION,
    "MULTI_OPTIONS": DataType.MULTI_OPTION,
    "CHECKBOX": DataType.CHECKBOX,
    "DATE": DataType.DATE,
}


def parse_data_type(raw: Any) -> DataType:
    """Map a wire data type to DataType; anything unknown is treated as TEXT."""
    if isinstance(raw, DataType):
        return raw
    text = str(raw or "").strip().upper()
    try:
        return DataType(text)
    except ValueError:
        pass
    if text in _DATA_TYPE_ALIASES:
        return _DATA_TYPE_ALIASES[text]
    if text:
        logger.debug(f"Unknown CRM data type {text!r}, treating as TEXT")
    return DataType.TEXT


class FormKind(str, Enum):
    ONBOARDING = "get-started"
    ASSESSMENT = "assessment"


class QualityTier(str, Enum):
    COLD = "cold"
    WARM = "warm"
    HOT = "hot"


class ExternalFieldDefinition(BaseModel):
    """One custom field as the CRM reports it for a location."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    display_name: str = Field(alias="name")
    key: Optional[str] = Field(default=None, alias="fieldKey")
    data_type: DataType = Field(default=DataType.TEXT, alias="dataType")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if value is not None else value

    @field_validator("key", mode="before")
    @classmethod
    def _blank_key(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("data_type", mode="before")
    @classmethod
    def _data_type(cls, value):
        return parse_data_type(value)


class SemanticFieldSpec(BaseModel):
    """Static description of one piece of lead data and how it lands in the CRM."""
    model_config = ConfigDict(frozen=True)

    semantic_key: str
    preferred_external_name: str
    data_type: DataType = DataType.TEXT
    value_transform: Optional[Dict[str, str]] = None
    max_length: Optional[int] = None
    applies_to: FrozenSet[FormKind] = frozenset(FormKind)
    key_aliases: Tuple[str, ...] = ()
    name_aliases: Tuple[str, ...] = ()

    @property
    def limit(self) -> int:
        if self.max_length is None:
            return MAX_FIELD_LENGTH
        return max(0, min(self.max_length, MAX_FIELD_LENGTH))

    def applies(self, form_kind: FormKind) -> bool:
        return form_kind in self.applies_to


class ContactInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AssessmentAnswer(BaseModel):
    """A single readiness question answer with its points."""
    model_config = ConfigDict(frozen=True)

    question_id: str
    question: str
    value: str
    label: str
    score: int = Field(ge=0)


class LeadSubmission(BaseModel):
    """A normalized form submission; form_kind is always set explicitly."""
    model_config = ConfigDict(frozen=True)

    form_kind: FormKind
    contact: ContactInfo
    attributes: Dict[str, Any] = Field(default_factory=dict)
    raw_answers: Optional[Dict[str, AssessmentAnswer]] = None
    submission_id: Optional[str] = None

    @model_validator(mode="after")
    def _answers_only_for_assessments(self):
        if self.form_kind == FormKind.ONBOARDING and self.raw_answers:
            raise ValueError("get-started submissions cannot carry assessment answers")
        return self


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    numeric_score: int = Field(ge=0, le=100)
    quality_tier: QualityTier


class ReconciledField(BaseModel):
    """A value ready to be written to one external custom field."""
    model_config = ConfigDict(frozen=True)

    external_field_id: str
    key: Optional[str] = None
    value: str
    semantic_key: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        """Write format: bare key + field_value. Fields without a key fall back to id."""
        if self.key:
            return {"key": self.key, "field_value": self.value}
        return {"id": self.external_field_id, "field_value": self.value}


class ReconciliationResult(BaseModel):
    fields: List[ReconciledField] = Field(default_factory=list)
    unmapped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    fallback_used: bool = False
