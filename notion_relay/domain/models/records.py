from typing import Optional
from pydantic import BaseModel, Field, model_validator
from enum import Enum


class Mode(str, Enum):
    """Interpretation context for the next free-text message in a chat"""
    NORMAL = "normal"
    AWAITING_CATEGORY_TEXT = "awaiting_category_text"
    AWAITING_SEARCH_KEYWORD = "awaiting_search_keyword"
    EDITING = "editing"


class EditField(str, Enum):
    """Which part of a task is being edited"""
    TITLE = "title"
    PRIORITY = "priority"
    CHOICE = "choice"


class TaskPriority(str, Enum):
    """Task priority levels"""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TaskStatus(str, Enum):
    """Task status"""
    PENDING = "Pending"
    DONE = "Done"


class EditTarget(BaseModel):
    """Task currently being edited in a chat"""
    record_id: str
    field: EditField


class Session(BaseModel):
    """Ephemeral conversation state of one chat"""
    chat_id: int
    pending_url: Optional[str] = None
    mode: Mode = Field(default=Mode.NORMAL)
    edit_target: Optional[EditTarget] = None

    @model_validator(mode="after")
    def check_edit_target(self) -> "Session":
        if (self.mode == Mode.EDITING) != (self.edit_target is not None):
            raise ValueError("edit_target must be set exactly when mode is editing")
        return self

    @property
    def is_normal(self) -> bool:
        return self.mode == Mode.NORMAL


class LinkRecord(BaseModel):
    """Transient view of a saved link"""
    id: str
    title: str = "Untitled"
    url: str = ""
    category: str = "Other"
    created_at: str = ""
    sequence_number: Optional[int] = None


class TaskRecord(BaseModel):
    """Transient view of a task"""
    id: str
    title: str = "Untitled"
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    created_at: str = ""
    sequence_number: Optional[int] = None
