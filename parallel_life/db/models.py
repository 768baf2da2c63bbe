from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint

# --- USER MODELS ---
class Plan(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    nickname: Optional[str] = Field(default=None)
    avatar_url: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)

    # Quota state
    plan: Plan = Field(default=Plan.FREE)
    usage_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationship: One User has many Stories
    stories: List["Story"] = Relationship(back_populates="user")

# Pydantic schemas for User Auth
class UserCreate(SQLModel):
    email: str
    password: str
    nickname: Optional[str] = None

class UserRead(SQLModel):
    id: int
    email: str
    nickname: Optional[str] = None
    avatar_url: Optional[str] = None
    plan: Plan
    usage_count: int

# --- STORY REQUEST ---

class Tone(str, Enum):
    WARM = "warm"
    FUNNY = "funny"
    ROMANTIC = "romantic"
    DARK = "dark"

class StoryRequest(SQLModel):
    """
    The form submitted by the user. Fields are loosely typed on purpose: the
    orchestrator validates them and answers with its own error codes.
    Stored verbatim on the Story for regeneration.
    """
    birthplace: Optional[str] = None
    career: Optional[str] = None
    personality: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    relationship: Optional[str] = None
    dream_or_regret: Optional[str] = None
    original_life_story: Optional[str] = None
    tone: Optional[str] = None
    generate_images: bool = False

    def to_input_data(self) -> Dict[str, Any]:
        # generate_images is a per-call choice, the replay policy lives on the Story
        return self.model_dump(exclude={"generate_images"})

# --- STORY MODELS ---

class Story(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    summary: str

    # Foreign Key to User
    user_id: int = Field(foreign_key="user.id", index=True)
    user: User = Relationship(back_populates="stories")

    # The original StoryRequest, replayed by regenerate
    input_data: Dict[str, Any] = Field(default={}, sa_column=Column(JSON))
    tone: str
    cover_image_url: Optional[str] = None

    # {"cover": bool, "segments": bool}; None for rows written before it existed
    illustration_policy: Optional[Dict[str, bool]] = Field(default=None, sa_column=Column(JSON))

    is_public: bool = Field(default=True)
    likes_count: int = Field(default=0)
    comments_count: int = Field(default=0)
    views_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationship: One Story has many Segments (deleted with the story)
    segments: List["StorySegment"] = Relationship(
        back_populates="story",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "StorySegment.segment_order"},
    )

class StorySegment(SQLModel, table=True):
    __tablename__ = "story_segment"
    __table_args__ = (UniqueConstraint("story_id", "segment_order"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    # Foreign Key to Story
    story_id: int = Field(foreign_key="story.id", index=True)
    story: Story = Relationship(back_populates="segments")

    segment_order: int
    title: str
    content: str
    image_url: Optional[str] = None     # The illustration

    created_at: datetime = Field(default_factory=datetime.utcnow)

# --- SOCIAL MODELS ---

class Like(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("story_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    story_id: int = Field(foreign_key="story.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Comment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    story_id: int = Field(foreign_key="story.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class CommentCreate(SQLModel):
    content: str

class VisibilityUpdate(SQLModel):
    is_public: bool
