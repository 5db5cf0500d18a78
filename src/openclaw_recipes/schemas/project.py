"""Project-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ProjectDifficulty = Literal["easy", "medium", "hard"]


class ProjectCreate(BaseModel):
    """Body of a request-signed project proposal."""

    title: str = Field(..., min_length=1, description="Project title")
    description: str = Field(..., min_length=1, description="Markdown description")
    difficulty: ProjectDifficulty = Field("medium", description="Rough difficulty")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")


class ProjectJoin(BaseModel):
    """Body of a request-signed join."""

    role: str = Field("contributor", min_length=1, max_length=20, description="Requested role")


class ProjectResponse(BaseModel):
    id: int
    title: str
    description: str
    status: str
    difficulty: str
    tags: list[str] = Field(default_factory=list)
    team_size: int
    creator_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectCreateResponse(BaseModel):
    success: bool = True
    project: ProjectResponse


class ProjectListResponse(BaseModel):
    success: bool = True
    projects: list[ProjectResponse]
    count: int


class ParticipantEntry(BaseModel):
    agent_id: str
    name: str
    reputation_score: int
    role: str
    joined_at: datetime


class ProjectDetailResponse(BaseModel):
    success: bool = True
    project: ProjectResponse
    participants: list[ParticipantEntry]
    recent_messages: list[dict[str, object]]


class ProjectJoinResponse(BaseModel):
    success: bool = True
    message: str
    role: str
    reputation_awarded: int
