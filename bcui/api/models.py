from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DialogView(BaseModel):
    """A shown dialog as the player sees it."""

    player_id: str
    sequence: int
    title: str
    labels: list[str] = Field(default_factory=list)
    buttons: list[str] = Field(default_factory=list)
    open: bool = True


class OpenAppRequest(BaseModel):
    key: str | None = None
    live_updates: bool = False
    props: dict[str, Any] = Field(default_factory=dict)
    timeout: float = Field(2.0, gt=0, le=30)


class DialogActionRequest(BaseModel):
    # None dismisses the dialog without a selection.
    selection: int | None = Field(None, ge=0)
    wait: bool = True
    timeout: float = Field(2.0, gt=0, le=30)


class DialogActionResponse(BaseModel):
    closed: DialogView
    next: DialogView | None = None


class AppListResponse(BaseModel):
    apps: list[str]


class InstanceView(BaseModel):
    id: str
    root_id: str
    component: str
    mounted: bool
    dirty: bool
    hooks: int
    phase: str | None = None


class InstanceListResponse(BaseModel):
    instances: list[InstanceView]
