from __future__ import annotations

import asyncio
import logging

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from bcui.api.deps import get_redis, get_runtime
from bcui.api.models import (
    AppListResponse,
    DialogActionRequest,
    DialogActionResponse,
    DialogView,
    InstanceListResponse,
    InstanceView,
    OpenAppRequest,
)
from bcui.api.runtime import DevRuntime
from bcui.core.fiber import HookError
from bcui.core.lifecycle import PresentationPhase
from bcui.host.memory import ShownDialog
from bcui.render import Presenter, RenderOptions
from bcui.serializer import SerializationError
from bcui.streams import Mailbox, dialog_shown_fields, publish_to_mailbox, read_mailbox
from bcui.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _view(shown: ShownDialog) -> DialogView:
    return DialogView(
        player_id=shown.player_id,
        sequence=shown.sequence,
        title=shown.title,
        labels=list(shown.labels),
        buttons=list(shown.buttons),
        open=shown.is_open,
    )


def _publish(r: redis.Redis, shown: ShownDialog) -> None:
    publish_to_mailbox(
        r=r,
        mailbox=Mailbox(shown.player_id),
        fields=dialog_shown_fields(
            sequence=shown.sequence,
            title=shown.title,
            labels=shown.labels,
            buttons=shown.buttons,
        ),
    )


async def _await_dialog(
    runtime: DevRuntime,
    player_id: str,
    *,
    after: int,
    timeout: float,
    task: asyncio.Task[str] | None = None,
) -> ShownDialog | None:
    """Wait for the player's next dialog, or for `task` to end without showing one."""

    waiter = asyncio.ensure_future(runtime.host.wait_for_dialog(player_id, after=after, timeout=timeout))
    watched: set[asyncio.Future[object]] = {waiter}
    if task is not None:
        watched.add(task)
    done, _ = await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)

    if waiter in done:
        try:
            return waiter.result()
        except asyncio.TimeoutError:
            return None

    waiter.cancel()
    assert task is not None
    if not task.cancelled() and task.exception() is not None:
        raise task.exception()  # type: ignore[misc]
    return None


@router.websocket("/ws/players/{player_id}")
async def player_dialogs_ws(websocket: WebSocket, player_id: str) -> None:
    await hub.connect(player_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(player_id, websocket)
    except Exception:
        await hub.disconnect(player_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/apps", response_model=AppListResponse)
async def list_apps_route(runtime: DevRuntime = Depends(get_runtime)) -> AppListResponse:
    return AppListResponse(apps=sorted(runtime.apps))


@router.post("/players/{player_id}/apps/{app_name}", response_model=DialogView, status_code=status.HTTP_201_CREATED)
async def open_app_route(
    player_id: str,
    app_name: str,
    payload: OpenAppRequest | None = None,
    runtime: DevRuntime = Depends(get_runtime),
    r: redis.Redis = Depends(get_redis),
) -> DialogView:
    payload = payload or OpenAppRequest()
    component = runtime.apps.get(app_name)
    if component is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown app: {app_name}")

    player = runtime.player(player_id)
    root_id = Presenter.instance_id(player, component, payload.key)
    if runtime.presenter.phase(root_id) is not PresentationPhase.unmounted:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{root_id} is already open")

    after = runtime.last_sequence(player_id)
    options = RenderOptions(key=payload.key, live_updates=payload.live_updates, props=payload.props)
    task = runtime.presenter.open(player, component, options)
    try:
        shown = await _await_dialog(runtime, player_id, after=after, timeout=payload.timeout, task=task)
    except (SerializationError, HookError, TypeError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    if shown is None:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="No dialog was shown")

    _publish(r, shown)
    return _view(shown)


@router.get("/players/{player_id}/dialog", response_model=DialogView)
async def get_dialog_route(player_id: str, runtime: DevRuntime = Depends(get_runtime)) -> DialogView:
    shown = runtime.host.current(player_id)
    if shown is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No open dialog")
    return _view(shown)


@router.post("/players/{player_id}/dialog", response_model=DialogActionResponse)
async def respond_dialog_route(
    player_id: str,
    payload: DialogActionRequest,
    runtime: DevRuntime = Depends(get_runtime),
    r: redis.Redis = Depends(get_redis),
) -> DialogActionResponse:
    """Press a button (or dismiss with no selection) on the player's open dialog."""

    if runtime.host.current(player_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No open dialog")

    try:
        if payload.selection is None:
            closed = runtime.host.dismiss(player_id)
        else:
            closed = runtime.host.respond(player_id, payload.selection)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    following: ShownDialog | None = None
    if payload.wait and payload.selection is not None:
        following = await _await_dialog(runtime, player_id, after=closed.sequence, timeout=payload.timeout)
        if following is not None:
            _publish(r, following)

    return DialogActionResponse(closed=_view(closed), next=_view(following) if following else None)


@router.get("/players/{player_id}/mailbox")
async def get_player_mailbox_route(
    player_id: str,
    count: int = 20,
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read the dialogs published to a player's mailbox stream."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    mailbox = Mailbox(player_id)
    return {"player_id": player_id, "stream": mailbox.key, "messages": read_mailbox(r=r, mailbox=mailbox, count=count)}


@router.get("/instances", response_model=InstanceListResponse)
async def list_instances_route(runtime: DevRuntime = Depends(get_runtime)) -> InstanceListResponse:
    presenter = runtime.presenter
    views = [
        InstanceView(
            id=i.id,
            root_id=i.root_id,
            component=getattr(i.component, "__name__", "anonymous"),
            mounted=i.mounted,
            dirty=i.dirty,
            hooks=len(i.hooks),
            phase=presenter.phase(i.id).value if i.is_root else None,
        )
        for i in presenter.registry.all_instances()
    ]
    return InstanceListResponse(instances=views)
