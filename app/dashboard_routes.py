from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from app import accounts, config, db
from app.state import (
    AccountSaved,
    ActionFailed,
    CandidatesFetched,
    DeleteCancelled,
    DeleteRequested,
    DeleteSucceeded,
    DeleteTarget,
    InstagramCandidate,
    InstagramTarget,
    Toast,
    YoutubeTarget,
    dashboard_store,
    pending_candidates,
)

logger = logging.getLogger("social-accounts")

security = HTTPBasic(auto_error=False)
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def require_admin(credentials: HTTPBasicCredentials | None = Depends(security)) -> None:
    stored = config.get_admin_credentials()
    if not stored:
        return
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Basic"})
    user, password = stored
    if not (
        secrets.compare_digest(credentials.username, user)
        and secrets.compare_digest(credentials.password, password)
    ):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Basic"})


router = APIRouter(
    prefix="/users/{user_id}/accounts",
    tags=["accounts"],
    dependencies=[Depends(require_admin)],
)


class CandidatesPayload(BaseModel):
    app_scoped_user_id: str = ""
    accounts: list[InstagramCandidate]


def _dashboard_url(user_id: str, toasts: list[Toast] | None = None) -> str:
    url = f"/users/{user_id}/accounts"
    if toasts:
        toast = toasts[-1]
        url = f"{url}?{urlencode({'flash': toast.message, 'flash_type': toast.level})}"
    return url


def _redirect(user_id: str, toasts: list[Toast] | None = None) -> RedirectResponse:
    return RedirectResponse(url=_dashboard_url(user_id, toasts), status_code=303)


def _check_owner(path_user_id: str, form_user_id: str) -> None:
    if path_user_id != form_user_id:
        raise HTTPException(status_code=400, detail="user_id mismatch")


def _build_target(kind: str, target_id: str) -> DeleteTarget:
    cleaned = target_id.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="target_id required")
    if kind == "instagram":
        return InstagramTarget(cleaned)
    if kind == "youtube":
        return YoutubeTarget(cleaned)
    raise HTTPException(status_code=400, detail="Unknown account kind")


def _describe_target(
    target: DeleteTarget | None,
    instagram_accounts: list[dict[str, Any]],
    youtube_channels: list[dict[str, Any]],
) -> dict[str, Any] | None:
    if isinstance(target, InstagramTarget):
        for account in instagram_accounts:
            if account["instagram_business_account_id"] == target.instagram_business_account_id:
                return {
                    "kind": target.kind,
                    "id": target.instagram_business_account_id,
                    "name": account["account_name"],
                    "picture_path": account["picture_file_path"],
                }
    elif isinstance(target, YoutubeTarget):
        for channel in youtube_channels:
            if channel["id"] == target.channel_id:
                return {
                    "kind": target.kind,
                    "id": target.channel_id,
                    "name": channel["channel_custom_url"],
                    "picture_path": channel["profile_picture_path"],
                }
    return None


@router.get("")
def accounts_dashboard(request: Request, user_id: str):
    instagram_accounts = db.list_instagram_accounts(user_id)
    youtube_channels = db.list_youtube_channels(user_id)
    state = dashboard_store.get(user_id)
    linked_ids = {account["instagram_business_account_id"] for account in instagram_accounts}
    client = config.get_client_credentials()
    return templates.TemplateResponse(
        request,
        "accounts.html",
        {
            "user_id": user_id,
            "app_scoped_user_id": state.app_scoped_user_id,
            "pending": pending_candidates(state.pending, linked_ids),
            "instagram_accounts": instagram_accounts,
            "youtube_channels": youtube_channels,
            "delete_target": _describe_target(state.delete_target, instagram_accounts, youtube_channels),
            "facebook_client_id": client[0] if client else "",
            "graph_api_version": config.get_graph_api_version(),
            "missing_settings": config.missing_settings(),
            "flash": request.query_params.get("flash"),
            "flash_type": request.query_params.get("flash_type", "info"),
        },
    )


@router.post("/instagram/candidates")
def add_instagram_candidates(user_id: str, payload: CandidatesPayload) -> JSONResponse:
    linked_ids = frozenset(db.linked_instagram_account_ids(user_id))
    state, _ = dashboard_store.dispatch(
        user_id,
        CandidatesFetched(
            candidates=tuple(payload.accounts),
            linked_ids=linked_ids,
            app_scoped_user_id=payload.app_scoped_user_id,
        ),
    )
    pending_ids = [candidate.business_account_id for candidate in state.pending]
    logger.info("candidates_fetched user_id=%s received=%s pending=%s", user_id, len(payload.accounts), pending_ids)
    return JSONResponse(content={"ok": True, "pending": pending_ids})


@router.post("/instagram")
def connect_instagram_account(
    user_id: str,
    form_user_id: str = Form(..., alias="user_id"),
    app_scoped_user_id: str = Form(""),
    short_lived_access_token: str = Form(...),
    instagram_business_account_id: str = Form(...),
    facebook_page_id: str = Form(...),
    instagram_account_name: str = Form(...),
    picture_url: str = Form(...),
) -> RedirectResponse:
    _check_owner(user_id, form_user_id)
    result = accounts.save_instagram_account(
        accounts.SaveInstagramAccountRequest(
            app_scoped_user_id=app_scoped_user_id,
            short_lived_access_token=short_lived_access_token,
            instagram_business_account_id=instagram_business_account_id,
            facebook_page_id=facebook_page_id,
            instagram_account_name=instagram_account_name,
            picture_url=picture_url,
            user_id=form_user_id,
        )
    )
    if result.ok:
        event = AccountSaved(result.data["instagram_business_account_id"], result.data["message"])
    else:
        event = ActionFailed(result.error)
    _, toasts = dashboard_store.dispatch(user_id, event)
    return _redirect(user_id, toasts)


@router.post("/delete/request")
def request_delete(
    user_id: str,
    kind: str = Form(...),
    target_id: str = Form(...),
) -> RedirectResponse:
    target = _build_target(kind, target_id)
    _, toasts = dashboard_store.dispatch(user_id, DeleteRequested(target))
    return _redirect(user_id, toasts)


@router.post("/delete/cancel")
def cancel_delete(user_id: str) -> RedirectResponse:
    _, toasts = dashboard_store.dispatch(user_id, DeleteCancelled())
    return _redirect(user_id, toasts)


@router.post("/delete")
def confirm_delete(
    user_id: str,
    form_user_id: str = Form(..., alias="user_id"),
    kind: str = Form(...),
    target_id: str = Form(...),
) -> RedirectResponse:
    _check_owner(user_id, form_user_id)
    target = _build_target(kind, target_id)
    if isinstance(target, InstagramTarget):
        result = accounts.delete_instagram_account(user_id, target.instagram_business_account_id)
    else:
        result = accounts.delete_youtube_channel(user_id, target.channel_id)
    event = DeleteSucceeded(result.data) if result.ok else ActionFailed(result.error)
    _, toasts = dashboard_store.dispatch(user_id, event)
    return _redirect(user_id, toasts)


@router.get("/instagram/{instagram_business_account_id}/publishing-limit")
def instagram_publishing_limit(user_id: str, instagram_business_account_id: str) -> JSONResponse:
    result = accounts.fetch_instagram_publishing_limit(user_id, instagram_business_account_id)
    if not result.ok:
        return JSONResponse(content={"ok": False, "error": result.error}, status_code=200)
    return JSONResponse(content={"ok": True, "data": result.data}, status_code=200)


__all__ = ["router"]
