from __future__ import annotations

from dataclasses import dataclass, field, replace
from threading import Lock
from typing import Iterable, Union

from pydantic import BaseModel


class PictureData(BaseModel):
    url: str


class Picture(BaseModel):
    data: PictureData


class BusinessAccountRef(BaseModel):
    id: str


class InstagramCandidate(BaseModel):
    """A Facebook page returned by the OAuth picker, not linked yet."""

    id: str
    name: str
    access_token: str
    instagram_business_account: BusinessAccountRef
    picture: Picture

    @property
    def business_account_id(self) -> str:
        return self.instagram_business_account.id

    @property
    def picture_url(self) -> str:
        return self.picture.data.url


@dataclass(frozen=True)
class InstagramTarget:
    instagram_business_account_id: str
    kind: str = field(default="instagram", init=False)


@dataclass(frozen=True)
class YoutubeTarget:
    channel_id: str
    kind: str = field(default="youtube", init=False)


DeleteTarget = Union[InstagramTarget, YoutubeTarget]


@dataclass(frozen=True)
class Toast:
    level: str
    message: str


@dataclass(frozen=True)
class DashboardState:
    pending: tuple[InstagramCandidate, ...] = ()
    app_scoped_user_id: str = ""
    delete_target: DeleteTarget | None = None

    @property
    def confirming_delete(self) -> bool:
        return self.delete_target is not None


@dataclass(frozen=True)
class CandidatesFetched:
    candidates: tuple[InstagramCandidate, ...]
    linked_ids: frozenset[str] = frozenset()
    app_scoped_user_id: str = ""


@dataclass(frozen=True)
class AccountSaved:
    instagram_business_account_id: str
    message: str


@dataclass(frozen=True)
class ActionFailed:
    message: str


@dataclass(frozen=True)
class DeleteRequested:
    target: DeleteTarget


@dataclass(frozen=True)
class DeleteCancelled:
    pass


@dataclass(frozen=True)
class DeleteSucceeded:
    message: str


DashboardEvent = Union[
    CandidatesFetched,
    AccountSaved,
    ActionFailed,
    DeleteRequested,
    DeleteCancelled,
    DeleteSucceeded,
]


def pending_candidates(
    candidates: Iterable[InstagramCandidate], linked_ids: Iterable[str]
) -> tuple[InstagramCandidate, ...]:
    linked = set(linked_ids)
    offered: list[InstagramCandidate] = []
    seen: set[str] = set()
    for candidate in candidates:
        account_id = candidate.business_account_id
        if account_id in linked or account_id in seen:
            continue
        seen.add(account_id)
        offered.append(candidate)
    return tuple(offered)


def reduce(state: DashboardState, event: DashboardEvent) -> tuple[DashboardState, list[Toast]]:
    if isinstance(event, CandidatesFetched):
        merged = pending_candidates((*event.candidates, *state.pending), event.linked_ids)
        return (
            replace(
                state,
                pending=merged,
                app_scoped_user_id=event.app_scoped_user_id or state.app_scoped_user_id,
            ),
            [],
        )
    if isinstance(event, AccountSaved):
        remaining = tuple(
            candidate
            for candidate in state.pending
            if candidate.business_account_id != event.instagram_business_account_id
        )
        return replace(state, pending=remaining), [Toast("success", event.message)]
    if isinstance(event, ActionFailed):
        return state, [Toast("error", event.message)]
    if isinstance(event, DeleteRequested):
        return replace(state, delete_target=event.target), []
    if isinstance(event, DeleteCancelled):
        return replace(state, delete_target=None), []
    if isinstance(event, DeleteSucceeded):
        return replace(state, delete_target=None), [Toast("success", event.message)]
    raise TypeError(f"unknown dashboard event: {event!r}")


@dataclass
class DashboardStore:
    _states: dict[str, DashboardState] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock)

    def get(self, user_id: str) -> DashboardState:
        with self._lock:
            return self._states.get(user_id, DashboardState())

    def dispatch(self, user_id: str, event: DashboardEvent) -> tuple[DashboardState, list[Toast]]:
        with self._lock:
            current = self._states.get(user_id, DashboardState())
            updated, toasts = reduce(current, event)
            self._states[user_id] = updated
        return updated, toasts

    def clear(self, user_id: str | None = None) -> None:
        with self._lock:
            if user_id is None:
                self._states.clear()
            else:
                self._states.pop(user_id, None)


dashboard_store = DashboardStore()
