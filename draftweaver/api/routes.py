from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from structlog.contextvars import bind_contextvars, reset_contextvars

from draftweaver.dependencies import (
    get_import_service,
    get_relay_list,
    get_relay_publisher,
    get_signer,
)
from draftweaver.models.api_contracts import (
    ConvertRequest,
    ConvertResponse,
    DraftRequest,
    EditRequest,
    ImportRequest,
    ImportResponse,
    PreviewResponse,
    PublishResponse,
    RelayAddRequest,
    RelayListResponse,
    RelayToggleRequest,
    RenderRequest,
    RenderResponse,
)
from draftweaver.models.draft_contracts import ArticleDraft
from draftweaver.models.relay_contracts import RelayList
from draftweaver.services.html_to_markdown import html_to_markdown
from draftweaver.services.markdown_to_html import markdown_to_html
from draftweaver.services.relay_publisher import RelayPublishError, RelayPublisher
from draftweaver.services.signer import LocalKeySigner, MissingSignerError
from draftweaver.services.tag_mapper import build_event
from draftweaver.services.wordpress_import_service import (
    WordPressImportError,
    WordPressImportService,
    WordPressPostNotFoundError,
    WordPressUrlError,
)

router = APIRouter()


@router.post(
    "/drafts/import",
    response_model=ImportResponse,
    tags=["drafts"],
    operation_id="drafts_import",
)
def import_draft(
    request: ImportRequest,
    service: Annotated[WordPressImportService, Depends(get_import_service)],
) -> ImportResponse:
    context_tokens = bind_contextvars(import_url=request.url)
    try:
        imported = service.import_post(request.url)
    except WordPressUrlError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except WordPressPostNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WordPressImportError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    finally:
        reset_contextvars(**context_tokens)
    return ImportResponse(
        draft=imported.draft,
        source_html=imported.source_html,
        api_url=imported.api_url,
    )


@router.post(
    "/drafts/edit",
    response_model=ArticleDraft,
    tags=["drafts"],
    operation_id="drafts_edit",
)
def edit_draft(request: EditRequest) -> ArticleDraft:
    try:
        return request.draft.apply_edit(request.edit)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc


@router.post(
    "/drafts/convert",
    response_model=ConvertResponse,
    tags=["drafts"],
    operation_id="drafts_convert",
)
def convert_html(request: ConvertRequest) -> ConvertResponse:
    return ConvertResponse(markdown=html_to_markdown(request.html, request.base_url))


@router.post(
    "/drafts/render",
    response_model=RenderResponse,
    tags=["drafts"],
    operation_id="drafts_render",
)
def render_markdown(request: RenderRequest) -> RenderResponse:
    return RenderResponse(html=markdown_to_html(request.markdown))


@router.post(
    "/drafts/preview",
    response_model=PreviewResponse,
    tags=["drafts"],
    operation_id="drafts_preview",
)
def preview_draft(
    request: DraftRequest,
    signer: Annotated[LocalKeySigner | None, Depends(get_signer)],
    publisher: Annotated[RelayPublisher, Depends(get_relay_publisher)],
) -> PreviewResponse:
    draft = request.draft
    event = build_event(draft, signer, client=publisher.client)
    return PreviewResponse(
        event=event.to_wire(),
        html=markdown_to_html(draft.body),
        publishable=draft.is_publishable,
    )


@router.post(
    "/drafts/publish",
    response_model=PublishResponse,
    tags=["drafts"],
    operation_id="drafts_publish",
)
async def publish_draft(
    request: DraftRequest,
    signer: Annotated[LocalKeySigner | None, Depends(get_signer)],
    publisher: Annotated[RelayPublisher, Depends(get_relay_publisher)],
    relays: Annotated[RelayList, Depends(get_relay_list)],
) -> PublishResponse:
    draft = request.draft
    if signer is None:
        raise HTTPException(status_code=401, detail=str(MissingSignerError()))
    if not draft.is_publishable:
        raise HTTPException(
            status_code=422,
            detail="A draft needs an identifier, a title and content before publishing.",
        )

    context_tokens = bind_contextvars(draft_identifier=draft.identifier)
    try:
        report = await publisher.publish(
            build_event(draft, signer, client=publisher.client),
            signer=signer,
            relays=relays,
        )
    except RelayPublishError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    finally:
        reset_contextvars(**context_tokens)
    return PublishResponse(
        event=report.event.to_wire(),
        accepted_relays=list(report.accepted),
        failed_relays={outcome.url: outcome.message for outcome in report.failed},
    )


@router.get(
    "/relays",
    response_model=RelayListResponse,
    tags=["relays"],
    operation_id="relays_list",
)
def list_relays(relays: Annotated[RelayList, Depends(get_relay_list)]) -> RelayListResponse:
    return RelayListResponse(relays=relays.relays)


@router.post(
    "/relays",
    response_model=RelayListResponse,
    tags=["relays"],
    operation_id="relays_add",
)
def add_relay(
    request: RelayAddRequest,
    relays: Annotated[RelayList, Depends(get_relay_list)],
) -> RelayListResponse:
    before = len(relays)
    try:
        relays.add(request.url, read=request.read, write=request.write)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail="relay url must be an absolute ws:// or wss:// URL",
        ) from exc
    return RelayListResponse(relays=relays.relays, changed=len(relays) != before)


@router.delete(
    "/relays",
    response_model=RelayListResponse,
    tags=["relays"],
    operation_id="relays_remove",
)
def remove_relay(
    url: str,
    relays: Annotated[RelayList, Depends(get_relay_list)],
) -> RelayListResponse:
    changed = relays.remove(url)
    return RelayListResponse(relays=relays.relays, changed=changed)


@router.post(
    "/relays/toggle",
    response_model=RelayListResponse,
    tags=["relays"],
    operation_id="relays_toggle",
)
def toggle_relay(
    request: RelayToggleRequest,
    relays: Annotated[RelayList, Depends(get_relay_list)],
) -> RelayListResponse:
    updated = relays.toggle(request.url, request.access)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Relay not configured: {request.url}")
    return RelayListResponse(relays=relays.relays, changed=True)
