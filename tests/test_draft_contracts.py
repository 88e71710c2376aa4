from __future__ import annotations

import pytest
from pydantic import ValidationError

from draftweaver.models.draft_contracts import (
    SUMMARY_EDIT_MAX_LENGTH,
    SUMMARY_MAX_LENGTH,
    ArticleDraft,
    DraftEdit,
    parse_labels,
)


def _draft() -> ArticleDraft:
    return ArticleDraft(
        title="Original Title",
        summary="Summary",
        body="Body",
        cover_image="https://x.com/cover.png",
        canonical_url="https://x.com/original-title/",
        labels=["one", "two"],
    )


def test_identifier_is_derived_from_title_then_canonical_url() -> None:
    assert ArticleDraft(title="Hello, World!").identifier == "hello-world"
    assert ArticleDraft(canonical_url="https://x.com/a/").identifier == "https-x-com-a"
    assert ArticleDraft().identifier == "article"


def test_explicit_identifier_is_sanitized() -> None:
    assert ArticleDraft(title="Ignored", identifier="  My Slug!  ").identifier == "my-slug"


def test_blank_urls_are_normalized_to_none() -> None:
    draft = ArticleDraft(title="T", cover_image="   ", canonical_url="")

    assert draft.cover_image is None
    assert draft.canonical_url is None


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(ValidationError):
        ArticleDraft.model_validate({"title": "T", "author": "someone"})
    with pytest.raises(ValidationError):
        DraftEdit.model_validate({"slug": "x"})


def test_from_source_truncates_summary() -> None:
    draft = ArticleDraft.from_source(title="T", body="B", summary="s" * 500)

    assert len(draft.summary) == SUMMARY_MAX_LENGTH


def test_title_edit_rederives_identifier() -> None:
    updated = _draft().apply_edit(DraftEdit(title="Brand New Title"))

    assert updated.title == "Brand New Title"
    assert updated.identifier == "brand-new-title"


def test_clearing_title_keeps_current_identifier() -> None:
    updated = _draft().apply_edit(DraftEdit(title=""))

    assert updated.title == ""
    assert updated.identifier == "original-title"


def test_explicit_identifier_edit_wins_over_title() -> None:
    updated = _draft().apply_edit(DraftEdit(title="Other", identifier="Custom Slug"))

    assert updated.identifier == "custom-slug"


def test_edit_normalizes_summary_urls_and_labels() -> None:
    updated = _draft().apply_edit(
        DraftEdit(
            summary="x" * 1000,
            cover_image="",
            canonical_url=" https://x.com/moved/ ",
            labels="a, b,, c ",
        )
    )

    assert len(updated.summary) == SUMMARY_EDIT_MAX_LENGTH
    assert updated.cover_image is None
    assert updated.canonical_url == "https://x.com/moved/"
    assert updated.labels == ["a", "b", "c"]
    assert updated.body == "Body"


def test_empty_edit_returns_same_draft() -> None:
    draft = _draft()

    assert draft.apply_edit(DraftEdit()) is draft


def test_is_publishable() -> None:
    assert _draft().is_publishable
    assert not ArticleDraft(title="T", body="   ").is_publishable
    assert not ArticleDraft(body="Body").is_publishable


def test_parse_labels() -> None:
    assert parse_labels(None) == []
    assert parse_labels(" a ,b,,") == ["a", "b"]
    assert parse_labels(["x", " ", 3, "y "]) == ["x", "y"]
    with pytest.raises(ValueError):
        parse_labels(42)
