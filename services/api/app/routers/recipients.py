from __future__ import annotations

from fastapi import APIRouter

from services.api.app.models.recipient import (
    DedupeResponse,
    DuplicateGroup,
    MergeRequest,
    MergeResponse,
    RecipientListRequest,
    ValidateRecipientsResponse,
)
from services.api.app.services.recipients import (
    collapse_duplicates,
    diff_against_existing,
    find_duplicate_groups,
    recipient_key,
    with_validation,
)

router = APIRouter()


@router.post("/v1/recipients/dedupe", response_model=DedupeResponse)
def dedupe_recipients(payload: RecipientListRequest) -> DedupeResponse:
    unique = collapse_duplicates(payload.recipients)
    groups = [
        DuplicateGroup(key=recipient_key(group[0]), recipients=group)
        for group in find_duplicate_groups(payload.recipients)
    ]
    return DedupeResponse(
        recipients=unique,
        duplicate_groups=groups,
        removed_count=len(payload.recipients) - len(unique),
    )


@router.post("/v1/recipients/merge", response_model=MergeResponse)
def merge_recipients(payload: MergeRequest) -> MergeResponse:
    result = diff_against_existing(payload.existing, payload.incoming)
    return MergeResponse(
        recipients=[*payload.existing, *result.unique],
        added=result.unique,
        duplicates=result.duplicates,
    )


@router.post("/v1/recipients/validate", response_model=ValidateRecipientsResponse)
def validate_recipients(payload: RecipientListRequest) -> ValidateRecipientsResponse:
    checked = [with_validation(r) for r in payload.recipients]
    valid = sum(1 for r in checked if r.is_valid)
    return ValidateRecipientsResponse(
        recipients=checked,
        valid_count=valid,
        invalid_count=len(checked) - valid,
    )
