# tests/test_proof_validation.py

from __future__ import annotations

import pytest

from eduquest.core.errors import ProofValidationError
from eduquest.tasks.proof_validation import validate_proof
from eduquest.tasks.task_models import NoProof, PhotoProof, ProofPolicy, ProofType, ReviewType, TextProof

TEXT = ProofPolicy(type=ProofType.TEXT, review_type=ReviewType.MANUAL, min_text_length=5, max_text_length=8)
PHOTO = ProofPolicy(
    type=ProofType.PHOTO,
    review_type=ReviewType.MANUAL,
    max_file_size=1000,
    accepted_file_types=frozenset({"image/jpeg", "image/png"}),
)


def _text(n: int) -> TextProof:
    return TextProof(id="t", content="  ".join(["word"] * n))


def test_text_word_count_bounds() -> None:
    validate_proof(_text(5), TEXT)
    validate_proof(_text(8), TEXT)

    with pytest.raises(ProofValidationError, match="at least 5 words"):
        validate_proof(_text(4), TEXT)
    with pytest.raises(ProofValidationError, match="at most 8 words"):
        validate_proof(_text(9), TEXT)


def test_text_word_count_ignores_extra_whitespace() -> None:
    assert TextProof(id="t", content="  one\ttwo \n three  ").word_count == 3
    assert TextProof(id="t", content="").word_count == 0


def test_photo_requires_url() -> None:
    with pytest.raises(ProofValidationError, match="Photo URL is required"):
        validate_proof(PhotoProof(id="p", file_url="   "), PHOTO)


def test_photo_size_limit() -> None:
    validate_proof(PhotoProof(id="p", file_url="u", file_size_bytes=1000), PHOTO)
    with pytest.raises(ProofValidationError, match="exceeds 1000 bytes"):
        validate_proof(PhotoProof(id="p", file_url="u", file_size_bytes=1001), PHOTO)


def test_photo_unknown_size_passes() -> None:
    validate_proof(PhotoProof(id="p", file_url="u"), PHOTO)


def test_photo_mime_type_must_be_accepted() -> None:
    validate_proof(PhotoProof(id="p", file_url="u", mime_type="IMAGE/PNG"), PHOTO)
    with pytest.raises(ProofValidationError, match="not accepted"):
        validate_proof(PhotoProof(id="p", file_url="u", mime_type="application/pdf"), PHOTO)


def test_variant_must_match_policy_type() -> None:
    with pytest.raises(ProofValidationError, match="Expected photo proof, got text"):
        validate_proof(_text(6), PHOTO)


def test_policy_none_accepts_any_variant() -> None:
    policy = ProofPolicy(type=ProofType.NONE, review_type=ReviewType.MANUAL)
    validate_proof(NoProof(id="n"), policy)
    validate_proof(_text(1), policy)


def test_auto_policy_accepts_no_submission() -> None:
    policy = ProofPolicy(type=ProofType.AUTO, review_type=ReviewType.AUTO)
    with pytest.raises(ProofValidationError):
        validate_proof(NoProof(id="n"), policy)
