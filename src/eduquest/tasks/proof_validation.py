# src/eduquest/tasks/proof_validation.py

from __future__ import annotations

from ..core.errors import ProofValidationError
from .task_models import NoProof, PhotoProof, Proof, ProofPolicy, ProofType, TextProof


def validate_proof(proof: Proof, policy: ProofPolicy) -> None:
    """
    Check submitted proof metadata against the task's proof policy.

    Raises ProofValidationError with a human-readable reason; returns None when
    the proof is acceptable. Never touches the UserTask.

    Rules:
    - policy type "none" accepts any variant
    - otherwise the variant must match the policy type
    - photo: non-empty file_url, size <= max_file_size, mime type in accepted_file_types
      (size/type checks only when both sides are known)
    - text: word count within [min_text_length, max_text_length] when set
    """
    if policy.type == ProofType.AUTO:
        # Auto-proof tasks are completed by the system, never by a submission.
        raise ProofValidationError("This task is verified automatically and does not accept proof")

    if policy.type != ProofType.NONE and proof.proof_type != policy.type:
        raise ProofValidationError(
            f"Expected {policy.type.value} proof, got {proof.proof_type.value}"
        )

    if isinstance(proof, PhotoProof):
        _validate_photo(proof, policy)
    elif isinstance(proof, TextProof):
        _validate_text(proof, policy)
    elif isinstance(proof, NoProof):
        return
    else:
        raise ProofValidationError(f"Unsupported proof object: {type(proof).__name__}")


def _validate_photo(proof: PhotoProof, policy: ProofPolicy) -> None:
    if not (proof.file_url or "").strip():
        raise ProofValidationError("Photo URL is required")

    if proof.file_size_bytes and policy.max_file_size and proof.file_size_bytes > policy.max_file_size:
        raise ProofValidationError(f"File size exceeds {policy.max_file_size} bytes")

    if proof.mime_type and policy.accepted_file_types:
        if proof.mime_type.lower() not in {t.lower() for t in policy.accepted_file_types}:
            accepted = ", ".join(sorted(policy.accepted_file_types))
            raise ProofValidationError(f"File type {proof.mime_type} is not accepted ({accepted})")


def _validate_text(proof: TextProof, policy: ProofPolicy) -> None:
    words = proof.word_count
    if policy.min_text_length and words < policy.min_text_length:
        raise ProofValidationError(f"Text must be at least {policy.min_text_length} words")
    if policy.max_text_length and words > policy.max_text_length:
        raise ProofValidationError(f"Text must be at most {policy.max_text_length} words")
