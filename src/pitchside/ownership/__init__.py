"""Ownership: effective-owner classification and claims."""

from pitchside.ownership.claims import ClaimService
from pitchside.ownership.resolver import (
    EffectiveOwner,
    OwnershipKind,
    OwnershipResolver,
    effective_owner,
)

__all__ = [
    "ClaimService",
    "EffectiveOwner",
    "OwnershipKind",
    "OwnershipResolver",
    "effective_owner",
]
