"""Engine policy: loads engine_policy.json and exposes each runtime
decision as a typed method call.

No magic. No defaults. If a value is missing from the config, it fails loud.
"""

from __future__ import annotations

import enum
import json
from pathlib import Path
from typing import Any

POLICY_FILENAME = "engine_policy.json"


class BackupOnOwnerChange(str, enum.Enum):
    """What a direct reassignment does to an untouched backup slot."""
    KEEP = "keep"
    CLEAR = "clear"


class EnginePolicy:
    """Resolved engine policy.

    Usage:
        policy = EnginePolicy.from_config_dir(Path("config"))
        if policy.enforce_role_membership():
            ...
    """

    def __init__(self, policy: dict[str, Any]) -> None:
        self._policy = policy
        self._validate()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> EnginePolicy:
        """Load from the canonical config directory."""
        return cls(_load_json(config_dir / POLICY_FILENAME))

    def _validate(self) -> None:
        if "version" not in self._policy:
            raise ValueError(f"{POLICY_FILENAME} missing version")
        for section in ("claims", "reassignment", "handover", "audit"):
            if section not in self._policy:
                raise ValueError(f"{POLICY_FILENAME} missing section: {section}")
        # Resolve every value once so a bad file fails at load, not mid-request
        try:
            self.enforce_role_membership()
            self.backup_on_owner_change()
            self.allow_self_target()
            default_size, max_size = self.audit_page_sizes()
        except KeyError as e:
            raise ValueError(f"{POLICY_FILENAME} missing key: {e}") from None
        if not (0 < default_size <= max_size):
            raise ValueError(
                f"audit.default_page_size must be in (0, {max_size}], "
                f"got {default_size}"
            )

    @property
    def version(self) -> str:
        return str(self._policy["version"])

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def enforce_role_membership(self) -> bool:
        """Whether a role-claimable task may only be claimed by role members."""
        return bool(self._policy["claims"]["enforce_role_membership"])

    # ------------------------------------------------------------------
    # Direct reassignment
    # ------------------------------------------------------------------

    def backup_on_owner_change(self) -> BackupOnOwnerChange:
        raw = self._policy["reassignment"]["backup_on_owner_change"]
        try:
            return BackupOnOwnerChange(raw)
        except ValueError:
            raise ValueError(
                f"Unknown reassignment.backup_on_owner_change: {raw}"
            ) from None

    # ------------------------------------------------------------------
    # Handover
    # ------------------------------------------------------------------

    def allow_self_target(self) -> bool:
        """Whether a person-target handover may name the source person."""
        return bool(self._policy["handover"]["allow_self_target"])

    # ------------------------------------------------------------------
    # Audit queries
    # ------------------------------------------------------------------

    def audit_page_sizes(self) -> tuple[int, int]:
        """Return (default_page_size, max_page_size)."""
        audit = self._policy["audit"]
        return int(audit["default_page_size"]), int(audit["max_page_size"])


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file or raise with clear path."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
