"""Policy: typed access to engine configuration."""

from pitchside.policy.resolver import BackupOnOwnerChange, EnginePolicy

__all__ = ["BackupOnOwnerChange", "EnginePolicy"]
