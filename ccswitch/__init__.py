"""cc-switch - provider configuration orchestration for Claude Code and Codex."""

__version__ = "0.1.0"
