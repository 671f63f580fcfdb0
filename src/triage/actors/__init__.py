"""Maintainer and bot classification for issue participants."""

from src.triage.actors.classifier import (
    BOT_SUFFIX,
    Actor,
    ActorClassifier,
    PermissionCache,
    parse_permission,
)

__all__ = [
    "BOT_SUFFIX",
    "Actor",
    "ActorClassifier",
    "PermissionCache",
    "parse_permission",
]
