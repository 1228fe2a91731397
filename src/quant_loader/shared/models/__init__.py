"""Shared domain models."""

from quant_loader.shared.models.enums import DataSource, ProcessState, TaskState
from quant_loader.shared.models.identifiers import (
    DEFAULT_CODEC,
    DEFAULT_TYPE_TAGS,
    EntityIdentifier,
    EntityType,
    IdentifierCodec,
    TypeTag,
    decode_identifier,
    encode_identifier,
)

__all__ = [
    # Enums
    "DataSource",
    "EntityType",
    "ProcessState",
    "TaskState",
    # Identifiers
    "DEFAULT_CODEC",
    "DEFAULT_TYPE_TAGS",
    "EntityIdentifier",
    "IdentifierCodec",
    "TypeTag",
    "decode_identifier",
    "encode_identifier",
]
