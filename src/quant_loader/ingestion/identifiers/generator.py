"""
Identifier allocation.

An ``IdGenerator`` continues one entity type's sequence from the highest
identifier already issued. Counters live in the instance only: two
processes allocating the same type concurrently will collide, so run one
allocator per type at a time.
"""

from collections.abc import Iterable

from quant_loader.infrastructure.observability import get_ingestion_logger
from quant_loader.shared.models.identifiers import DEFAULT_CODEC, EntityType, IdentifierCodec
from quant_loader.storage.ports import IIdentifierScan

log = get_ingestion_logger("id-generator")


class IdGenerator:
    """Allocates new identifiers of one type.

    Usage:
        >>> gen = IdGenerator(EntityType.EQUITY, existing_sids)
        >>> sid = gen.next_id()
    """

    def __init__(
        self,
        entity_type: EntityType,
        identifiers: Iterable[int] = (),
        codec: IdentifierCodec = DEFAULT_CODEC,
    ):
        self.entity_type = entity_type
        self.codec = codec
        self._max_sequence = codec.tag_for(entity_type).max_sequence

        highest = None
        for identifier in identifiers:
            decoded = codec.decode(identifier)
            if decoded.entity_type is entity_type and (
                highest is None or decoded.sequence > highest
            ):
                highest = decoded.sequence
        self._next = 1 if highest is None else highest + 1

    @classmethod
    async def from_repository(
        cls,
        entity_type: EntityType,
        repository: IIdentifierScan,
        codec: IdentifierCodec = DEFAULT_CODEC,
    ) -> "IdGenerator":
        """Seed from a range scan of the type's identifier block."""
        low, high = codec.identifier_range(entity_type)
        identifiers = await repository.scan_range(low, high)
        generator = cls(entity_type, identifiers, codec)
        log.info(
            "id_generator_seeded",
            entity_type=entity_type.value,
            scanned=len(identifiers),
            next_sequence=generator.peek_sequence(),
        )
        return generator

    def peek_sequence(self) -> int:
        """Sequence number the next call to ``next_id`` will use."""
        return self._next

    def next_id(self) -> int:
        """
        Raises:
            OverflowError: the type's sequence budget is exhausted
        """
        if self._next > self._max_sequence:
            raise OverflowError(
                f"Identifier space exhausted for {self.entity_type.value} "
                f"(max sequence {self._max_sequence})"
            )
        identifier = self.codec.encode(self.entity_type, self._next)
        self._next += 1
        return identifier


class IdRegistry:
    """One ``IdGenerator`` per entity type, seeded from a single scan."""

    def __init__(self, codec: IdentifierCodec = DEFAULT_CODEC):
        self.codec = codec
        self._generators: dict[EntityType, IdGenerator] = {}

    @classmethod
    def from_identifiers(
        cls, identifiers: Iterable[int], codec: IdentifierCodec = DEFAULT_CODEC
    ) -> "IdRegistry":
        registry = cls(codec)
        by_type: dict[EntityType, list[int]] = {}
        for identifier in identifiers:
            by_type.setdefault(codec.decode(identifier).entity_type, []).append(identifier)
        for entity_type, ids in by_type.items():
            registry._generators[entity_type] = IdGenerator(entity_type, ids, codec)
        return registry

    async def seed(self, entity_type: EntityType, repository: IIdentifierScan) -> IdGenerator:
        """Replace the type's generator with one seeded from ``repository``."""
        generator = await IdGenerator.from_repository(entity_type, repository, self.codec)
        self._generators[entity_type] = generator
        return generator

    def generator(self, entity_type: EntityType) -> IdGenerator:
        if entity_type not in self._generators:
            self._generators[entity_type] = IdGenerator(entity_type, (), self.codec)
        return self._generators[entity_type]

    def next_id(self, entity_type: EntityType) -> int:
        return self.generator(entity_type).next_id()
