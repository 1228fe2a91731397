"""
Bit-packed entity identifiers.

Every entity (stock, bond, coin, currency pair...) gets one signed 64-bit
identifier that carries both its type and a type-scoped sequence number:

    [ type tag (4, 5 or 6 bits) ][ sequence (60, 59 or 58 bits) ]

Types with the largest expected universes get the shortest tags and so the
largest sequence budget. Tags are prefix-free: no tag is a prefix of a
longer one, which is what lets ``decode`` probe 4, then 5, then 6 bits.

Tags with a leading 1 bit produce negative identifiers once the value is
read back as a signed int64. That is expected; storage keeps them as BIGINT.

Usage:
    >>> from quant_loader.shared.models.identifiers import EntityType, encode_identifier
    >>> sid = encode_identifier(EntityType.EQUITY, 42)
    >>> decode_identifier(sid)
    EntityIdentifier(entity_type=<EntityType.EQUITY: 'equity'>, sequence=42)
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from typing import NamedTuple

ID_BITS = 64
_UINT64_MASK = (1 << ID_BITS) - 1
_SIGN_BIT = 1 << (ID_BITS - 1)

SUPPORTED_TAG_WIDTHS = (4, 5, 6)


class EntityType(str, enum.Enum):
    """Type of entity an identifier refers to."""

    EQUITY = "equity"
    PREFERRED_STOCK = "preferred_stock"
    ETF = "etf"
    MUTUAL_FUND = "mutual_fund"
    REIT = "reit"
    ADR = "adr"
    CD = "cd"
    BOND = "bond"
    GOVERNMENT_BOND = "government_bond"
    CORPORATE_BOND = "corporate_bond"
    MUNICIPAL_BOND = "municipal_bond"
    TREASURY_BILL = "treasury_bill"
    OPTION = "option"
    FUTURE = "future"
    WARRANT = "warrant"
    INDEX = "index"
    CURRENCY = "currency"
    COMMODITY = "commodity"
    CRYPTOCURRENCY = "cryptocurrency"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_alpha_vantage(cls, asset_type: str) -> EntityType:
        """Map an AlphaVantage ``assetType`` string; unknown values map to OTHER."""
        return _ALPHA_VANTAGE_ALIASES.get(_squash(asset_type), cls.OTHER)

    def to_alpha_vantage(self) -> str:
        """AlphaVantage's spelling of this type."""
        return _TO_ALPHA_VANTAGE.get(self, self.display_name)

    @classmethod
    def parse(cls, text: str) -> EntityType | None:
        """Lenient parse of user input (``"common stock"``, ``"ETF"``, ``"gov-bond"``)."""
        return _PARSE_ALIASES.get(_squash(text))


def _squash(text: str) -> str:
    return text.upper().replace(" ", "").replace("_", "").replace("-", "")


_DISPLAY_NAMES = {
    EntityType.EQUITY: "Common Stock",
    EntityType.PREFERRED_STOCK: "Preferred Stock",
    EntityType.ETF: "ETF",
    EntityType.MUTUAL_FUND: "Mutual Fund",
    EntityType.REIT: "REIT",
    EntityType.ADR: "ADR",
    EntityType.CD: "Certificate of Deposit",
    EntityType.BOND: "Bond",
    EntityType.GOVERNMENT_BOND: "Government Bond",
    EntityType.CORPORATE_BOND: "Corporate Bond",
    EntityType.MUNICIPAL_BOND: "Municipal Bond",
    EntityType.TREASURY_BILL: "Treasury Bill",
    EntityType.OPTION: "Option",
    EntityType.FUTURE: "Future",
    EntityType.WARRANT: "Warrant",
    EntityType.INDEX: "Index",
    EntityType.CURRENCY: "Currency",
    EntityType.COMMODITY: "Commodity",
    EntityType.CRYPTOCURRENCY: "Cryptocurrency",
    EntityType.OTHER: "Other",
}

_TO_ALPHA_VANTAGE = {
    EntityType.ETF: "Exchange Traded Fund",
    EntityType.ADR: "American Depositary Receipt",
    EntityType.REIT: "Real Estate Investment Trust",
}

_ALPHA_VANTAGE_ALIASES = {
    "EQUITY": EntityType.EQUITY,
    "CS": EntityType.EQUITY,
    "COMMONSTOCK": EntityType.EQUITY,
    "PREFERREDSTOCK": EntityType.PREFERRED_STOCK,
    "PS": EntityType.PREFERRED_STOCK,
    "EXCHANGETRADEDFUND": EntityType.ETF,
    "ETF": EntityType.ETF,
    "MUTUALFUND": EntityType.MUTUAL_FUND,
    "MF": EntityType.MUTUAL_FUND,
    "AMERICANDEPOSITARYRECEIPT": EntityType.ADR,
    "ADR": EntityType.ADR,
    "REALESTATEINVESTMENTTRUST": EntityType.REIT,
    "REIT": EntityType.REIT,
    "WARRANT": EntityType.WARRANT,
    "WT": EntityType.WARRANT,
    "BOND": EntityType.BOND,
    "GOVERNMENTBOND": EntityType.GOVERNMENT_BOND,
    "CORPORATEBOND": EntityType.CORPORATE_BOND,
    "MUNICIPALBOND": EntityType.MUNICIPAL_BOND,
    "TREASURYBILL": EntityType.TREASURY_BILL,
    "TBILL": EntityType.TREASURY_BILL,
    "OPTION": EntityType.OPTION,
    "FUTURE": EntityType.FUTURE,
    "FUTURES": EntityType.FUTURE,
    "CRYPTOCURRENCY": EntityType.CRYPTOCURRENCY,
    "CRYPTO": EntityType.CRYPTOCURRENCY,
    "DIGITALCURRENCY": EntityType.CRYPTOCURRENCY,
    "CURRENCY": EntityType.CURRENCY,
    "FX": EntityType.CURRENCY,
    "FOREX": EntityType.CURRENCY,
    "INDEX": EntityType.INDEX,
    "COMMODITY": EntityType.COMMODITY,
    "CERTIFICATEOFDEPOSIT": EntityType.CD,
    "CD": EntityType.CD,
}

_PARSE_ALIASES = {
    **{_squash(member.value): member for member in EntityType},
    **{_squash(name): member for member, name in _DISPLAY_NAMES.items()},
    "STOCK": EntityType.EQUITY,
    "PREFERRED": EntityType.PREFERRED_STOCK,
    "FUND": EntityType.MUTUAL_FUND,
    "GOVBOND": EntityType.GOVERNMENT_BOND,
    "CORPBOND": EntityType.CORPORATE_BOND,
    "MUNIBOND": EntityType.MUNICIPAL_BOND,
    "TBILL": EntityType.TREASURY_BILL,
    "CRYPTO": EntityType.CRYPTOCURRENCY,
    "FX": EntityType.CURRENCY,
    "FOREX": EntityType.CURRENCY,
}


# ============================================================================
# TAG REGISTRY
# ============================================================================
@dataclass(frozen=True)
class TypeTag:
    """One row of the tag registry: which bits mark an entity type."""

    entity_type: EntityType
    width: int
    prefix: int

    @property
    def shift(self) -> int:
        """Number of low bits left for the sequence number."""
        return ID_BITS - self.width

    @property
    def max_sequence(self) -> int:
        return (1 << self.shift) - 1

    def overlaps(self, other: TypeTag) -> bool:
        """True if one tag is a prefix of the other (or they are equal)."""
        common = min(self.width, other.width)
        return (self.prefix >> (self.width - common)) == (
            other.prefix >> (other.width - common)
        )


DEFAULT_TYPE_TAGS: tuple[TypeTag, ...] = (
    # Large universes: 4-bit tags, 60-bit sequences
    TypeTag(EntityType.EQUITY, 4, 0b0000),
    TypeTag(EntityType.PREFERRED_STOCK, 4, 0b0001),
    TypeTag(EntityType.ETF, 4, 0b0010),
    TypeTag(EntityType.MUTUAL_FUND, 4, 0b0011),
    TypeTag(EntityType.OPTION, 4, 0b0100),
    TypeTag(EntityType.FUTURE, 4, 0b0101),
    TypeTag(EntityType.WARRANT, 4, 0b0110),
    TypeTag(EntityType.ADR, 4, 0b0111),
    # Medium universes: 5-bit tags, 59-bit sequences
    TypeTag(EntityType.BOND, 5, 0b10000),
    TypeTag(EntityType.GOVERNMENT_BOND, 5, 0b10001),
    TypeTag(EntityType.CORPORATE_BOND, 5, 0b10010),
    TypeTag(EntityType.MUNICIPAL_BOND, 5, 0b10011),
    TypeTag(EntityType.CRYPTOCURRENCY, 5, 0b10100),
    TypeTag(EntityType.REIT, 5, 0b10101),
    # Small universes: 6-bit tags, 58-bit sequences
    TypeTag(EntityType.CURRENCY, 6, 0b110000),
    TypeTag(EntityType.INDEX, 6, 0b110001),
    TypeTag(EntityType.COMMODITY, 6, 0b110010),
    TypeTag(EntityType.CD, 6, 0b110011),
    TypeTag(EntityType.TREASURY_BILL, 6, 0b110100),
    TypeTag(EntityType.OTHER, 6, 0b111111),
)


def validate_type_tags(tags: Iterable[TypeTag]) -> None:
    """Check a tag registry once, before any identifier is encoded.

    Raises:
        ValueError: unsupported width, prefix wider than its width,
            duplicate entity type, or two tags sharing a prefix.
    """
    tags = list(tags)
    seen: set[EntityType] = set()

    for tag in tags:
        if tag.width not in SUPPORTED_TAG_WIDTHS:
            raise ValueError(
                f"{tag.entity_type.value}: tag width {tag.width} not in {SUPPORTED_TAG_WIDTHS}"
            )
        if not 0 <= tag.prefix < (1 << tag.width):
            raise ValueError(
                f"{tag.entity_type.value}: prefix {tag.prefix:b} does not fit in {tag.width} bits"
            )
        if tag.entity_type in seen:
            raise ValueError(f"{tag.entity_type.value}: registered more than once")
        seen.add(tag.entity_type)

    for i, left in enumerate(tags):
        for right in tags[i + 1 :]:
            if left.overlaps(right):
                raise ValueError(
                    f"Tags overlap: {left.entity_type.value}={left.prefix:0{left.width}b} "
                    f"and {right.entity_type.value}={right.prefix:0{right.width}b}"
                )


# ============================================================================
# CODEC
# ============================================================================
class EntityIdentifier(NamedTuple):
    """Decoded identifier: ``(entity_type, sequence)``."""

    entity_type: EntityType
    sequence: int


def _to_signed(value: int) -> int:
    value &= _UINT64_MASK
    return value - (1 << ID_BITS) if value & _SIGN_BIT else value


class IdentifierCodec:
    """Encode/decode ``(type, sequence)`` pairs into one int64.

    Decoding is total: any integer decodes to some type, with
    ``EntityType.OTHER`` catching unregistered bit patterns.
    """

    def __init__(self, tags: Iterable[TypeTag] = DEFAULT_TYPE_TAGS):
        tags = tuple(tags)
        validate_type_tags(tags)
        if EntityType.OTHER not in {tag.entity_type for tag in tags}:
            raise ValueError("Tag registry must include a catch-all OTHER tag")

        self._tags = {tag.entity_type: tag for tag in tags}
        # Probed shortest width first; a longer tag is only considered
        # once every shorter tag has been ruled out.
        self._by_width: list[tuple[int, dict[int, TypeTag]]] = [
            (width, {t.prefix: t for t in tags if t.width == width})
            for width in sorted({tag.width for tag in tags})
        ]
        self._fallback = self._tags[EntityType.OTHER]

    @property
    def tags(self) -> tuple[TypeTag, ...]:
        return tuple(self._tags.values())

    def tag_for(self, entity_type: EntityType) -> TypeTag:
        try:
            return self._tags[entity_type]
        except KeyError:
            raise ValueError(f"No tag registered for {entity_type.value}") from None

    def encode(self, entity_type: EntityType, sequence: int) -> int:
        """Pack a type and sequence number into a signed 64-bit identifier.

        Raises:
            ValueError: if ``sequence`` is negative or exceeds the type's budget.
        """
        tag = self.tag_for(entity_type)
        if not 0 <= sequence <= tag.max_sequence:
            raise ValueError(
                f"Sequence {sequence} outside 0..{tag.max_sequence} for {entity_type.value}"
            )
        return _to_signed((tag.prefix << tag.shift) | sequence)

    def decode(self, identifier: int) -> EntityIdentifier:
        """Unpack an identifier. Never raises."""
        raw = identifier & _UINT64_MASK
        for width, table in self._by_width:
            tag = table.get(raw >> (ID_BITS - width))
            if tag is not None:
                return EntityIdentifier(tag.entity_type, raw & tag.max_sequence)
        return EntityIdentifier(self._fallback.entity_type, raw & self._fallback.max_sequence)

    def identifier_range(self, entity_type: EntityType) -> tuple[int, int]:
        """Inclusive signed bounds covering every identifier of ``entity_type``.

        A tag's block never straddles the int64 sign boundary, so the
        signed bounds stay ordered and can drive a BETWEEN range scan.
        """
        tag = self.tag_for(entity_type)
        low = tag.prefix << tag.shift
        return _to_signed(low), _to_signed(low | tag.max_sequence)


DEFAULT_CODEC = IdentifierCodec()


def encode_identifier(entity_type: EntityType, sequence: int) -> int:
    return DEFAULT_CODEC.encode(entity_type, sequence)


def decode_identifier(identifier: int) -> EntityIdentifier:
    return DEFAULT_CODEC.decode(identifier)


__all__ = [
    "DEFAULT_CODEC",
    "DEFAULT_TYPE_TAGS",
    "EntityIdentifier",
    "EntityType",
    "IdentifierCodec",
    "TypeTag",
    "decode_identifier",
    "encode_identifier",
    "validate_type_tags",
]
