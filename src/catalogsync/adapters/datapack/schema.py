"""Record schemas of the JSON data pack files."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from catalogsync.domain.model import EntityType

PRICE_KEY_SEPARATOR = "@"


class DatapackRecord(BaseModel):
    """One record; every field of the source object is forwarded as payload."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)
    entity_type: ClassVar[EntityType]

    @property
    def natural_key(self) -> str:
        raise NotImplementedError

    @property
    def parent_key(self) -> str | None:
        return None

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CategoryRecord(DatapackRecord):
    entity_type = EntityType.CATEGORY

    slug: str = Field(min_length=1)
    parent: str | None = Field(
        default=None, validation_alias=AliasChoices("parentId", "parentSlug", "parent")
    )

    @property
    def natural_key(self) -> str:
        return self.slug

    @property
    def parent_key(self) -> str | None:
        return self.parent or None


class MetadataRecord(DatapackRecord):
    entity_type = EntityType.METADATA

    code: str = Field(min_length=1)

    @property
    def natural_key(self) -> str:
        return self.code


class ProductRecord(DatapackRecord):
    entity_type = EntityType.PRODUCT

    sku: str = Field(min_length=1)

    @property
    def natural_key(self) -> str:
        return self.sku


class VariantRecord(ProductRecord):
    entity_type = EntityType.VARIANT


class PriceBookRecord(DatapackRecord):
    entity_type = EntityType.PRICE_BOOK

    price_book_id: str = Field(alias="priceBookId", min_length=1)
    parent: str | None = Field(default=None, validation_alias=AliasChoices("parentId", "parent"))

    @property
    def natural_key(self) -> str:
        return self.price_book_id

    @property
    def parent_key(self) -> str | None:
        return self.parent or None


class PriceRecord(DatapackRecord):
    """Prices are keyed by SKU and price book, keeping the SKU prefix first."""

    entity_type = EntityType.PRICE

    sku: str = Field(min_length=1)
    price_book_id: str = Field(alias="priceBookId", min_length=1)

    @property
    def natural_key(self) -> str:
        return f"{self.sku}{PRICE_KEY_SEPARATOR}{self.price_book_id}"


RECORD_MODELS: dict[EntityType, type[DatapackRecord]] = {
    EntityType.CATEGORY: CategoryRecord,
    EntityType.METADATA: MetadataRecord,
    EntityType.PRODUCT: ProductRecord,
    EntityType.VARIANT: VariantRecord,
    EntityType.PRICE_BOOK: PriceBookRecord,
    EntityType.PRICE: PriceRecord,
}
