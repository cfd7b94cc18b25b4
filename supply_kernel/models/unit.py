"""
ORM models for organizational units and catalog items.

Maps to ``Unit`` and ``Item`` in ``supply_kernel.domain.dtos``.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase
from supply_kernel.domain.dtos import Item, Unit


class UnitModel(TrackedBase):
    """An organizational unit (distribution center or satellite)."""

    __tablename__ = "units"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_distribution_center: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> Unit:
        return Unit(
            id=self.id,
            code=self.code,
            name=self.name,
            is_distribution_center=self.is_distribution_center,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: Unit) -> "UnitModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            is_distribution_center=dto.is_distribution_center,
            is_active=dto.is_active,
        )

    def __repr__(self) -> str:
        return f"<UnitModel {self.code}>"


class ItemModel(TrackedBase):
    """A catalog item."""

    __tablename__ = "items"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False, default="un")
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    has_lifecycle: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> Item:
        return Item(
            id=self.id,
            code=self.code,
            name=self.name,
            unit_of_measure=self.unit_of_measure,
            category=self.category,
            has_lifecycle=self.has_lifecycle,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: Item) -> "ItemModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            unit_of_measure=dto.unit_of_measure,
            category=dto.category,
            has_lifecycle=dto.has_lifecycle,
            is_active=dto.is_active,
        )

    def __repr__(self) -> str:
        return f"<ItemModel {self.code}>"
