from typing import Generic, TypeVar

from pydantic import BaseModel
from tree_sitter import Node

T = TypeVar("T")


class Position(BaseModel):
    row: int
    column: int


class Span(BaseModel):
    start_byte: int
    end_byte: int
    start_point: Position
    end_point: Position

    @classmethod
    def of(cls, node: Node) -> "Span":
        return cls(
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            start_point=Position(row=node.start_point[0], column=node.start_point[1]),
            end_point=Position(row=node.end_point[0], column=node.end_point[1]),
        )

    def location(self) -> str:
        """1-based ``line:column`` of the span start; the column counts bytes."""
        return f"{self.start_point.row + 1}:{self.start_point.column + 1}"


class WithSpan(BaseModel, Generic[T]):
    """A parsed value and the source span it was parsed from."""

    value: T
    span: Span


class Diagnostic(BaseModel):
    message: str
    span: Span

    def __str__(self) -> str:
        return f"{self.span.location()}: {self.message}"
