"""Base Pydantic models for engine definitions and records.

This module defines the foundational model classes used by steps, tests,
input and output specifications, and report records. It enforces
immutability and strict schema validation so that definitions are
deterministic, explicit, and safe to share between tests.
"""

from inspect import getsourcefile
from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from types import CodeType, FrameType


class SchemaModel(BaseModel):
    """Base immutable model for all engine elements.

    Design principles enforced by this model:
        - Immutability: definitions cannot be modified after creation.
          A step template reused by several tests always behaves the same.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos.

    All engine models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class DescribedMixin(SchemaModel):
    """Mixin providing element self-documentation.

    The fields defined in this model do not affect execution semantics
    and are used purely for reporting.
    """

    title: str | None = Field(
        default=None,
        title='Title',
        description='Short human-readable title of the element.',
    )

    description: str | None = Field(
        default=None,
        title='Description',
        description='Detailed human-readable description of the element.',
    )


class SourceLocation(SchemaModel):
    """Place in the source code where an element was defined."""

    filename: str | None = Field(
        default=None,
        title='Source file',
    )

    line_num: int | None = Field(
        default=None,
        title='Line number',
        description='Zero-based line number of the definition.',
    )

    @classmethod
    def from_code(cls, code: 'CodeType') -> Self:
        """Build a location from a function code object."""
        return cls(
            filename=getsourcefile(code) or code.co_filename,
            line_num=code.co_firstlineno - 1,
        )

    @classmethod
    def from_frame(cls, frame: 'FrameType | None') -> Self | None:
        """Build a location from a caller frame, if available."""
        if frame is None:
            return None

        return cls(
            filename=frame.f_code.co_filename,
            line_num=frame.f_lineno - 1,
        )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
          This guarantees consistent behavior during a suite run.
        - Tolerant schema handling: unknown or extra fields are ignored.
          This allows the surrounding environment to contain unrelated
          variables without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
