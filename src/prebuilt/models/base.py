"""Base Pydantic model configuration for prebuilt models.

Value objects inherit from PrebuiltBaseModel:
- Immutability (frozen=True) so trust material and releases cannot drift mid-run
- Strict validation (extra="forbid") to catch typos and invalid fields

Documents fetched from an index inherit from IndexDocumentModel instead,
which ignores unknown fields so newer index schemas stay readable.
"""

from pydantic import BaseModel, ConfigDict


class PrebuiltBaseModel(BaseModel):
    """Base model for all prebuilt value objects.

    Example:
        >>> class Sample(PrebuiltBaseModel):
        ...     name: str
        >>> Sample(name="foo").name
        'foo'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )


class IndexDocumentModel(BaseModel):
    """Base model for JSON documents published by an index."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
