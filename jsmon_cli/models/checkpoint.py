"""Data models for the batch upload checkpoint."""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

FILE_BATCH = "file-batch"
_WIRE_FILE_TYPE = "file"


class Checkpoint(BaseModel):
    """Resumable state of one batch upload

    Serialized with the field names of the ``resume.cfg`` file so that a
    checkpoint can be inspected or edited by hand:
    ``type``, ``file``, ``processed_urls``, ``total_urls``, ``last_index``.
    API key and workspace ID are never part of it.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(FILE_BATCH, alias="type")
    source_path: str = Field("", alias="file")
    processed_items: List[str] = Field(default_factory=list, alias="processed_urls")
    all_items: List[str] = Field(default_factory=list, alias="total_urls")
    last_index: int = Field(-1, ge=-1)

    @field_validator("kind", mode="before")
    @classmethod
    def _from_wire_type(cls, value: Any) -> Any:
        if value == _WIRE_FILE_TYPE:
            return FILE_BATCH
        return value

    @field_serializer("kind")
    def _to_wire_type(self, value: str) -> str:
        return _WIRE_FILE_TYPE if value == FILE_BATCH else value

    @model_validator(mode="after")
    def _check_last_index(self) -> "Checkpoint":
        if self.last_index >= len(self.all_items):
            raise ValueError(
                f"last_index {self.last_index} is outside the "
                f"{len(self.all_items)} items of the batch"
            )
        return self

    @property
    def resume_index(self) -> int:
        """Index of the first item not yet attempted"""
        return self.last_index + 1

    @property
    def is_file_batch(self) -> bool:
        return self.kind == FILE_BATCH

    def mark_attempted(self, index: int) -> None:
        """Record that ``all_items[index]`` is being attempted."""
        self.last_index = index
        self.processed_items.append(self.all_items[index])

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the on-disk layout, omitting empty lists."""
        data = self.model_dump(by_alias=True)
        for key in ("processed_urls", "total_urls"):
            if not data[key]:
                del data[key]
        return data
