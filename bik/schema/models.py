"""Pydantic models for vocabulary definitions."""

from pydantic import BaseModel, Field


class PropertySchema(BaseModel):
    """Schema definition for a vocabulary property."""

    id: int | str | None = Field(None, description="Property id in the target platform")
    local_name: str = Field(..., description="Local name (title)")
    label: str = Field(..., description="Property label (Title)")
    description: str | None = Field(None, description="Property description")


class VocabularySchema(BaseModel):
    """Schema definition for a vocabulary and its properties."""

    prefix: str = Field(..., description="Vocabulary prefix (dcterms)")
    namespace_uri: str | None = Field(None, description="Vocabulary namespace")
    label: str = Field(..., description="Vocabulary label (Dublin Core)")
    properties: list[PropertySchema] = Field(default_factory=list, description="Vocabulary properties")

    def term(self, prop: PropertySchema) -> str:
        return f"{self.prefix}:{prop.local_name}"


class CustomVocabSchema(BaseModel):
    """Schema definition for a custom vocab (closed list of terms)."""

    id: int | str = Field(..., description="Custom vocab id")
    label: str = Field(..., description="Custom vocab label")
    terms: list[str] = Field(default_factory=list, description="Allowed terms")


class SchemaConfig(BaseModel):
    """Vocabularies, custom vocabs and datatypes known by the target platform."""

    include_dublin_core: bool = Field(True, description="Append the Dublin Core terms")
    vocabularies: list[VocabularySchema] = Field(default_factory=list, description="Vocabularies")
    custom_vocabs: list[CustomVocabSchema] = Field(default_factory=list, description="Custom vocabs")
    datatypes: list[str] = Field(default_factory=list, description="Additional datatype names")
