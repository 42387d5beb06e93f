"""Loading of vocabulary definitions from yaml files."""

import yaml
from pathlib import Path
from rich.console import Console
from rich.table import Table

from .models import SchemaConfig
from .dublin_core import DUBLIN_CORE


class SchemaLoader:
    """Reads a vocabulary file and lists its content."""

    def load(self, schema_path: str | Path | None = None) -> SchemaConfig:
        """Load and validate a vocabulary file.

        Args:
            schema_path: Path to the yaml file, or None for Dublin Core only

        Returns:
            Validated schema, with Dublin Core appended when enabled

        Raises:
            FileNotFoundError: If the file doesn't exist
            yaml.YAMLError: If the file is invalid YAML
            ValidationError: If the file doesn't match the schema
        """
        if schema_path is None:
            return SchemaConfig(vocabularies=[DUBLIN_CORE])

        schema_file = Path(schema_path)
        if not schema_file.exists():
            raise FileNotFoundError(f"Vocabulary file not found: {schema_path}")

        with open(schema_file, "r", encoding="utf-8") as f:
            schema_data = yaml.safe_load(f) or {}

        schema_config = SchemaConfig(**schema_data)
        prefixes = {vocabulary.prefix for vocabulary in schema_config.vocabularies}
        if schema_config.include_dublin_core and DUBLIN_CORE.prefix not in prefixes:
            schema_config.vocabularies.insert(0, DUBLIN_CORE)
        return schema_config

    def summary(self, schema_config: SchemaConfig, console: Console) -> None:
        """Print the vocabularies and custom vocabs as tables."""
        table = Table(title="Vocabularies")
        table.add_column("Prefix", style="cyan")
        table.add_column("Label")
        table.add_column("Properties", justify="right", style="green")
        for vocabulary in schema_config.vocabularies:
            table.add_row(vocabulary.prefix, vocabulary.label, str(len(vocabulary.properties)))
        console.print(table)

        if schema_config.custom_vocabs:
            table = Table(title="Custom vocabs")
            table.add_column("Id", style="cyan")
            table.add_column("Label")
            table.add_column("Terms", justify="right", style="green")
            for custom_vocab in schema_config.custom_vocabs:
                table.add_row(str(custom_vocab.id), custom_vocab.label, str(len(custom_vocab.terms)))
            console.print(table)
