"""
Batch conversion of source files with one mapping
Loads json, json lines and xml sources and exports the records with pandas
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional

import pandas as pd
from lxml import etree

from bik.mapping.models import DestinationRecord, NormalizedConfig
from bik.mapping.processor import MappingProcessor

logger = logging.getLogger(__name__)

MULTI_VALUE_SEPARATOR = " | "


def load_documents(path: str | Path, record_xpath: Optional[str] = None) -> List[Any]:
    """Load the source documents of a file.

    A json file holding a list gives one document per item, any other json
    value a single document. A `.jsonl` / `.ndjson` file gives one document
    per line. A xml file gives one document, or one per element matched by
    `record_xpath`.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in (".jsonl", ".ndjson"):
        with open(path, "r", encoding="utf-8") as file_handle:
            return [json.loads(line) for line in file_handle if line.strip()]

    if suffix == ".json":
        with open(path, "r", encoding="utf-8") as file_handle:
            data = json.load(file_handle)
        return data if isinstance(data, list) else [data]

    if suffix == ".xml":
        tree = etree.parse(str(path), parser=etree.XMLParser(resolve_entities=False, no_network=True))
        if not record_xpath:
            return [tree]
        # Each record becomes its own tree, so absolute paths start from it.
        return [copy.deepcopy(element) for element in tree.getroot().xpath(record_xpath)]

    raise ValueError(f"Unsupported source file: {path}")


class BatchConverter:
    """Converts many documents with one mapping and collects the records."""

    def __init__(
        self,
        processor: MappingProcessor,
        config: NormalizedConfig,
        variables: Optional[Mapping[str, Any]] = None,
    ):
        self.processor = processor
        self.config = config
        self.variables = dict(variables or {})
        self.records: List[DestinationRecord] = []

    def iter_convert(self, documents: Iterable[Any]) -> Iterator[DestinationRecord]:
        for index, document in enumerate(documents, start=1):
            record = self.processor.convert(self.config, document, self.variables)
            if not record:
                logger.info("Document %d produced no value", index)
            yield record

    def convert(self, documents: Iterable[Any]) -> List[DestinationRecord]:
        """Convert the documents and keep their records."""
        records = list(self.iter_convert(documents))
        self.records.extend(records)
        return records

    def convert_file(self, path: str | Path, record_xpath: Optional[str] = None) -> List[DestinationRecord]:
        return self.convert(load_documents(path, record_xpath))

    def to_dataframe(self, separator: str = MULTI_VALUE_SEPARATOR) -> pd.DataFrame:
        """One row per record and one column per field, in first-seen order.

        Multiple values of a field are joined with the separator.
        """
        columns = list(dict.fromkeys(field for record in self.records for field in record))
        rows = [
            {field: separator.join(values) for field, values in record.items()}
            for record in self.records
        ]
        return pd.DataFrame(rows, columns=columns)

    def export(self, output_path: str | Path) -> Path:
        """Write the records to a csv, tsv or json file, according to its extension."""
        output_path = Path(output_path)
        suffix = output_path.suffix.lower()
        if suffix == ".json":
            with open(output_path, "w", encoding="utf-8") as file_handle:
                json.dump(self.records, file_handle, ensure_ascii=False, indent=2)
        elif suffix == ".tsv":
            self.to_dataframe().to_csv(output_path, sep="\t", index=False)
        elif suffix == ".csv":
            self.to_dataframe().to_csv(output_path, index=False)
        else:
            raise ValueError(f"Unsupported output file: {output_path}")
        logger.info("%d records written to %s", len(self.records), output_path)
        return output_path
