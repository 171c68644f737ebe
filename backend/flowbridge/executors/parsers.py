# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured-format parsers.

XML and CSV text in, plain dicts/lists out. Both are deterministic for a
given input and option set and fail with FormatError on malformed input.
"""

import csv
import io
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from flowbridge.core.errors import FormatError
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from .base import BaseExecutor


def _as_text(input_data: Any, format_name: str) -> str:
    if isinstance(input_data, bytes):
        try:
            return input_data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"{format_name} input is not valid UTF-8: {e}", format_name=format_name)
    if not isinstance(input_data, str):
        raise FormatError(
            f"{format_name} parser input must be a string, got {type(input_data).__name__}",
            format_name=format_name
        )
    return input_data


# =============================================================================
# XML
# =============================================================================

def _local_name(tag: str) -> str:
    # "{urn:ns}order" -> "order"
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


class XmlParserExecutor(BaseExecutor):
    """
    Parse XML text into nested dicts.

    Options (node config):
        strip_namespaces: drop namespace URIs from tags/attributes (default True)
        ignore_attributes: skip attributes entirely (default False)
        attribute_prefix: key prefix for attributes (default "@_")
        text_key: key for element text when an element also has
            attributes or children (default "#text")

    Repeated sibling elements are collected into a list.
    """

    kind = NodeKind.XML_PARSER

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        text = _as_text(input_data, "XML")
        options = {
            "strip_namespaces": node.config.get("strip_namespaces", True),
            "ignore_attributes": node.config.get("ignore_attributes", False),
            "attribute_prefix": node.config.get("attribute_prefix", "@_"),
            "text_key": node.config.get("text_key", "#text"),
        }
        return NodeExecutionResult(output=parse_xml(text, **options))


def parse_xml(
    text: str,
    strip_namespaces: bool = True,
    ignore_attributes: bool = False,
    attribute_prefix: str = "@_",
    text_key: str = "#text"
) -> Dict[str, Any]:
    """Parse an XML document into {root_tag: value}."""
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError as e:
        raise FormatError(f"Malformed XML: {e}", format_name="xml")

    def name(tag: str) -> str:
        return _local_name(tag) if strip_namespaces else tag

    def convert(element: ET.Element) -> Any:
        children = list(element)
        attributes = {} if ignore_attributes else element.attrib
        element_text = (element.text or "").strip()

        if not children and not attributes:
            return element_text

        value: Dict[str, Any] = {}
        for attr_name, attr_value in attributes.items():
            value[f"{attribute_prefix}{name(attr_name)}"] = attr_value

        for child in children:
            key = name(child.tag)
            child_value = convert(child)
            if key in value:
                if not isinstance(value[key], list):
                    value[key] = [value[key]]
                value[key].append(child_value)
            else:
                value[key] = child_value

        if element_text:
            value[text_key] = element_text
        return value

    return {name(root.tag): convert(root)}


# =============================================================================
# CSV
# =============================================================================

class CsvParserExecutor(BaseExecutor):
    """
    Parse CSV text into a list of row dicts.

    Options (node config):
        delimiter: field separator (default ",")
        quote: quote character (default '"')
        has_header: first row holds column names (default True)
        columns: comma-separated column names; overrides the header row
        skip_empty_lines: ignore blank lines (default True)
        trim: strip whitespace around values (default True)
    """

    kind = NodeKind.CSV_PARSER

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        text = _as_text(input_data, "CSV")
        columns = node.config.get("columns")
        if isinstance(columns, str):
            columns = [c.strip() for c in columns.split(",") if c.strip()]
        rows = parse_csv(
            text,
            delimiter=node.config.get("delimiter") or ",",
            quote=node.config.get("quote") or '"',
            has_header=node.config.get("has_header", True),
            columns=columns or None,
            skip_empty_lines=node.config.get("skip_empty_lines", True),
            trim=node.config.get("trim", True),
        )
        return NodeExecutionResult(output=rows, metadata={"row_count": len(rows)})


def parse_csv(
    text: str,
    delimiter: str = ",",
    quote: str = '"',
    has_header: bool = True,
    columns: Optional[List[str]] = None,
    skip_empty_lines: bool = True,
    trim: bool = True
) -> List[Dict[str, str]]:
    """Parse CSV text into row dicts keyed by column name."""
    if len(delimiter) != 1 or len(quote) != 1:
        raise FormatError("CSV delimiter and quote must be single characters", format_name="csv")

    reader = csv.reader(io.StringIO(text), delimiter=delimiter, quotechar=quote, strict=True)
    try:
        records = [row for row in reader]
    except csv.Error as e:
        raise FormatError(f"Malformed CSV at line {reader.line_num}: {e}", format_name="csv")

    if trim:
        records = [[value.strip() for value in row] for row in records]

    def is_empty(row: List[str]) -> bool:
        return not row or all(value.strip() == "" for value in row)

    if has_header and not columns:
        while records and is_empty(records[0]):
            records.pop(0)
        if not records:
            return []
        headers = records.pop(0)
    elif columns:
        headers = list(columns)
        if has_header and records:
            records.pop(0)
    else:
        raise FormatError(
            "CSV parser requires either a header row or explicit column names",
            format_name="csv"
        )

    result = []
    for row in records:
        if not row or (skip_empty_lines and is_empty(row)):
            continue
        result.append({
            header: row[index] if index < len(row) else ""
            for index, header in enumerate(headers)
        })
    return result
