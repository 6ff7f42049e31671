"""Driver for the external antumbra tool."""

from .executor import AntumbraExecutor, create_antumbra_executor
from .partition_api import (
    PartitionApi,
    validate_input_file,
    validate_output_dir,
    validate_output_parent,
)
from .partition_table import Partition, PartitionList, parse_pgpt_output


__all__ = [
    "AntumbraExecutor",
    "create_antumbra_executor",
    "PartitionApi",
    "Partition",
    "PartitionList",
    "parse_pgpt_output",
    "validate_input_file",
    "validate_output_dir",
    "validate_output_parent",
]
