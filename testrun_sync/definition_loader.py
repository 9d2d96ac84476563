"""Load test definitions from YAML files."""

import logging
from collections.abc import Sequence
from pathlib import Path

import yaml
from pydantic import ValidationError

from testrun_sync.models.definition import TestDefinition, TestDefinitionFile

log = logging.getLogger(__name__)


async def load_test_definitions(path: Path) -> Sequence[TestDefinition]:
    """Load the test targets listed in a definitions file.

    The file holds a top level ``tests`` list of target definitions with
    their nested suites and tests. JSON files are accepted as well.

    Args:
        path: Path to the definitions file

    Returns:
        Target definitions in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or does not match the schema

    """
    if not path.exists():
        raise FileNotFoundError(f"Definition file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty definition file: {path}")

    try:
        definition_file = TestDefinitionFile.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid test definition schema in {path}: {e}") from e

    log.debug("Loaded %d target(s) from %s", len(definition_file.tests), path)
    return definition_file.tests
