"""
Default Template Loader

Loads and validates the default templates shipped as YAML files and
seeds them into an empty `templates` collection on startup. Validates
every file first and fails fast if any of them is invalid.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import jsonschema
import yaml

from .exceptions import ConfigurationError, ValidationError
from .templates import build_template
from .types import TEMPLATES_KEY, Template, utc_now_iso

logger = logging.getLogger(__name__)

# Paths
TEMPLATES_DIR = Path(__file__).parent.parent.parent / 'document_templates'
SEEDED_BY = 'system'


class TemplateLoader:
    """
    Loader for the shipped default templates.

    Usage:
        # On app startup
        TemplateLoader.seed_defaults(store)

        # Validating an uploaded definition
        errors = TemplateLoader.validate_yaml_content(text)
    """

    _schemas: Dict[str, dict] = {}

    @classmethod
    def _load_schemas(cls, directory: Path) -> None:
        """Load JSON schemas for validation."""
        cls._schemas.clear()
        schema_dir = directory / 'schema'

        if not schema_dir.exists():
            raise ConfigurationError(f"Schema directory not found: {schema_dir}")

        for schema_file in schema_dir.glob('v*.json'):
            version = schema_file.stem  # e.g., "v1.0"
            try:
                cls._schemas[version] = json.loads(schema_file.read_text())
            except ValueError as e:
                raise ConfigurationError(f"Invalid schema {schema_file.name}: {e}")
            logger.debug(f"Loaded template schema: {version}")

    @classmethod
    def _get_schema(cls, version: str) -> dict:
        schema_key = f"v{version}"
        if schema_key not in cls._schemas:
            raise ValidationError(f"Unknown schema version: {version}")
        return cls._schemas[schema_key]

    @classmethod
    def _to_template(cls, raw: dict, created_at: str) -> Template:
        """Validate a parsed YAML definition and convert it to a Template."""
        schema_version = str(raw.get('schema_version', '1.0'))
        try:
            jsonschema.validate(raw, cls._get_schema(schema_version))
        except jsonschema.ValidationError as e:
            raise ValidationError(f"Schema validation failed: {e.message}")

        return build_template({
            'id': raw['id'],
            'name': raw['name'],
            'description': raw.get('description', ''),
            'category': raw['category'],
            'commissionPercentage': raw.get('commission_percentage'),
            'fields': [
                {
                    'id': f['id'],
                    'label': f['label'],
                    'type': f.get('type', 'text'),
                    'required': f.get('required', False),
                    'defaultValue': f.get('default_value'),
                }
                for f in raw.get('fields', [])
            ],
            'createdAt': created_at,
            'createdBy': SEEDED_BY,
        })

    @classmethod
    def load_all(cls, directory: Optional[Path] = None) -> List[Template]:
        """
        Load and validate all default template definitions.

        Raises:
            ConfigurationError: listing every invalid file
        """
        directory = Path(directory) if directory else TEMPLATES_DIR
        if not directory.exists():
            logger.warning(f"Default templates directory not found: {directory}")
            return []

        cls._load_schemas(directory)

        yaml_files = sorted(list(directory.glob('*.yml')) + list(directory.glob('*.yaml')))
        created_at = utc_now_iso()
        templates: Dict[str, Template] = {}
        errors = []

        for yaml_file in yaml_files:
            try:
                raw = yaml.safe_load(yaml_file.read_text())
                if not raw:
                    raise ValidationError("Empty template definition")
                template = cls._to_template(raw, created_at)
            except (ValidationError, yaml.YAMLError) as e:
                errors.append(f"{yaml_file.name}: {e}")
                continue

            if template.id in templates:
                errors.append(f"{yaml_file.name}: Duplicate template id '{template.id}'")
                continue

            templates[template.id] = template
            logger.debug(f"Loaded default template: {template.id}")

        if errors:
            error_msg = "Template configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        logger.info(f"Loaded {len(templates)} default template(s)")
        return list(templates.values())

    @classmethod
    def seed_defaults(cls, store, directory: Optional[Path] = None) -> int:
        """
        Write the default templates into the store if it holds none yet.

        Returns:
            Number of templates seeded (0 when the collection already had data)
        """
        with store.transaction():
            if store.get_collection(TEMPLATES_KEY):
                return 0
            templates = cls.load_all(directory)
            if templates:
                store.set(TEMPLATES_KEY, [t.to_dict() for t in templates])

        logger.info(f"Seeded {len(templates)} default template(s)")
        return len(templates)

    @classmethod
    def validate_yaml_content(cls, yaml_content: str, directory: Optional[Path] = None) -> List[str]:
        """
        Validate YAML content without saving.

        Returns:
            List of validation error messages (empty if valid)
        """
        cls._load_schemas(Path(directory) if directory else TEMPLATES_DIR)

        try:
            raw = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            return [f"YAML syntax error: {e}"]

        if not raw:
            return ["Empty template definition"]
        if not isinstance(raw, dict):
            return ["Template definition must be a mapping"]

        try:
            cls._to_template(raw, utc_now_iso())
        except ValidationError as e:
            return [str(e)]
        return []
