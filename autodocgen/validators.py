"""Input validation utilities for AutoDocGen."""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import SUPPORTED_PROVIDERS, Settings
from .models import AnalysisResult, FrameworkType
from .prompt_templates import TemplateType

REQUIRED_ANALYSIS_KEYS = ["framework", "routes", "controllers", "services", "types", "metadata"]


class ValidationError(Exception):
    """Validation error."""
    pass


class ValidationResult(BaseModel):
    """Validation result."""

    valid: bool
    errors: List[str] = []
    warnings: List[str] = []
    normalized_value: Optional[Any] = None

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise ValidationError("; ".join(self.errors))


class ProjectPathValidator:
    """Validates a project directory before analysis."""

    def validate(self, path: str) -> ValidationResult:
        if not path or not path.strip():
            return ValidationResult(valid=False, errors=["Project path is required"])

        project = Path(path).expanduser()
        if not project.exists():
            return ValidationResult(valid=False, errors=[f"Project directory does not exist: {project}"])
        if not project.is_dir():
            return ValidationResult(valid=False, errors=[f"Path is not a directory: {project}"])

        warnings = []
        if not (project / "package.json").is_file():
            warnings.append("No package.json found; framework detection will rely on source patterns only")

        return ValidationResult(valid=True, warnings=warnings, normalized_value=project.resolve())


class AnalysisFileValidator:
    """Validates an analysis JSON file before AI generation."""

    def validate(self, path: str) -> ValidationResult:
        file_path = Path(path)
        if not file_path.is_file():
            return ValidationResult(valid=False, errors=[f"Analysis file not found: {file_path}"])

        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            return ValidationResult(valid=False, errors=[f"Could not read analysis file: {e}"])

        if not isinstance(data, dict):
            return ValidationResult(valid=False, errors=["Analysis file must contain a JSON object"])

        missing = [key for key in REQUIRED_ANALYSIS_KEYS if key not in data]
        if missing:
            return ValidationResult(valid=False, errors=[f"Analysis file is missing keys: {', '.join(missing)}"])

        try:
            result = AnalysisResult.from_json_dict(data)
        except PydanticValidationError as e:
            return ValidationResult(valid=False, errors=[f"Invalid analysis data: {e.error_count()} error(s)"])

        warnings = []
        if not result.routes:
            warnings.append("Analysis contains no routes")
        return ValidationResult(valid=True, warnings=warnings, normalized_value=result)


class SettingsValidator:
    """Validates settings values that pydantic cannot check on its own."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate_provider(self, provider: str) -> ValidationResult:
        if provider not in SUPPORTED_PROVIDERS:
            return ValidationResult(
                valid=False,
                errors=[f"Unsupported AI provider '{provider}'. Choose one of: {', '.join(SUPPORTED_PROVIDERS)}"],
            )
        return ValidationResult(valid=True, normalized_value=provider)

    def validate_template(self, template: str) -> ValidationResult:
        names = [t.value for t in TemplateType]
        if template not in names:
            return ValidationResult(valid=False, errors=[f"Unknown template '{template}'. Choose one of: {', '.join(names)}"])
        return ValidationResult(valid=True, normalized_value=template)

    def validate_framework(self, framework: Optional[str]) -> ValidationResult:
        if framework is None:
            return ValidationResult(valid=True)
        names = [f.value for f in FrameworkType if f != FrameworkType.UNKNOWN]
        if framework.lower() not in names:
            return ValidationResult(valid=False, errors=[f"Unknown framework '{framework}'. Choose one of: {', '.join(names)}"])
        return ValidationResult(valid=True, normalized_value=framework.lower())

    def validate_complete_settings(self) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        errors.extend(self.validate_provider(self.settings.ai.provider).errors)
        if not self.settings.ai.custom_prompt_file:
            errors.extend(self.validate_template(self.settings.ai.template).errors)
        elif not Path(self.settings.ai.custom_prompt_file).is_file():
            errors.append(f"Custom prompt file not found: {self.settings.ai.custom_prompt_file}")

        if not 0 <= self.settings.ai.temperature <= 2:
            errors.append("AI temperature must be between 0 and 2")
        if self.settings.ai.max_tokens <= 0:
            errors.append("AI max tokens must be positive")
        if not self.settings.api_key_for():
            warnings.append(f"No API key configured for {self.settings.ai.provider}")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


class InputSanitizer:
    """Input sanitization utilities."""

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Make a string safe to use as a file name."""
        filename = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", filename)
        filename = filename.strip(". ")
        return filename[:255] or "output"


def get_validation_summary(results: Dict[str, ValidationResult]) -> Dict[str, Any]:
    """Get summary of validation results."""
    return {
        "all_valid": all(result.valid for result in results.values()),
        "total_errors": sum(len(result.errors) for result in results.values()),
        "total_warnings": sum(len(result.warnings) for result in results.values()),
        "details": {
            name: {"valid": result.valid, "errors": result.errors, "warnings": result.warnings}
            for name, result in results.items()
        },
    }
