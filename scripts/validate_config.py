#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from relay_app.config.loader import ConfigLoader
from relay_app.config.validation import ConfigValidator, ValidationError
from relay_app.errors import ConfigurationError


def validate_config_file(config_path: Path) -> List[ValidationError]:
    """Validate a relay YAML file merged over the defaults and environment."""
    loader = ConfigLoader.create(config_path)
    config = loader.merge_config()
    return ConfigValidator.validate_config(config)


def main():
    """Main validation function."""
    paths = [Path(arg) for arg in sys.argv[1:]] or [project_root / "config" / "relay.yaml"]

    all_valid = True

    for path in paths:
        print(f"\nValidating {path}...")

        try:
            errors = validate_config_file(path)
        except ConfigurationError as e:
            print(f"  error: {e}")
            all_valid = False
            continue

        if errors:
            print(f"  found {len(errors)} validation errors:")
            for error in errors:
                print(f"  - {error.field}: {error.message} (value: {error.value!r})")
            all_valid = False
        else:
            print("  configuration is valid")

    if all_valid:
        print("\nAll configuration validation passed")
        sys.exit(0)
    else:
        print("\nConfiguration validation failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
