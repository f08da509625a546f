#!/usr/bin/env python3
"""
Generate static OpenAPI JSON documentation
"""

import json
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.main import create_app


def main(path: str = 'openapi.json'):
    openapi_schema = create_app().openapi()

    with open(path, 'w') as f:
        json.dump(openapi_schema, f, indent=2)

    print(f"✅ OpenAPI schema generated: {path}")
    print("📖 You can use this file with Swagger UI or other OpenAPI tools")


if __name__ == '__main__':
    main(sys.argv[1] if len(sys.argv) > 1 else 'openapi.json')
