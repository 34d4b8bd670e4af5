"""
OpenAPI/Swagger document loader.

References are kept as they are: the schema engine resolves them by name so
that self-referencing definitions stay finite.
"""
import json
import logging
import tempfile
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import prance

from specplan.core.errors import InvalidError, NotFoundError

logger = logging.getLogger(__name__)

HTTP_METHODS = ['get', 'post', 'put', 'patch', 'delete', 'head', 'options']


class OpenAPIParser:
    """Parser for OpenAPI specifications."""

    def __init__(self, spec_path: Optional[str] = None, spec_dict: Optional[Dict] = None):
        """
        Initialize parser.

        Args:
            spec_path: Path or URL of the OpenAPI file
            spec_dict: OpenAPI spec as dictionary
        """
        self.spec_path = spec_path
        self.spec_dict = spec_dict
        self.spec: Optional[Dict] = None
        self.collections: Dict[str, Any] = {}

    def parse(self) -> Dict[str, Any]:
        """
        Load and validate the OpenAPI specification.

        Returns:
            The specification with its $refs left in place
        """
        try:
            if self.spec_path:
                parser = prance.BaseParser(
                    self.spec_path, backend='openapi-spec-validator', strict=False
                )
            elif self.spec_dict:
                # Write to temp file for prance
                with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
                    json.dump(self.spec_dict, f)
                    temp_path = f.name

                try:
                    parser = prance.BaseParser(
                        temp_path, backend='openapi-spec-validator', strict=False
                    )
                finally:
                    Path(temp_path).unlink()  # Clean up
            else:
                raise ValueError("Either spec_path or spec_dict must be provided")

            self.spec = parser.specification

            # Extract collections (reusable schemas)
            self._extract_collections()

            logger.info(f"Successfully parsed OpenAPI spec with {len(self.collections)} collections")

            return self.spec

        except Exception as e:
            logger.error(f"Error parsing OpenAPI spec: {str(e)}")
            raise

    def _require_spec(self) -> Dict[str, Any]:
        if self.spec is None:
            raise ValueError("Spec not parsed. Call parse() first.")
        return self.spec

    def _extract_collections(self):
        """Extract reusable schema collections from components/schemas."""
        if not self.spec:
            return

        # OpenAPI 3.x
        if 'components' in self.spec and 'schemas' in self.spec['components']:
            self.collections = self.spec['components']['schemas']

        # Swagger 2.0
        elif 'definitions' in self.spec:
            self.collections = self.spec['definitions']

    @property
    def is_swagger2(self) -> bool:
        return 'swagger' in self._require_spec()

    @property
    def base_path(self) -> str:
        """
        Prefix for generated requests.

        OpenAPI 3 uses the first server URL. Swagger 2 joins scheme, host and
        basePath when a host is declared.
        """
        spec = self._require_spec()
        if self.is_swagger2:
            base = spec.get('basePath', '')
            host = spec.get('host')
            if host:
                scheme = (spec.get('schemes') or ['http'])[0]
                return f"{scheme}://{host}{base}"
            return base

        servers = spec.get('servers') or []
        if servers:
            return servers[0].get('url', '')
        return ''

    def get_endpoints(self) -> List[Dict[str, Any]]:
        """
        Extract all API endpoints from the spec.

        Returns:
            List of endpoint definitions
        """
        endpoints = []
        paths = self._require_spec().get('paths', {})

        for path, path_item in paths.items():
            for method, operation in path_item.items():
                if method in HTTP_METHODS:
                    endpoints.append({
                        'path': path,
                        'method': method.upper(),
                        'operation': operation,
                        'operation_id': operation.get('operationId', f"{method.upper()}_{path}"),
                        'summary': operation.get('summary', ''),
                        'parameters': self.get_parameters(path, method),
                    })

        return endpoints

    def get_operation(self, path: str, method: str) -> Dict[str, Any]:
        """
        Look up the operation registered under (path, method).

        Raises:
            NotFoundError: the path or the method is not in the document
        """
        paths = self._require_spec().get('paths', {})
        path_item = paths.get(path)
        if path_item is None:
            raise NotFoundError(f"Path {path} not found in the spec")
        operation = path_item.get(method.lower())
        if operation is None or method.lower() not in HTTP_METHODS:
            raise NotFoundError(f"Operation {method.upper()} {path} not found in the spec")
        return operation

    def get_parameters(self, path: str, method: str) -> List[Dict[str, Any]]:
        """
        Declared parameters of an operation, with $refs resolved.

        Path-level parameters are included unless the operation redefines a
        parameter with the same name and location.
        """
        operation = self.get_operation(path, method)
        path_item = self._require_spec()['paths'][path]

        params: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for param in path_item.get('parameters', []) + operation.get('parameters', []):
            if '$ref' in param:
                param = self.resolve_ref(param['$ref'])
            params[(param.get('name', ''), param.get('in', ''))] = param
        return list(params.values())

    def get_schemas(self) -> Dict[str, Any]:
        """Get all schemas/collections."""
        return self.collections

    def resolve_ref(self, ref: str) -> Dict[str, Any]:
        """
        Resolve a $ref reference.

        Args:
            ref: Reference string (e.g., '#/components/schemas/User')

        Returns:
            Resolved node
        """
        if not ref.startswith('#'):
            raise InvalidError(f"External references not supported: {ref}")

        parts = ref.split('/')[1:]  # Remove '#'
        current = self._require_spec()

        for part in parts:
            part = part.replace('~1', '/').replace('~0', '~')
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                raise NotFoundError(f"Reference not found: {ref}")

        return current
