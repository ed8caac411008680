"""
JSON serialization of BaSyx model objects for HTTP responses.
"""

import json
from typing import Any

from basyx.aas.adapter.json import AASToJsonEncoder
from fastapi.responses import Response


def to_json(obj: Any) -> str:
    """Serialize AAS objects (or containers of them) to AAS JSON."""
    return json.dumps(obj, cls=AASToJsonEncoder)


def to_jsonable(obj: Any) -> Any:
    """AAS objects as plain JSON-compatible Python values."""
    return json.loads(to_json(obj))


def aas_json_response(obj: Any, status_code: int = 200) -> Response:
    """Build a JSON response from AAS objects."""
    return Response(content=to_json(obj), status_code=status_code, media_type="application/json")
