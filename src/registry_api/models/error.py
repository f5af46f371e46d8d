from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class Error(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: StrictStr
    message: StrictStr
    request_id: Optional[StrictStr] = Field(default=None, alias="requestId")
    details: Optional[Dict[str, Any]] = None
