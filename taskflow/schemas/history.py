from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional

class HistoryEntryResponse(BaseModel):
    id: int
    timestamp: datetime
    user_id: Optional[int]
    action: str
    entity_id: int
    entity_type: str
    project_id: int
    details: Dict[str, Any]
    message: str
