"""
Schemas Pydantic per il registro eventi
Progetto: Service Station (Stazione di Servizio)
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SystemLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int]
    event_type: str
    description: str
    created_at: datetime.datetime
