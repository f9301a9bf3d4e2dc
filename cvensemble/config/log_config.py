#!filepath: cvensemble/config/log_config.py
from typing import Optional

from pydantic import BaseModel


class LogConfig(BaseModel):
    # None -> stderr only
    dir: Optional[str] = None
    rotation: str = "1 day"
    retention: str = "30 days"
    level: str = "INFO"
