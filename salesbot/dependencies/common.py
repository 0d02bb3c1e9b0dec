"""
FastAPI dependencies shared by every router.
"""

from typing import Annotated

from fastapi import Depends

from salesbot.database import DatabasePool, get_db_pool
from salesbot.settings import Settings, get_settings

# Type aliases for cleaner endpoint signatures
DatabasePoolDep = Annotated[DatabasePool, Depends(get_db_pool)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
