from typing import AsyncIterator

from pydantic import BaseModel

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def ndjson_stream(events: AsyncIterator[BaseModel]) -> AsyncIterator[str]:
    """Serialize models as newline-delimited JSON, one event per line."""
    async for event in events:
        yield event.model_dump_json(exclude_none=True) + "\n"
