
from pydantic import BaseModel

class IdOut(BaseModel):
    id: int

class MessageOut(BaseModel):
    message: str
