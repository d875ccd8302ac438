# /riotbot/models/api.py

from pydantic import BaseModel, Field

# This file contains Pydantic models that define the structure of data for
# API requests and responses, ensuring type safety and validation.

class CommandRequest(BaseModel):
    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, max_length=4096)

class CommandResponse(BaseModel):
    msgtype: str = "m.notice"
    body: str

class TutorialSessionStatus(BaseModel):
    room_id: str
    user_id: str
    state: str
    current_step: int
    total_steps: int
    messages_sent: int
    send_failures: int
    pending: bool
