"""Remote peer and local control API settings."""

from pydantic import BaseModel, Field


class WebSocketConfig(BaseModel):
    """Dispatch service the pile connects to."""

    url: str = Field(default="ws://localhost:8080/ws", description="WebSocket URL of the remote peer")
    connect_timeout_s: float = Field(default=10.0, gt=0, description="Give up connecting after N seconds")


class ApiConfig(BaseModel):
    """Optional local HTTP control surface."""

    enabled: bool = Field(default=False, description="Serve the control API next to the WebSocket client")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65_535)
