"""
Cortex Chat - Streaming chat front-end for Snowflake Cortex Agents
==================================================================

FastAPI backend that relays Cortex agent responses to browsers as
server-sent events and stores uploaded files in PostgreSQL.

Key Features:
    - **Agent Relay**: Thread resolution, parent-message sequencing, live or mock dispatch
    - **SSE Streaming**: Exactly one terminal event per stream, transport-agnostic adapter
    - **Chunked Blob Storage**: Lossless base64 chunking into bounded text columns
    - **Enterprise Logging**: Structured JSON logs with rotation and request correlation

Modules:
    api: FastAPI routes, services and middleware
    core: Settings, constants and the upstream agent registry
    integrations: Cortex Agents REST client
    models: Pydantic models for events, API schemas and errors
    utils: Logging, database helpers and the chunk codec
"""

__version__ = "1.0.0"
