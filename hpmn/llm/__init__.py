"""Model access: messages, prompt templates, structured output and the gateway."""

from hpmn.llm.gateway import ChatResponse, InteractionContext, ModelConfig, ModelGateway
from hpmn.llm.messages import ChatMessage, Role

__all__ = [
    "ChatMessage",
    "ChatResponse",
    "InteractionContext",
    "ModelConfig",
    "ModelGateway",
    "Role",
]
