from .langfuse import (
    LangfuseConfigError,
    get_openai_client_class,
    initialize_langfuse,
    shutdown_langfuse,
    start_langfuse_generation,
)

__all__ = [
    "LangfuseConfigError",
    "get_openai_client_class",
    "initialize_langfuse",
    "shutdown_langfuse",
    "start_langfuse_generation",
]
