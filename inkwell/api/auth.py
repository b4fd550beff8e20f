"""Engine credential checks."""
from ..errors import AIError

# Providers that authenticate with a bearer key
KEYED_PROVIDERS = ('openai', 'custom')


def validate_engine(provider: str, engine) -> str:
    """
    Validate an engine configuration before calling it.

    Args:
        provider: Engine name (openai, ollama, llamacpp, custom)
        engine: EngineConfig for that provider

    Returns:
        The base URL with any trailing slash removed

    Raises:
        AIError: If the base URL or a required API key is missing
    """
    base_url = (engine.base_url or "").strip().rstrip('/')
    if not base_url:
        raise AIError(f"No base URL configured for the '{provider}' engine")

    if provider in KEYED_PROVIDERS and not engine.api_key:
        raise AIError(
            f"API key for the '{provider}' engine not found. "
            f"Set it with: inkwell settings set ai.engines.{provider}.apiKey <key>"
        )

    return base_url
