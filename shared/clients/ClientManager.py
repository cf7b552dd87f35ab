from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import ConfigurationError
from shared.clients.ClientInterface import ClientInterface

# client type → class name prefix of its engines, e.g. "rag" + "qdrant" → RAGClientQdrant
_CLASS_PREFIXES: dict[str, str] = {
    "embed": "EmbedClient",
    "rag": "RAGClient",
    "llm": "LLMClient",
}


class ClientManager:
    """
    Instantiates the client engine configured for one client type.

    The engine is read from "{TYPE}_ENGINE" (e.g. RAG_ENGINE=qdrant) and the
    implementation is imported from shared.clients.{type}.{engine}.{Prefix}{Engine}.
    """

    def __init__(self, helper_config: HelperConfig, client_type: str):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client_type = client_type.lower()
        if self.client_type not in _CLASS_PREFIXES:
            raise ConfigurationError(f"Unknown client type '{client_type}'.")
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the engine name from ENV configuration.

        Returns:
            str: The capitalized engine name, e.g. "Qdrant".

        Raises:
            ConfigurationError: If no engine is configured.
        """
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE")
        if not engine:
            raise ConfigurationError(f"No {self.client_type.upper()} engine specified in configuration.")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientInterface:
        """
        Imports and instantiates the configured engine class.

        Returns:
            ClientInterface: The client instance.

        Raises:
            ConfigurationError: If the engine is not supported.
        """
        engine = self._get_engine_from_env()
        class_name = f"{_CLASS_PREFIXES[self.client_type]}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported {self.client_type.upper()} engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type.upper(), engine)
        return client

    def get_client(self) -> ClientInterface:
        """
        Returns the instantiated client.

        Returns:
            ClientInterface: The client instance.
        """
        return self.client
