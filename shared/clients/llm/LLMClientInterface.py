from abc import abstractmethod

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import BackendUnavailable, ModelMissing


class LLMClientInterface(ClientInterface):
    """Opaque text-completion backend used to answer chat messages."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default="llama3.2:1b")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    @abstractmethod
    def is_model_missing_response(self, response: httpx.Response) -> bool:
        """Tell whether a failed chat response means the model is not installed."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Returns:
            str: The assistant reply text.

        Raises:
            ModelMissing: If the chat model is not installed.
            BackendUnavailable: If the HTTP request fails or times out.
            ValueError: If the response does not contain a valid reply.
        """
        body = self.get_chat_payload(messages)
        response = await self.do_request(method="POST", endpoint=self._get_endpoint_chat(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Chat request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            if self.is_model_missing_response(response):
                raise ModelMissing(f"Chat model '{self.chat_model}' is not installed on {self.get_engine_name()}.")
            raise BackendUnavailable("Chat request failed with status %d." % response.status_code)
        return self.extract_chat_response(response.json())
