from abc import abstractmethod

import httpx
from typing import Tuple
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import BackendUnavailable, ConfigurationError, ModelMissing


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="nomic-embed-text")
        self.vector_size = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=768))
        if self.vector_size <= 0:
            raise ConfigurationError(f"Embedding vector size must be positive, got {self.vector_size}.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_models(self) -> str:
        """
        Returns the endpoint path for model listing requests.

        Returns:
            str: The endpoint path for model listing requests (e.g. "/api/tags")
        """
        pass

    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embed")
        """
        pass

    @abstractmethod
    def get_endpoint_model_details(self) -> str:
        """
        Returns the endpoint path for model details requests.

        Returns:
            str: The endpoint path for model details requests (e.g. "/api/show")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        """
        Extracts the embedding vector size from the model information response.

        Args:
            model_info (dict): The raw response from the model details endpoint.
        Returns:
            int: The dimension of the embedding vectors produced by the model.
        Raises:
            ValueError: If the vector size cannot be determined.
        """
        pass

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    @abstractmethod
    def extract_model_names(self, response_data: dict) -> list[str]:
        """Extract the installed model names from a model listing response.

        Args:
            response_data (dict): The parsed JSON response of the model listing endpoint.

        Returns:
            list[str]: Names of all installed models.
        """
        pass

    @abstractmethod
    def is_model_missing_response(self, response: httpx.Response) -> bool:
        """Tell whether a failed embedding response means the model is not installed.

        Args:
            response (httpx.Response): The non-2xx embedding response.

        Returns:
            bool: True if the backend reports an unknown model.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_models(self) -> httpx.Response:
        """Fetch the list of available embedding models from the backend.

        Returns:
            httpx.Response: The response containing the model list.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_models(), raise_on_error=True)

    async def do_verify_model(self) -> None:
        """Make sure the configured embedding model is installed on the backend.

        Raises:
            ModelMissing: If the model is not in the backend's model list.
            BackendUnavailable: If the backend cannot be reached.
        """
        response = await self.do_fetch_models()
        names = self.extract_model_names(response.json())
        # ollama reports "nomic-embed-text:latest" for "nomic-embed-text"
        if self.embed_model not in names and f"{self.embed_model}:latest" not in names:
            raise ModelMissing(
                f"Embedding model '{self.embed_model}' is not installed on {self.get_engine_name()}."
            )

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        """
        Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            Tuple[int, str]: The number of dimensions produced by the embedding model and the distance metric.

        Raises:
            BackendUnavailable: If the backend cannot be reached.
            ValueError: If the dimension cannot be determined from the response.
        """
        response = await self.do_request(
            method="POST",
            json={"name": self.embed_model},
            endpoint=self.get_endpoint_model_details(),
            raise_on_error=True,
        )
        vector_size = self.extract_vector_size_from_model_info(model_info=response.json())
        return vector_size, self.embed_distance

    async def do_verify_vector_size(self) -> None:
        """Compare the model's reported dimension with the configured vector size.

        Raises:
            ConfigurationError: If the model produces vectors of another dimension.
        """
        model_size, _ = await self.do_fetch_embedding_vector_size()
        if model_size != self.vector_size:
            raise ConfigurationError(
                f"Embedding model '{self.embed_model}' produces {model_size}-dimensional vectors, "
                f"but EMBED_VECTOR_SIZE is {self.vector_size}."
            )

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ModelMissing: If the backend reports that the model is not installed.
            BackendUnavailable: If the request fails or times out.
            ValueError: If the response does not contain valid embeddings.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            if self.is_model_missing_response(response):
                raise ModelMissing(f"Embedding model '{self.embed_model}' is not installed on {self.get_engine_name()}.")
            raise BackendUnavailable("Embedding request failed with status %d." % response.status_code)
        return self.extract_embeddings_from_response(response.json())

    async def do_embed_text(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.

        Returns:
            list[float]: The embedding vector.
        """
        vectors = await self.do_embed([text])
        return vectors[0]
