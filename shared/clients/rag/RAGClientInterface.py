from abc import abstractmethod
from typing import Any
import json
import math

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.SearchHit import CollectionInfo, ScrollResult, SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import ConfigurationError


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        """
        Returns the endpoint path of the collection, used for creation and introspection.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/exists")
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by id or filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """
        Returns the endpoint path for scroll requests.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/scroll")
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """
        Returns the endpoint path for counting points matching a filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/count")
        """
        pass

    ################ ID MAPPING ##################
    @abstractmethod
    def to_backend_point_id(self, point_id: str) -> str | int:
        """
        Maps a logical point id (document id or "{document_id}_chunk_{i}") to an id
        accepted by the backend. The mapping must be deterministic so re-syncs overwrite.

        Args:
            point_id (str): The logical point id.

        Returns:
            str | int: The backend point id.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def build_filter(self, equality_filter: dict[str, Any] | None) -> dict | None:
        """
        Translates a {payload_field: value} equality filter into the backend filter syntax.

        Args:
            equality_filter (dict[str, Any] | None): Fields that must match exactly.

        Returns:
            dict | None: The backend filter, or None when there is nothing to filter on.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the request payload for creating the collection.

        Args:
            vector_size (int): The dimension of the vectors.
            distance (str): The distance metric (e.g. "Cosine").

        Returns:
            dict: The payload for the create collection request.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[VectorPoint]) -> dict:
        """
        Builds the request payload for a batched upsert.

        Args:
            points (list[VectorPoint]): The points to upsert.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the request payload for a filter-based delete.

        Args:
            filter (dict): The backend filter that identifies which points to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_delete_by_ids_payload(self, ids: list[str]) -> dict:
        """
        Builds the request payload for an id-based delete.

        Args:
            ids (list[str]): Logical ids of the points to delete.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], limit: int, filter: dict | None) -> dict:
        """
        Builds the request payload for a similarity search.

        Args:
            vector (list[float]): The query vector.
            limit (int): The maximum number of hits.
            filter (dict | None): Optional backend filter.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, filter: dict | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        """
        Returns the payload for scroll requests to the RAG backend.

        Args:
            filter (dict | None): The backend filter to apply.
            with_payload (bool | list | dict): Whether to include the payload, or which payload fields to include.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return.
            offset (str | int | None): Pagination cursor returned by the previous scroll page.

        Returns:
            dict: The payload for the scroll request.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict | None) -> dict:
        """Builds the backend-specific request payload for a point count.

        Args:
            filter (dict | None): Backend filter to apply before counting.

        Returns:
            dict: The payload for the count request.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        """
        Extracts ranked hits from a raw search response, best score first.

        Args:
            raw_response (dict): The raw JSON response from the search endpoint.

        Returns:
            list[SearchHit]: The hits in the order returned by the backend.
        """
        pass

    @abstractmethod
    def extract_collection_info(self, raw_response: dict) -> CollectionInfo:
        """
        Extracts point count and vector configuration from a raw collection response.

        Args:
            raw_response (dict): The raw JSON response from the collection endpoint.

        Returns:
            CollectionInfo: The parsed collection info.
        """
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Args:
            raw_response (dict): The raw JSON response from the scroll endpoint.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        """
        Extracts the pagination cursor for the next scroll page from a raw response.

        Args:
            raw_response (dict): The raw JSON response from the scroll endpoint.

        Returns:
            str | int | None: The cursor for the next page, or None if this was the last page.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    ############# COLLECTION ##############
    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine") -> None:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.
        """
        await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection(),
            raise_on_error=True,
        )
        self.logging.info("Created %s collection with vector size %d (%s).", self.get_engine_name(), vector_size, distance)

    async def do_collection_info(self) -> CollectionInfo:
        """Fetch point count and vector configuration of the collection.

        Returns:
            CollectionInfo: The collection info.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collection(), raise_on_error=True)
        return self.extract_collection_info(resp.json())

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection if missing, otherwise verify its vector dimension.

        Args:
            vector_size (int): The dimension produced by the embedding model.
            distance (str): The distance metric for new collections.

        Raises:
            ConfigurationError: If the existing collection has a different vector dimension.
        """
        if not await self.do_existence_check():
            await self.do_create_collection(vector_size=vector_size, distance=distance)
            return

        info = await self.do_collection_info()
        if info.vector_size is not None and info.vector_size != vector_size:
            raise ConfigurationError(
                f"{self.get_engine_name()} collection has vector size {info.vector_size}, "
                f"but the embedding model produces {vector_size}-dimensional vectors."
            )
        self.logging.info("%s collection already exists (%d points).", self.get_engine_name(), info.points_count)

    ############# POINTS ##############
    async def do_upsert_points(self, points: list[VectorPoint]) -> None:
        """Upsert points into the collection in one batched request.
        Replaces existing points with the same id.

        Args:
            points (list[VectorPoint]): The points to upsert. An empty list is a no-op.
        """
        if not points:
            return
        await self.do_request(
            method="PUT",
            content=json.dumps(self.get_upsert_payload(points)),
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        self.logging.debug("Upserted %d points to %s", len(points), self.get_engine_name())

    async def do_delete_points_by_ids(self, ids: list[str]) -> None:
        """Delete points by their logical ids.

        Args:
            ids (list[str]): Logical point ids. An empty list is a no-op.
        """
        if not ids:
            return
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_by_ids_payload(ids)),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        self.logging.debug("Deleted %d points from %s", len(ids), self.get_engine_name())

    async def do_delete_points_by_filter(self, equality_filter: dict[str, Any]) -> None:
        """Delete all points whose payload matches the equality filter.

        Args:
            equality_filter (dict[str, Any]): Payload fields that must match, e.g. {"document_id": "..."}.

        Raises:
            ValueError: If the filter is empty (would delete the whole collection).
        """
        backend_filter = self.build_filter(equality_filter)
        if not backend_filter:
            raise ValueError("Refusing to delete points with an empty filter.")
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(backend_filter)),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_delete_by_document_id(self, document_id: str) -> None:
        """Delete every point (all chunks) of a document.

        Args:
            document_id (str): ID of the document.
        """
        await self.do_delete_points_by_filter({"document_id": document_id})
        self.logging.debug("Deleted all points for document %s", document_id)

    ############# SEARCH ##############
    async def do_search(self, vector: list[float], limit: int = 5, equality_filter: dict[str, Any] | None = None) -> list[SearchHit]:
        """Run a similarity search.

        Args:
            vector (list[float]): The query vector.
            limit (int): The maximum number of hits.
            equality_filter (dict[str, Any] | None): Optional payload equality filter.

        Returns:
            list[SearchHit]: Hits ranked best score first.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vector, limit, self.build_filter(equality_filter))),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_search_hits(resp.json())

    async def do_scroll(self, equality_filter: dict[str, Any] | None, with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> ScrollResult:
        """Scroll a single page from the collection.

        To retrieve all matching points across an arbitrary number of pages use
        do_scroll_all() instead.

        Args:
            equality_filter (dict[str, Any] | None): Optional payload equality filter.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return per page.
            offset (str | int | None): Cursor from the previous page; None starts from the beginning.

        Returns:
            ScrollResult: The page, including next_page_offset when further pages are available.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(self.build_filter(equality_filter), with_payload, with_vector, limit, offset)),
            endpoint=self._get_endpoint_scroll(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = resp.json()
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_count(self, equality_filter: dict[str, Any] | None = None) -> int:
        """Count the points matching the given filter.

        Args:
            equality_filter (dict[str, Any] | None): Optional payload equality filter.

        Returns:
            int: Total number of matching points.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(self.build_filter(equality_filter))),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_scroll_all(self, equality_filter: dict[str, Any] | None, with_payload: bool | list | dict, with_vector: bool | list) -> ScrollResult:
        """Scroll through ALL points matching the filter, paginating automatically.

        Args:
            equality_filter (dict[str, Any] | None): Optional payload equality filter.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector in each result point.

        Returns:
            ScrollResult: All matching points collected across all pages.
        """
        page_size = 1000
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        total_points = await self.do_count(equality_filter)
        total_pages = math.ceil(total_points / page_size) if total_points > 0 else 1
        while True:
            page_result = await self.do_scroll(
                equality_filter=equality_filter,
                with_payload=with_payload,
                with_vector=with_vector,
                limit=page_size,
                offset=offset,
            )
            all_points.extend(page_result.result)
            self.logging.debug(
                "Fetched points page %d of %d from %s, total points so far: %d of %d",
                page, total_pages, self.get_engine_name(), len(all_points), total_points,
            )
            offset = page_result.next_page_offset
            if offset is None:
                break
            page += 1
        return ScrollResult(result=all_points)
